"""Default preview generator.

Picks the first provider able to render a file, then scales or crops the
result to the requested box. Rendered previews are returned as PNG bytes;
storing them is left to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import TYPE_CHECKING, Any

from PIL import Image, ImageOps

from .errors import InvalidArgumentError, NotFoundError
from .manager import MODE_COVER, MODE_FILL

if TYPE_CHECKING:
    from .files import FileInfo
    from .manager import PreviewManager

logger = logging.getLogger(__name__)

VALID_MODES = {MODE_FILL, MODE_COVER}


@dataclass
class RenderedPreview:
    """A rendered preview image."""

    data: bytes
    mime_type: str
    width: int
    height: int


class PreviewGenerator:
    """Renders previews using the providers of one ``PreviewManager``."""

    def __init__(self, manager: PreviewManager):
        self.manager = manager

    def get_preview(
        self,
        file: FileInfo,
        width: int = -1,
        height: int = -1,
        crop: bool = False,
        mode: str = MODE_FILL,
        mime_type: str | None = None,
    ) -> RenderedPreview:
        """Render a single preview.

        ``width``/``height`` of -1 mean "as large as the source".

        Raises:
            InvalidArgumentError: Bad dimensions or mode.
            NotFoundError: No provider produced an image.
        """
        _validate(width, height, mode)

        mime = mime_type or file.mime_type
        source = self._render_source(file, mime, width, height)
        im = _resize(source, width, height, crop, mode)
        return _encode(im)

    def generate_previews(
        self,
        file: FileInfo,
        specifications: list[dict[str, Any]],
        mime_type: str | None = None,
    ) -> RenderedPreview:
        """Render several previews from one source, returning the last.

        Each specification may hold ``width``, ``height``, ``crop`` and
        ``mode`` keys with the same meaning as for ``get_preview``.
        """
        if not specifications:
            raise InvalidArgumentError("At least one preview specification is required")

        for spec in specifications:
            _validate(spec.get("width", -1), spec.get("height", -1), spec.get("mode", MODE_FILL))

        # Render the source once at the largest requested box
        max_x = _largest(spec.get("width", -1) for spec in specifications)
        max_y = _largest(spec.get("height", -1) for spec in specifications)
        mime = mime_type or file.mime_type
        source = self._render_source(file, mime, max_x, max_y)

        preview = None
        for spec in specifications:
            im = _resize(
                source.copy(),
                spec.get("width", -1),
                spec.get("height", -1),
                bool(spec.get("crop", False)),
                spec.get("mode", MODE_FILL),
            )
            preview = _encode(im)
        return preview

    def _render_source(self, file: FileInfo, mime: str, max_x: int, max_y: int) -> Image.Image:
        if not self.manager.is_mime_supported(mime):
            raise NotFoundError(f"No preview provider for {mime}")

        for provider in self.manager.iter_providers(mime):
            probe = provider.availability()
            if probe is not None and not probe(file):
                continue
            try:
                im = provider.get_thumbnail(file, max_x, max_y)
            except Exception:
                logger.warning(
                    "Provider %s failed to render %s", provider.name, file.path, exc_info=True
                )
                continue
            if im is not None:
                logger.debug("Rendered %s with %s", file.path, provider.name)
                return im

        raise NotFoundError(f"No provider could render {file.path}")


def _validate(width: int, height: int, mode: str) -> None:
    for label, value in (("width", width), ("height", height)):
        if not isinstance(value, int) or isinstance(value, bool) or value == 0 or value < -1:
            raise InvalidArgumentError(f"Invalid preview {label}: {value!r}")
    if mode not in VALID_MODES:
        raise InvalidArgumentError(
            f"Invalid preview mode {mode!r}. Must be one of: {', '.join(sorted(VALID_MODES))}"
        )


def _largest(sizes) -> int:
    sizes = list(sizes)
    return -1 if -1 in sizes else max(sizes)


def _resize(im: Image.Image, width: int, height: int, crop: bool, mode: str) -> Image.Image:
    if width == -1:
        width = im.width
    if height == -1:
        height = im.height

    if crop:
        return ImageOps.fit(im, (width, height))

    if mode == MODE_COVER:
        # Smallest size covering the box, never larger than the source
        scale = min(max(width / im.width, height / im.height), 1.0)
        size = (max(1, round(im.width * scale)), max(1, round(im.height * scale)))
        return im.resize(size) if size != im.size else im

    im.thumbnail((width, height))
    return im


def _encode(im: Image.Image) -> RenderedPreview:
    if im.mode not in ("RGB", "RGBA"):
        im = im.convert("RGBA")
    buffer = BytesIO()
    im.save(buffer, format="PNG")
    return RenderedPreview(
        data=buffer.getvalue(), mime_type="image/png", width=im.width, height=im.height
    )
