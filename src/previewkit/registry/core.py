"""Registration of the built-in providers, gated by configuration and capabilities."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..providers.builtin import BUILTIN_PROVIDERS
from .table import ProviderFactory

if TYPE_CHECKING:
    from ..capabilities import SystemCapabilities
    from ..config import PreviewConfig
    from ..providers.base import PreviewProvider

logger = logging.getLogger(__name__)

IMAGE_MARKER = "Image"

IMAGE_PROVIDERS = ["PNG", "JPEG", "GIF", "BMP", "HEIC", "XBitmap", "Krita"]

DEFAULT_PROVIDERS = ["MarkDown", "MP3", "TXT", "OpenDocument"] + IMAGE_PROVIDERS

# Always registered when enabled: (name, pattern)
UNCONDITIONAL_PROVIDERS = [
    ("TXT", r"text/plain"),
    ("MarkDown", r"text/(x-)?markdown"),
    ("PNG", r"image/png"),
    ("JPEG", r"image/jpeg"),
    ("GIF", r"image/gif"),
    ("BMP", r"image/bmp"),
    ("XBitmap", r"image/x-xbitmap"),
    ("Krita", r"application/x-krita"),
    ("MP3", r"audio/mpeg"),
    ("OpenDocument", r"application/vnd.oasis.opendocument.*"),
]

# Need the graphics toolkit to read the format token: token -> (name, pattern)
GRAPHICS_PROVIDERS = {
    "SVG": ("SVG", r"image/svg\+xml"),
    "TIFF": ("TIFF", r"image/tiff"),
    "PDF": ("PDF", r"application/pdf"),
    "AI": ("Illustrator", r"application/illustrator"),
    "PSD": ("Photoshop", r"application/x-photoshop"),
    "EPS": ("Postscript", r"application/postscript"),
    "TTF": ("Font", r"application/(?:font-sfnt|x-font$)"),
    "HEIC": ("HEIC", r"image/hei(f|c)"),
}

OFFICE_PROVIDERS = [
    ("MSOfficeDoc", r"application/msword"),
    ("MSOffice2003", r"application/vnd.ms-.*"),
    ("MSOffice2007", r"application/vnd.openxmlformats-officedocument.*"),
    ("OpenDocument", r"application/vnd.oasis.opendocument.*"),
    ("StarOffice", r"application/vnd.sun.xml.*"),
]

OFFICE_BINARIES = ("libreoffice", "openoffice")

Options = dict[str, Any] | Callable[[], dict[str, Any]]


def enabled_providers(config: PreviewConfig) -> list[str]:
    """Resolve the list of enabled built-in provider names.

    Falls back to the default set when ``enabled_preview_providers`` is
    unset. The ``Image`` marker adds every bitmap provider. Duplicates
    are dropped, first occurrence wins.
    """
    configured = config.get_system_value("enabled_preview_providers")
    names = list(configured) if configured is not None else list(DEFAULT_PROVIDERS)

    if IMAGE_MARKER in names:
        names += IMAGE_PROVIDERS

    for name in names:
        if name != IMAGE_MARKER and name not in BUILTIN_PROVIDERS:
            logger.warning("Unknown preview provider in configuration: %s", name)

    return list(dict.fromkeys(names))


class CoreRegistrar:
    """Registers the built-in providers into a manager, once.

    Args:
        config: Configuration source.
        capabilities: Capability facts deciding the optional providers.
    """

    def __init__(self, config: PreviewConfig, capabilities: SystemCapabilities):
        self.config = config
        self.capabilities = capabilities
        self._registered = False
        self._enabled: list[str] | None = None

    @property
    def registered(self) -> bool:
        return self._registered

    @property
    def enabled(self) -> list[str]:
        if self._enabled is None:
            self._enabled = enabled_providers(self.config)
        return self._enabled

    def register(self, register_provider: Callable[[str, ProviderFactory], None]) -> None:
        """Register all enabled built-in providers via ``register_provider``.

        A second call is a no-op.
        """
        if self._registered:
            return
        self._registered = True

        self._register_unconditional(register_provider)
        if self.capabilities.graphics_loaded():
            self._register_graphics(register_provider)
            self._register_office(register_provider)
        self._register_movie(register_provider)

    def _register_core_provider(
        self,
        register_provider: Callable[[str, ProviderFactory], None],
        name: str,
        pattern: str,
        options: Options | None = None,
    ) -> None:
        if name not in self.enabled:
            return
        register_provider(pattern, builtin_factory(name, options))

    def _register_unconditional(self, register_provider) -> None:
        image_limit = self.config.get_system_value("preview_max_filesize_image", 50)
        for name, pattern in UNCONDITIONAL_PROVIDERS:
            options: Options | None = None
            if name in IMAGE_PROVIDERS:
                options = {"max_filesize_image": image_limit}
            elif name == "MP3":
                # Looked up when the provider is first built, not now
                options = lambda: {"transcoder": self._find_transcoder()}  # noqa: E731
            self._register_core_provider(register_provider, name, pattern, options)

    def _register_graphics(self, register_provider) -> None:
        graphics_binary = self.capabilities.graphics_binary()
        for fmt, (name, pattern) in GRAPHICS_PROVIDERS.items():
            if name not in self.enabled:
                continue
            if self.capabilities.graphics_supports(fmt):
                self._register_core_provider(
                    register_provider, name, pattern, {"graphics_binary": graphics_binary}
                )
            else:
                logger.debug("Graphics toolkit cannot read %s, skipping %s", fmt, name)

    def _register_office(self, register_provider) -> None:
        if not self.capabilities.graphics_supports("PDF"):
            return
        if not self.capabilities.command_execution_enabled():
            logger.debug("Command execution disabled, skipping office providers")
            return

        office_binary = self.config.get_system_value("preview_libreoffice_path")
        if not isinstance(office_binary, str):
            office_binary = None
            for candidate in OFFICE_BINARIES:
                office_binary = self.capabilities.find_binary(candidate)
                if office_binary:
                    break

        if not office_binary:
            logger.debug("No office converter found, skipping office providers")
            return

        for name, pattern in OFFICE_PROVIDERS:
            self._register_core_provider(
                register_provider, name, pattern, {"office_binary": office_binary}
            )

    def _register_movie(self, register_provider) -> None:
        if "Movie" not in self.enabled:
            return

        avconv = self.capabilities.find_binary("avconv")
        ffmpeg = None if avconv else self.capabilities.find_binary("ffmpeg")
        if not (avconv or ffmpeg):
            logger.debug("Neither avconv nor ffmpeg found, skipping Movie")
            return

        self._register_core_provider(
            register_provider,
            "Movie",
            r"video/.*",
            {"avconv_binary": avconv, "ffmpeg_binary": ffmpeg},
        )

    def _find_transcoder(self) -> str | None:
        return self.capabilities.find_binary("ffmpeg") or self.capabilities.find_binary(
            "avconv"
        )


def builtin_factory(name: str, options: Options | None = None) -> ProviderFactory:
    """Build a deferred factory for a built-in provider.

    ``options`` may be a dict, or a callable producing one when the
    provider is first built.
    """
    provider_class = BUILTIN_PROVIDERS[name]

    def build() -> PreviewProvider:
        resolved = options() if callable(options) else options
        return provider_class(**(resolved or {}))

    return ProviderFactory(identifier=name, build=build)
