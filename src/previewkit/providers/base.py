"""Base classes for previewkit preview providers."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from PIL import Image

    from ..files import FileInfo

# Provider names double as configuration identifiers
_SAFE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

AvailabilityProbe = Callable[["FileInfo"], bool]


def _has_abstract_methods(cls: type) -> bool:
    return any(
        getattr(getattr(cls, attr, None), "__isabstractmethod__", False)
        for attr in dir(cls)
    )


class PreviewProvider(ABC):
    """Abstract base class for preview providers.

    Every concrete provider must define class attributes:
        name: Identifier used in ``enabled_preview_providers``
              (e.g. "PNG", "Movie"). Must match [A-Za-z][A-Za-z0-9_]*.
        mime_type: Regular expression of the MIME types it handles. Used
                   as the default registration pattern.

    And implement:
        get_thumbnail(): Render a preview image no larger than the box,
                         or return None when it cannot.

    Providers take keyword options in their constructor. Everything a
    provider needs from the environment (binary paths, size limits) is
    passed in this way when the registry builds its factory.
    """

    name: str
    mime_type: str

    def __init__(self, **options: Any):
        self.options = options

    def __init_subclass__(cls, **kwargs: object) -> None:
        """Validate required class attributes at definition time."""
        super().__init_subclass__(**kwargs)

        # Skip validation for intermediate abstract classes. ABCMeta has not
        # filled in __abstractmethods__ yet at this point, so look directly.
        if _has_abstract_methods(cls):
            return

        if not hasattr(cls, "name"):
            raise TypeError(f"PreviewProvider subclass {cls.__name__} must define 'name'")
        if not isinstance(cls.name, str) or not _SAFE_NAME_RE.match(cls.name):
            raise TypeError(
                f"PreviewProvider subclass {cls.__name__} has invalid name "
                f"{cls.name!r}: must match [A-Za-z][A-Za-z0-9_]*"
            )

        if not hasattr(cls, "mime_type"):
            raise TypeError(
                f"PreviewProvider subclass {cls.__name__} must define 'mime_type'"
            )
        try:
            re.compile(cls.mime_type)
        except (re.error, TypeError) as e:
            raise TypeError(
                f"PreviewProvider subclass {cls.__name__} has invalid "
                f"mime_type pattern {cls.mime_type!r}: {e}"
            ) from e

    @abstractmethod
    def get_thumbnail(
        self, file: FileInfo, max_x: int, max_y: int
    ) -> Image.Image | None:
        """Render a preview of ``file`` fitting in ``max_x`` x ``max_y``.

        Returns None if no preview can be produced for this file.
        """
        ...

    def is_available(self, file: FileInfo) -> bool:
        """Whether this provider can render this particular file."""
        return True

    def availability(self) -> AvailabilityProbe | None:
        """Return the per-file availability probe, or None if there is none."""
        return self.is_available


class LegacyPreviewProvider(PreviewProvider):
    """A provider without per-file availability probing.

    The registry never asks legacy providers whether a file is available;
    they are only used once generation is actually attempted.
    """

    def availability(self) -> AvailabilityProbe | None:
        return None


def supports_availability(provider: PreviewProvider) -> bool:
    """Whether ``provider`` exposes a per-file availability probe."""
    return provider.availability() is not None
