"""File and mount descriptors consumed by the preview manager."""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_MIME_TYPE = "application/octet-stream"

# Types the stdlib table does not know on every platform
_EXTRA_TYPES = {
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".kra": "application/x-krita",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".psd": "application/x-photoshop",
    ".ai": "application/illustrator",
    ".xbm": "image/x-xbitmap",
}


@dataclass
class Mount:
    """A storage mount with per-mount options (e.g. ``previews: false``)."""

    mount_point: str = "/"
    options: dict[str, Any] = field(default_factory=dict)

    def get_option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


@dataclass
class FileInfo:
    """A concrete file whose preview availability is being asked about."""

    path: Path
    mime_type: str
    size: int = 0
    mount: Mount | None = None

    @classmethod
    def from_path(cls, path: Path | str, mount: Mount | None = None) -> "FileInfo":
        """Describe a file on disk, guessing its MIME type from the name.

        Raises:
            FileNotFoundError: If the path does not exist.
        """
        path = Path(path)
        size = path.stat().st_size
        return cls(path=path, mime_type=guess_mime_type(path), size=size, mount=mount)


def guess_mime_type(path: Path | str) -> str:
    """Guess a MIME type from a filename, falling back to octet-stream."""
    suffix = Path(path).suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    mime, _encoding = mimetypes.guess_type(Path(path).name.lower())
    return mime or DEFAULT_MIME_TYPE
