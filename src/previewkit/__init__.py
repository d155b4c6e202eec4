"""previewkit - Resolve and run preview providers for files by MIME type."""

__version__ = "0.1.0"

from .config import PreviewConfig, load_config
from .errors import (
    ConfigError,
    InvalidArgumentError,
    NotFoundError,
    PreviewError,
    ResolutionError,
)
from .files import FileInfo, Mount
from .manager import PreviewManager

__all__ = [
    "PreviewManager",
    "PreviewConfig",
    "load_config",
    "FileInfo",
    "Mount",
    "PreviewError",
    "ConfigError",
    "NotFoundError",
    "InvalidArgumentError",
    "ResolutionError",
    "__version__",
]
