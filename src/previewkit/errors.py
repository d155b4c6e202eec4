"""Exception hierarchy for previewkit."""


class PreviewError(Exception):
    """Base exception for previewkit errors."""

    pass


class ConfigError(PreviewError):
    """Raised when configuration cannot be read or holds malformed values."""

    pass


class NotFoundError(PreviewError):
    """Raised when no provider could produce a preview for a file."""

    pass


class InvalidArgumentError(PreviewError, ValueError):
    """Raised for invalid preview dimensions, modes or specifications."""

    pass


class ResolutionError(PreviewError):
    """Raised when a provider identifier cannot be resolved to an instance."""

    pass
