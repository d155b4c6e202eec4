"""Preview provider plugin API.

Third-party providers subclass ``PreviewProvider`` (or
``LegacyPreviewProvider`` when they cannot tell per file whether they
apply) and are contributed through the ``previewkit.providers`` entry
point group or the ``providers:`` config section.
"""

from .base import LegacyPreviewProvider, PreviewProvider, supports_availability

__all__ = [
    "PreviewProvider",
    "LegacyPreviewProvider",
    "supports_availability",
]
