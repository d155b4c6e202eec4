"""Memoized answers to "does any registered pattern match this MIME type"."""

from __future__ import annotations

from collections.abc import Iterable

from .table import pattern_matches


class SupportCache:
    """Per-manager cache of MIME type -> supported.

    Entries are written once and never recomputed for the life of the
    cache. ``scans`` counts cache misses.
    """

    def __init__(self):
        self._supported: dict[str, bool] = {}
        self.scans = 0

    def is_supported(self, mime_type: str, patterns: Iterable[str]) -> bool:
        if mime_type in self._supported:
            return self._supported[mime_type]

        self.scans += 1
        result = any(pattern_matches(p, mime_type) for p in patterns)
        self._supported[mime_type] = result
        return result

    def __contains__(self, mime_type: object) -> bool:
        return mime_type in self._supported

    def __len__(self) -> int:
        return len(self._supported)
