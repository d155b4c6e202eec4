"""Mapping of MIME-type patterns to deferred provider factories."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from ..providers.base import PreviewProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ProviderFactory:
    """Deferred constructor for a provider.

    ``build`` is never called at registration time, only when a pattern
    is actually consulted. ``materialize()`` turns any failure into None so
    a single broken provider cannot take resolution down with it.

    Args:
        identifier: Provider name or import path, used for display and dedup.
        build: Zero-argument callable returning a provider (or None).
    """

    identifier: str
    build: Callable[[], PreviewProvider | None]

    def materialize(self) -> PreviewProvider | None:
        try:
            return self.build()
        except Exception:
            logger.debug("Provider %s failed to materialize", self.identifier, exc_info=True)
            return None

    def __call__(self) -> PreviewProvider | None:
        return self.materialize()


class PatternTable:
    """Pattern -> ordered list of factories, iterated most specific first.

    Specificity is approximated by pattern length: after ``all_sorted()``
    longer patterns come before shorter ones, and patterns of equal length
    keep their insertion order. Factories under one pattern always keep
    registration order.
    """

    def __init__(self):
        self._entries: dict[str, list[ProviderFactory]] = {}
        self._dirty = False

    def register(self, pattern: str, factory: ProviderFactory) -> None:
        self._entries.setdefault(pattern, []).append(factory)
        self._dirty = True

    def all_sorted(self) -> dict[str, list[ProviderFactory]]:
        """Return the table in specificity order, re-sorting if needed."""
        if self._dirty:
            # sorted() is stable, so equal lengths keep insertion order
            ordered = sorted(self._entries.items(), key=lambda item: -len(item[0]))
            self._entries = dict(ordered)
            self._dirty = False
        return self._entries

    def matching(self, mime_type: str) -> Iterator[tuple[str, list[ProviderFactory]]]:
        """Yield (pattern, factories) whose pattern matches ``mime_type``."""
        for pattern, factories in self.all_sorted().items():
            if pattern_matches(pattern, mime_type):
                yield pattern, factories

    def patterns(self) -> list[str]:
        return list(self._entries)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def pattern_matches(pattern: str, mime_type: str) -> bool:
    """Unanchored regex search of ``pattern`` in ``mime_type``.

    An invalid pattern never matches.
    """
    try:
        return re.search(pattern, mime_type) is not None
    except re.error:
        logger.warning("Ignoring invalid provider pattern %r", pattern)
        return False
