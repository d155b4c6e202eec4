"""System capability facts consulted before registering optional providers.

The registry never inspects the environment directly. It asks a
``SystemCapabilities`` object, so tests (and embedders) can pin the facts
with ``StaticCapabilities`` while ``EnvironmentCapabilities`` looks at the
real machine.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

# ImageMagick 7 ships "magick"; 6.x only has "convert"
_GRAPHICS_BINARIES = ("magick", "convert")
_FORMAT_QUERY_TIMEOUT = 10  # seconds


class SystemCapabilities(Protocol):
    """Boolean facts about optional system capabilities."""

    def graphics_loaded(self) -> bool:
        """Whether the graphics toolkit (ImageMagick) is usable at all."""
        ...

    def graphics_supports(self, fmt: str) -> bool:
        """Whether the graphics toolkit can read format ``fmt`` (e.g. "SVG")."""
        ...

    def graphics_binary(self) -> str | None:
        """Path of the graphics toolkit binary, if any."""
        ...

    def command_execution_enabled(self) -> bool:
        """Whether external processes may be started."""
        ...

    def find_binary(self, name: str) -> str | None:
        """Return the path of ``name`` on the search path, or None."""
        ...


@dataclass
class StaticCapabilities:
    """Fixed capability facts.

    Args:
        graphics: Whether the graphics toolkit is loaded.
        formats: Format tokens the graphics toolkit reports as readable.
        binaries: Mapping of binary name to path for discoverable binaries.
        command_execution: Whether external processes may be started.
    """

    graphics: bool = False
    formats: set[str] = field(default_factory=set)
    binaries: dict[str, str] = field(default_factory=dict)
    command_execution: bool = True
    graphics_path: str | None = None

    def graphics_loaded(self) -> bool:
        return self.graphics

    def graphics_supports(self, fmt: str) -> bool:
        return self.graphics and fmt.upper() in {f.upper() for f in self.formats}

    def graphics_binary(self) -> str | None:
        if not self.graphics:
            return None
        return self.graphics_path or "magick"

    def command_execution_enabled(self) -> bool:
        return self.command_execution

    def find_binary(self, name: str) -> str | None:
        return self.binaries.get(name)


class EnvironmentCapabilities:
    """Capability facts read from the running machine.

    Binary lookups use ``shutil.which``. The ImageMagick format list is
    queried once, on first need, and memoized for the lifetime of the
    object, so only the first caller pays for the subprocess.
    """

    def __init__(self, allow_command_execution: bool = True):
        self._allow_command_execution = allow_command_execution
        self._graphics_path: str | None = None
        self._formats: set[str] | None = None

    def graphics_loaded(self) -> bool:
        return self.graphics_binary() is not None

    def graphics_binary(self) -> str | None:
        if self._graphics_path is None:
            for name in _GRAPHICS_BINARIES:
                path = shutil.which(name)
                if path:
                    self._graphics_path = path
                    break
        return self._graphics_path

    def graphics_supports(self, fmt: str) -> bool:
        return fmt.upper() in self._query_formats()

    def command_execution_enabled(self) -> bool:
        return self._allow_command_execution

    def find_binary(self, name: str) -> str | None:
        return shutil.which(name)

    def _query_formats(self) -> set[str]:
        if self._formats is not None:
            return self._formats

        self._formats = set()
        binary = self.graphics_binary()
        if binary is None or not self._allow_command_execution:
            return self._formats

        cmd = [binary, "-list", "format"]
        try:
            result = subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                timeout=_FORMAT_QUERY_TIMEOUT,
            )
        except (subprocess.SubprocessError, OSError) as exc:
            logger.debug("ImageMagick format query failed: %s", exc)
            return self._formats

        self._formats = parse_format_list(result.stdout)
        logger.debug("ImageMagick reports %d formats", len(self._formats))
        return self._formats


def parse_format_list(output: str) -> set[str]:
    """Parse the readable formats out of ``magick -list format`` output.

    Format rows look like ``      PNG* PNG       rw-   Portable Network ...``;
    the mode column's first character is ``r`` when the format is readable.
    """
    formats: set[str] = set()
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue
        name, mode = parts[0].rstrip("*"), parts[2]
        if len(mode) == 3 and mode[0] == "r" and name.isalnum():
            formats.add(name.upper())
    return formats
