"""Host platform identity.

The build host decides three things: which patch rules apply (darwin-only
rules), how the SSL location is found, and the name of the uploaded asset.
The asset name is derived from ``uname -s -r`` so a release collects one
archive per operating system and kernel release, e.g. ``darwin-19.6.0.tar.gz``
or ``linux-5.15.0-1041-azure.tar.gz``.
"""

from __future__ import annotations

import os as _os
import platform as _platform
import sys as _sys
from dataclasses import dataclass
from enum import Enum, auto
from functools import lru_cache

__all__ = [
    "ARCHIVE_SUFFIX",
    "HostInfo",
    "Platform",
    "asset_name_for",
    "detect",
    "detect_platform",
    "parse_platform",
]

ARCHIVE_SUFFIX = ".tar.gz"


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()


_PLATFORM_ALIASES = {
    "linux": Platform.LINUX,
    "darwin": Platform.MACOS,
    "macos": Platform.MACOS,
    "windows": Platform.WINDOWS,
    "win32": Platform.WINDOWS,
}


def parse_platform(name: str) -> Platform:
    """Map a user or ``sys.platform`` style name to a Platform."""
    key = name.strip().lower()
    for prefix, value in _PLATFORM_ALIASES.items():
        if key.startswith(prefix):
            return value
    return Platform.UNKNOWN


def asset_name_for(system: str, release: str) -> str:
    """Build the platform-derived asset name.

    ``("Darwin", "19.6.0")`` -> ``"darwin-19.6.0.tar.gz"``
    """
    label = f"{system.strip()} {release.strip()}".lower().replace(" ", "-")
    return f"{label}{ARCHIVE_SUFFIX}"


@dataclass(frozen=True, slots=True)
class HostInfo:
    """Identity of the build host.

    Attributes:
        platform: Platform family used by patch rules and the build driver.
        system: Kernel name as reported by ``uname -s``.
        release: Kernel release as reported by ``uname -r``.
        cpu_count: Logical cores, used as ``make -j`` parallelism.
    """

    platform: Platform
    system: str
    release: str
    cpu_count: int

    @property
    def asset_name(self) -> str:
        return asset_name_for(self.system, self.release)

    def __str__(self) -> str:
        return f"{self.platform} ({self.system} {self.release}, {self.cpu_count} cpus)"


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the current operating system (cached)."""
    return parse_platform(_sys.platform)


@lru_cache(maxsize=1)
def detect() -> HostInfo:
    """Detect complete host information (cached)."""
    uname = _platform.uname()
    return HostInfo(
        platform=detect_platform(),
        system=uname.system,
        release=uname.release,
        cpu_count=_os.cpu_count() or 1,
    )
