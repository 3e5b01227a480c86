"""Per-version error taxonomy.

Each kind is a frozen dataclass; ``VersionError`` is the closed union the
pipeline matches on. Configuration errors live in ``otpb.core.config`` since
they are raised before any version is processed.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from otpb.git.repository import VcsError

__all__ = [
    "BuildError",
    "Interrupted",
    "PackagingError",
    "RegistryError",
    "UploadError",
    "VcsError",
    "VersionError",
]


@dataclass(frozen=True, slots=True)
class RegistryError:
    """Release registry request failed (other than the expected 404 on lookup)."""

    operation: str
    message: str
    status: int = 0


@dataclass(frozen=True, slots=True)
class BuildError:
    """A build stage, including patch application, exited non-zero."""

    stage: str
    returncode: int
    detail: str = ""


@dataclass(frozen=True, slots=True)
class PackagingError:
    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class UploadError:
    name: str
    message: str
    status: int = 0


@dataclass(frozen=True, slots=True)
class Interrupted:
    """The version ran out of time or the run was cancelled before `stage`."""

    stage: str
    reason: Literal["timeout", "cancelled"]


VersionError = VcsError | RegistryError | BuildError | PackagingError | UploadError | Interrupted
