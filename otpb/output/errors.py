"""Error presentation utilities.

One line per failed version, always carrying the tag and the stage, so a CI
log can be grepped for the versions that need attention.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from otpb.core.config import ConfigError
from otpb.services.errors import (
    BuildError,
    Interrupted,
    PackagingError,
    RegistryError,
    UploadError,
    VcsError,
    VersionError,
)

if TYPE_CHECKING:
    from otpb.output.console import ConsoleProtocol

__all__ = ["describe_error", "error_kind", "print_config_error", "print_version_error"]


def error_kind(error: VersionError) -> str:
    """Name of the taxonomy kind, as shown in logs and the run report."""
    return type(error).__name__


def describe_error(error: VersionError) -> str:
    """Render the detail part of a version failure."""
    match error:
        case VcsError(command=command, message=message, returncode=rc):
            return f"git {command} failed (exit {rc}): {message}"
        case RegistryError(operation=op, message=message, status=status):
            suffix = f" (HTTP {status})" if status else ""
            return f"{op}{suffix}: {message}"
        case BuildError(stage=stage, returncode=rc, detail=detail):
            text = f"{stage} failed (exit {rc})"
            return f"{text}: {detail}" if detail else text
        case PackagingError(message=message, path=path):
            return f"{message} ({path})" if path is not None else message
        case UploadError(name=name, message=message, status=status):
            suffix = f" (HTTP {status})" if status else ""
            return f"upload of {name} failed{suffix}: {message}"
        case Interrupted(stage=stage, reason="timeout"):
            return f"version timeout exceeded before {stage}"
        case Interrupted(stage=stage):
            return f"cancelled before {stage}"


def print_version_error(
    tag: str, stage: str, error: VersionError, console: ConsoleProtocol
) -> None:
    console.error(f"{tag}: failed at {stage} ({error_kind(error)}): {describe_error(error)}")


def print_config_error(error: ConfigError, console: ConsoleProtocol) -> None:
    if error.path is not None:
        console.error(f"{error.message} ({error.path})")
    else:
        console.error(error.message)
