"""Host platform detection and subprocess execution."""

from .detection import HostInfo, Platform, asset_name_for, detect, parse_platform
from .process import ProcessError, run, run_silent

__all__ = [
    "HostInfo",
    "Platform",
    "ProcessError",
    "asset_name_for",
    "detect",
    "parse_platform",
    "run",
    "run_silent",
]
