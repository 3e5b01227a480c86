"""Git operations on the shared source checkout."""

from .repository import Repository, VcsError

__all__ = ["Repository", "VcsError"]
