"""Version enumeration and parsing.

Tags come straight from git; parsing only happens where a numeric view is
needed (patch rule evaluation).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from otpb.core.result import Result
from otpb.git.repository import VcsError

__all__ = ["SemanticTriple", "TagSource", "list_versions", "parse_version", "TAG_PREFIX"]

TAG_PREFIX = "OTP-"


class TagSource(Protocol):
    def list_tags(self, pattern: str) -> Result[list[str], VcsError]: ...


def list_versions(source: TagSource, pattern: str) -> Result[list[str], VcsError]:
    """Tags matching `pattern`, exactly as the version-control side reports them.

    No sorting, filtering or deduplication happens here. An empty list is a
    valid answer and makes the run a no-op.
    """
    return source.list_tags(pattern)


def _component(text: str) -> int | None:
    text = text.strip()
    # str.isdigit also accepts non-ASCII digits such as "²", which int() rejects.
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


@dataclass(frozen=True, slots=True)
class SemanticTriple:
    """Numeric decomposition of a tag: ``OTP-22.3.4.1`` -> (22, 3, (4, 1)).

    A component that is not a plain non-negative integer is ``None``. Rules
    never match on a ``None`` component.
    """

    major: int | None
    minor: int | None
    rest: tuple[int | None, ...] = ()

    @property
    def patch(self) -> int | None:
        # A tag without a third component is the .0 release.
        return self.rest[0] if self.rest else 0

    def __str__(self) -> str:
        parts = [self.major, self.minor, *self.rest]
        return ".".join("?" if p is None else str(p) for p in parts)


def parse_version(tag: str) -> SemanticTriple:
    """Parse a tag into a SemanticTriple.

    The ``OTP-`` prefix is stripped when present. Missing components are
    ``None`` (``OTP-23`` has no minor).
    """
    text = tag.strip()
    if text.startswith(TAG_PREFIX):
        text = text[len(TAG_PREFIX) :]
    parts = [_component(p) for p in text.split(".")]
    major = parts[0] if parts else None
    minor = parts[1] if len(parts) > 1 else None
    return SemanticTriple(major=major, minor=minor, rest=tuple(parts[2:]))
