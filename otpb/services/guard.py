"""Per-version deadline and cooperative cancellation.

A StageGuard is created for each version and checked before every stage.
Its remaining time is also handed to subprocesses as their timeout, so one
pathological build cannot stall the rest of the batch.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from otpb.core.result import Err, Ok, Result
from otpb.services.errors import Interrupted

__all__ = ["StageGuard"]


class StageGuard:
    def __init__(
        self,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._cancel = cancel
        self._deadline = None if timeout is None else clock() + timeout

    @property
    def cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def check(self, stage: str) -> Result[None, Interrupted]:
        """Fail with Interrupted if the run was cancelled or time is up."""
        if self.cancelled:
            return Err(Interrupted(stage=stage, reason="cancelled"))
        if self.expired:
            return Err(Interrupted(stage=stage, reason="timeout"))
        return Ok(None)
