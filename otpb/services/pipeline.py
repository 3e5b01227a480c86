"""Build-and-publish orchestration over a list of version tags.

Each version walks through

    Pending -> CheckedOut -> ReleaseResolved -> Skipped
                                             -> Built -> Packaged -> Published

and lands in Failed from any state on the first error. A failed version is
reported with its tag and stage, then the loop moves on; one bad version
never stops the batch.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal, Protocol

from otpb.core.result import Err, Result
from otpb.output.console import ConsoleProtocol, Style
from otpb.output.errors import error_kind, print_version_error
from otpb.platform.detection import HostInfo
from otpb.services.artifacts import publish
from otpb.services.build import BuildConfiguration
from otpb.services.errors import (
    BuildError,
    Interrupted,
    RegistryError,
    UploadError,
    VcsError,
    VersionError,
)
from otpb.services.guard import StageGuard
from otpb.services.patches import PatchRule, select_patches
from otpb.services.registry import AssetRecord, ReleaseRecord
from otpb.services.versions import parse_version

__all__ = [
    "Pipeline",
    "RunReport",
    "VersionOutcome",
    "VersionState",
]

Status = Literal["published", "skipped", "failed"]


class VersionState(Enum):
    PENDING = "pending"
    CHECKED_OUT = "checked-out"
    RELEASE_RESOLVED = "release-resolved"
    SKIPPED = "skipped"
    BUILT = "built"
    PACKAGED = "packaged"
    PUBLISHED = "published"
    FAILED = "failed"


class Workspace(Protocol):
    def prepare(self, tag: str) -> Result[None, VcsError]: ...


class Registry(Protocol):
    def get_or_create_release(self, tag: str) -> Result[ReleaseRecord, RegistryError]: ...

    def find_asset(
        self, release: ReleaseRecord, name: str
    ) -> Result[AssetRecord | None, RegistryError]: ...

    def upload_assets(
        self, release: ReleaseRecord, paths: list[Path]
    ) -> Result[list[AssetRecord], UploadError]: ...


class Driver(Protocol):
    def configure(
        self, patches: tuple[PatchRule, ...], guard: StageGuard
    ) -> Result[BuildConfiguration, BuildError | Interrupted]: ...

    def build(
        self, config: BuildConfiguration, guard: StageGuard
    ) -> Result[Path, BuildError | Interrupted]: ...


@dataclass(frozen=True, slots=True)
class VersionOutcome:
    """Result of processing one tag.

    Attributes:
        tag: The version tag
        status: published, skipped or failed
        stage: Pipeline stage that failed (None unless failed)
        error: The error value (None unless failed)
        trail: States visited, in order
        elapsed: Wall-clock seconds spent on this version
    """

    tag: str
    status: Status
    stage: str | None = None
    error: VersionError | None = None
    trail: tuple[VersionState, ...] = ()
    elapsed: float = 0.0

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def state(self) -> VersionState:
        return self.trail[-1] if self.trail else VersionState.PENDING

    def summary(self) -> str:
        if self.status == "failed":
            kind = error_kind(self.error) if self.error is not None else "error"
            return f"{self.tag}: failed at {self.stage} ({kind})"
        return f"{self.tag}: {self.status} ({self.elapsed:.0f}s)"


@dataclass(frozen=True, slots=True)
class RunReport:
    outcomes: tuple[VersionOutcome, ...] = ()

    def count(self, status: Status) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def published(self) -> int:
        return self.count("published")

    @property
    def skipped(self) -> int:
        return self.count("skipped")

    @property
    def failed(self) -> int:
        return self.count("failed")

    @property
    def failures(self) -> list[VersionOutcome]:
        return [o for o in self.outcomes if o.failed]

    def summary(self) -> str:
        total = len(self.outcomes)
        noun = "version" if total == 1 else "versions"
        return (
            f"{total} {noun}: {self.published} published, "
            f"{self.skipped} skipped, {self.failed} failed"
        )


class _Tracker:
    """Accumulates the state trail of the version in progress."""

    def __init__(self, tag: str, clock: Callable[[], float]) -> None:
        self.tag = tag
        self._clock = clock
        self._started = clock()
        self.trail: list[VersionState] = [VersionState.PENDING]

    def enter(self, state: VersionState) -> None:
        self.trail.append(state)

    def finish(
        self,
        status: Status,
        *,
        stage: str | None = None,
        error: VersionError | None = None,
    ) -> VersionOutcome:
        if status == "failed":
            self.trail.append(VersionState.FAILED)
        return VersionOutcome(
            tag=self.tag,
            status=status,
            stage=stage,
            error=error,
            trail=tuple(self.trail),
            elapsed=self._clock() - self._started,
        )


class Pipeline:
    """Drive every version tag through checkout, build and publish."""

    def __init__(
        self,
        *,
        workspace: Workspace,
        registry: Registry,
        driver: Driver,
        host: HostInfo,
        console: ConsoleProtocol,
        version_timeout: float | None = None,
        cancel: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._workspace = workspace
        self._registry = registry
        self._driver = driver
        self._host = host
        self._console = console
        self._version_timeout = version_timeout
        self._cancel = cancel
        self._clock = clock

    @property
    def cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    def run(self, tags: Sequence[str]) -> RunReport:
        """Process `tags` in order and report every outcome.

        Once cancellation is requested, the remaining tags are not started;
        each is reported as failed with an Interrupted error.
        """
        outcomes: list[VersionOutcome] = []
        for tag in tags:
            if self.cancelled:
                tracker = _Tracker(tag, self._clock)
                error = Interrupted(stage="checkout", reason="cancelled")
                print_version_error(tag, "checkout", error, self._console)
                outcomes.append(tracker.finish("failed", stage="checkout", error=error))
                continue
            outcomes.append(self.process(tag))

        report = RunReport(outcomes=tuple(outcomes))
        self._print_summary(report)
        return report

    def process(self, tag: str) -> VersionOutcome:
        """Process one tag; never raises for per-version failures."""
        tracker = _Tracker(tag, self._clock)
        guard = StageGuard(self._version_timeout, self._cancel, clock=self._clock)
        self._console.info(f"Starting {tag}.")

        def fail(stage: str, error: VersionError) -> VersionOutcome:
            print_version_error(tag, stage, error, self._console)
            return tracker.finish("failed", stage=stage, error=error)

        # Checkout
        checked = guard.check("checkout")
        if isinstance(checked, Err):
            return fail("checkout", checked.error)
        prepared = self._workspace.prepare(tag)
        if isinstance(prepared, Err):
            return fail("checkout", prepared.error)
        tracker.enter(VersionState.CHECKED_OUT)

        # Release
        checked = guard.check("release")
        if isinstance(checked, Err):
            return fail("release", checked.error)
        release = self._registry.get_or_create_release(tag)
        if isinstance(release, Err):
            return fail("release", release.error)
        tracker.enter(VersionState.RELEASE_RESOLVED)

        asset_name = self._host.asset_name
        existing = self._registry.find_asset(release.value, asset_name)
        if isinstance(existing, Err):
            return fail("asset lookup", existing.error)
        if existing.value is not None:
            tracker.enter(VersionState.SKIPPED)
            self._console.success(f"{tag}: skipped (asset exists)")
            return tracker.finish("skipped")

        # Build
        patches = select_patches(self._host.platform, parse_version(tag))
        if patches:
            names = ", ".join(rule.name for rule in patches)
            self._console.print(f"{tag}: patches {names}", Style.DIM)
        config = self._driver.configure(patches, guard)
        if isinstance(config, Err):
            return fail("build", config.error)
        built = self._driver.build(config.value, guard)
        if isinstance(built, Err):
            return fail("build", built.error)
        tracker.enter(VersionState.BUILT)

        # Package
        checked = guard.check("package")
        if isinstance(checked, Err):
            return fail("package", checked.error)
        packaged = publish(built.value, asset_name)
        if isinstance(packaged, Err):
            return fail("package", packaged.error)
        tracker.enter(VersionState.PACKAGED)

        # Upload
        checked = guard.check("upload")
        if isinstance(checked, Err):
            return fail("upload", checked.error)
        uploaded = self._registry.upload_assets(release.value, list(packaged.value.paths))
        if isinstance(uploaded, Err):
            return fail("upload", uploaded.error)
        tracker.enter(VersionState.PUBLISHED)

        self._console.success(f"{tag}: published")
        return tracker.finish("published")

    def _print_summary(self, report: RunReport) -> None:
        if not report.outcomes:
            self._console.info("No versions to process.")
            return
        self._console.header("Summary")
        for outcome in report.outcomes:
            style = Style.ERROR if outcome.failed else Style.SUCCESS
            self._console.print(outcome.summary(), style)
        self._console.print(report.summary(), Style.ERROR if report.failed else Style.SUCCESS)
