"""Build driver for one OTP version.

Runs the classic OTP source build in the shared checkout:

    patch -p1 < <rule payload>      (one per selected rule)
    ./otp_build autoconf
    ./configure --with-ssl[=<prefix>] --enable-dirty-schedulers
    make -j<cpus>
    make release

Stages run strictly in order, each inside a console section; the first
failing stage ends the build for this version. Nothing is retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from otpb.core.result import Err, Ok, Result
from otpb.output.console import ConsoleProtocol, Style
from otpb.platform.detection import HostInfo, Platform
from otpb.platform.process import ProcessError, run_silent
from otpb.platform.process import run as run_process
from otpb.services.errors import BuildError, Interrupted
from otpb.services.guard import StageGuard
from otpb.services.patches import PatchRule

__all__ = [
    "BuildConfiguration",
    "BuildDriver",
    "FEATURE_FLAGS",
    "RELEASE_DIRNAME",
    "Stage",
    "stages_for",
]

FEATURE_FLAGS = ("--enable-dirty-schedulers",)
RELEASE_DIRNAME = "release"

_BREW_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True, slots=True)
class BuildConfiguration:
    """Inputs of one version's build. Created per version, never reused."""

    source_dir: Path
    platform: Platform
    ssl_flag: str
    jobs: int
    patches: tuple[PatchRule, ...] = ()
    feature_flags: tuple[str, ...] = FEATURE_FLAGS

    @property
    def output_root(self) -> Path:
        return self.source_dir / RELEASE_DIRNAME


@dataclass(frozen=True, slots=True)
class Stage:
    """One external invocation of the build."""

    name: str
    command: tuple[str, ...]
    # Fed on stdin; the command's output is then captured instead of streamed.
    input: str | None = None


def stages_for(config: BuildConfiguration) -> list[Stage]:
    """The ordered stage list for a configuration (pure)."""
    out = [
        Stage(name=f"patch:{rule.name}", command=("patch", "-p1", "--quiet"), input=rule.payload)
        for rule in config.patches
    ]
    out += [
        Stage(name="otp_build", command=("./otp_build", "autoconf")),
        Stage(name="configure", command=("./configure", config.ssl_flag, *config.feature_flags)),
        Stage(name="make", command=("make", f"-j{config.jobs}")),
        Stage(name="make release", command=("make", "release")),
    ]
    return out


class BuildDriver:
    """Configure and compile the shared checkout for one version at a time."""

    def __init__(self, *, source_dir: Path, host: HostInfo, console: ConsoleProtocol) -> None:
        self._source_dir = source_dir
        self._host = host
        self._console = console

    def discover_ssl_flag(self, guard: StageGuard) -> Result[str, BuildError]:
        """``--with-ssl``, pointing at Homebrew's openssl on macOS.

        The prefix is asked from brew on every build; it moves between
        Homebrew versions and between Intel and Apple Silicon hosts.
        """
        if self._host.platform != Platform.MACOS:
            return Ok("--with-ssl")

        remaining = guard.remaining()
        timeout = (
            _BREW_TIMEOUT_SECONDS if remaining is None else min(remaining, _BREW_TIMEOUT_SECONDS)
        )
        result = run_process(["brew", "--prefix", "openssl"], cwd=self._source_dir, timeout=timeout)
        if isinstance(result, Err):
            return Err(
                BuildError(
                    stage="ssl discovery",
                    returncode=result.error.returncode,
                    detail=result.error.stderr.strip(),
                )
            )
        prefix = result.value.strip()
        if not prefix:
            return Err(
                BuildError(stage="ssl discovery", returncode=0, detail="brew printed no prefix")
            )
        return Ok(f"--with-ssl={prefix}")

    def configure(
        self, patches: tuple[PatchRule, ...], guard: StageGuard
    ) -> Result[BuildConfiguration, BuildError | Interrupted]:
        """Assemble this version's BuildConfiguration."""
        check = guard.check("ssl discovery")
        if isinstance(check, Err):
            return check
        ssl_flag = self.discover_ssl_flag(guard)
        if isinstance(ssl_flag, Err):
            return ssl_flag
        return Ok(
            BuildConfiguration(
                source_dir=self._source_dir,
                platform=self._host.platform,
                ssl_flag=ssl_flag.value,
                jobs=self._host.cpu_count,
                patches=patches,
            )
        )

    def build(
        self, config: BuildConfiguration, guard: StageGuard
    ) -> Result[Path, BuildError | Interrupted]:
        """Run every stage; returns the release output root on success."""
        for stage in stages_for(config):
            check = guard.check(stage.name)
            if isinstance(check, Err):
                return check

            with self._console.section(stage.name):
                self._console.print(" ".join(stage.command), Style.DIM)
                result = self._run(stage, config.source_dir, guard.remaining())

            if isinstance(result, Err):
                if guard.expired:
                    return Err(Interrupted(stage=stage.name, reason="timeout"))
                return Err(
                    BuildError(
                        stage=stage.name,
                        returncode=result.error.returncode,
                        detail=result.error.stderr.strip() or result.error.stdout.strip(),
                    )
                )

        return Ok(config.output_root)

    def _run(
        self, stage: Stage, cwd: Path, timeout: float | None
    ) -> Result[None, ProcessError]:
        if stage.input is None:
            return run_silent(list(stage.command), cwd=cwd, timeout=timeout)
        result = run_process(list(stage.command), cwd=cwd, timeout=timeout, input=stage.input)
        if isinstance(result, Err):
            return result
        return Ok(None)
