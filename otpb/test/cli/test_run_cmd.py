from __future__ import annotations

import threading
from collections.abc import Sequence
from pathlib import Path

import pytest
import typer

from otpb.cli.context import CLIContext
from otpb.core.config import RunConfig
from otpb.core.errors import ErrorCode
from otpb.core.result import Err, Ok
from otpb.git.repository import VcsError
from otpb.output.console import MockConsole
from otpb.platform.detection import HostInfo, Platform
from otpb.services.pipeline import RunReport

HOST = HostInfo(platform=Platform.LINUX, system="Linux", release="6.1.0", cpu_count=2)

_RUN_DEFAULTS: dict[str, object] = {
    "token": None,
    "repository": None,
    "pattern": None,
    "source_dir": None,
    "version_timeout": None,
    "config_path": None,
}


def _ctx(tmp_path: Path, console: MockConsole) -> CLIContext:
    return CLIContext(
        config=RunConfig(token="t", owner="erlef", repo="otp-builds", source_dir=tmp_path),
        host=HOST,
        console=console,
        cancel=threading.Event(),
    )


class FakePipeline:
    instances: list[FakePipeline] = []

    def __init__(self, **kwargs: object) -> None:
        self.kwargs = kwargs
        self.tags: list[str] = []
        FakePipeline.instances.append(self)

    def run(self, tags: Sequence[str]) -> RunReport:
        self.tags = list(tags)
        return RunReport()


def test_run_missing_credential_is_config_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    import otpb.cli.commands.run_cmd as run_cmd
    import otpb.cli.context as context

    for var in ("INPUT_SECRET-TOKEN", "GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("GITHUB_REPOSITORY", "erlef/otp-builds")
    console = MockConsole()
    monkeypatch.setattr(context, "make_console", lambda: console)

    with pytest.raises(typer.Exit) as exc:
        run_cmd.run(**{**_RUN_DEFAULTS, "source_dir": tmp_path})  # type: ignore[arg-type]

    assert exc.value.exit_code == int(ErrorCode.CONFIG_ERROR)
    assert console.find("Missing registry credential")


def test_run_malformed_repository_is_config_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    import otpb.cli.commands.run_cmd as run_cmd
    import otpb.cli.context as context

    monkeypatch.setenv("GITHUB_TOKEN", "t")
    console = MockConsole()
    monkeypatch.setattr(context, "make_console", lambda: console)

    with pytest.raises(typer.Exit) as exc:
        overrides = {"repository": "not-a-repo", "source_dir": tmp_path}
        run_cmd.run(**{**_RUN_DEFAULTS, **overrides})  # type: ignore[arg-type]

    assert exc.value.exit_code == int(ErrorCode.CONFIG_ERROR)


def test_run_outside_git_checkout(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import otpb.cli.commands.run_cmd as run_cmd

    console = MockConsole()
    monkeypatch.setattr(run_cmd, "build_context", lambda **_: _ctx(tmp_path, console))

    with pytest.raises(typer.Exit) as exc:
        run_cmd.run(**_RUN_DEFAULTS)  # type: ignore[arg-type]

    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)
    assert console.find("not a git checkout")


def test_run_tag_listing_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import otpb.cli.commands.run_cmd as run_cmd

    (tmp_path / ".git").mkdir()
    console = MockConsole()
    monkeypatch.setattr(run_cmd, "build_context", lambda **_: _ctx(tmp_path, console))
    monkeypatch.setattr(
        run_cmd,
        "list_versions",
        lambda repo, pattern: Err(VcsError("tag --list", "fatal: bad object", 128)),
    )

    with pytest.raises(typer.Exit) as exc:
        run_cmd.run(**_RUN_DEFAULTS)  # type: ignore[arg-type]

    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)
    assert console.find("fatal: bad object")


def test_run_hands_tags_to_pipeline(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import otpb.cli.commands.run_cmd as run_cmd

    (tmp_path / ".git").mkdir()
    console = MockConsole()
    patterns: list[str] = []

    def fake_list(repo: object, pattern: str) -> Ok[list[str]]:
        patterns.append(pattern)
        return Ok(["OTP-22.3.4", "OTP-23.0"])

    FakePipeline.instances.clear()
    monkeypatch.setattr(run_cmd, "build_context", lambda **_: _ctx(tmp_path, console))
    monkeypatch.setattr(run_cmd, "list_versions", fake_list)
    monkeypatch.setattr(run_cmd, "Pipeline", FakePipeline)

    # Per-version failures never reach the exit status: no typer.Exit here.
    run_cmd.run(**_RUN_DEFAULTS)  # type: ignore[arg-type]

    assert patterns == ["OTP-*"]
    [pipeline] = FakePipeline.instances
    assert pipeline.tags == ["OTP-22.3.4", "OTP-23.0"]
    assert pipeline.kwargs["host"] == HOST
    assert pipeline.kwargs["version_timeout"] is None
    assert console.find("2 tag(s) match OTP-*")
    assert console.find("asset: linux-6.1.0.tar.gz")
