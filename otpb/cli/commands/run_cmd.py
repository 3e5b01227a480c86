"""Run command - build and publish every matching OTP version."""

from __future__ import annotations

from pathlib import Path

import typer

from otpb.cli.context import build_context, cancel_on_sigterm
from otpb.core.errors import ErrorCode
from otpb.core.result import Err
from otpb.git.repository import Repository
from otpb.net.http import RealHttpClient
from otpb.output.console import Style
from otpb.services.build import BuildDriver
from otpb.services.pipeline import Pipeline
from otpb.services.registry import GitHubReleases
from otpb.services.versions import list_versions


def run(
    token: str | None = typer.Option(
        None,
        "--token",
        help="Registry token (default: $INPUT_SECRET-TOKEN or $GITHUB_TOKEN)",
        show_default=False,
    ),
    repository: str | None = typer.Option(
        None,
        "--repository",
        help="Target owner/repo (default: $GITHUB_REPOSITORY)",
        show_default=False,
    ),
    pattern: str | None = typer.Option(
        None, "--pattern", help="Tag glob (default: OTP-*)", show_default=False
    ),
    source_dir: Path | None = typer.Option(
        None,
        "--source",
        help="OTP git checkout (default: current directory)",
        show_default=False,
    ),
    version_timeout: float | None = typer.Option(
        None, "--version-timeout", help="Per-version time limit in seconds", show_default=False
    ),
    config_path: Path | None = typer.Option(
        None, "--config", help="TOML config file (otpb table)", show_default=False
    ),
) -> None:
    """Build every matching version and publish missing archives."""
    ctx = build_context(
        token=token,
        repository=repository,
        pattern=pattern,
        source_dir=source_dir,
        version_timeout=version_timeout,
        config_path=config_path,
    )
    config = ctx.config
    console = ctx.console

    repo = Repository(config.source_dir)
    if not repo.exists():
        console.error(f"not a git checkout: {config.source_dir}")
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    tags = list_versions(repo, config.pattern)
    if isinstance(tags, Err):
        e = tags.error
        console.error(f"git {e.command} failed (exit {e.returncode}): {e.message}")
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    console.print(f"repository: {config.repository}", Style.DIM)
    console.print(f"host: {ctx.host}", Style.DIM)
    console.print(f"asset: {ctx.host.asset_name}", Style.DIM)
    console.info(f"{len(tags.value)} tag(s) match {config.pattern}")

    registry = GitHubReleases(
        RealHttpClient(config.token), config.owner, config.repo, api_url=config.api_url
    )
    pipeline = Pipeline(
        workspace=repo,
        registry=registry,
        driver=BuildDriver(source_dir=config.source_dir, host=ctx.host, console=console),
        host=ctx.host,
        console=console,
        version_timeout=config.version_timeout,
        cancel=ctx.cancel,
    )
    with cancel_on_sigterm(ctx.cancel):
        pipeline.run(tags.value)
