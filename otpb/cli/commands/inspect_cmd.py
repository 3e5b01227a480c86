"""Inspection commands - show what a run would do on this host."""

from __future__ import annotations

import typer

from otpb.cli.context import make_console
from otpb.core.errors import ErrorCode
from otpb.output.console import Style
from otpb.platform.detection import Platform, detect, parse_platform
from otpb.services.patches import select_patches
from otpb.services.versions import parse_version


def patches(
    tag: str = typer.Argument(..., help="Version tag (e.g. OTP-22.3.4)"),
    platform: str | None = typer.Option(
        None, "--platform", help="linux, darwin or windows (default: this host)", show_default=False
    ),
    show_diff: bool = typer.Option(False, "--diff", help="Print the patch payloads"),
) -> None:
    """List the source patches applied before building TAG."""
    console = make_console()

    target = detect().platform if platform is None else parse_platform(platform)
    if target == Platform.UNKNOWN:
        console.error(f"unknown platform: {platform}")
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

    triple = parse_version(tag)
    selected = select_patches(target, triple)
    console.print(f"{tag} ({triple}) on {target}", Style.DIM)
    if not selected:
        console.info("no patches")
        return

    for rule in selected:
        scope = ", ".join(sorted(str(p) for p in rule.platforms)) or "all platforms"
        console.print(f"{rule.name}: {scope}; {rule.when}")
        if show_diff:
            console.print(rule.payload, Style.DIM)


def asset_name() -> None:
    """Print the archive name this host publishes under."""
    console = make_console()
    console.print(detect().asset_name)
