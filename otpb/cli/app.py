from __future__ import annotations

import typer

from otpb import __version__
from otpb.cli.commands.inspect_cmd import asset_name, patches
from otpb.cli.commands.run_cmd import run


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(run)
app.command()(patches)
app.command("asset-name")(asset_name)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Build Erlang/OTP release archives and publish them to GitHub Releases."""


def main() -> None:
    app()
