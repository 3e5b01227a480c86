from __future__ import annotations

import os
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import typer

from otpb.core.config import RunConfig, load_run_config
from otpb.core.errors import ErrorCode
from otpb.core.result import Err
from otpb.output.console import ConsoleProtocol, RichConsole
from otpb.output.errors import print_config_error
from otpb.platform.detection import HostInfo, detect


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: RunConfig
    host: HostInfo
    console: ConsoleProtocol
    cancel: threading.Event


def make_console() -> ConsoleProtocol:
    return RichConsole()


def build_context(
    *,
    token: str | None = None,
    repository: str | None = None,
    pattern: str | None = None,
    source_dir: Path | None = None,
    version_timeout: float | None = None,
    config_path: Path | None = None,
) -> CLIContext:
    console = make_console()
    config_result = load_run_config(
        os.environ,
        token=token,
        repository=repository,
        pattern=pattern,
        source_dir=source_dir,
        version_timeout=version_timeout,
        config_path=config_path,
    )
    if isinstance(config_result, Err):
        print_config_error(config_result.error, console)
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

    return CLIContext(
        config=config_result.value,
        host=detect(),
        console=console,
        cancel=threading.Event(),
    )


@contextmanager
def cancel_on_sigterm(cancel: threading.Event) -> Iterator[None]:
    """Set `cancel` on SIGTERM for the duration of the block.

    The version in progress stops at its next stage boundary; versions not
    yet started are reported as interrupted.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: object) -> None:
        cancel.set()

    previous = signal.signal(signal.SIGTERM, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)
