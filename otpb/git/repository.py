"""Git working tree used as the shared build checkout.

A single checkout is reused for every version of a run, so each version
starts by forcing the tree back to a pristine state:

    repo = Repository(Path("/src/otp"))
    match repo.prepare("OTP-22.3.4"):
        case Ok(_):
            ...  # tree now matches the tag, no untracked files
        case Err(e):
            print(f"{e.command} failed: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from otpb.core.result import Err, Ok, Result
from otpb.platform.process import ProcessError
from otpb.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 5 * 60.0

__all__ = [
    "Repository",
    "VcsError",
]


@dataclass(frozen=True, slots=True)
class VcsError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed (e.g. "checkout")
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


class Repository:
    """Git repository holding the source tree to build.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a valid git repository."""
        return (self.path / ".git").exists()

    def list_tags(self, pattern: str) -> Result[list[str], VcsError]:
        """List tags matching a glob, in the order git reports them.

        Runs `git tag --list <pattern>`. Blank lines are dropped; nothing is
        sorted or deduplicated.
        """
        result = self._run(["tag", "--list", pattern])
        match result:
            case Err(e):
                return Err(self._error("tag --list", e, "git tag failed"))
            case Ok(stdout):
                return Ok([line.strip() for line in stdout.splitlines() if line.strip()])

    def reset_hard(self) -> Result[None, VcsError]:
        """Discard all tracked modifications (e.g. patches of the previous version)."""
        return self._simple(["reset", "--hard", "--quiet"], "reset --hard")

    def checkout(self, tag: str) -> Result[None, VcsError]:
        """Check out a tag (detached HEAD)."""
        return self._simple(["checkout", "--quiet", tag], "checkout")

    def clean_untracked(self) -> Result[None, VcsError]:
        """Remove untracked and ignored files and directories (build outputs)."""
        return self._simple(["clean", "-dfqx"], "clean")

    def prepare(self, tag: str) -> Result[None, VcsError]:
        """Reset, check out `tag`, then clean; stops at the first failure."""
        for step in (self.reset_hard, lambda: self.checkout(tag), self.clean_untracked):
            result = step()
            if isinstance(result, Err):
                return result
        return Ok(None)

    def _simple(self, args: list[str], command: str) -> Result[None, VcsError]:
        result = self._run(args)
        if isinstance(result, Err):
            return Err(self._error(command, result.error, f"git {command} failed"))
        return Ok(None)

    def _error(self, command: str, e: ProcessError, fallback: str) -> VcsError:
        return VcsError(
            command=command,
            message=e.stderr.strip() or e.stdout.strip() or fallback,
            returncode=e.returncode,
        )

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        return run_process(
            ["git", "-C", str(self.path), *args],
            cwd=self.path,
            timeout=_GIT_TIMEOUT_SECONDS,
        )
