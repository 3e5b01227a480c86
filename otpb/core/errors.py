"""Process exit codes.

Only failures outside the per-version loop reach the exit status: a broken
configuration or a tag listing that cannot run. A version that fails to build
or publish is reported and the run still exits with OK.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable.
    """

    OK = 0
    CONFIG_ERROR = 1
    ENV_ERROR = 2
