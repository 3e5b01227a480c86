"""Core types shared by every layer: results, exit codes, configuration."""

from .config import ConfigError, RunConfig, load_run_config
from .errors import ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "ConfigError",
    "RunConfig",
    "load_run_config",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
