"""Typed run configuration.

Settings are merged from, in order of precedence: explicit CLI options, the
process environment (GitHub Actions inputs and context variables), an
optional TOML file, then defaults. Anything wrong here is fatal to the whole
run and is reported before the first version is touched.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_number, get_str, get_table

__all__ = [
    "ConfigError",
    "RunConfig",
    "load_run_config",
    "parse_repository",
    "DEFAULT_API_URL",
    "DEFAULT_PATTERN",
]

DEFAULT_PATTERN = "OTP-*"
DEFAULT_API_URL = "https://api.github.com"

# GitHub Actions exposes `with:` inputs as INPUT_<NAME> (hyphens preserved).
_TOKEN_ENV_KEYS = ("INPUT_SECRET-TOKEN", "GITHUB_TOKEN")
_PATTERN_ENV_KEY = "INPUT_TARGET-PATTERN"
_REPOSITORY_ENV_KEY = "GITHUB_REPOSITORY"
_API_URL_ENV_KEY = "GITHUB_API_URL"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when the run configuration is missing or invalid."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Everything the pipeline needs that does not come from the source tree."""

    token: str
    owner: str
    repo: str
    source_dir: Path
    pattern: str = DEFAULT_PATTERN
    api_url: str = DEFAULT_API_URL
    version_timeout: float | None = None

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_repository(value: str) -> Result[tuple[str, str], ConfigError]:
    """Split an ``owner/repo`` identity.

    Both halves must be non-empty and there must be exactly one slash.
    """
    parts = value.strip().split("/")
    if len(parts) != 2 or not all(p.strip() for p in parts):
        return Err(ConfigError(f"Malformed repository identity: {value!r} (expected owner/repo)"))
    return Ok((parts[0].strip(), parts[1].strip()))


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file and return its [otpb] table."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(get_table(data, "otpb") or {})
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def _first_env(env: Mapping[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = env.get(key, "").strip()
        if value:
            return value
    return None


def load_run_config(
    env: Mapping[str, str],
    *,
    token: str | None = None,
    repository: str | None = None,
    pattern: str | None = None,
    source_dir: Path | None = None,
    version_timeout: float | None = None,
    config_path: Path | None = None,
) -> Result[RunConfig, ConfigError]:
    """Resolve the run configuration.

    Args:
        env: Process environment (usually ``os.environ``).
        token: Registry credential from the command line.
        repository: ``owner/repo`` from the command line.
        pattern: Tag glob from the command line.
        source_dir: Git checkout to build from.
        version_timeout: Per-version wall-clock limit in seconds.
        config_path: Optional TOML file with an ``[otpb]`` table.

    Returns:
        Ok(RunConfig) on success, Err(ConfigError) when the credential or the
        repository identity is missing or malformed, or the file is invalid.
    """
    file_cfg: StrDict = {}
    if config_path is not None:
        parsed = _parse_toml(config_path)
        if isinstance(parsed, Err):
            return parsed
        file_cfg = parsed.value

    resolved_token = (token or "").strip() or _first_env(env, _TOKEN_ENV_KEYS)
    if resolved_token is None:
        return Err(
            ConfigError("Missing registry credential (--token, INPUT_SECRET-TOKEN or GITHUB_TOKEN)")
        )

    identity = (
        (repository or "").strip()
        or _first_env(env, (_REPOSITORY_ENV_KEY,))
        or get_str(file_cfg, "repository")
    )
    if identity is None:
        return Err(ConfigError("Missing repository identity (--repository or GITHUB_REPOSITORY)"))
    owner_repo = parse_repository(identity)
    if isinstance(owner_repo, Err):
        return owner_repo
    owner, repo = owner_repo.value

    timeout = version_timeout if version_timeout is not None else get_number(
        file_cfg, "version_timeout"
    )
    if timeout is not None and timeout <= 0:
        return Err(
            ConfigError(f"version_timeout must be positive, got {timeout}", path=config_path)
        )

    src = source_dir
    if src is None:
        src_text = get_str(file_cfg, "source_dir")
        src = Path(src_text) if src_text else Path.cwd()

    return Ok(
        RunConfig(
            token=resolved_token,
            owner=owner,
            repo=repo,
            source_dir=src.expanduser().resolve(),
            pattern=(pattern or "").strip()
            or _first_env(env, (_PATTERN_ENV_KEY,))
            or get_str(file_cfg, "pattern")
            or DEFAULT_PATTERN,
            api_url=_first_env(env, (_API_URL_ENV_KEY,))
            or get_str(file_cfg, "api_url")
            or DEFAULT_API_URL,
            version_timeout=timeout,
        )
    )
