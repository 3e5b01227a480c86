"""Tests for otpb.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from otpb.core.config import (
    DEFAULT_API_URL,
    DEFAULT_PATTERN,
    ConfigError,
    RunConfig,
    load_run_config,
    parse_repository,
)
from otpb.core.result import Err, Ok

_ACTIONS_ENV = {
    "INPUT_SECRET-TOKEN": "ghs_action",
    "GITHUB_REPOSITORY": "erlef/otp-builds",
}


class TestParseRepository:
    def test_valid(self) -> None:
        assert parse_repository("erlef/otp-builds") == Ok(("erlef", "otp-builds"))

    def test_strips_whitespace(self) -> None:
        assert parse_repository("  erlef / otp-builds ") == Ok(("erlef", "otp-builds"))

    @pytest.mark.parametrize("value", ["", "erlef", "erlef/", "/otp", "a/b/c"])
    def test_malformed(self, value: str) -> None:
        result = parse_repository(value)
        assert isinstance(result, Err)
        assert "owner/repo" in result.error.message


class TestRunConfig:
    def test_repository_property(self, tmp_path: Path) -> None:
        config = RunConfig(token="t", owner="erlef", repo="otp-builds", source_dir=tmp_path)
        assert config.repository == "erlef/otp-builds"
        assert config.pattern == DEFAULT_PATTERN
        assert config.api_url == DEFAULT_API_URL
        assert config.version_timeout is None

    def test_frozen(self, tmp_path: Path) -> None:
        config = RunConfig(token="t", owner="o", repo="r", source_dir=tmp_path)
        with pytest.raises(AttributeError):
            config.token = "other"  # type: ignore[misc]


class TestLoadRunConfigFromEnv:
    def test_actions_inputs(self, tmp_path: Path) -> None:
        result = load_run_config(_ACTIONS_ENV, source_dir=tmp_path)
        assert isinstance(result, Ok)
        config = result.value
        assert config.token == "ghs_action"
        assert (config.owner, config.repo) == ("erlef", "otp-builds")
        assert config.pattern == "OTP-*"
        assert config.source_dir == tmp_path.resolve()

    def test_github_token_fallback(self, tmp_path: Path) -> None:
        env = {"GITHUB_TOKEN": "ghp_x", "GITHUB_REPOSITORY": "o/r"}
        result = load_run_config(env, source_dir=tmp_path)
        assert isinstance(result, Ok)
        assert result.value.token == "ghp_x"

    def test_action_input_wins_over_github_token(self, tmp_path: Path) -> None:
        env = {**_ACTIONS_ENV, "GITHUB_TOKEN": "ghp_x"}
        result = load_run_config(env, source_dir=tmp_path)
        assert isinstance(result, Ok)
        assert result.value.token == "ghs_action"

    def test_pattern_and_api_url_from_env(self, tmp_path: Path) -> None:
        env = {
            **_ACTIONS_ENV,
            "INPUT_TARGET-PATTERN": "OTP-2*",
            "GITHUB_API_URL": "https://ghe.example.com/api/v3",
        }
        result = load_run_config(env, source_dir=tmp_path)
        assert isinstance(result, Ok)
        assert result.value.pattern == "OTP-2*"
        assert result.value.api_url == "https://ghe.example.com/api/v3"

    def test_missing_token(self, tmp_path: Path) -> None:
        result = load_run_config({"GITHUB_REPOSITORY": "o/r"}, source_dir=tmp_path)
        assert isinstance(result, Err)
        assert "credential" in result.error.message

    def test_blank_token_is_missing(self, tmp_path: Path) -> None:
        env = {"INPUT_SECRET-TOKEN": "   ", "GITHUB_REPOSITORY": "o/r"}
        result = load_run_config(env, source_dir=tmp_path)
        assert isinstance(result, Err)

    def test_missing_repository(self, tmp_path: Path) -> None:
        result = load_run_config({"GITHUB_TOKEN": "t"}, source_dir=tmp_path)
        assert isinstance(result, Err)
        assert "repository" in result.error.message

    def test_malformed_repository(self, tmp_path: Path) -> None:
        env = {"GITHUB_TOKEN": "t", "GITHUB_REPOSITORY": "no-slash"}
        result = load_run_config(env, source_dir=tmp_path)
        assert isinstance(result, Err)
        assert "no-slash" in result.error.message


class TestLoadRunConfigPrecedence:
    def test_cli_beats_env(self, tmp_path: Path) -> None:
        result = load_run_config(
            _ACTIONS_ENV,
            token="cli-token",
            repository="me/mine",
            pattern="OTP-25*",
            source_dir=tmp_path,
        )
        assert isinstance(result, Ok)
        config = result.value
        assert config.token == "cli-token"
        assert config.repository == "me/mine"
        assert config.pattern == "OTP-25*"

    def test_env_beats_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "otpb.toml"
        config_file.write_text(
            '[otpb]\nrepository = "file/repo"\npattern = "OTP-1*"\n', encoding="utf-8"
        )
        result = load_run_config(_ACTIONS_ENV, source_dir=tmp_path, config_path=config_file)
        assert isinstance(result, Ok)
        assert result.value.repository == "erlef/otp-builds"
        assert result.value.pattern == "OTP-1*"

    def test_file_values(self, tmp_path: Path) -> None:
        src = tmp_path / "otp"
        src.mkdir()
        config_file = tmp_path / "otpb.toml"
        config_file.write_text(
            "# build settings\n"
            "[otpb]\n"
            'repository = "file/repo"\n'
            f'source_dir = "{src.as_posix()}"\n'
            'api_url = "https://ghe.example.com/api/v3"\n'
            "version_timeout = 5400\n",
            encoding="utf-8",
        )
        result = load_run_config({"GITHUB_TOKEN": "t"}, config_path=config_file)
        assert isinstance(result, Ok)
        config = result.value
        assert config.repository == "file/repo"
        assert config.source_dir == src.resolve()
        assert config.api_url == "https://ghe.example.com/api/v3"
        assert config.version_timeout == 5400.0

    def test_file_without_table_uses_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "otpb.toml"
        config_file.write_text('[other]\nkey = "value"\n', encoding="utf-8")
        result = load_run_config(_ACTIONS_ENV, source_dir=tmp_path, config_path=config_file)
        assert isinstance(result, Ok)
        assert result.value.pattern == DEFAULT_PATTERN

    def test_cli_timeout_beats_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "otpb.toml"
        config_file.write_text("[otpb]\nversion_timeout = 10\n", encoding="utf-8")
        result = load_run_config(
            _ACTIONS_ENV, source_dir=tmp_path, version_timeout=60.0, config_path=config_file
        )
        assert isinstance(result, Ok)
        assert result.value.version_timeout == 60.0


class TestLoadRunConfigErrors:
    def test_missing_file(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing.toml"
        result = load_run_config(_ACTIONS_ENV, source_dir=tmp_path, config_path=missing)
        assert isinstance(result, Err)
        assert result.error == ConfigError(f"Config file not found: {missing}", path=missing)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "otpb.toml"
        config_file.write_text("[otpb\nrepository = ", encoding="utf-8")
        result = load_run_config(_ACTIONS_ENV, source_dir=tmp_path, config_path=config_file)
        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message
        assert result.error.path == config_file

    @pytest.mark.parametrize("timeout", [0.0, -5.0])
    def test_non_positive_timeout(self, tmp_path: Path, timeout: float) -> None:
        result = load_run_config(_ACTIONS_ENV, source_dir=tmp_path, version_timeout=timeout)
        assert isinstance(result, Err)
        assert "positive" in result.error.message
