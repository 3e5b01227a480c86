"""Tests for otpb.platform.detection module."""

from __future__ import annotations

from collections.abc import Iterator
from typing import NamedTuple
from unittest.mock import patch

import pytest

from otpb.platform.detection import (
    ARCHIVE_SUFFIX,
    HostInfo,
    Platform,
    asset_name_for,
    detect,
    detect_platform,
    parse_platform,
)


@pytest.fixture(autouse=True)
def _clear_caches() -> Iterator[None]:
    detect.cache_clear()
    detect_platform.cache_clear()
    yield
    detect.cache_clear()
    detect_platform.cache_clear()


class _Uname(NamedTuple):
    system: str
    node: str
    release: str
    version: str
    machine: str


class TestPlatformEnum:
    """Test Platform enum properties."""

    @pytest.mark.parametrize(
        ("platform", "text"),
        [
            (Platform.LINUX, "linux"),
            (Platform.MACOS, "macos"),
            (Platform.WINDOWS, "windows"),
            (Platform.UNKNOWN, "unknown"),
        ],
    )
    def test_str(self, platform: Platform, text: str) -> None:
        assert str(platform) == text


class TestParsePlatform:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("linux", Platform.LINUX),
            ("Linux", Platform.LINUX),
            ("darwin", Platform.MACOS),
            ("macos", Platform.MACOS),
            ("win32", Platform.WINDOWS),
            ("windows", Platform.WINDOWS),
            ("freebsd13", Platform.UNKNOWN),
            ("", Platform.UNKNOWN),
        ],
    )
    def test_aliases(self, name: str, expected: Platform) -> None:
        assert parse_platform(name) == expected


class TestAssetName:
    def test_darwin(self) -> None:
        assert asset_name_for("Darwin", "19.6.0") == "darwin-19.6.0.tar.gz"

    def test_linux_release_with_dashes(self) -> None:
        assert asset_name_for("Linux", "5.15.0-1041-azure") == "linux-5.15.0-1041-azure.tar.gz"

    def test_spaces_become_hyphens(self) -> None:
        assert asset_name_for("Some OS", "1.0 beta") == "some-os-1.0-beta.tar.gz"

    def test_suffix(self) -> None:
        assert asset_name_for("Linux", "6.1").endswith(ARCHIVE_SUFFIX)


class TestHostInfo:
    def test_asset_name(self) -> None:
        host = HostInfo(platform=Platform.MACOS, system="Darwin", release="19.6.0", cpu_count=4)
        assert host.asset_name == "darwin-19.6.0.tar.gz"

    def test_str(self) -> None:
        host = HostInfo(platform=Platform.LINUX, system="Linux", release="6.1.0", cpu_count=8)
        assert str(host) == "linux (Linux 6.1.0, 8 cpus)"


class TestDetect:
    def test_detect_platform_from_sys_platform(self) -> None:
        with patch("otpb.platform.detection._sys.platform", "darwin"):
            assert detect_platform() == Platform.MACOS

    def test_detect_uses_uname_and_cpu_count(self) -> None:
        uname = _Uname("Darwin", "ci", "19.6.0", "Darwin Kernel", "x86_64")
        with (
            patch("otpb.platform.detection._sys.platform", "darwin"),
            patch("otpb.platform.detection._platform.uname", return_value=uname),
            patch("otpb.platform.detection._os.cpu_count", return_value=3),
        ):
            host = detect()

        assert host == HostInfo(
            platform=Platform.MACOS, system="Darwin", release="19.6.0", cpu_count=3
        )

    def test_cpu_count_unknown_falls_back_to_one(self) -> None:
        uname = _Uname("Linux", "ci", "6.1.0", "#1 SMP", "x86_64")
        with (
            patch("otpb.platform.detection._platform.uname", return_value=uname),
            patch("otpb.platform.detection._os.cpu_count", return_value=None),
        ):
            assert detect().cpu_count == 1

    def test_detect_is_cached(self) -> None:
        assert detect() is detect()
