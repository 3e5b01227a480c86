"""Tests for otpb.services.artifacts."""

from __future__ import annotations

import hashlib
import tarfile
from pathlib import Path

import pytest

from otpb.core.result import Err, Ok
from otpb.services.artifacts import (
    PublishResult,
    archive,
    checksum,
    checksum_path_for,
    publish,
    sha256_file,
)


@pytest.fixture
def build_root(tmp_path: Path) -> Path:
    """A ``release`` directory as ``make release`` leaves it."""
    root = tmp_path / "release"
    target = root / "x86_64-apple-darwin19.6.0"
    (target / "bin").mkdir(parents=True)
    (target / "bin" / "erl").write_text("#!/bin/sh\n")
    (target / "Install").write_text("#!/bin/sh\n")
    (target / "releases" / "22").mkdir(parents=True)
    (target / "releases" / "22" / "OTP_VERSION").write_text("22.3.4\n")
    return root


def _member_names(path: Path) -> set[str]:
    with tarfile.open(path, "r:gz") as tar:
        return {m.name for m in tar.getmembers()}


class TestArchive:
    def test_archives_directory_contents(self, build_root: Path) -> None:
        result = archive(build_root, "darwin-19.6.0.tar.gz")

        assert result == Ok(build_root / "darwin-19.6.0.tar.gz")
        names = _member_names(build_root / "darwin-19.6.0.tar.gz")
        assert "./bin/erl" in names
        assert "./Install" in names
        assert "./releases/22/OTP_VERSION" in names
        # Entries are relative to the target directory, not under its name.
        assert not any("x86_64-apple-darwin19.6.0" in n for n in names)

    def test_extracts_to_original_content(self, build_root: Path, tmp_path: Path) -> None:
        result = archive(build_root, "darwin-19.6.0.tar.gz")
        assert isinstance(result, Ok)

        out = tmp_path / "extracted"
        with tarfile.open(result.value, "r:gz") as tar:
            tar.extractall(out, filter="data")

        assert (out / "releases" / "22" / "OTP_VERSION").read_text() == "22.3.4\n"

    def test_loose_files_do_not_count_as_directories(self, build_root: Path) -> None:
        (build_root / "notes.txt").write_text("not a target")
        assert isinstance(archive(build_root, "linux-6.1.0.tar.gz"), Ok)

    def test_no_directory(self, tmp_path: Path) -> None:
        root = tmp_path / "release"
        root.mkdir()

        result = archive(root, "linux-6.1.0.tar.gz")

        assert isinstance(result, Err)
        assert "found none" in result.error.message
        assert result.error.path == root

    def test_two_directories(self, build_root: Path) -> None:
        (build_root / "aarch64-apple-darwin20").mkdir()

        result = archive(build_root, "darwin-19.6.0.tar.gz")

        assert isinstance(result, Err)
        assert "found 2" in result.error.message
        assert not (build_root / "darwin-19.6.0.tar.gz").exists()

    def test_missing_build_root(self, tmp_path: Path) -> None:
        result = archive(tmp_path / "release", "linux-6.1.0.tar.gz")
        assert isinstance(result, Err)
        assert "cannot list build output" in result.error.message


class TestChecksum:
    def test_sidecar_name(self) -> None:
        path = Path("/src/release/linux-5.15.0-1041-azure.tar.gz")
        assert checksum_path_for(path) == Path("/src/release/linux-5.15.0-1041-azure.sha256.txt")

    def test_writes_lowercase_hex_without_newline(self, tmp_path: Path) -> None:
        archive_path = tmp_path / "darwin-19.6.0.tar.gz"
        archive_path.write_bytes(b"archive bytes")

        result = checksum(archive_path)

        assert result == Ok(tmp_path / "darwin-19.6.0.sha256.txt")
        content = (tmp_path / "darwin-19.6.0.sha256.txt").read_text()
        assert content == hashlib.sha256(b"archive bytes").hexdigest()
        assert content == content.lower()
        assert len(content) == 64

    def test_sha256_file_matches_hashlib_for_large_input(self, tmp_path: Path) -> None:
        data = b"x" * (3 * 1024 * 1024 + 17)
        path = tmp_path / "big.tar.gz"
        path.write_bytes(data)
        assert sha256_file(path) == hashlib.sha256(data).hexdigest()

    def test_unreadable_archive(self, tmp_path: Path) -> None:
        result = checksum(tmp_path / "missing.tar.gz")
        assert isinstance(result, Err)
        assert "cannot compute checksum" in result.error.message
        assert not (tmp_path / "missing.sha256.txt").exists()


class TestPublish:
    def test_archive_and_checksum(self, build_root: Path) -> None:
        result = publish(build_root, "darwin-19.6.0.tar.gz")

        assert result == Ok(
            PublishResult(
                archive_path=build_root / "darwin-19.6.0.tar.gz",
                checksum_path=build_root / "darwin-19.6.0.sha256.txt",
            )
        )
        digest = (build_root / "darwin-19.6.0.sha256.txt").read_text()
        assert digest == sha256_file(build_root / "darwin-19.6.0.tar.gz")

    def test_paths_order(self, build_root: Path) -> None:
        result = publish(build_root, "darwin-19.6.0.tar.gz")
        assert isinstance(result, Ok)
        assert [p.name for p in result.value.paths] == [
            "darwin-19.6.0.tar.gz",
            "darwin-19.6.0.sha256.txt",
        ]

    def test_packaging_error_propagates(self, tmp_path: Path) -> None:
        root = tmp_path / "release"
        root.mkdir()
        assert isinstance(publish(root, "linux-6.1.0.tar.gz"), Err)
