"""Release archive packaging.

``make release`` leaves a single directory under ``<source>/release`` named
after the target triple (e.g. ``x86_64-apple-darwin19.6.0``). Its contents
become the uploaded ``.tar.gz``, next to a ``.sha256.txt`` sidecar holding
the archive's digest.
"""

from __future__ import annotations

import hashlib
import tarfile
from dataclasses import dataclass
from pathlib import Path

from otpb.core.result import Err, Ok, Result
from otpb.platform.detection import ARCHIVE_SUFFIX
from otpb.services.errors import PackagingError

__all__ = [
    "CHECKSUM_SUFFIX",
    "PublishResult",
    "archive",
    "checksum",
    "checksum_path_for",
    "publish",
    "sha256_file",
]

CHECKSUM_SUFFIX = ".sha256.txt"


@dataclass(frozen=True, slots=True)
class PublishResult:
    archive_path: Path
    checksum_path: Path

    @property
    def paths(self) -> tuple[Path, Path]:
        return (self.archive_path, self.checksum_path)


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _single_subdirectory(build_root: Path) -> Result[Path, PackagingError]:
    try:
        subdirs = sorted(p for p in build_root.iterdir() if p.is_dir())
    except OSError as e:
        return Err(PackagingError(f"cannot list build output: {e}", path=build_root))

    if not subdirs:
        return Err(PackagingError("expected one directory in build output, found none", build_root))
    if len(subdirs) > 1:
        names = ", ".join(p.name for p in subdirs)
        return Err(
            PackagingError(
                f"expected one directory in build output, found {len(subdirs)}: {names}",
                path=build_root,
            )
        )
    return Ok(subdirs[0])


def archive(build_root: Path, asset_name: str) -> Result[Path, PackagingError]:
    """Archive the contents of the single directory under `build_root`.

    Entries are stored relative to that directory (``./bin/erl``), not under
    its name. The archive is written to ``<build_root>/<asset_name>``.
    """
    subdir = _single_subdirectory(build_root)
    if isinstance(subdir, Err):
        return subdir

    archive_path = build_root / asset_name
    try:
        with tarfile.open(archive_path, "w:gz") as tar:
            tar.add(subdir.value, arcname=".")
    except (OSError, tarfile.TarError) as e:
        return Err(PackagingError(f"cannot write archive: {e}", path=archive_path))
    return Ok(archive_path)


def checksum_path_for(archive_path: Path) -> Path:
    """``darwin-19.6.0.tar.gz`` -> ``darwin-19.6.0.sha256.txt`` in the same directory."""
    stem = archive_path.name.removesuffix(ARCHIVE_SUFFIX)
    return archive_path.with_name(f"{stem}{CHECKSUM_SUFFIX}")


def checksum(archive_path: Path) -> Result[Path, PackagingError]:
    """Write the lowercase hex sha256 of the archive to its sidecar file.

    The sidecar holds the digest only: no file name, no trailing newline.
    """
    sidecar = checksum_path_for(archive_path)
    try:
        digest = sha256_file(archive_path)
        sidecar.write_text(digest, encoding="ascii")
    except OSError as e:
        return Err(PackagingError(f"cannot compute checksum: {e}", path=archive_path))
    return Ok(sidecar)


def publish(build_root: Path, asset_name: str) -> Result[PublishResult, PackagingError]:
    """Archive then checksum; the pair is what gets uploaded."""
    archived = archive(build_root, asset_name)
    if isinstance(archived, Err):
        return archived
    sidecar = checksum(archived.value)
    if isinstance(sidecar, Err):
        return sidecar
    return Ok(PublishResult(archive_path=archived.value, checksum_path=sidecar.value))
