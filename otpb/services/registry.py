"""GitHub Releases as the artifact registry.

Every OTP tag maps to a release of the same name in the target repository.
The release is found by tag and created when missing; an asset with the
host's archive name on that release marks the version as already built.
"""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, urlencode

from otpb.core.config import DEFAULT_API_URL
from otpb.core.result import Err, Ok, Result
from otpb.core.structured import as_obj_list, as_str_dict, get_int, get_str
from otpb.net.http import HttpClient, HttpError
from otpb.services.errors import RegistryError, UploadError

__all__ = [
    "AssetRecord",
    "DEFAULT_API_URL",
    "GitHubReleases",
    "ReleaseRecord",
    "upload_endpoint",
]

ASSET_CONTENT_TYPE = "application/octet-stream"

_PAGE_SIZE = 100
_URI_TEMPLATE_RE = re.compile(r"\{[^}]*\}$")


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    id: int
    tag: str
    upload_url: str


@dataclass(frozen=True, slots=True)
class AssetRecord:
    id: int
    name: str


def upload_endpoint(upload_url: str, name: str) -> str:
    """Expand the release's ``upload_url`` template for one asset name.

    GitHub returns ``.../assets{?name,label}``; the template part is dropped
    and the name passed as a query parameter.
    """
    base = _URI_TEMPLATE_RE.sub("", upload_url)
    return f"{base}?{urlencode({'name': name})}"


def _parse_release(obj: object, tag: str) -> Result[ReleaseRecord, str]:
    data = as_str_dict(obj)
    if data is None:
        return Err("release response is not an object")
    release_id = get_int(data, "id")
    upload_url = get_str(data, "upload_url")
    if release_id is None or upload_url is None:
        return Err("release response lacks id or upload_url")
    tag_name = get_str(data, "tag_name") or tag
    return Ok(ReleaseRecord(id=release_id, tag=tag_name, upload_url=upload_url))


def _parse_assets(items: list[object]) -> list[AssetRecord]:
    out: list[AssetRecord] = []
    for item in items:
        data = as_str_dict(item)
        if data is None:
            continue
        asset_id = get_int(data, "id")
        name = get_str(data, "name")
        if asset_id is None or name is None:
            continue
        out.append(AssetRecord(id=asset_id, name=name))
    return out


class GitHubReleases:
    """Release lookup, creation and asset upload for one repository."""

    def __init__(
        self,
        http: HttpClient,
        owner: str,
        repo: str,
        *,
        api_url: str = DEFAULT_API_URL,
        upload_workers: int = 2,
    ) -> None:
        self._http = http
        self._owner = owner
        self._repo = repo
        self._api_url = api_url.rstrip("/")
        self._upload_workers = max(1, upload_workers)

    @property
    def repository(self) -> str:
        return f"{self._owner}/{self._repo}"

    def _url(self, path: str) -> str:
        return f"{self._api_url}/repos/{quote(self._owner)}/{quote(self._repo)}{path}"

    def release_url(self, tag: str) -> str:
        return self._url(f"/releases/tags/{quote(tag, safe='')}")

    def get_release(self, tag: str) -> Result[ReleaseRecord | None, RegistryError]:
        """Release for `tag`, or None when the registry answers 404."""
        result = self._http.request_json("GET", self.release_url(tag))
        if isinstance(result, Err):
            if result.error.is_not_found:
                return Ok(None)
            return Err(_registry_error("get release", result.error))

        parsed = _parse_release(result.value, tag)
        if isinstance(parsed, Err):
            return Err(RegistryError(operation="get release", message=parsed.error))
        return Ok(parsed.value)

    def create_release(self, tag: str) -> Result[ReleaseRecord, RegistryError]:
        result = self._http.request_json("POST", self._url("/releases"), body={"tag_name": tag})
        if isinstance(result, Err):
            return Err(_registry_error("create release", result.error))

        parsed = _parse_release(result.value, tag)
        if isinstance(parsed, Err):
            return Err(RegistryError(operation="create release", message=parsed.error))
        return Ok(parsed.value)

    def get_or_create_release(self, tag: str) -> Result[ReleaseRecord, RegistryError]:
        """Look the release up by tag; create it only when the lookup found nothing.

        A lookup failure other than not-found is returned as is. Creating on
        any error would make duplicate releases when the registry is flaky.
        """
        found = self.get_release(tag)
        if isinstance(found, Err):
            return found
        if found.value is not None:
            return Ok(found.value)
        return self.create_release(tag)

    def list_assets(self, release: ReleaseRecord) -> Result[list[AssetRecord], RegistryError]:
        """All assets of `release`, following pagination."""
        assets: list[AssetRecord] = []
        page = 1
        while True:
            url = self._url(f"/releases/{release.id}/assets?per_page={_PAGE_SIZE}&page={page}")
            result = self._http.request_json("GET", url)
            if isinstance(result, Err):
                return Err(_registry_error("list assets", result.error))

            items = as_obj_list(result.value)
            if items is None:
                return Err(
                    RegistryError(operation="list assets", message="asset listing is not an array")
                )

            assets.extend(_parse_assets(items))
            # Malformed entries still count toward a full page.
            if len(items) < _PAGE_SIZE:
                return Ok(assets)
            page += 1

    def find_asset(
        self, release: ReleaseRecord, name: str
    ) -> Result[AssetRecord | None, RegistryError]:
        """Asset named exactly `name` (case-sensitive), or None."""
        assets = self.list_assets(release)
        if isinstance(assets, Err):
            return assets
        for asset in assets.value:
            if asset.name == name:
                return Ok(asset)
        return Ok(None)

    def upload_asset(
        self, release: ReleaseRecord, path: Path
    ) -> Result[AssetRecord, UploadError]:
        """Upload one file as a release asset named after its basename."""
        name = path.name
        url = upload_endpoint(release.upload_url, name)
        result = self._http.upload_file(url, path, content_type=ASSET_CONTENT_TYPE)
        if isinstance(result, Err):
            return Err(
                UploadError(name=name, message=result.error.message, status=result.error.status)
            )

        data = as_str_dict(result.value)
        asset_id = get_int(data, "id") if data is not None else None
        return Ok(AssetRecord(id=asset_id if asset_id is not None else 0, name=name))

    def upload_assets(
        self, release: ReleaseRecord, paths: list[Path]
    ) -> Result[list[AssetRecord], UploadError]:
        """Upload `paths` concurrently and wait for all of them.

        Every upload runs to completion even when another fails. The error
        reported is the one of the first failing path, in the order given.
        """
        if not paths:
            return Ok([])

        workers = min(self._upload_workers, len(paths))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda p: self.upload_asset(release, p), paths))

        uploaded: list[AssetRecord] = []
        for result in results:
            if isinstance(result, Err):
                return result
            uploaded.append(result.value)
        return Ok(uploaded)


def _registry_error(operation: str, error: HttpError) -> RegistryError:
    return RegistryError(operation=operation, message=error.message, status=error.status)
