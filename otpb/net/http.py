"""HTTP client abstraction for the release registry.

This module provides:
- HttpClient: Protocol for JSON requests and streamed file uploads
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Mock implementation for testing
"""

from __future__ import annotations

import http.client
import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from otpb.core.result import Err, Ok, Result

__all__ = [
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
    "UploadCall",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP operations.

    This abstraction allows injecting mock clients for testing,
    avoiding real network calls in unit tests.
    """

    def request_json(
        self,
        method: str,
        url: str,
        *,
        body: dict[str, object] | None = None,
    ) -> Result[object, HttpError]:
        """Send a request and parse the JSON response (None for an empty body)."""
        ...

    def upload_file(
        self,
        url: str,
        path: Path,
        *,
        content_type: str,
    ) -> Result[object, HttpError]:
        """POST the bytes of `path` with an explicit Content-Length."""
        ...


def _decode_json(url: str, raw: bytes) -> Result[object, HttpError]:
    if not raw.strip():
        return Ok(None)
    try:
        data: object = json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))
    return Ok(data)


def _error_message(e: urllib.error.HTTPError) -> str:
    # GitHub puts the useful part in the JSON body's "message".
    try:
        payload: object = json.loads(e.read().decode("utf-8"))
    except (OSError, ValueError):
        return str(e.reason)
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return str(payload["message"])
    return str(e.reason)


class RealHttpClient:
    """Real HTTP client using urllib.

    Handles:
    - HTTPS with system certificates
    - Bearer token authentication for the GitHub REST API
    - Streaming uploads (the file is never loaded into memory)
    """

    def __init__(
        self,
        token: str,
        *,
        timeout: float = 60.0,
        upload_timeout: float = 30 * 60.0,
        user_agent: str = "otpb/0.3.0",
    ) -> None:
        self.timeout = timeout
        self.upload_timeout = upload_timeout
        self._headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": user_agent,
        }
        # Use system certificates
        self._ssl_context = ssl.create_default_context()

    def _send(self, req: urllib.request.Request, timeout: float) -> Result[bytes, HttpError]:
        url = req.full_url
        try:
            with urllib.request.urlopen(
                req, timeout=timeout, context=self._ssl_context
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=_error_message(e)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except http.client.HTTPException as e:
            # Not OSError subclasses: IncompleteRead from read(), BadStatusLine.
            return Err(HttpError(url=url, status=0, message=f"{type(e).__name__}: {e}"))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def request_json(
        self,
        method: str,
        url: str,
        *,
        body: dict[str, object] | None = None,
    ) -> Result[object, HttpError]:
        headers = dict(self._headers)
        data: bytes | None = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        result = self._send(req, self.timeout)
        if isinstance(result, Err):
            return result
        return _decode_json(url, result.value)

    def upload_file(
        self,
        url: str,
        path: Path,
        *,
        content_type: str,
    ) -> Result[object, HttpError]:
        try:
            size = path.stat().st_size
            f = path.open("rb")
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=f"cannot read {path}: {e}"))

        headers = dict(self._headers)
        headers["Content-Type"] = content_type
        headers["Content-Length"] = str(size)
        with f:
            req = urllib.request.Request(url, data=f, headers=headers, method="POST")
            result = self._send(req, self.upload_timeout)
        if isinstance(result, Err):
            return result
        return _decode_json(url, result.value)


@dataclass(frozen=True, slots=True)
class UploadCall:
    """An upload recorded by MockHttpClient."""

    url: str
    content: bytes
    content_type: str
    content_length: int


class MockHttpClient:
    """Mock HTTP client for testing.

    Responses are keyed by (method, url). Unknown keys answer 404, which is
    what the registry returns for a missing release.

    Usage:
        client = MockHttpClient()
        client.set_response("GET", "https://api.example.com/x", {"id": 1})
        assert client.request_json("GET", "https://api.example.com/x") == Ok({"id": 1})
    """

    def __init__(self) -> None:
        self._responses: dict[tuple[str, str], list[object | HttpError]] = {}
        self.calls: list[tuple[str, str]] = []
        self.bodies: list[dict[str, object] | None] = []
        self.uploads: list[UploadCall] = []

    def set_response(self, method: str, url: str, response: object | HttpError) -> None:
        """Set the response for (method, url); replaces queued responses."""
        self._responses[(method, url)] = [response]

    def queue_response(self, method: str, url: str, response: object | HttpError) -> None:
        """Append a response; the last queued one keeps answering once reached."""
        self._responses.setdefault((method, url), []).append(response)

    def _answer(self, method: str, url: str) -> Result[object, HttpError]:
        self.calls.append((method, url))
        queue = self._responses.get((method, url))
        if not queue:
            return Err(HttpError(url=url, status=404, message="Not Found (mock)"))
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def request_json(
        self,
        method: str,
        url: str,
        *,
        body: dict[str, object] | None = None,
    ) -> Result[object, HttpError]:
        self.bodies.append(body)
        return self._answer(method, url)

    def upload_file(
        self,
        url: str,
        path: Path,
        *,
        content_type: str,
    ) -> Result[object, HttpError]:
        content = path.read_bytes()
        self.uploads.append(
            UploadCall(
                url=url,
                content=content,
                content_type=content_type,
                content_length=len(content),
            )
        )
        return self._answer("POST", url)

    def count(self, method: str, url: str) -> int:
        """Number of calls made to (method, url)."""
        return sum(1 for call in self.calls if call == (method, url))
