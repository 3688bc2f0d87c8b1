"""HTTP fetch capability shared by provider, playlist, and result downloads.

Responsibilities:
- Issue blocking `requests` calls with one configured timeout.
- Normalize transport and status failures into `ProviderHttpError` kinds.
- Redact bearer tokens from any provider text echoed into diagnostics.
"""

from __future__ import annotations

import re
import socket
from typing import Any

import requests

from ..errors import ProviderHttpError


class HttpFetcher:
    """Minimal requests-based fetcher with deterministic failure classification."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        timeout_seconds: float = 120.0,
        api_key: str | None = None,
        auth_base_url: str | None = None,
    ) -> None:
        """Initialize timeout and optional bearer authorization.

        When `auth_base_url` is set, the bearer token is only sent to URLs
        under that prefix.
        """

        self.timeout_seconds = timeout_seconds
        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.auth_base_url = auth_base_url.rstrip("/") if auth_base_url else None

    def _authorizes(self, url: str) -> bool:
        if not self.api_key:
            return False
        if self.auth_base_url is None:
            return True
        return url == self.auth_base_url or url.startswith(f"{self.auth_base_url}/")

    def get_bytes(self, url: str, *, headers: dict[str, str] | None = None) -> bytes:
        """GET `url` and return the raw body of a 2xx response."""

        response = self._send("GET", url, headers=headers)
        return bytes(response.content)

    def get_text(self, url: str, *, headers: dict[str, str] | None = None) -> str:
        """GET `url` and return the body decoded as UTF-8."""

        return self.get_bytes(url, headers=headers).decode("utf-8", errors="replace")

    def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        """POST a JSON payload and return the decoded JSON response.

        Raises:
            ProviderHttpError: On transport/status failures, or with
                `failure_kind="invalid_json"` when the body is not JSON.
        """

        response = self._send(
            "POST",
            url,
            headers={"Content-Type": "application/json"},
            json=payload,
        )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderHttpError(
                "Provider returned invalid JSON payload.",
                failure_kind="invalid_json",
                status_code=response.status_code,
            ) from exc

    def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> requests.Response:
        """Execute one request and map failures consistently."""

        request_headers = dict(headers or {})
        if self._authorizes(url):
            request_headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = requests.request(
                method,
                url,
                headers=request_headers,
                json=json,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(url, exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = f"Request to {url} timed out."
            else:
                detail = f"Request to {url} failed: {self._short_message(str(exc))}"
            raise ProviderHttpError(detail, failure_kind=failure_kind) from exc
        except TimeoutError as exc:
            raise ProviderHttpError(
                f"Request to {url} timed out.",
                failure_kind="timeout",
            ) from exc
        return response

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact bearer tokens from provider error content."""

        return re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            text,
        )

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(cls._redact_sensitive_tokens(text).split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return "timeout"
        return "transport"

    @classmethod
    def _http_error_to_provider_error(
        cls,
        url: str,
        exc: requests.HTTPError,
    ) -> ProviderHttpError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        response = exc.response
        status_code = response.status_code if response is not None else 0
        body = ""
        if response is not None:
            body = bytes(response.content).decode("utf-8", errors="replace").strip()

        if status_code == 404:
            failure_kind = "not_found"
        elif status_code in {408, 504}:
            failure_kind = "timeout"
        else:
            failure_kind = "http_error"

        provider_message = cls._short_message(body) if body else ""
        if provider_message:
            detail = f"Request to {url} failed (HTTP {status_code}): {provider_message}"
        else:
            detail = f"Request to {url} failed (HTTP {status_code})."
        return ProviderHttpError(detail, failure_kind=failure_kind, status_code=status_code)
