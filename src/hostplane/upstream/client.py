"""Upstream provider API client.

Every response uses the envelope ``{success, result?, errors?: [{code, message}]}``.
The client performs each call exactly once (no retries), always reads the
body to completion and closes the response, and raises TransportFailure for
network-level problems. Non-success envelopes are returned, not raised, so
each caller decides how a rejection degrades its feature.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from hostplane.errors import TransportFailure, UpstreamRejected, first_error_message
from hostplane.upstream.auth import Credentials, resolve_auth_headers

logger = structlog.get_logger()


@dataclass
class UpstreamResponse:
    """A parsed upstream response envelope."""

    status_code: int
    success: bool
    result: Any = None
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """HTTP 2xx and an envelope reporting success."""
        return 200 <= self.status_code < 300 and self.success

    @property
    def http_ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error_message(self) -> str | None:
        return first_error_message(self.errors)

    def mentions(self, text: str) -> bool:
        """Whether any upstream error message contains ``text``."""
        return any(text in str(err.get("message", "")) for err in self.errors)

    def has_code(self, code: int) -> bool:
        return any(err.get("code") == code for err in self.errors)

    def rejection(self) -> UpstreamRejected:
        return UpstreamRejected(self.status_code, self.errors)


def parse_envelope(status_code: int, body: bytes) -> UpstreamResponse:
    """Parse a raw response body into an envelope.

    Bodies that are not a JSON object become a failed envelope carrying an
    ``Invalid response body`` error.
    """
    try:
        data = json.loads(body) if body else {}
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = None

    if not isinstance(data, dict):
        return UpstreamResponse(
            status_code=status_code,
            success=False,
            errors=[{"code": 0, "message": "Invalid response body"}],
        )

    errors = data.get("errors") or []
    if not isinstance(errors, list):
        errors = []
    return UpstreamResponse(
        status_code=status_code,
        success=bool(data.get("success", False)),
        result=data.get("result"),
        errors=[err for err in errors if isinstance(err, dict)],
    )


class UpstreamClient:
    """Executes authenticated calls against the provider API.

    The underlying ``httpx.AsyncClient`` may be injected (tests pass one
    built on ``httpx.MockTransport``); otherwise one is created lazily and
    owned by this client.
    """

    def __init__(
        self,
        credentials: Credentials,
        base_url: str = "https://api.cloudflare.com/client/v4",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            credentials: Credential material used for every call.
            base_url: Provider API base URL.
            http_client: Optional pre-built httpx client.
            timeout: Per-request timeout in seconds for an owned client.
        """
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return self.credentials.is_configured

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> UpstreamClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> UpstreamResponse:
        """Perform one upstream call.

        Args:
            method: HTTP method.
            path: API path relative to the base URL (e.g. ``/user/tokens/verify``).
            params: Query parameters.
            json_body: JSON-serializable request body.

        Returns:
            The parsed response envelope (success or not).

        Raises:
            Unconfigured: If no usable credential exists.
            TransportFailure: If the API could not be reached.
        """
        headers = resolve_auth_headers(self.credentials)
        url = f"{self.base_url}{path}"
        client = self._get_client()

        try:
            async with client.stream(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
            ) as response:
                body = await response.aread()
        except httpx.HTTPError as e:
            logger.warning("Upstream request failed", method=method, path=path, error=str(e))
            raise TransportFailure(f"{method} {path}: {e}") from e

        envelope = parse_envelope(response.status_code, body)
        logger.debug(
            "Upstream response",
            method=method,
            path=path,
            status=response.status_code,
            success=envelope.success,
        )
        return envelope

    async def get(self, path: str, params: dict[str, str] | None = None) -> UpstreamResponse:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json_body: Any = None) -> UpstreamResponse:
        return await self.request("POST", path, json_body=json_body)

    async def delete(self, path: str) -> UpstreamResponse:
        return await self.request("DELETE", path)
