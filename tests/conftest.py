"""Shared fixtures: an in-memory fake of the upstream provider API."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from hostplane.core.config import clear_config
from hostplane.upstream import Credentials, UpstreamClient

BASE_URL = "https://api.test/client/v4"

PROVIDER_ENV_VARS = (
    "CLOUDFLARE_ACCOUNT_ID",
    "ACCOUNT_ID",
    "CLOUDFLARE_API_TOKEN",
    "DISPATCH_NAMESPACE_API_TOKEN",
    "CLOUDFLARE_API_KEY",
    "CLOUDFLARE_API_EMAIL",
    "CUSTOM_DOMAIN",
    "CLOUDFLARE_ZONE_ID",
    "FALLBACK_ORIGIN",
    "HOSTPLANE_API_BASE_URL",
    "HOSTPLANE_NAMESPACE_NAME",
    "HOSTPLANE_SCRIPT_NAME",
    "HOSTPLANE_REGISTRY_PATH",
)


def envelope(
    result: Any = None,
    *,
    success: bool = True,
    errors: list[dict[str, Any]] | None = None,
    status: int = 200,
) -> httpx.Response:
    """Build a provider response envelope."""
    return httpx.Response(
        status,
        json={"success": success, "result": result, "errors": errors or [], "messages": []},
    )


def failure(status: int, message: str, code: int = 1000) -> httpx.Response:
    return envelope(None, success=False, errors=[{"code": code, "message": message}], status=status)


Responder = Callable[[httpx.Request], httpx.Response]


class FakeUpstream:
    """Routes requests by method and path and records every call.

    A route holds either a callable or a list of responses; lists are served
    in order and the last response repeats.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder | list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, *responses: httpx.Response | Responder) -> FakeUpstream:
        if len(responses) == 1 and callable(responses[0]):
            self.routes[(method, path)] = responses[0]
        else:
            self.routes[(method, path)] = list(responses)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/client/v4")
        route = self.routes.get((request.method, path))
        if route is None:
            return failure(404, f"No route for {request.method} {path}")
        if callable(route):
            return route(request)
        response = route.pop(0) if len(route) > 1 else route[0]
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    def calls(self, method: str, path: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method
            and (path is None or r.url.path.removeprefix("/client/v4") == path)
        ]

    def client(self, credentials: Credentials | None = None) -> UpstreamClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.handle))
        return UpstreamClient(
            credentials or Credentials.from_values(api_token="test-token-1234567890"),
            base_url=BASE_URL,
            http_client=http_client,
        )


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from provider variables and any local .env file."""
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_config()
    yield
    clear_config()
