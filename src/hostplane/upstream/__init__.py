"""Upstream provider API access: credentials and the HTTP client."""

from hostplane.upstream.auth import Credentials, resolve_auth_headers
from hostplane.upstream.client import UpstreamClient, UpstreamResponse, parse_envelope

__all__ = [
    "Credentials",
    "UpstreamClient",
    "UpstreamResponse",
    "parse_envelope",
    "resolve_auth_headers",
]
