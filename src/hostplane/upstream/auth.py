"""Credential selection for upstream API calls.

Precedence: a bearer token wins over a key+email pair. Tokens themselves are
tried in order (the platform API token first, then the dispatch namespace
token). With nothing usable the resolver raises Unconfigured, which callers
treat as "feature unavailable".
"""

from __future__ import annotations

from dataclasses import dataclass, field

from hostplane.errors import Unconfigured


@dataclass
class Credentials:
    """Credential material available to the process."""

    tokens: tuple[str | None, ...] = ()
    api_key: str | None = field(default=None, repr=False)
    api_email: str | None = None

    @classmethod
    def from_values(
        cls,
        api_token: str | None = None,
        dispatch_token: str | None = None,
        api_key: str | None = None,
        api_email: str | None = None,
    ) -> Credentials:
        return cls(tokens=(api_token, dispatch_token), api_key=api_key, api_email=api_email)

    @property
    def bearer_token(self) -> str | None:
        for token in self.tokens:
            if token and token.strip():
                return token.strip()
        return None

    @property
    def has_key_pair(self) -> bool:
        return bool(self.api_key and self.api_email)

    @property
    def is_configured(self) -> bool:
        return self.bearer_token is not None or self.has_key_pair


def resolve_auth_headers(credentials: Credentials) -> dict[str, str]:
    """Build the header set for an outbound upstream call.

    Args:
        credentials: Available credential material.

    Returns:
        Headers including either Authorization or X-Auth-Key/X-Auth-Email.

    Raises:
        Unconfigured: If neither a token nor a complete key+email pair exists.
    """
    token = credentials.bearer_token
    if token:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
    if credentials.has_key_pair:
        return {
            "X-Auth-Key": credentials.api_key or "",
            "X-Auth-Email": credentials.api_email or "",
            "Content-Type": "application/json",
        }
    raise Unconfigured("No API token or API key/email pair configured")
