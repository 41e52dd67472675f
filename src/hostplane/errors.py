"""Error types shared across hostplane.

Component operations (custom hostname create/status/delete) never raise these
to their callers; they fold them into a boolean or a status value. Only the
provisioning credential check is allowed to abort a run.
"""

from __future__ import annotations

from typing import Any

SANITIZED_AUTH_MESSAGE = (
    "Custom domains require additional setup. Please contact the platform administrator."
)

REMEDIATION_HINTS = (
    "Verify your API credentials",
    "Ensure Workers for Platforms is enabled on your account",
    "Check the API token has the required permissions",
)


class HostplaneError(Exception):
    """Base error type."""


class Unconfigured(HostplaneError):
    """Required credential, zone or domain input is absent.

    Always non-fatal: the feature that needed it reports itself unavailable.
    """


class TransportFailure(HostplaneError):
    """The upstream API could not be reached."""


class UpstreamRejected(HostplaneError):
    """The upstream API answered with a non-success envelope."""

    def __init__(
        self,
        status_code: int,
        errors: list[dict[str, Any]] | None = None,
        message: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.errors = errors or []
        self.message = message or first_error_message(self.errors) or "API request failed"
        super().__init__(self.message)

    @property
    def is_auth_failure(self) -> bool:
        """Whether the rejection points at an authentication/permission problem."""
        if self.status_code == 403:
            return True
        lowered = self.message.lower()
        return "authentication" in lowered or "authorization" in lowered

    @property
    def user_message(self) -> str:
        """Message safe to show to end users."""
        if self.is_auth_failure:
            return SANITIZED_AUTH_MESSAGE
        return self.message


class FatalProvisioningError(HostplaneError):
    """Credential verification failed; the provisioning run cannot continue."""

    def __init__(self, message: str, hints: tuple[str, ...] = REMEDIATION_HINTS) -> None:
        super().__init__(message)
        self.hints = hints


def first_error_message(errors: list[dict[str, Any]] | None) -> str | None:
    """Return the message of the first upstream error, if any."""
    if not errors:
        return None
    message = errors[0].get("message")
    return str(message) if message else None
