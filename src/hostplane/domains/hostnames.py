"""Custom hostname lifecycle against the upstream provider.

A tenant-supplied hostname moves through::

    not_found -> pending -> active
                        \\-> error  (may heal back on a later poll)

Transitions are observed only by polling the upstream; nothing here keeps
timers, retries or caches. Every operation is best-effort and never raises:
failures come back as ``False`` or as an ``error`` status carrying a message.

Usage:
    controller = CustomHostnameController(client, zone_id="023e105f...")

    await controller.create("shop.example.org")
    record = await controller.get_status("shop.example.org")
    if record.status == HostnameStatus.ACTIVE:
        ...
    await controller.delete("shop.example.org")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from hostplane.errors import TransportFailure, Unconfigured
from hostplane.names import normalize_hostname
from hostplane.upstream.client import UpstreamClient

logger = structlog.get_logger()

API_NOT_CONFIGURED = "API not configured"
NETWORK_ERROR = "Network error"


class HostnameStatus(Enum):
    """Normalized status of a custom hostname."""

    PENDING = "pending"
    ACTIVE = "active"
    ERROR = "error"
    NOT_FOUND = "not_found"

    @classmethod
    def from_upstream(cls, value: Any) -> HostnameStatus:
        """Map an upstream status string into the closed enumeration.

        The provider reports finer states (``pending_validation``,
        ``pending_deletion``, ``moved``, ``blocked``...). Anything pending-like
        collapses to PENDING, anything unrecognised to ERROR.
        """
        text = str(value or "").lower()
        if text == "active":
            return cls.ACTIVE
        if "pending" in text or text == "initializing":
            return cls.PENDING
        return cls.ERROR


class DeleteOutcome(Enum):
    """Result of a delete attempt."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class ValidationRecord:
    """A DNS or HTTP record the tenant (or the platform) must serve for validation."""

    type: str
    name: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "name": self.name, "value": self.value}


@dataclass
class SslStatus:
    """Certificate issuance state for a custom hostname."""

    status: str
    validation_method: str | None = None
    validation_errors: list[str] = field(default_factory=list)
    validation_records: list[ValidationRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "validation_method": self.validation_method,
            "validation_errors": list(self.validation_errors),
            "validation_records": [r.to_dict() for r in self.validation_records],
        }


@dataclass
class CustomHostnameRecord:
    """Normalized view of one upstream custom hostname."""

    hostname: str
    status: HostnameStatus
    ssl: SslStatus | None = None
    verification_errors: list[str] = field(default_factory=list)
    upstream_id: str | None = None
    ownership_verification: ValidationRecord | None = None

    @property
    def is_routable(self) -> bool:
        """Active, and certificate issuance (if started) has completed."""
        if self.status != HostnameStatus.ACTIVE:
            return False
        return self.ssl is None or self.ssl.status == "active"

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "status": self.status.value,
            "ssl": self.ssl.to_dict() if self.ssl else None,
            "verification_errors": list(self.verification_errors),
            "upstream_id": self.upstream_id,
            "ownership_verification": (
                self.ownership_verification.to_dict() if self.ownership_verification else None
            ),
        }

    @classmethod
    def failed(cls, hostname: str, message: str) -> CustomHostnameRecord:
        return cls(hostname=hostname, status=HostnameStatus.ERROR, verification_errors=[message])


def _messages(values: Any) -> list[str]:
    """Normalize an upstream error list (strings or ``{message}`` objects) to strings."""
    if not values:
        return []
    messages = []
    for value in values:
        if isinstance(value, dict):
            message = value.get("message")
            if message:
                messages.append(str(message))
        elif value:
            messages.append(str(value))
    return messages


def normalize_validation_record(raw: Any) -> ValidationRecord | None:
    """Fold the provider's record shapes into ``{type, name, value}``.

    Handles the canonical shape plus ``txt_name/txt_value``,
    ``http_url/http_body`` and ``cname/cname_target``.
    """
    if not isinstance(raw, dict):
        return None
    if raw.get("name") and raw.get("type"):
        return ValidationRecord(str(raw["type"]), str(raw["name"]), str(raw.get("value", "")))
    if raw.get("txt_name"):
        return ValidationRecord("txt", str(raw["txt_name"]), str(raw.get("txt_value", "")))
    if raw.get("http_url"):
        return ValidationRecord("http", str(raw["http_url"]), str(raw.get("http_body", "")))
    if raw.get("cname"):
        return ValidationRecord("cname", str(raw["cname"]), str(raw.get("cname_target", "")))
    return None


def normalize_ssl(raw: Any) -> SslStatus | None:
    """Normalize the upstream ``ssl`` block.

    The validation method appears either as ``method`` or as
    ``validation_method``; ``method`` wins when both are present. Missing
    arrays become empty lists.
    """
    if not isinstance(raw, dict):
        return None
    records = [normalize_validation_record(r) for r in raw.get("validation_records") or []]
    return SslStatus(
        status=str(raw.get("status", "")),
        validation_method=raw.get("method") or raw.get("validation_method"),
        validation_errors=_messages(raw.get("validation_errors")),
        validation_records=[r for r in records if r is not None],
    )


def normalize_record(hostname: str, raw: dict[str, Any]) -> CustomHostnameRecord:
    """Turn one upstream custom hostname object into a CustomHostnameRecord."""
    upstream_id = raw.get("id")
    return CustomHostnameRecord(
        hostname=str(raw.get("hostname") or hostname),
        status=HostnameStatus.from_upstream(raw.get("status")),
        ssl=normalize_ssl(raw.get("ssl")),
        verification_errors=_messages(raw.get("verification_errors")),
        upstream_id=str(upstream_id) if upstream_id else None,
        ownership_verification=normalize_validation_record(raw.get("ownership_verification")),
    )


def build_create_payload(hostname: str) -> dict[str, Any]:
    """Request body asking for HTTP-validated DV certificates with TLS 1.2+ and TLS 1.3."""
    return {
        "hostname": hostname,
        "ssl": {
            "method": "http",
            "type": "dv",
            "settings": {
                "http2": "on",
                "min_tls_version": "1.2",
                "tls_1_3": "on",
            },
        },
    }


class CustomHostnameController:
    """Creates, polls and deletes custom hostnames in one upstream zone."""

    def __init__(self, client: UpstreamClient, zone_id: str | None) -> None:
        """Initialize the controller.

        Args:
            client: Upstream API client carrying the credentials.
            zone_id: Zone that owns custom hostnames. None disables the feature.
        """
        self.client = client
        self.zone_id = zone_id

    @property
    def is_configured(self) -> bool:
        configured = bool(self.zone_id) and self.client.is_configured
        if not configured:
            logger.error(
                "Custom hostname API not configured",
                has_zone_id=bool(self.zone_id),
                has_credentials=self.client.is_configured,
            )
        return configured

    @property
    def _base_path(self) -> str:
        return f"/zones/{self.zone_id}/custom_hostnames"

    async def create(self, hostname: str) -> bool:
        """Ask the upstream to start serving and validating a hostname.

        Returns:
            True only if the upstream answered with a 2xx status.
        """
        hostname = normalize_hostname(hostname)
        if not self.is_configured:
            return False

        try:
            response = await self.client.post(self._base_path, build_create_payload(hostname))
        except (TransportFailure, Unconfigured) as e:
            logger.warning("Could not create custom hostname", hostname=hostname, error=str(e))
            return False

        if not response.http_ok:
            logger.warning(
                "Custom hostname creation rejected",
                hostname=hostname,
                status=response.status_code,
                error=response.error_message,
            )
            return False

        logger.info("Custom hostname created", hostname=hostname)
        return True

    async def get_status(self, hostname: str) -> CustomHostnameRecord:
        """Query the upstream for the current state of a hostname.

        Only the first matching upstream record is used.
        """
        hostname = normalize_hostname(hostname)
        if not self.is_configured:
            return CustomHostnameRecord.failed(hostname, API_NOT_CONFIGURED)

        try:
            response = await self.client.get(self._base_path, params={"hostname": hostname})
        except Unconfigured:
            return CustomHostnameRecord.failed(hostname, API_NOT_CONFIGURED)
        except TransportFailure:
            return CustomHostnameRecord.failed(hostname, NETWORK_ERROR)

        if not response.ok:
            rejection = response.rejection()
            logger.error(
                "Custom hostname API error",
                hostname=hostname,
                status=response.status_code,
                error=rejection.message,
                errors=response.errors,
            )
            return CustomHostnameRecord.failed(hostname, rejection.user_message)

        results = response.result
        if isinstance(results, dict):
            results = [results]
        if not results:
            return CustomHostnameRecord(hostname=hostname, status=HostnameStatus.NOT_FOUND)

        if len(results) > 1:
            logger.debug("Multiple upstream records for hostname", hostname=hostname, count=len(results))

        first = results[0]
        if not isinstance(first, dict):
            return CustomHostnameRecord.failed(hostname, "Invalid response body")
        return normalize_record(hostname, first)

    async def delete_outcome(self, hostname: str) -> DeleteOutcome:
        """Delete a hostname, distinguishing "nothing to delete" from failure.

        Looks up the upstream id by hostname first; no DELETE is issued when
        the lookup finds nothing.
        """
        hostname = normalize_hostname(hostname)
        if not self.is_configured:
            return DeleteOutcome.FAILED

        try:
            listing = await self.client.get(self._base_path, params={"hostname": hostname})
            if not listing.ok:
                logger.warning(
                    "Custom hostname lookup failed",
                    hostname=hostname,
                    status=listing.status_code,
                    error=listing.error_message,
                )
                return DeleteOutcome.FAILED

            matches = listing.result or []
            if isinstance(matches, dict):
                matches = [matches]
            if not matches:
                return DeleteOutcome.NOT_FOUND

            hostname_id = matches[0].get("id") if isinstance(matches[0], dict) else None
            if not hostname_id:
                return DeleteOutcome.FAILED

            response = await self.client.delete(f"{self._base_path}/{hostname_id}")
        except (TransportFailure, Unconfigured) as e:
            logger.warning("Could not delete custom hostname", hostname=hostname, error=str(e))
            return DeleteOutcome.FAILED

        if not response.http_ok:
            logger.warning(
                "Custom hostname deletion rejected",
                hostname=hostname,
                status=response.status_code,
                error=response.error_message,
            )
            return DeleteOutcome.FAILED

        logger.info("Custom hostname deleted", hostname=hostname, upstream_id=hostname_id)
        return DeleteOutcome.DELETED

    async def delete(self, hostname: str) -> bool:
        """Delete a hostname. False when nothing matched or any call failed."""
        return await self.delete_outcome(hostname) is DeleteOutcome.DELETED
