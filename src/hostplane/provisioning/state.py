"""Result types produced by a provisioning run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hostplane.core.config import mask_secret

# Documentation address (RFC 5737); the provider proxies the traffic anyway
DUMMY_ORIGIN_IP = "192.0.2.1"


class StepOutcome(Enum):
    """What a provisioning step did."""

    CREATED = "created"
    PRESENT = "present"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ReportEntry:
    """One line of the provisioning report."""

    step: str
    outcome: StepOutcome
    detail: str = ""


@dataclass
class DispatchNamespace:
    """The container for tenant deployable units."""

    name: str
    id: str | None = None
    existed: bool = False


@dataclass
class AccessCredential:
    """The credential the platform uses to manage tenant deployments."""

    value: str | None = field(default=None, repr=False)
    created_new: bool = False
    degraded: bool = False

    @property
    def masked(self) -> str:
        return mask_secret(self.value)


@dataclass
class RouteSet:
    """Routing rules binding the root domain to the platform's own script."""

    domain_pattern: str
    wildcard_pattern: str
    zone_id: str
    created: bool = False


@dataclass
class ProvisioningState:
    """Everything a provisioning run established, with a per-step report."""

    account_id: str
    account_name: str | None = None
    namespace_available: bool = False
    dispatch_namespace: DispatchNamespace | None = None
    access_credential: AccessCredential | None = None
    custom_domain: str | None = None
    zone_id: str | None = None
    zone_name: str | None = None
    fallback_origin: str | None = None
    route_set: RouteSet | None = None
    entries: list[ReportEntry] = field(default_factory=list)

    def record(self, step: str, outcome: StepOutcome, detail: str = "") -> None:
        self.entries.append(ReportEntry(step, outcome, detail))

    def outcome_of(self, step: str) -> StepOutcome | None:
        """Last outcome recorded for a step."""
        for entry in reversed(self.entries):
            if entry.step == step:
                return entry.outcome
        return None

    @property
    def credential_degraded(self) -> bool:
        return bool(self.access_credential and self.access_credential.degraded)

    def to_env_dict(self) -> dict[str, str]:
        """Environment assignments for the deployed platform.

        This is the one place the credential appears unmasked.
        """
        result = {
            "ACCOUNT_ID": self.account_id,
            "DISPATCH_NAMESPACE_API_TOKEN": (
                self.access_credential.value or "" if self.access_credential else ""
            ),
        }
        if self.custom_domain:
            result["CUSTOM_DOMAIN"] = self.custom_domain
            result["CLOUDFLARE_ZONE_ID"] = self.zone_id or ""
            result["FALLBACK_ORIGIN"] = self.fallback_origin or ""
        return result

    def dns_records(self) -> list[tuple[str, str, str]]:
        """(type, name, content) rows the operator adds in the root zone."""
        if not self.custom_domain:
            return []
        records = [("A", "@", DUMMY_ORIGIN_IP), ("A", "*", DUMMY_ORIGIN_IP)]
        if self.fallback_origin and self.fallback_origin.endswith(f".{self.custom_domain}"):
            label = self.fallback_origin[: -len(self.custom_domain) - 1]
            records.append(("A", label, DUMMY_ORIGIN_IP))
        return records

    def to_report(self) -> dict[str, Any]:
        """Structured report with credentials masked."""
        credential = self.access_credential
        return {
            "account_id": self.account_id,
            "account_name": self.account_name,
            "namespace_available": self.namespace_available,
            "dispatch_namespace": (
                {
                    "name": self.dispatch_namespace.name,
                    "id": self.dispatch_namespace.id,
                    "existed": self.dispatch_namespace.existed,
                }
                if self.dispatch_namespace
                else None
            ),
            "access_credential": (
                {
                    "value": credential.masked,
                    "created_new": credential.created_new,
                    "degraded": credential.degraded,
                }
                if credential
                else None
            ),
            "custom_domain": self.custom_domain,
            "zone_id": self.zone_id,
            "zone_name": self.zone_name,
            "fallback_origin": self.fallback_origin,
            "routes": (
                [self.route_set.domain_pattern, self.route_set.wildcard_pattern]
                if self.route_set
                else []
            ),
            "steps": [
                {"step": e.step, "outcome": e.outcome.value, "detail": e.detail}
                for e in self.entries
            ],
        }
