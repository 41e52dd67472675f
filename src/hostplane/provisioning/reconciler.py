"""Idempotent provisioning of the platform's upstream resources.

A run walks these steps in order, one upstream call at a time:

1. verify the credential (the only fatal step), then look up the account name
2. probe dispatch namespace access
3. ensure the dispatch namespace exists
4. ensure a credential with dispatch namespace rights
5. detect the root domain's zone and ensure the root domain routes
6. report

Re-running against an already provisioned account creates nothing new.

Usage:
    async with UpstreamClient(credentials) as client:
        state = await ProvisioningReconciler(config, client).run()
    print(state.to_report())
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from hostplane.core.config import ProvisioningConfig, mask_secret
from hostplane.errors import FatalProvisioningError, TransportFailure, Unconfigured
from hostplane.names import candidate_zone_names, normalize_hostname
from hostplane.provisioning.state import (
    AccessCredential,
    DispatchNamespace,
    ProvisioningState,
    RouteSet,
    StepOutcome,
)
from hostplane.upstream.client import UpstreamClient, UpstreamResponse

logger = structlog.get_logger()

NO_ACCESS_ERROR_CODE = 10121
TOKEN_LIFETIME = timedelta(days=365)

# Permission groups granted to a minted dispatch token
DISPATCH_PERMISSION_GROUPS = (
    {"id": "c1fde68c7bcc44588cbb6ddbc16d6480", "name": "Account Settings Read"},
    {"id": "1a71c399035b4950a1bd1466bbe4f420", "name": "Workers Scripts Write"},
    {"id": "e086da7e2179491d91ee5f35b3ca210a", "name": "Workers Scripts Read"},
)

STEP_VERIFY = "verify-credentials"
STEP_ACCOUNT = "account-lookup"
STEP_ACCESS = "namespace-access"
STEP_NAMESPACE = "dispatch-namespace"
STEP_CREDENTIAL = "access-credential"
STEP_ZONE = "zone-detection"
STEP_ROUTES = "routes"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def build_token_payload(account_id: str, now: datetime) -> dict[str, Any]:
    """Request body for minting a one-year dispatch token scoped to one account."""
    return {
        "name": f"Hostplane Dispatch Token - {now.date().isoformat()}",
        "policies": [
            {
                "effect": "allow",
                "resources": {f"com.cloudflare.api.account.{account_id}": "*"},
                "permission_groups": [dict(group) for group in DISPATCH_PERMISSION_GROUPS],
            }
        ],
        "condition": {},
        "expires_on": (now + TOKEN_LIFETIME).isoformat(),
    }


def _lacks_namespace_access(response: UpstreamResponse) -> bool:
    return response.status_code == 403 or response.has_code(NO_ACCESS_ERROR_CODE)


class ProvisioningReconciler:
    """Brings an account to the provisioned state, or reports what is missing."""

    def __init__(
        self,
        config: ProvisioningConfig,
        client: UpstreamClient,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the reconciler.

        Args:
            config: Resolved provisioning input.
            client: Upstream client authenticated with the operator credential.
            clock: Source of the current time, used for minted token dates.
        """
        self.config = config
        self.client = client
        self._clock = clock
        self._existing_namespaces: list[dict[str, Any]] = []

    @property
    def _namespaces_path(self) -> str:
        return f"/accounts/{self.config.account_id}/workers/dispatch/namespaces"

    async def run(self) -> ProvisioningState:
        """Execute every step in order.

        Raises:
            FatalProvisioningError: If the credential check fails.
        """
        state = ProvisioningState(
            account_id=self.config.account_id or "",
            fallback_origin=self.config.fallback_origin if self.config.has_custom_domain else None,
        )
        if self.config.has_custom_domain:
            state.custom_domain = normalize_hostname(self.config.custom_domain or "")
        self._existing_namespaces = []

        await self.validate_credentials(state)
        await self.lookup_account(state)
        await self.probe_access(state)
        await self.ensure_namespace(state)
        await self.ensure_credential(state)
        await self.ensure_routes(state)

        logger.info(
            "Provisioning finished",
            account_id=state.account_id,
            namespace_available=state.namespace_available,
            credential_degraded=state.credential_degraded,
        )
        return state

    async def validate_credentials(self, state: ProvisioningState) -> None:
        """Check the operator credential. Any failure aborts the run."""
        if not self.config.account_id:
            raise FatalProvisioningError("Account ID is required")
        if not self.client.is_configured:
            raise FatalProvisioningError("An API token or API key and email are required")

        # Key+email credentials cannot call the token verify endpoint
        verify_path = "/user/tokens/verify" if self.client.credentials.bearer_token else "/user"
        try:
            response = await self.client.get(verify_path)
        except (TransportFailure, Unconfigured) as e:
            raise FatalProvisioningError(f"Credential validation failed: {e}") from e

        if not response.ok:
            message = response.error_message or "Invalid credentials"
            raise FatalProvisioningError(f"Credential validation failed: {message}")

        state.record(STEP_VERIFY, StepOutcome.PRESENT)
        logger.info("Credentials validated", account_id=self.config.account_id)

    async def lookup_account(self, state: ProvisioningState) -> None:
        try:
            response = await self.client.get(f"/accounts/{self.config.account_id}")
        except (TransportFailure, Unconfigured) as e:
            logger.warning("Account lookup failed", error=str(e))
            state.record(STEP_ACCOUNT, StepOutcome.FAILED, str(e))
            return

        result = response.result if isinstance(response.result, dict) else {}
        if response.ok and result.get("name"):
            state.account_name = str(result["name"])
            state.record(STEP_ACCOUNT, StepOutcome.PRESENT, state.account_name)
        else:
            state.record(STEP_ACCOUNT, StepOutcome.FAILED, response.error_message or "")

    async def probe_access(self, state: ProvisioningState) -> None:
        """Find out whether the account may use dispatch namespaces at all."""
        try:
            response = await self.client.get(self._namespaces_path)
        except (TransportFailure, Unconfigured) as e:
            logger.warning("Could not check dispatch namespace access", error=str(e))
            state.namespace_available = False
            state.record(STEP_ACCESS, StepOutcome.FAILED, str(e))
            return

        if _lacks_namespace_access(response):
            logger.warning("Dispatch namespaces are not enabled on this account")
            state.namespace_available = False
            state.record(STEP_ACCESS, StepOutcome.SKIPPED, "Dispatch namespaces not enabled")
        elif response.http_ok:
            state.namespace_available = True
            result = response.result if isinstance(response.result, list) else []
            self._existing_namespaces = [ns for ns in result if isinstance(ns, dict)]
            state.record(STEP_ACCESS, StepOutcome.PRESENT)
        else:
            logger.warning(
                "Could not verify dispatch namespace access",
                status=response.status_code,
                error=response.error_message,
            )
            state.namespace_available = False
            state.record(STEP_ACCESS, StepOutcome.FAILED, response.error_message or "")

    async def ensure_namespace(self, state: ProvisioningState) -> None:
        name = self.config.namespace_name
        if not state.namespace_available:
            state.record(STEP_NAMESPACE, StepOutcome.SKIPPED, "Dispatch namespaces not available")
            return

        for existing in self._existing_namespaces:
            if existing.get("name") == name:
                state.dispatch_namespace = DispatchNamespace(
                    name=name, id=existing.get("id"), existed=True
                )
                state.record(STEP_NAMESPACE, StepOutcome.PRESENT, name)
                return

        try:
            response = await self.client.post(self._namespaces_path, {"name": name})
        except (TransportFailure, Unconfigured) as e:
            logger.warning("Could not create dispatch namespace", namespace=name, error=str(e))
            state.record(STEP_NAMESPACE, StepOutcome.FAILED, str(e))
            return

        result = response.result if isinstance(response.result, dict) else {}
        if response.ok and result.get("id"):
            state.dispatch_namespace = DispatchNamespace(name=name, id=str(result["id"]))
            state.record(STEP_NAMESPACE, StepOutcome.CREATED, name)
            logger.info("Dispatch namespace created", namespace=name, namespace_id=result["id"])
        elif response.mentions("already exists"):
            namespace_id = await self._find_namespace_id(name)
            state.dispatch_namespace = DispatchNamespace(name=name, id=namespace_id, existed=True)
            state.record(STEP_NAMESPACE, StepOutcome.PRESENT, name)
        else:
            logger.warning(
                "Could not create dispatch namespace",
                namespace=name,
                status=response.status_code,
                error=response.error_message,
            )
            state.record(STEP_NAMESPACE, StepOutcome.FAILED, response.error_message or "")

    async def _find_namespace_id(self, name: str) -> str | None:
        try:
            response = await self.client.get(self._namespaces_path)
        except (TransportFailure, Unconfigured) as e:
            logger.warning("Could not look up dispatch namespace", namespace=name, error=str(e))
            return None

        result = response.result if response.ok and isinstance(response.result, list) else []
        for existing in result:
            if isinstance(existing, dict) and existing.get("name") == name and existing.get("id"):
                return str(existing["id"])
        return None

    async def ensure_credential(self, state: ProvisioningState) -> None:
        """Reuse the operator token if it can list namespaces, else mint one.

        A key+email pair cannot be handed to the runtime as a bearer token, so
        it always mints. When minting fails the operator credential is kept and
        the credential is flagged degraded.
        """
        current = self.client.credentials.bearer_token
        fallback = AccessCredential(value=current, degraded=True)

        try:
            if current:
                probe = await self.client.get(self._namespaces_path)
                if probe.http_ok:
                    state.access_credential = AccessCredential(value=current)
                    state.record(STEP_CREDENTIAL, StepOutcome.PRESENT, "Using current credential")
                    return

            response = await self.client.post(
                "/user/tokens", build_token_payload(self.config.account_id or "", self._clock())
            )
        except (TransportFailure, Unconfigured) as e:
            logger.warning("Could not create dispatch token", error=str(e))
            state.access_credential = fallback
            state.record(STEP_CREDENTIAL, StepOutcome.FAILED, str(e))
            return

        result = response.result if isinstance(response.result, dict) else {}
        if response.ok and result.get("value"):
            value = str(result["value"])
            state.access_credential = AccessCredential(value=value, created_new=True)
            state.record(STEP_CREDENTIAL, StepOutcome.CREATED, mask_secret(value))
            logger.info("Dispatch token created", token_id=result.get("id"), token=mask_secret(value))
            return

        logger.warning(
            "Could not create dispatch token",
            status=response.status_code,
            error=response.error_message,
        )
        state.access_credential = fallback
        state.record(STEP_CREDENTIAL, StepOutcome.FAILED, response.error_message or "")

    async def detect_zone(self, domain: str) -> tuple[str, str] | None:
        """Find the zone owning ``domain``, most specific name first.

        Returns:
            ``(zone_id, zone_name)`` of the first match, or None.
        """
        for zone_name in candidate_zone_names(domain):
            try:
                response = await self.client.get(
                    "/zones",
                    params={"name": zone_name, "account.id": self.config.account_id or ""},
                )
            except (TransportFailure, Unconfigured) as e:
                logger.warning("Zone detection failed", domain=domain, error=str(e))
                return None

            zones = response.result if response.ok and isinstance(response.result, list) else []
            if zones and isinstance(zones[0], dict) and zones[0].get("id"):
                zone = zones[0]
                logger.info("Zone found", zone_name=zone.get("name"), zone_id=zone["id"])
                return str(zone["id"]), str(zone.get("name") or zone_name)

        logger.warning("Could not auto-detect zone", domain=domain)
        return None

    async def ensure_routes(self, state: ProvisioningState) -> None:
        """Bind ``{domain}/*`` and ``*.{domain}/*`` to the platform script."""
        domain = state.custom_domain
        if not domain:
            state.record(STEP_ROUTES, StepOutcome.SKIPPED, "No custom domain configured")
            return

        detected = await self.detect_zone(domain)
        if detected:
            state.zone_id, state.zone_name = detected
            state.record(STEP_ZONE, StepOutcome.PRESENT, state.zone_name)
        elif self.config.zone_id:
            state.zone_id = self.config.zone_id
            state.record(STEP_ZONE, StepOutcome.SKIPPED, "Using configured zone id")
        else:
            state.record(STEP_ZONE, StepOutcome.FAILED, f"No zone found for {domain}")
            state.record(STEP_ROUTES, StepOutcome.SKIPPED, "Zone id required")
            return

        routes_path = f"/zones/{state.zone_id}/workers/routes"
        try:
            listing = await self.client.get(routes_path)
        except (TransportFailure, Unconfigured) as e:
            logger.warning("Could not list routes", zone_id=state.zone_id, error=str(e))
            state.record(STEP_ROUTES, StepOutcome.FAILED, str(e))
            return

        if not listing.ok:
            logger.warning(
                "Could not list routes",
                zone_id=state.zone_id,
                status=listing.status_code,
                error=listing.error_message,
            )
            state.record(STEP_ROUTES, StepOutcome.FAILED, listing.error_message or "")
            return

        existing = {
            route.get("pattern")
            for route in (listing.result if isinstance(listing.result, list) else [])
            if isinstance(route, dict)
        }
        route_set = RouteSet(
            domain_pattern=f"{domain}/*",
            wildcard_pattern=f"*.{domain}/*",
            zone_id=state.zone_id,
        )

        for pattern in (route_set.domain_pattern, route_set.wildcard_pattern):
            if pattern in existing:
                state.record(STEP_ROUTES, StepOutcome.PRESENT, pattern)
                continue
            try:
                response = await self.client.post(
                    routes_path, {"pattern": pattern, "script": self.config.script_name}
                )
            except (TransportFailure, Unconfigured) as e:
                logger.warning("Could not create route", pattern=pattern, error=str(e))
                state.record(STEP_ROUTES, StepOutcome.FAILED, pattern)
                continue

            if response.ok:
                route_set.created = True
                state.record(STEP_ROUTES, StepOutcome.CREATED, pattern)
                logger.info("Route created", pattern=pattern, script=self.config.script_name)
            else:
                logger.warning("Could not create route", pattern=pattern, error=response.error_message)
                state.record(STEP_ROUTES, StepOutcome.FAILED, pattern)

        state.route_set = route_set
