"""Custom domain manager tying tenants to upstream custom hostnames.

This module provides the admin-facing interface for tenant custom domains:
- Connecting a hostname to a tenant (upstream creation + registry update)
- Refreshing the upstream validation status onto the tenant record
- Disconnecting a hostname (upstream deletion + registry update)

Usage:
    manager = CustomDomainManager(store, controller, root_domain="platform.com")

    # Connect a domain
    record = await manager.connect_domain(tenant.id, "shop.acme.com")

    # Poll the upstream (caller decides the cadence)
    record = await manager.refresh_status(tenant.id)

    # Remove it again
    outcome = await manager.disconnect_domain(tenant.id)
"""

from __future__ import annotations

import structlog

from hostplane.domains.hostnames import (
    CustomHostnameController,
    CustomHostnameRecord,
    DeleteOutcome,
    HostnameStatus,
)
from hostplane.names import is_subdomain_of, is_valid_hostname, normalize_hostname
from hostplane.registry.store import Tenant, TenantStore

logger = structlog.get_logger()


class CustomDomainManager:
    """Manages the custom hostname of each tenant.

    Coordinates between the upstream controller and the tenant registry so
    the registry always reflects the last status observed upstream.
    """

    def __init__(
        self,
        store: TenantStore,
        controller: CustomHostnameController,
        root_domain: str | None = None,
        fallback_origin: str | None = None,
    ) -> None:
        """Initialize domain manager.

        Args:
            store: Tenant registry.
            controller: Upstream custom hostname controller.
            root_domain: Platform root domain; custom hostnames may not live under it.
            fallback_origin: CNAME target advertised to tenants.
        """
        self.store = store
        self.controller = controller
        self.root_domain = normalize_hostname(root_domain) if root_domain else None
        self.fallback_origin = fallback_origin or (f"my.{self.root_domain}" if self.root_domain else None)

    async def _require_tenant(self, tenant_id: str) -> Tenant:
        tenant = await self.store.get(tenant_id)
        if not tenant:
            raise ValueError(f"Tenant {tenant_id} does not exist")
        return tenant

    async def connect_domain(self, tenant_id: str, hostname: str) -> CustomHostnameRecord:
        """Connect a custom hostname to a tenant.

        The registry is checked before the upstream is touched, so a conflicting
        request never leaves an orphaned upstream hostname behind.

        Args:
            tenant_id: The tenant to connect the hostname to.
            hostname: The tenant-supplied hostname.

        Returns:
            The upstream status right after creation, or an error record if the
            upstream refused.

        Raises:
            ValueError: If the hostname is invalid, taken, inside the platform
                domain, or the tenant already has a different hostname.
        """
        hostname = normalize_hostname(hostname)
        if not is_valid_hostname(hostname):
            raise ValueError(f"Invalid hostname: {hostname!r}")
        if self.root_domain and (hostname == self.root_domain or is_subdomain_of(hostname, self.root_domain)):
            raise ValueError(f"Hostname {hostname} is inside the platform domain {self.root_domain}")

        tenant = await self._require_tenant(tenant_id)
        if tenant.custom_hostname and tenant.custom_hostname != hostname:
            raise ValueError(
                f"Tenant {tenant_id} already uses {tenant.custom_hostname}; disconnect it first"
            )

        owner = await self.store.get_by_custom_hostname(hostname)
        if owner and owner.id != tenant.id:
            raise ValueError(f"Custom hostname {hostname} is already connected to another tenant")

        if not await self.controller.create(hostname):
            return CustomHostnameRecord.failed(hostname, "Could not create custom hostname")

        tenant.custom_hostname = hostname
        tenant.custom_hostname_status = HostnameStatus.PENDING.value
        tenant.touch()
        await self.store.save(tenant)

        logger.info("Custom domain connected", tenant_id=tenant.id, hostname=hostname)
        return await self.refresh_status(tenant.id)

    async def refresh_status(self, tenant_id: str) -> CustomHostnameRecord:
        """Poll the upstream once and persist the observed status.

        modified_at is bumped only when the status actually changed.

        Raises:
            ValueError: If the tenant does not exist or has no custom hostname.
        """
        tenant = await self._require_tenant(tenant_id)
        if not tenant.custom_hostname:
            raise ValueError(f"Tenant {tenant_id} has no custom hostname")

        record = await self.controller.get_status(tenant.custom_hostname)
        if record.status.value != tenant.custom_hostname_status:
            logger.info(
                "Custom hostname status changed",
                tenant_id=tenant.id,
                hostname=tenant.custom_hostname,
                previous=tenant.custom_hostname_status,
                current=record.status.value,
            )
            tenant.custom_hostname_status = record.status.value
            tenant.touch()
            await self.store.save(tenant)

        return record

    async def disconnect_domain(self, tenant_id: str) -> DeleteOutcome:
        """Delete the tenant's custom hostname upstream and clear it locally.

        The registry is cleared when the upstream deleted the hostname or had
        no record of it; on failure the tenant keeps its hostname so the
        operation can be retried.
        """
        tenant = await self._require_tenant(tenant_id)
        if not tenant.custom_hostname:
            return DeleteOutcome.NOT_FOUND

        outcome = await self.controller.delete_outcome(tenant.custom_hostname)
        if outcome is DeleteOutcome.FAILED:
            return outcome

        hostname = tenant.custom_hostname
        tenant.custom_hostname = None
        tenant.custom_hostname_status = None
        tenant.touch()
        await self.store.save(tenant)

        logger.info("Custom domain disconnected", tenant_id=tenant.id, hostname=hostname, outcome=outcome.value)
        return outcome

    async def remove_tenant(self, tenant_id: str) -> bool:
        """Delete a tenant, releasing its upstream custom hostname first.

        Returns:
            False if the tenant does not exist or its hostname could not be released.
        """
        tenant = await self.store.get(tenant_id)
        if not tenant:
            return False
        if tenant.custom_hostname:
            outcome = await self.disconnect_domain(tenant_id)
            if outcome is DeleteOutcome.FAILED:
                return False
        return await self.store.delete(tenant_id)

    def dns_instructions(self, hostname: str) -> str:
        """Generate the DNS setup instructions shown to a tenant."""
        hostname = normalize_hostname(hostname)
        target = self.fallback_origin or "<fallback origin not configured>"
        return f"""Add the following DNS record at your DNS provider:

   Name: {hostname}
   Type: CNAME
   Value: {target}

The certificate is validated over HTTP once the record resolves.
Check progress with: hostplane domain refresh <tenant-id>"""
