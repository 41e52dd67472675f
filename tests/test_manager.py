"""Tests for CustomDomainManager."""

from __future__ import annotations

import pytest
from conftest import envelope, failure

from hostplane.domains import (
    CustomDomainManager,
    CustomHostnameController,
    DeleteOutcome,
    HostnameStatus,
)
from hostplane.registry import TenantStore

ZONE = "zone123"
HOSTNAMES = f"/zones/{ZONE}/custom_hostnames"


@pytest.fixture
def store(tmp_path) -> TenantStore:
    return TenantStore(tmp_path / "tenants.json", root_domain="platform.com")


@pytest.fixture
def manager(store, upstream) -> CustomDomainManager:
    controller = CustomHostnameController(upstream.client(), ZONE)
    return CustomDomainManager(store, controller, root_domain="platform.com")


class TestConnectDomain:
    """Tests for connecting custom hostnames."""

    @pytest.mark.asyncio
    async def test_connect(self, manager, store, upstream):
        """A created hostname is stored with the observed status."""
        upstream.on("POST", HOSTNAMES, envelope({"id": "ch1"}))
        upstream.on("GET", HOSTNAMES, envelope([{"id": "ch1", "hostname": "shop.acme.com", "status": "pending"}]))
        tenant = await store.create("Acme", "acme")

        record = await manager.connect_domain(tenant.id, "Shop.Acme.com")

        assert record.status == HostnameStatus.PENDING
        saved = await store.get(tenant.id)
        assert saved.custom_hostname == "shop.acme.com"
        assert saved.custom_hostname_status == "pending"

    @pytest.mark.asyncio
    async def test_connect_rejected_upstream(self, manager, store, upstream):
        """An upstream refusal leaves the tenant unchanged."""
        upstream.on("POST", HOSTNAMES, failure(400, "Invalid hostname"))
        tenant = await store.create("Acme", "acme")

        record = await manager.connect_domain(tenant.id, "shop.acme.com")

        assert record.status == HostnameStatus.ERROR
        assert (await store.get(tenant.id)).custom_hostname is None

    @pytest.mark.asyncio
    async def test_connect_inside_platform_domain(self, manager, store, upstream):
        """Hostnames under the root domain are refused before any call."""
        tenant = await store.create("Acme", "acme")

        with pytest.raises(ValueError, match="inside the platform domain"):
            await manager.connect_domain(tenant.id, "shop.platform.com")
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_connect_taken_hostname(self, manager, store, upstream):
        """A hostname owned by another tenant is refused before any call."""
        await store.create("Other", "other", custom_hostname="shop.acme.com")
        tenant = await store.create("Acme", "acme")

        with pytest.raises(ValueError, match="another tenant"):
            await manager.connect_domain(tenant.id, "shop.acme.com")
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_connect_invalid_hostname(self, manager, store):
        """Malformed hostnames are refused."""
        tenant = await store.create("Acme", "acme")

        with pytest.raises(ValueError, match="Invalid hostname"):
            await manager.connect_domain(tenant.id, "not a host")

    @pytest.mark.asyncio
    async def test_connect_unknown_tenant(self, manager):
        """Unknown tenants are refused."""
        with pytest.raises(ValueError, match="does not exist"):
            await manager.connect_domain("missing", "shop.acme.com")


class TestRefreshStatus:
    """Tests for polling and persisting status."""

    @pytest.mark.asyncio
    async def test_status_change_bumps_modified_at(self, manager, store, upstream):
        """A changed status is persisted with a newer modified_at."""
        tenant = await store.create("Acme", "acme", custom_hostname="shop.acme.com")
        before = (await store.get(tenant.id)).modified_at
        upstream.on("GET", HOSTNAMES, envelope([{"id": "ch1", "status": "active", "ssl": {"status": "active"}}]))

        record = await manager.refresh_status(tenant.id)

        saved = await store.get(tenant.id)
        assert record.is_routable
        assert saved.custom_hostname_status == "active"
        assert saved.modified_at >= before

    @pytest.mark.asyncio
    async def test_unchanged_status_not_saved(self, manager, store, upstream):
        """An unchanged status leaves modified_at alone."""
        tenant = await store.create("Acme", "acme", custom_hostname="shop.acme.com")
        tenant.custom_hostname_status = "active"
        await store.save(tenant)
        before = (await store.get(tenant.id)).modified_at
        upstream.on("GET", HOSTNAMES, envelope([{"id": "ch1", "status": "active"}]))

        await manager.refresh_status(tenant.id)

        assert (await store.get(tenant.id)).modified_at == before

    @pytest.mark.asyncio
    async def test_no_custom_hostname(self, manager, store):
        """Refreshing a tenant without a hostname is an error."""
        tenant = await store.create("Acme", "acme")

        with pytest.raises(ValueError, match="no custom hostname"):
            await manager.refresh_status(tenant.id)


class TestDisconnectDomain:
    """Tests for disconnecting and removing."""

    @pytest.mark.asyncio
    async def test_disconnect(self, manager, store, upstream):
        """A deleted hostname is cleared from the tenant."""
        tenant = await store.create("Acme", "acme", custom_hostname="shop.acme.com")
        upstream.on("GET", HOSTNAMES, envelope([{"id": "ch1"}]))
        upstream.on("DELETE", f"{HOSTNAMES}/ch1", envelope({"id": "ch1"}))

        assert await manager.disconnect_domain(tenant.id) is DeleteOutcome.DELETED
        assert (await store.get(tenant.id)).custom_hostname is None

    @pytest.mark.asyncio
    async def test_disconnect_already_gone_upstream(self, manager, store, upstream):
        """A hostname unknown upstream is still cleared locally."""
        tenant = await store.create("Acme", "acme", custom_hostname="shop.acme.com")
        upstream.on("GET", HOSTNAMES, envelope([]))

        assert await manager.disconnect_domain(tenant.id) is DeleteOutcome.NOT_FOUND
        assert (await store.get(tenant.id)).custom_hostname is None

    @pytest.mark.asyncio
    async def test_disconnect_failure_keeps_hostname(self, manager, store, upstream):
        """On failure the tenant keeps its hostname for a retry."""
        tenant = await store.create("Acme", "acme", custom_hostname="shop.acme.com")
        upstream.on("GET", HOSTNAMES, failure(500, "Internal error"))

        assert await manager.disconnect_domain(tenant.id) is DeleteOutcome.FAILED
        assert (await store.get(tenant.id)).custom_hostname == "shop.acme.com"

    @pytest.mark.asyncio
    async def test_remove_tenant(self, manager, store, upstream):
        """Removing a tenant releases its hostname first."""
        tenant = await store.create("Acme", "acme", custom_hostname="shop.acme.com")
        upstream.on("GET", HOSTNAMES, envelope([{"id": "ch1"}]))
        upstream.on("DELETE", f"{HOSTNAMES}/ch1", envelope({"id": "ch1"}))

        assert await manager.remove_tenant(tenant.id) is True
        assert await store.get(tenant.id) is None
        assert len(upstream.calls("DELETE")) == 1

    @pytest.mark.asyncio
    async def test_remove_tenant_blocked_by_upstream_failure(self, manager, store, upstream):
        """A tenant whose hostname cannot be released is kept."""
        tenant = await store.create("Acme", "acme", custom_hostname="shop.acme.com")
        upstream.on("GET", HOSTNAMES, failure(500, "Internal error"))

        assert await manager.remove_tenant(tenant.id) is False
        assert await store.get(tenant.id) is not None


class TestDnsInstructions:
    """Tests for tenant DNS instructions."""

    def test_default_fallback_origin(self, store, upstream):
        manager = CustomDomainManager(
            store, CustomHostnameController(upstream.client(), ZONE), root_domain="platform.com"
        )

        text = manager.dns_instructions("Shop.Acme.com")

        assert "shop.acme.com" in text
        assert "CNAME" in text
        assert "my.platform.com" in text
