"""Tests for host classification and tenant resolution."""

from __future__ import annotations

import asyncio

import pytest

from hostplane.domains import HostClass, HostnameClassifier
from hostplane.registry import Tenant, TenantStore


@pytest.fixture
async def store(tmp_path) -> TenantStore:
    store = TenantStore(tmp_path / "tenants.json", root_domain="platform.com")
    await store.save(Tenant(id="t-acme", subdomain_label="acme", name="Acme"))
    await store.save(
        Tenant(id="t-shop", subdomain_label="shop", name="Shop", custom_hostname="shop.example.org")
    )
    return store


class TestClassify:
    """Tests for the registry-free classification step."""

    def setup_method(self):
        self.classifier = HostnameClassifier(
            registry=None,  # classify() never touches the registry
            root_domain="platform.com",
            extra_platform_hosts=["my.platform.com"],
        )

    @pytest.mark.parametrize(
        "host",
        ["platform.com", "build.platform.com", "admin.platform.com", "www.platform.com", "api.platform.com"],
    )
    def test_reserved_hosts_are_platform(self, host):
        """The apex and reserved labels belong to the platform."""
        assert self.classifier.classify(host) == (HostClass.PLATFORM, host)

    def test_fallback_origin_is_platform(self):
        """Extra platform hosts are treated like reserved ones."""
        assert self.classifier.classify("my.platform.com")[0] == HostClass.PLATFORM

    def test_tenant_subdomain(self):
        """A single label under the root is a tenant subdomain."""
        assert self.classifier.classify("acme.platform.com") == (HostClass.TENANT_SUBDOMAIN, "acme")

    def test_custom_hostname(self):
        """Anything outside the root is a custom hostname candidate."""
        assert self.classifier.classify("shop.example.org") == (HostClass.CUSTOM_HOSTNAME, "shop.example.org")

    def test_nested_subdomain_is_custom_hostname(self):
        """Two labels under the root are not a tenant subdomain."""
        assert self.classifier.classify("a.acme.platform.com")[0] == HostClass.CUSTOM_HOSTNAME

    def test_lookalike_domain_is_custom_hostname(self):
        """A suffix match without the dot boundary is not under the root."""
        assert self.classifier.classify("acmeplatform.com")[0] == HostClass.CUSTOM_HOSTNAME

    def test_case_port_and_trailing_dot(self):
        """Hosts are normalized before matching."""
        assert self.classifier.classify("ACME.Platform.com.:8443") == (HostClass.TENANT_SUBDOMAIN, "acme")
        assert self.classifier.classify("Build.PLATFORM.com")[0] == HostClass.PLATFORM

    def test_empty_host(self):
        """An empty host is unresolved."""
        assert self.classifier.classify("")[0] == HostClass.UNRESOLVED

    def test_custom_reserved_labels(self):
        """Reserved labels can be replaced."""
        classifier = HostnameClassifier(None, "platform.com", reserved_labels=["dashboard"])

        assert classifier.classify("dashboard.platform.com")[0] == HostClass.PLATFORM
        assert classifier.classify("build.platform.com")[0] == HostClass.TENANT_SUBDOMAIN


class TestResolve:
    """Tests for resolving hosts to tenants."""

    @pytest.mark.asyncio
    async def test_platform_host(self, store):
        """Platform hosts carry no tenant."""
        classifier = HostnameClassifier(store, "platform.com")

        resolution = await classifier.resolve("build.platform.com")

        assert resolution.host_class == HostClass.PLATFORM
        assert resolution.tenant is None

    @pytest.mark.asyncio
    async def test_tenant_subdomain(self, store):
        """A registered label resolves to its tenant."""
        classifier = HostnameClassifier(store, "platform.com")

        resolution = await classifier.resolve("acme.platform.com")

        assert resolution.host_class == HostClass.TENANT_SUBDOMAIN
        assert resolution.label == "acme"
        assert resolution.tenant.id == "t-acme"
        assert resolution.is_tenant

    @pytest.mark.asyncio
    async def test_custom_hostname(self, store):
        """A registered custom hostname resolves to its tenant."""
        classifier = HostnameClassifier(store, "platform.com")

        resolution = await classifier.resolve("Shop.Example.org")

        assert resolution.host_class == HostClass.CUSTOM_HOSTNAME
        assert resolution.tenant.id == "t-shop"

    @pytest.mark.asyncio
    async def test_unknown_subdomain_is_unresolved(self, store):
        """An unregistered label is unresolved."""
        classifier = HostnameClassifier(store, "platform.com")

        resolution = await classifier.resolve("nobody.platform.com")

        assert resolution.host_class == HostClass.UNRESOLVED
        assert resolution.tenant is None

    @pytest.mark.asyncio
    async def test_unknown_custom_hostname_is_unresolved(self, store):
        """An unregistered hostname is unresolved."""
        classifier = HostnameClassifier(store, "platform.com")

        resolution = await classifier.resolve("unknown.example.net")

        assert resolution.host_class == HostClass.UNRESOLVED

    @pytest.mark.asyncio
    async def test_concurrent_resolution(self, store):
        """Many hosts can be resolved concurrently."""
        classifier = HostnameClassifier(store, "platform.com")
        hosts = ["acme.platform.com", "shop.example.org", "nobody.platform.com", "platform.com"] * 10

        results = await asyncio.gather(*(classifier.resolve(h) for h in hosts))

        assert [r.host_class for r in results[:4]] == [
            HostClass.TENANT_SUBDOMAIN,
            HostClass.CUSTOM_HOSTNAME,
            HostClass.UNRESOLVED,
            HostClass.PLATFORM,
        ]
