"""Tenant registry: the keyed store hostname resolution reads from."""

from hostplane.registry.store import Tenant, TenantRegistry, TenantStore

__all__ = ["Tenant", "TenantRegistry", "TenantStore"]
