"""Storage for tenant records.

This module provides JSON file-based storage for tenants, suitable for
self-hosted deployments and for driving the CLI.

Storage file format (tenants.json):
    {
        "tenants": {
            "4f0c...": {
                "id": "4f0c...",
                "name": "Acme Store",
                "subdomain_label": "acme",
                "custom_hostname": "shop.acme.com",
                "custom_hostname_status": "active",
                "created_at": "2024-01-15T10:00:00+00:00",
                "modified_at": "2024-01-16T08:12:00+00:00"
            }
        }
    }
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from hostplane.names import (
    DEFAULT_RESERVED_LABELS,
    is_subdomain_of,
    is_valid_hostname,
    is_valid_label,
    normalize_hostname,
)


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


@dataclass
class Tenant:
    """A platform customer owning one deployable site."""

    id: str
    subdomain_label: str
    name: str = ""
    custom_hostname: str | None = None
    custom_hostname_status: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    modified_at: datetime = field(default_factory=_utc_now)

    def touch(self) -> None:
        """Advance modified_at, never moving it backwards."""
        now = _utc_now()
        self.modified_at = now if now > self.modified_at else self.modified_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "subdomain_label": self.subdomain_label,
            "custom_hostname": self.custom_hostname,
            "custom_hostname_status": self.custom_hostname_status,
            "created_at": self.created_at.isoformat(),
            "modified_at": self.modified_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tenant:
        """Create from dictionary (JSON deserialization)."""
        created_at = (
            datetime.fromisoformat(data["created_at"]) if data.get("created_at") else _utc_now()
        )
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            subdomain_label=data["subdomain_label"],
            custom_hostname=data.get("custom_hostname"),
            custom_hostname_status=data.get("custom_hostname_status"),
            created_at=created_at,
            modified_at=datetime.fromisoformat(data["modified_at"])
            if data.get("modified_at")
            else created_at,
        )


class TenantRegistry(Protocol):
    """Lookups the hostname classifier and domain manager rely on."""

    async def get(self, tenant_id: str) -> Tenant | None: ...

    async def get_by_subdomain(self, label: str) -> Tenant | None: ...

    async def get_by_custom_hostname(self, hostname: str) -> Tenant | None: ...

    async def save(self, tenant: Tenant) -> None: ...


class TenantStore:
    """JSON file-based tenant registry.

    Thread-safe via asyncio locks. Enforces the registry invariants on save:
    subdomain labels are unique DNS labels outside the platform's reserved
    labels, custom hostnames are unique and never collide with a
    ``{label}.{root}`` platform hostname.
    """

    def __init__(
        self,
        storage_path: str | Path = "tenants.json",
        root_domain: str | None = None,
        reserved_labels: Iterable[str] = DEFAULT_RESERVED_LABELS,
    ) -> None:
        """Initialize tenant store.

        Args:
            storage_path: Path to the JSON storage file.
            root_domain: Platform root domain, used to keep custom hostnames
                disjoint from tenant subdomains.
            reserved_labels: Labels the platform serves itself, never given to tenants.
        """
        self.storage_path = Path(storage_path)
        self.root_domain = normalize_hostname(root_domain) if root_domain else None
        self.reserved_labels = frozenset(normalize_hostname(label) for label in reserved_labels)
        self._lock = asyncio.Lock()
        self._cache: dict[str, Tenant] | None = None

    async def initialize(self) -> None:
        """Create the storage file if it does not exist yet. Safe to call repeatedly."""
        async with self._lock:
            if self.storage_path.exists():
                return
            await self._save({})

    async def _load(self) -> dict[str, Tenant]:
        """Load tenants from storage file."""
        if self._cache is not None:
            return self._cache

        if not self.storage_path.exists():
            self._cache = {}
            return self._cache

        try:
            content = await asyncio.to_thread(self.storage_path.read_text)
            data = json.loads(content) if content.strip() else {}
            self._cache = {
                tenant_id: Tenant.from_dict(tenant_data)
                for tenant_id, tenant_data in data.get("tenants", {}).items()
            }
        except (json.JSONDecodeError, KeyError):
            self._cache = {}

        return self._cache

    async def _save(self, tenants: dict[str, Tenant]) -> None:
        """Save tenants to storage file."""
        data = {"tenants": {tenant_id: t.to_dict() for tenant_id, t in tenants.items()}}
        content = json.dumps(data, indent=2)
        await asyncio.to_thread(self.storage_path.write_text, content)
        self._cache = tenants

    def _validate(self, tenant: Tenant, tenants: dict[str, Tenant]) -> None:
        if not is_valid_label(tenant.subdomain_label):
            raise ValueError(f"Invalid subdomain label: {tenant.subdomain_label!r}")
        if tenant.subdomain_label in self.reserved_labels:
            raise ValueError(f"Subdomain {tenant.subdomain_label} is reserved for the platform")

        for other in tenants.values():
            if other.id == tenant.id:
                continue
            if other.subdomain_label == tenant.subdomain_label:
                raise ValueError(f"Subdomain {tenant.subdomain_label} is already taken")
            if tenant.custom_hostname and other.custom_hostname == tenant.custom_hostname:
                raise ValueError(
                    f"Custom hostname {tenant.custom_hostname} is already connected to another tenant"
                )

        if tenant.custom_hostname:
            if not is_valid_hostname(tenant.custom_hostname):
                raise ValueError(f"Invalid custom hostname: {tenant.custom_hostname!r}")
            if self.root_domain and (
                tenant.custom_hostname == self.root_domain
                or is_subdomain_of(tenant.custom_hostname, self.root_domain)
            ):
                raise ValueError(
                    f"Custom hostname {tenant.custom_hostname} is inside the platform domain {self.root_domain}"
                )

    async def save(self, tenant: Tenant) -> None:
        """Save or update a tenant.

        Args:
            tenant: The tenant to save.

        Raises:
            ValueError: If the tenant would break a registry invariant.
        """
        tenant.subdomain_label = normalize_hostname(tenant.subdomain_label)
        if tenant.custom_hostname:
            tenant.custom_hostname = normalize_hostname(tenant.custom_hostname)

        async with self._lock:
            tenants = await self._load()
            self._validate(tenant, tenants)
            updated = dict(tenants)
            updated[tenant.id] = replace(tenant)
            await self._save(updated)

    async def create(self, name: str, subdomain_label: str, custom_hostname: str | None = None) -> Tenant:
        """Create and persist a new tenant with a generated id."""
        tenant = Tenant(
            id=uuid.uuid4().hex,
            name=name,
            subdomain_label=subdomain_label,
            custom_hostname=custom_hostname,
        )
        await self.save(tenant)
        return tenant

    async def get(self, tenant_id: str) -> Tenant | None:
        """Get a tenant by id."""
        async with self._lock:
            tenants = await self._load()
            tenant = tenants.get(tenant_id)
            return replace(tenant) if tenant else None

    async def get_by_subdomain(self, label: str) -> Tenant | None:
        """Get a tenant by subdomain label (case-insensitive)."""
        label = normalize_hostname(label)
        async with self._lock:
            tenants = await self._load()
            for tenant in tenants.values():
                if tenant.subdomain_label == label:
                    return replace(tenant)
            return None

    async def get_by_custom_hostname(self, hostname: str) -> Tenant | None:
        """Get a tenant by exact custom hostname (case-insensitive)."""
        hostname = normalize_hostname(hostname)
        async with self._lock:
            tenants = await self._load()
            for tenant in tenants.values():
                if tenant.custom_hostname == hostname:
                    return replace(tenant)
            return None

    async def list_all(self) -> list[Tenant]:
        """Get all tenants."""
        async with self._lock:
            tenants = await self._load()
            return [replace(t) for t in tenants.values()]

    async def delete(self, tenant_id: str) -> bool:
        """Delete a tenant.

        Returns:
            True if deleted, False if not found.
        """
        async with self._lock:
            tenants = await self._load()
            if tenant_id in tenants:
                updated = dict(tenants)
                del updated[tenant_id]
                await self._save(updated)
                return True
            return False

    def invalidate_cache(self) -> None:
        """Invalidate the in-memory cache.

        Call this after external modifications to the storage file.
        """
        self._cache = None
