"""Inbound hostname classification and tenant resolution.

Given the Host of a request and the platform root domain, decide whether the
platform itself serves it, whether it is a ``{label}.{root}`` tenant
subdomain, or whether it is a tenant's custom hostname, and resolve the
owning tenant through the registry.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import structlog

from hostplane.names import DEFAULT_RESERVED_LABELS, is_subdomain_of, normalize_hostname, strip_port
from hostplane.registry.store import Tenant, TenantRegistry

logger = structlog.get_logger()


class HostClass(Enum):
    """How a request host was classified."""

    PLATFORM = "platform"
    TENANT_SUBDOMAIN = "tenant-subdomain"
    CUSTOM_HOSTNAME = "custom-hostname"
    UNRESOLVED = "unresolved"


@dataclass
class Resolution:
    """Outcome of classifying one request host."""

    host: str
    host_class: HostClass
    tenant: Tenant | None = None
    label: str | None = None

    @property
    def is_tenant(self) -> bool:
        return self.tenant is not None


class HostnameClassifier:
    """Classifies request hosts and resolves them to tenants.

    Stateless apart from the read-only registry, so any number of requests
    can be classified concurrently.
    """

    def __init__(
        self,
        registry: TenantRegistry,
        root_domain: str,
        reserved_labels: Iterable[str] = DEFAULT_RESERVED_LABELS,
        extra_platform_hosts: Iterable[str] = (),
    ) -> None:
        """Initialize the classifier.

        Args:
            registry: Tenant lookups.
            root_domain: Platform root domain (e.g. ``platform.com``).
            reserved_labels: Labels under the root served by the platform itself.
            extra_platform_hosts: Further exact hosts owned by the platform
                (e.g. the fallback origin).
        """
        self.registry = registry
        self.root_domain = normalize_hostname(root_domain)
        self.platform_hosts = frozenset(
            {self.root_domain}
            | {f"{normalize_hostname(label)}.{self.root_domain}" for label in reserved_labels}
            | {normalize_hostname(host) for host in extra_platform_hosts if host}
        )

    def classify(self, request_host: str) -> tuple[HostClass, str]:
        """Classify a host without touching the registry.

        Returns:
            The class (never UNRESOLVED unless the host is empty) and the key
            to look up: the label for subdomains, the host otherwise.
        """
        host = normalize_hostname(strip_port(request_host.strip()))
        if not host:
            return HostClass.UNRESOLVED, host

        if host in self.platform_hosts:
            return HostClass.PLATFORM, host

        if is_subdomain_of(host, self.root_domain):
            label = host[: -len(self.root_domain) - 1]
            if "." not in label:
                return HostClass.TENANT_SUBDOMAIN, label

        return HostClass.CUSTOM_HOSTNAME, host

    async def resolve(self, request_host: str) -> Resolution:
        """Classify a host and resolve it to its tenant."""
        host_class, key = self.classify(request_host)
        host = normalize_hostname(strip_port(request_host.strip()))

        if host_class == HostClass.PLATFORM:
            return Resolution(host=host, host_class=host_class)

        if host_class == HostClass.TENANT_SUBDOMAIN:
            tenant = await self.registry.get_by_subdomain(key)
            if tenant:
                return Resolution(host=host, host_class=host_class, tenant=tenant, label=key)
        elif host_class == HostClass.CUSTOM_HOSTNAME:
            tenant = await self.registry.get_by_custom_hostname(key)
            if tenant:
                return Resolution(host=host, host_class=host_class, tenant=tenant)

        logger.debug("Unresolved host", host=host, classified_as=host_class.value)
        return Resolution(host=host, host_class=HostClass.UNRESOLVED)
