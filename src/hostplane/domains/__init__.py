"""Hostplane Custom Domain Management.

This module maps request hostnames to tenants and manages tenant custom
hostnames (e.g., shop.acme.com) against the upstream provider, alongside the
default {label}.{root} tenant subdomains.

Features:
- Hostname classification (platform, tenant subdomain, custom hostname)
- Custom hostname creation with HTTP-validated DV certificates
- Status polling normalized into one status model
- Two-step deletion (lookup by hostname, delete by id)

Usage:
    from hostplane.domains import CustomHostnameController, HostnameClassifier

    classifier = HostnameClassifier(store, root_domain="platform.com")
    resolution = await classifier.resolve("acme.platform.com")

    controller = CustomHostnameController(client, zone_id)
    record = await controller.get_status("shop.acme.com")
"""

from hostplane.domains.classifier import HostClass, HostnameClassifier, Resolution
from hostplane.domains.hostnames import (
    CustomHostnameController,
    CustomHostnameRecord,
    DeleteOutcome,
    HostnameStatus,
    SslStatus,
    ValidationRecord,
    normalize_record,
)
from hostplane.domains.manager import CustomDomainManager
from hostplane.names import (
    candidate_zone_names,
    is_valid_hostname,
    is_valid_label,
    normalize_hostname,
)

__all__ = [
    "HostClass",
    "HostnameClassifier",
    "Resolution",
    "CustomHostnameController",
    "CustomHostnameRecord",
    "DeleteOutcome",
    "HostnameStatus",
    "SslStatus",
    "ValidationRecord",
    "normalize_record",
    "CustomDomainManager",
    "candidate_zone_names",
    "is_valid_hostname",
    "is_valid_label",
    "normalize_hostname",
]
