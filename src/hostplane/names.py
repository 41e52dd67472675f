"""Hostname normalization and validation helpers.

All hostname comparison in hostplane is case-insensitive: names are
lower-cased, trimmed, and stripped of a trailing dot (and, for request hosts,
of a ``:port`` suffix) before any matching.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")

# Labels under the root domain served by the platform itself
DEFAULT_RESERVED_LABELS = ("build", "admin", "www", "api")


def normalize_hostname(hostname: str) -> str:
    """Lower-case a hostname and strip surrounding whitespace and trailing dots.

    Examples:
        >>> normalize_hostname("Shop.Example.ORG.")
        'shop.example.org'
        >>> normalize_hostname("  api.example.com ")
        'api.example.com'
    """
    return hostname.strip().lower().rstrip(".")


def strip_port(host: str) -> str:
    """Remove a ``:port`` suffix from a Host header value.

    Examples:
        >>> strip_port("acme.platform.com:8443")
        'acme.platform.com'
        >>> strip_port("[::1]:8080")
        '[::1]'
        >>> strip_port("platform.com")
        'platform.com'
    """
    if host.startswith("["):
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    return host.split(":", 1)[0]


@lru_cache(maxsize=1000)
def is_valid_label(label: str) -> bool:
    """Check a single DNS label (lowercase letters, digits, inner hyphens, 1-63 chars).

    Examples:
        >>> is_valid_label("acme")
        True
        >>> is_valid_label("-acme")
        False
        >>> is_valid_label("Acme")
        False
    """
    return bool(_LABEL_RE.match(label))


def is_valid_hostname(hostname: str) -> bool:
    """Check a fully-qualified hostname of at least two valid labels.

    Examples:
        >>> is_valid_hostname("shop.example.org")
        True
        >>> is_valid_hostname("localhost")
        False
        >>> is_valid_hostname("bad..example.org")
        False
    """
    if not hostname or len(hostname) > 253:
        return False
    labels = hostname.split(".")
    if len(labels) < 2:
        return False
    return all(is_valid_label(label) for label in labels)


def is_subdomain_of(hostname: str, root_domain: str) -> bool:
    """Check whether a hostname sits anywhere under ``root_domain``.

    Examples:
        >>> is_subdomain_of("acme.platform.com", "platform.com")
        True
        >>> is_subdomain_of("platform.com", "platform.com")
        False
        >>> is_subdomain_of("notplatform.com", "platform.com")
        False
    """
    return hostname.endswith(f".{root_domain}")


def candidate_zone_names(domain: str) -> list[str]:
    """List the zone names that could own a domain, most specific first.

    The leftmost label is stripped one at a time; a bare top-level label is
    never a candidate.

    Examples:
        >>> candidate_zone_names("a.b.c.com")
        ['a.b.c.com', 'b.c.com', 'c.com']
        >>> candidate_zone_names("example.com")
        ['example.com']
    """
    parts = normalize_hostname(domain).split(".")
    return [".".join(parts[i:]) for i in range(len(parts) - 1)]


def platform_labels(
    reserved_labels: Iterable[str], root_domain: str | None, fallback_origin: str | None = None
) -> list[str]:
    """Labels under the root the platform keeps for itself.

    The fallback origin's label is included when it sits directly under the
    root, since tenants CNAME to it and it must never resolve to a tenant.

    Examples:
        >>> platform_labels(["www"], "platform.com", "my.platform.com")
        ['www', 'my']
        >>> platform_labels(["www"], "platform.com", "origin.example.net")
        ['www']
    """
    labels = [normalize_hostname(label) for label in reserved_labels]
    if root_domain and fallback_origin:
        origin = normalize_hostname(fallback_origin)
        root = normalize_hostname(root_domain)
        if is_subdomain_of(origin, root):
            label = origin[: -len(root) - 1]
            if "." not in label and label not in labels:
                labels.append(label)
    return labels
