"""Hostplane - hostname resolution and custom domain lifecycle for multi-tenant hosting.

Maps inbound request hostnames to tenant sites, drives tenant custom
hostnames through TLS validation against the upstream provider API, and
reconciles the upstream infrastructure the platform needs to run.
"""

__version__ = "0.1.0"
