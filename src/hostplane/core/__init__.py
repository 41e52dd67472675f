"""Core."""

from .config import (
    HostplaneConfig,
    PlatformSettings,
    ProviderSettings,
    ProvisioningConfig,
    clear_config,
    get_config,
    mask_secret,
    resolve_provisioning_config,
)
from .logs import configure_logging

__all__ = [
    "HostplaneConfig",
    "PlatformSettings",
    "ProviderSettings",
    "ProvisioningConfig",
    "clear_config",
    "configure_logging",
    "get_config",
    "mask_secret",
    "resolve_provisioning_config",
]
