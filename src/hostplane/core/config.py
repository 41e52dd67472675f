"""Configuration types with environment variable support.

Provider settings use the variable names the platform has always been deployed
with (CLOUDFLARE_ACCOUNT_ID, CLOUDFLARE_API_TOKEN, CUSTOM_DOMAIN, ...).
Operational settings use the HOSTPLANE_ prefix.
Example: HOSTPLANE_REQUEST_TIMEOUT=10 sets the upstream request timeout to 10s.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values
from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_NAMESPACE_NAME = "hostplane-tenants"
DEFAULT_SCRIPT_NAME = "hostplane"

# Root domain values that mean "serve from the provider's default subdomain"
NO_CUSTOM_DOMAIN = frozenset({"", "localhost:5173"})


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


def mask_secret(value: str | None) -> str:
    """Mask a secret for display, keeping only a short prefix and suffix.

    Examples:
        >>> mask_secret("abcdefghijklmnop")
        'abcd...mnop'
        >>> mask_secret("short")
        '****'
    """
    if not value:
        return ""
    if len(value) > 8:
        return f"{value[:4]}...{value[-4:]}"
    return "****"


class ProviderSettings(BaseSettings):
    """Upstream provider credentials and domain settings read from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    account_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CLOUDFLARE_ACCOUNT_ID", "ACCOUNT_ID"),
        description="Provider account identifier.",
    )
    api_token: str | None = Field(
        default=None,
        repr=False,
        validation_alias=AliasChoices("CLOUDFLARE_API_TOKEN"),
        description="Platform API token (preferred credential).",
    )
    dispatch_token: str | None = Field(
        default=None,
        repr=False,
        validation_alias=AliasChoices("DISPATCH_NAMESPACE_API_TOKEN"),
        description="Token minted for dispatch namespace operations.",
    )
    api_key: str | None = Field(
        default=None,
        repr=False,
        validation_alias=AliasChoices("CLOUDFLARE_API_KEY"),
        description="Global API key (used only with api_email and no token).",
    )
    api_email: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CLOUDFLARE_API_EMAIL"),
        description="Account email paired with the global API key.",
    )
    custom_domain: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CUSTOM_DOMAIN"),
        description="Platform root domain (tenants live at {label}.{root}).",
    )
    zone_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CLOUDFLARE_ZONE_ID"),
        description="Zone that owns the root domain and custom hostnames.",
    )
    fallback_origin: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FALLBACK_ORIGIN"),
        description="Hostname tenants CNAME their custom domains to.",
    )


class PlatformSettings(BaseSettings):
    """Operational settings for the hostplane process.

    All settings can be overridden via environment variables:
    - HOSTPLANE_API_BASE_URL: Upstream API base URL
    - HOSTPLANE_REQUEST_TIMEOUT: Upstream request timeout (seconds)
    - HOSTPLANE_NAMESPACE_NAME: Dispatch namespace holding tenant scripts
    - etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="HOSTPLANE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        description="Upstream provider API base URL.",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Upstream request timeout (seconds).",
    )
    namespace_name: str = Field(
        default=DEFAULT_NAMESPACE_NAME,
        description="Dispatch namespace holding tenant scripts.",
    )
    script_name: str = Field(
        default=DEFAULT_SCRIPT_NAME,
        description="The platform's own deployable unit, bound to the root domain routes.",
    )
    registry_path: str = Field(
        default="tenants.json",
        description="Path to the JSON file storing tenant records.",
    )
    reserved_labels: list[str] = Field(
        default_factory=lambda: ["build", "admin", "www", "api"],
        description="Labels under the root domain served by the platform itself.",
    )
    bind: str = Field(
        default="0.0.0.0:8080",
        description="Address the request-time app listens on.",
    )


class ProvisioningConfig(BaseModel):
    """Fully resolved input for one provisioning run."""

    account_id: str | None = None
    api_token: str | None = Field(default=None, repr=False)
    api_key: str | None = Field(default=None, repr=False)
    api_email: str | None = None
    custom_domain: str | None = None
    zone_id: str | None = None
    fallback_origin: str | None = None
    namespace_name: str = DEFAULT_NAMESPACE_NAME
    script_name: str = DEFAULT_SCRIPT_NAME

    @property
    def has_custom_domain(self) -> bool:
        return self.custom_domain is not None and self.custom_domain not in NO_CUSTOM_DOMAIN


# Environment variable names per field, highest precedence first
ENVIRONMENT_KEYS: dict[str, tuple[str, ...]] = {
    "account_id": ("CLOUDFLARE_ACCOUNT_ID", "ACCOUNT_ID"),
    "api_token": ("DISPATCH_NAMESPACE_API_TOKEN", "CLOUDFLARE_API_TOKEN"),
    "api_key": ("CLOUDFLARE_API_KEY",),
    "api_email": ("CLOUDFLARE_API_EMAIL",),
    "custom_domain": ("CUSTOM_DOMAIN",),
    "zone_id": ("CLOUDFLARE_ZONE_ID",),
    "fallback_origin": ("FALLBACK_ORIGIN",),
    "namespace_name": ("HOSTPLANE_NAMESPACE_NAME",),
    "script_name": ("HOSTPLANE_SCRIPT_NAME",),
}


def environment_values(env_file: str | Path = ".env") -> dict[str, str]:
    """Read the process environment layered over a dotenv file.

    Process variables win over the file, matching how the settings classes
    read ``.env``.
    """
    values = {key: value for key, value in dotenv_values(env_file).items() if value is not None}
    values.update(os.environ)
    return values


def _present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and value.strip() == "")


def resolve_provisioning_config(
    explicit: Mapping[str, Any] | None = None,
    persisted: Mapping[str, Any] | None = None,
    environment: Mapping[str, str] | None = None,
) -> ProvisioningConfig:
    """Resolve provisioning input from layered sources without prompting.

    Precedence per field: explicit values, then previously persisted values
    (keyed by field name), then environment variables (keyed by the names in
    ENVIRONMENT_KEYS), then defaults. Blank strings count as absent.

    The fallback origin defaults to ``my.{custom_domain}`` when a custom
    domain is configured and no origin was given.
    """
    explicit = explicit or {}
    persisted = persisted or {}
    environment = environment or {}

    resolved: dict[str, Any] = {}
    for field_name, env_names in ENVIRONMENT_KEYS.items():
        candidates = [explicit.get(field_name), persisted.get(field_name)]
        candidates.extend(environment.get(name) for name in env_names)
        for candidate in candidates:
            if _present(candidate):
                resolved[field_name] = candidate.strip() if isinstance(candidate, str) else candidate
                break

    config = ProvisioningConfig(**resolved)
    if config.has_custom_domain:
        config.custom_domain = config.custom_domain.lower().rstrip(".")
        if not config.fallback_origin:
            config.fallback_origin = f"my.{config.custom_domain}"
    return config


class HostplaneConfig(BaseSettings):
    """Master configuration combining all settings.

    Use get_config() to get a cached instance.

    Example:
        config = get_config()
        print(config.provider.zone_id)
        print(config.platform.request_timeout)
    """

    model_config = SettingsConfigDict(
        env_prefix="HOSTPLANE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def provider(self) -> ProviderSettings:
        """Get provider configuration."""
        return ProviderSettings()

    @property
    def platform(self) -> PlatformSettings:
        """Get platform configuration."""
        return PlatformSettings()

    @property
    def root_domain(self) -> str | None:
        domain = self.provider.custom_domain
        if domain is None or domain in NO_CUSTOM_DOMAIN:
            return None
        return domain.lower().rstrip(".")

    def to_env_dict(self) -> dict[str, str]:
        """Export current configuration as environment variable dictionary."""
        provider = self.provider
        platform = self.platform
        result = {
            "CLOUDFLARE_ACCOUNT_ID": provider.account_id or "",
            "CLOUDFLARE_API_TOKEN": provider.api_token or "",
            "DISPATCH_NAMESPACE_API_TOKEN": provider.dispatch_token or "",
            "CLOUDFLARE_API_EMAIL": provider.api_email or "",
            "CUSTOM_DOMAIN": provider.custom_domain or "",
            "CLOUDFLARE_ZONE_ID": provider.zone_id or "",
            "FALLBACK_ORIGIN": provider.fallback_origin or "",
            "HOSTPLANE_API_BASE_URL": platform.api_base_url,
            "HOSTPLANE_REQUEST_TIMEOUT": str(platform.request_timeout),
            "HOSTPLANE_NAMESPACE_NAME": platform.namespace_name,
            "HOSTPLANE_SCRIPT_NAME": platform.script_name,
            "HOSTPLANE_REGISTRY_PATH": platform.registry_path,
            "HOSTPLANE_BIND": platform.bind,
        }
        return result

    def to_display_dict(self) -> dict[str, Any]:
        """Export current configuration as a nested dictionary for display.

        Credentials are masked.
        """
        provider = self.provider
        platform = self.platform
        return {
            "provider": {
                "account_id": provider.account_id,
                "api_token": mask_secret(provider.api_token) or None,
                "dispatch_token": mask_secret(provider.dispatch_token) or None,
                "api_key": mask_secret(provider.api_key) or None,
                "api_email": provider.api_email,
                "custom_domain": provider.custom_domain,
                "zone_id": provider.zone_id,
                "fallback_origin": provider.fallback_origin,
            },
            "platform": {
                "api_base_url": platform.api_base_url,
                "request_timeout": platform.request_timeout,
                "namespace_name": platform.namespace_name,
                "script_name": platform.script_name,
                "registry_path": platform.registry_path,
                "reserved_labels": ",".join(platform.reserved_labels),
                "bind": platform.bind,
            },
        }


_config: HostplaneConfig | None = None


def get_config() -> HostplaneConfig:
    """Get the global configuration instance.

    Returns a cached instance of HostplaneConfig that reads from environment variables.
    To reload config (e.g., in tests), call clear_config() first.
    """
    global _config
    if _config is None:
        _config = HostplaneConfig()
    return _config


def clear_config() -> None:
    """Clear the cached configuration.

    Call this to force reloading of environment variables on next get_config() call.
    """
    global _config
    _config = None
