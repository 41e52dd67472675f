"""Tests for configuration loading and provisioning input resolution."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from hostplane.core.config import (
    HostplaneConfig,
    PlatformSettings,
    ProviderSettings,
    clear_config,
    environment_values,
    flatten_config,
    get_config,
    load_config_from_file,
    mask_secret,
    resolve_provisioning_config,
)


class TestProviderSettings:
    """Test ProviderSettings environment names."""

    def test_defaults(self, clean_env) -> None:
        """Test everything is unset by default."""
        settings = ProviderSettings()
        assert settings.account_id is None
        assert settings.api_token is None
        assert settings.custom_domain is None

    def test_cloudflare_names(self, clean_env) -> None:
        """Test the deployment's variable names are read."""
        env = {
            "CLOUDFLARE_ACCOUNT_ID": "acc",
            "CLOUDFLARE_API_TOKEN": "tok",
            "CUSTOM_DOMAIN": "platform.com",
            "CLOUDFLARE_ZONE_ID": "zone",
        }
        with patch.dict(os.environ, env):
            settings = ProviderSettings()
            assert settings.account_id == "acc"
            assert settings.api_token == "tok"
            assert settings.custom_domain == "platform.com"
            assert settings.zone_id == "zone"

    def test_account_id_alias(self, clean_env) -> None:
        """Test ACCOUNT_ID is accepted as an alias."""
        with patch.dict(os.environ, {"ACCOUNT_ID": "acc2"}):
            assert ProviderSettings().account_id == "acc2"

    def test_token_not_in_repr(self, clean_env) -> None:
        """Test secrets stay out of repr."""
        with patch.dict(os.environ, {"CLOUDFLARE_API_TOKEN": "super-secret-token"}):
            assert "super-secret-token" not in repr(ProviderSettings())


class TestPlatformSettings:
    """Test PlatformSettings."""

    def test_default_values(self, clean_env) -> None:
        """Test default values."""
        settings = PlatformSettings()
        assert settings.api_base_url == "https://api.cloudflare.com/client/v4"
        assert settings.request_timeout == 30.0
        assert settings.namespace_name == "hostplane-tenants"
        assert settings.script_name == "hostplane"
        assert settings.registry_path == "tenants.json"
        assert settings.reserved_labels == ["build", "admin", "www", "api"]

    def test_env_override(self, clean_env) -> None:
        """Test HOSTPLANE_ prefixed variables."""
        with patch.dict(os.environ, {"HOSTPLANE_REQUEST_TIMEOUT": "5", "HOSTPLANE_NAMESPACE_NAME": "ns"}):
            settings = PlatformSettings()
            assert settings.request_timeout == 5.0
            assert settings.namespace_name == "ns"


class TestHostplaneConfig:
    """Test the combined configuration."""

    def test_get_config_cached(self, clean_env) -> None:
        """Test get_config returns the same instance until cleared."""
        first = get_config()
        assert get_config() is first
        clear_config()
        assert get_config() is not first

    def test_root_domain(self, clean_env) -> None:
        """Test the root domain is normalized and dev values ignored."""
        with patch.dict(os.environ, {"CUSTOM_DOMAIN": "Platform.COM."}):
            assert HostplaneConfig().root_domain == "platform.com"
        with patch.dict(os.environ, {"CUSTOM_DOMAIN": "localhost:5173"}):
            assert HostplaneConfig().root_domain is None

    def test_display_masks_secrets(self, clean_env) -> None:
        """Test credentials are masked for display."""
        with patch.dict(os.environ, {"CLOUDFLARE_API_TOKEN": "abcdefghijklmnop"}):
            display = HostplaneConfig().to_display_dict()
            assert display["provider"]["api_token"] == "abcd...mnop"
            assert display["provider"]["api_key"] is None

    def test_env_dict(self, clean_env) -> None:
        """Test export covers provider and platform settings."""
        with patch.dict(os.environ, {"CLOUDFLARE_ACCOUNT_ID": "acc"}):
            env = HostplaneConfig().to_env_dict()
            assert env["CLOUDFLARE_ACCOUNT_ID"] == "acc"
            assert env["HOSTPLANE_NAMESPACE_NAME"] == "hostplane-tenants"


class TestMaskSecret:
    """Test mask_secret."""

    def test_long_value(self) -> None:
        assert mask_secret("abcdefghijklmnop") == "abcd...mnop"

    def test_short_value(self) -> None:
        assert mask_secret("12345678") == "****"

    def test_empty(self) -> None:
        assert mask_secret(None) == ""
        assert mask_secret("") == ""


class TestResolveProvisioningConfig:
    """Test layered provisioning input resolution."""

    def test_precedence(self) -> None:
        """Test explicit beats persisted beats environment."""
        config = resolve_provisioning_config(
            explicit={"account_id": "explicit"},
            persisted={"account_id": "persisted", "zone_id": "zone-persisted"},
            environment={
                "CLOUDFLARE_ACCOUNT_ID": "env",
                "CLOUDFLARE_ZONE_ID": "zone-env",
                "CLOUDFLARE_API_TOKEN": "tok-env",
            },
        )
        assert config.account_id == "explicit"
        assert config.zone_id == "zone-persisted"
        assert config.api_token == "tok-env"

    def test_blank_values_are_absent(self) -> None:
        """Test blank strings fall through to the next source."""
        config = resolve_provisioning_config(
            explicit={"account_id": "  "},
            environment={"ACCOUNT_ID": "env"},
        )
        assert config.account_id == "env"

    def test_dispatch_token_preferred_from_environment(self) -> None:
        """Test the dispatch token variable wins over the platform token."""
        config = resolve_provisioning_config(
            environment={"DISPATCH_NAMESPACE_API_TOKEN": "dispatch", "CLOUDFLARE_API_TOKEN": "platform"}
        )
        assert config.api_token == "dispatch"

    def test_fallback_origin_default(self) -> None:
        """Test the fallback origin defaults under the custom domain."""
        config = resolve_provisioning_config(explicit={"custom_domain": "Platform.com"})
        assert config.custom_domain == "platform.com"
        assert config.fallback_origin == "my.platform.com"

    @pytest.mark.parametrize("domain", ["", "localhost:5173"])
    def test_no_custom_domain(self, domain) -> None:
        """Test local development values mean no custom domain."""
        config = resolve_provisioning_config(environment={"CUSTOM_DOMAIN": domain})
        assert not config.has_custom_domain
        assert config.fallback_origin is None

    def test_defaults(self) -> None:
        """Test nothing given resolves to defaults without raising."""
        config = resolve_provisioning_config()
        assert config.account_id is None
        assert config.namespace_name == "hostplane-tenants"


class TestEnvironmentValues:
    """Test the environment layer used for provisioning input."""

    def test_reads_dotenv(self, clean_env, tmp_path) -> None:
        """Values from a local .env are part of the environment layer."""
        (tmp_path / ".env").write_text('CLOUDFLARE_ACCOUNT_ID="acc123"\nCUSTOM_DOMAIN=platform.com\n')

        values = environment_values()

        assert values["CLOUDFLARE_ACCOUNT_ID"] == "acc123"
        assert resolve_provisioning_config(environment=values).custom_domain == "platform.com"

    def test_process_environment_wins(self, clean_env, tmp_path, monkeypatch) -> None:
        """Process variables override the file."""
        (tmp_path / ".env").write_text("CLOUDFLARE_ACCOUNT_ID=from-file\n")
        monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", "from-process")

        assert environment_values()["CLOUDFLARE_ACCOUNT_ID"] == "from-process"

    def test_missing_file(self, clean_env, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("CLOUDFLARE_ZONE_ID", "zone")

        values = environment_values(tmp_path / "absent.env")

        assert values["CLOUDFLARE_ZONE_ID"] == "zone"
        assert "CLOUDFLARE_ACCOUNT_ID" not in values


class TestConfigFiles:
    """Test YAML and TOML config files."""

    def test_yaml(self, tmp_path) -> None:
        path = tmp_path / "hostplane.yaml"
        path.write_text("provider:\n  zone_id: z1\naccount_id: acc\n")

        data = flatten_config(load_config_from_file(path))

        assert data == {"provider_zone_id": "z1", "account_id": "acc"}

    def test_toml(self, tmp_path) -> None:
        path = tmp_path / "hostplane.toml"
        path.write_text('[provider]\ncustom_domain = "platform.com"\n')

        assert flatten_config(load_config_from_file(path)) == {"provider_custom_domain": "platform.com"}

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path) -> None:
        path = tmp_path / "hostplane.ini"
        path.write_text("x=1")
        with pytest.raises(ValueError, match="Unsupported"):
            load_config_from_file(path)

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("a: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config_from_file(path)
