"""Unit tests for ConfigLoader and environment substitution."""

from __future__ import annotations

from pathlib import Path

import pytest

from perennial.config.env_loader import substitute_env_vars
from perennial.config.loader import ConfigLoader
from perennial.lib.errors import ConfigError
from perennial.models.config import ProviderType


@pytest.mark.unit
class TestSubstituteEnvVars:
    """Tests for ${VAR} substitution."""

    def test_replaces_reference(self) -> None:
        assert substitute_env_vars("url: ${URL}", {"URL": "x"}) == "url: x"

    def test_uses_default_when_unset(self) -> None:
        assert substitute_env_vars("n: ${N:-3}", {}) == "n: 3"

    def test_unset_without_default_raises(self) -> None:
        with pytest.raises(ConfigError, match="'TOKEN' is referenced but not set"):
            substitute_env_vars("token: ${TOKEN}", {})


@pytest.mark.unit
class TestConfigLoader:
    """Tests for loading perennial.yaml files."""

    def test_load_valid_config(self, config_file: Path) -> None:
        config = ConfigLoader(env={}).load_project_config(config_file)

        assert config.name == "agent"
        assert config.workload.image == "ghcr.io/example/agent:1.2.0"
        assert config.workload.persistent_storage is not None
        assert config.workload.persistent_storage.mount_path == "/data"
        assert [p.type for p in config.sorted_providers()] == [
            ProviderType.MARKETPLACE,
            ProviderType.DIRECT_HOST,
        ]

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader(env={}).load_project_config(tmp_path / "missing.yaml")

        assert exc_info.value.field == "config_file"

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "perennial.yaml"
        path.write_text("workload: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader(env={}).load_project_config(path)

        assert exc_info.value.field == "yaml_parse"

    def test_validation_errors_are_flattened(self, tmp_path: Path) -> None:
        """Each invalid field is reported on its own line."""
        path = tmp_path / "perennial.yaml"
        path.write_text(
            "workload:\n  image: nginx\n  memory: lots\nproviders: []\n",
            encoding="utf-8",
        )

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader(env={}).load_project_config(path)

        message = exc_info.value.message
        assert "Field 'workload.memory'" in message
        assert "Field 'providers'" in message

    def test_env_substitution_in_file(self, tmp_path: Path) -> None:
        path = tmp_path / "perennial.yaml"
        path.write_text(
            "workload:\n  image: ${IMAGE}\nproviders:\n  - type: marketplace\n",
            encoding="utf-8",
        )

        config = ConfigLoader(env={"IMAGE": "redis:7"}).load_project_config(path)

        assert config.workload.image == "redis:7"

    def test_env_overrides_applied(self, config_file: Path) -> None:
        env = {
            "PERENNIAL_STATE_DIR": "/var/lib/perennial",
            "PERENNIAL_WEBHOOK_URL": "https://hooks.example/alert",
            "PERENNIAL_MARKETPLACE_ENDPOINT": "https://lcd.example.org",
        }

        config = ConfigLoader(env=env).load_project_config(config_file)

        assert config.state_dir == "/var/lib/perennial"
        assert config.notifications.webhook_url == "https://hooks.example/alert"
        marketplace = config.sorted_providers()[0].marketplace
        assert marketplace is not None
        assert marketplace.rest_endpoint == "https://lcd.example.org"
