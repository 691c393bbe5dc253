"""Tests for runtime settings loading."""

from pathlib import Path

import pytest

from aregistry.config.defaults import (
    DEFAULT_AGENT_GATEWAY_PORT,
    DEFAULT_NAMESPACE,
    DEFAULT_PROJECT_NAME,
)
from aregistry.config.loader import RuntimeSettings, load_settings
from aregistry.lib.errors import ConfigError


@pytest.mark.unit
class TestLoadSettings:
    """Tests for load_settings() layering."""

    def test_defaults_without_file_or_env(self, tmp_path: Path) -> None:
        """Test built-in defaults apply when nothing is configured."""
        env = {"AREGISTRY_CONFIG": str(tmp_path / "missing.yaml")}

        settings = load_settings(env_vars=env)

        assert settings.agent_gateway_port == DEFAULT_AGENT_GATEWAY_PORT
        assert settings.project_name == DEFAULT_PROJECT_NAME
        assert settings.default_namespace == DEFAULT_NAMESPACE
        assert settings.verbose is False

    def test_yaml_file_values(self, tmp_path: Path) -> None:
        """Test values from an explicit YAML file are loaded."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "runtime_dir: /srv/runtime\nagent_gateway_port: 3000\n", encoding="utf-8"
        )

        settings = load_settings(config_file, env_vars={})

        assert settings.runtime_dir == Path("/srv/runtime")
        assert settings.agent_gateway_port == 3000

    def test_env_overrides_yaml(self, tmp_path: Path) -> None:
        """Test AREGISTRY_* variables take precedence over the file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("agent_gateway_port: 3000\n", encoding="utf-8")
        env = {
            "AREGISTRY_AGENT_GATEWAY_PORT": "4000",
            "AREGISTRY_VERBOSE": "yes",
            "AREGISTRY_DEFAULT_NAMESPACE": "agents",
        }

        settings = load_settings(config_file, env_vars=env)

        assert settings.agent_gateway_port == 4000
        assert settings.verbose is True
        assert settings.default_namespace == "agents"

    def test_config_path_from_env(self, tmp_path: Path) -> None:
        """Test AREGISTRY_CONFIG selects the settings file."""
        config_file = tmp_path / "custom.yaml"
        config_file.write_text("project_name: custom\n", encoding="utf-8")

        settings = load_settings(env_vars={"AREGISTRY_CONFIG": str(config_file)})

        assert settings.project_name == "custom"

    def test_env_substitution_in_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test ${VAR} references in the file are substituted."""
        monkeypatch.setenv("RUNTIME_ROOT", "/data")
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "runtime_dir: ${RUNTIME_ROOT}/rt\n"
            "gateway_image: ${GATEWAY_IMAGE:-gw:latest}\n",
            encoding="utf-8",
        )

        settings = load_settings(config_file, env_vars={})

        assert settings.runtime_dir == Path("/data/rt")
        assert settings.gateway_image == "gw:latest"


@pytest.mark.unit
class TestLoadSettingsErrors:
    """Tests for invalid settings."""

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        """Test an explicit missing file is an error."""
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yaml", env_vars={})

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test malformed YAML raises ConfigError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("runtime_dir: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(config_file, env_vars={})

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        """Test a YAML list is rejected."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="mapping"):
            load_settings(config_file, env_vars={})

    def test_unknown_field(self, tmp_path: Path) -> None:
        """Test unknown settings are rejected."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("colour: blue\n", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            load_settings(config_file, env_vars={})
        assert exc_info.value.field == "colour"

    def test_non_numeric_port_env(self, tmp_path: Path) -> None:
        """Test a non-numeric port variable names the variable."""
        env = {
            "AREGISTRY_CONFIG": str(tmp_path / "missing.yaml"),
            "AREGISTRY_AGENT_GATEWAY_PORT": "abc",
        }

        with pytest.raises(ConfigError) as exc_info:
            load_settings(env_vars=env)
        assert exc_info.value.field == "AREGISTRY_AGENT_GATEWAY_PORT"

    def test_out_of_range_port(self, tmp_path: Path) -> None:
        """Test range validation errors are flattened into the message."""
        env = {
            "AREGISTRY_CONFIG": str(tmp_path / "missing.yaml"),
            "AREGISTRY_AGENT_GATEWAY_PORT": "70000",
        }

        with pytest.raises(ConfigError, match="agent_gateway_port"):
            load_settings(env_vars=env)


class TestRuntimeSettings:
    """Tests for the RuntimeSettings model."""

    def test_compose_timeout_must_be_positive(self) -> None:
        """Test a zero compose timeout is rejected."""
        with pytest.raises(ValueError):
            RuntimeSettings(compose_timeout=0)
