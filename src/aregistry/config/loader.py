"""Runtime settings loader.

Settings resolve in three layers: built-in defaults, an optional YAML file,
then ``AREGISTRY_*`` environment variables.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from aregistry.config.defaults import (
    DEFAULT_AGENT_GATEWAY_PORT,
    DEFAULT_COMPOSE_TIMEOUT,
    DEFAULT_CONFIG_PATH,
    DEFAULT_GATEWAY_IMAGE,
    DEFAULT_NAMESPACE,
    DEFAULT_PROJECT_NAME,
    DEFAULT_RUNTIME_DIR,
)
from aregistry.config.env_loader import substitute_env_vars
from aregistry.config.validator import first_error_field, flatten_pydantic_errors
from aregistry.lib.errors import ConfigError

logger = logging.getLogger(__name__)

# Environment variable to field name mapping
ENV_VAR_MAP = {
    "runtime_dir": "AREGISTRY_RUNTIME_DIR",
    "agent_gateway_port": "AREGISTRY_AGENT_GATEWAY_PORT",
    "project_name": "AREGISTRY_PROJECT_NAME",
    "gateway_image": "AREGISTRY_GATEWAY_IMAGE",
    "default_namespace": "AREGISTRY_DEFAULT_NAMESPACE",
    "compose_timeout": "AREGISTRY_COMPOSE_TIMEOUT",
    "verbose": "AREGISTRY_VERBOSE",
}

CONFIG_PATH_ENV_VAR = "AREGISTRY_CONFIG"


class RuntimeSettings(BaseModel):
    """Settings shared by the reconciler and the platform runtimes.

    Attributes:
        runtime_dir: Directory holding compose, gateway and agent side files
        agent_gateway_port: Port the gateway listens on
        project_name: Compose project name
        gateway_image: Gateway container image
        default_namespace: Cluster namespace used when a deployment sets none
        compose_timeout: Seconds to wait for ``docker compose up``
        verbose: Log generated artifacts
    """

    model_config = ConfigDict(extra="forbid")

    runtime_dir: Path = Field(default=Path(DEFAULT_RUNTIME_DIR))
    agent_gateway_port: int = Field(
        default=DEFAULT_AGENT_GATEWAY_PORT, ge=1, le=65535
    )
    project_name: str = Field(default=DEFAULT_PROJECT_NAME, min_length=1)
    gateway_image: str = Field(default=DEFAULT_GATEWAY_IMAGE, min_length=1)
    default_namespace: str = Field(default=DEFAULT_NAMESPACE, min_length=1)
    compose_timeout: float = Field(default=DEFAULT_COMPOSE_TIMEOUT, gt=0)
    verbose: bool = False


def _parse_env_value(field_name: str, value: str) -> Any:
    """Parse an environment variable value to the field's type."""
    if field_name == "agent_gateway_port":
        return int(value)
    if field_name == "compose_timeout":
        return float(value)
    if field_name == "verbose":
        return value.lower() in ("true", "1", "yes", "on")
    return value


def _env_overrides(env_vars: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for field_name, env_var_name in ENV_VAR_MAP.items():
        if env_var_name not in env_vars:
            continue
        try:
            overrides[field_name] = _parse_env_value(
                field_name, env_vars[env_var_name]
            )
        except ValueError as exc:
            raise ConfigError(
                env_var_name, f"Invalid value {env_vars[env_var_name]!r}: {exc}"
            ) from exc
    return overrides


def _read_yaml_file(path: Path) -> dict[str, Any]:
    """Read a YAML settings file with environment variable substitution."""
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(str(path), f"Failed to read settings file: {exc}") from exc

    try:
        content = yaml.safe_load(substitute_env_vars(raw_text))
    except yaml.YAMLError as exc:
        raise ConfigError(str(path), f"Invalid YAML: {exc}") from exc

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(str(path), "Settings file must contain a mapping")
    return content


def load_settings(
    config_path: str | Path | None = None,
    env_vars: Mapping[str, str] | None = None,
) -> RuntimeSettings:
    """Load runtime settings from defaults, a YAML file and the environment.

    Args:
        config_path: Explicit settings file. When omitted, ``AREGISTRY_CONFIG``
            or ``~/.aregistry/config.yaml`` is used if it exists.
        env_vars: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated RuntimeSettings

    Raises:
        ConfigError: If the file is unreadable or any value is invalid
    """
    env = os.environ if env_vars is None else env_vars

    data: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise ConfigError(str(path), "Settings file not found")
        data.update(_read_yaml_file(path))
    else:
        path = Path(env.get(CONFIG_PATH_ENV_VAR, DEFAULT_CONFIG_PATH)).expanduser()
        if path.exists():
            logger.debug(f"Loading runtime settings from {path}")
            data.update(_read_yaml_file(path))

    data.update(_env_overrides(env))

    try:
        return RuntimeSettings.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigError(
            first_error_field(exc), "; ".join(flatten_pydantic_errors(exc))
        ) from exc
