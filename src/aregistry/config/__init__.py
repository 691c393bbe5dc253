"""Runtime configuration for the registry.

Main components:
- RuntimeSettings: validated settings model
- load_settings: defaults < YAML file < AREGISTRY_* environment variables
- Environment variable substitution (${VAR_NAME} pattern) in settings files
"""

from aregistry.config.env_loader import substitute_env_vars
from aregistry.config.loader import RuntimeSettings, load_settings

__all__ = [
    "RuntimeSettings",
    "load_settings",
    "substitute_env_vars",
]
