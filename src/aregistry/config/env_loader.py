"""Environment variable substitution for configuration files."""

import os
import re

from aregistry.lib.errors import ConfigError

# ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def substitute_env_vars(text: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` references in text.

    Raises:
        ConfigError: If a referenced variable is unset and has no default
    """

    def _replace(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        value = os.environ.get(name)
        if value is not None:
            return value
        if default is not None:
            return default
        raise ConfigError(name, f"Environment variable '{name}' is not set")

    return _ENV_PATTERN.sub(_replace, text)
