"""aregistry - Deployment runtime for agent and MCP server registries.

aregistry turns persisted deployment records into running resources. It
resolves catalog servers and agents, translates them into a platform-neutral
desired state and applies that state to a target platform.

Main features:
- Local platform: Docker Compose project plus an agent gateway config
- Cluster platform: kagent custom resources on Kubernetes
- Pluggable platform adapters looked up by provider platform key
- Compensating rollback when a new deployment fails to converge
"""

from aregistry.config.loader import RuntimeSettings, load_settings
from aregistry.lib.errors import ConfigError, DeploymentError, RegistryError

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConfigError",
    "DeploymentError",
    "RegistryError",
    "RuntimeSettings",
    "load_settings",
]
