"""Platform adapters and the adapter registry."""

from aregistry.deploy.adapters.base import BaseDeploymentAdapter
from aregistry.deploy.adapters.kubernetes import KubernetesDeploymentAdapter
from aregistry.deploy.adapters.local import LocalDeploymentAdapter
from aregistry.deploy.adapters.registry import PlatformAdapterRegistry

__all__ = [
    "BaseDeploymentAdapter",
    "KubernetesDeploymentAdapter",
    "LocalDeploymentAdapter",
    "PlatformAdapterRegistry",
]
