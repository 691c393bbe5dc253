"""Deployment orchestration: adapters, reconciler and service."""

from __future__ import annotations

from collections.abc import Iterable

from aregistry.config.loader import RuntimeSettings
from aregistry.deploy.adapters import (
    BaseDeploymentAdapter,
    KubernetesDeploymentAdapter,
    LocalDeploymentAdapter,
    PlatformAdapterRegistry,
)
from aregistry.deploy.reconciler import Reconciler
from aregistry.deploy.service import DeploymentService
from aregistry.runtime.kubernetes import KubernetesClient
from aregistry.runtime.local import LocalRuntime
from aregistry.store.base import Catalog, RecordStore


def create_deployment_service(
    store: RecordStore,
    catalog: Catalog,
    settings: RuntimeSettings,
    extra_adapters: Iterable[BaseDeploymentAdapter] = (),
    local_runtime: LocalRuntime | None = None,
    kube_client: KubernetesClient | None = None,
) -> DeploymentService:
    """Wire a deployment service with the built-in and any extra adapters.

    Args:
        store: Record store
        catalog: Catalog used to resolve deployments
        settings: Runtime settings
        extra_adapters: Adapters for additional platforms
        local_runtime: Local apply backend override
        kube_client: Cluster apply backend override

    Raises:
        InvalidInputError: If an extra adapter is malformed or reuses a key
    """
    adapters = PlatformAdapterRegistry()
    reconciler = Reconciler(
        store,
        catalog,
        adapters,
        settings,
        local_runtime=local_runtime,
        kube_client=kube_client,
    )
    adapters.register(LocalDeploymentAdapter(reconciler))
    adapters.register(KubernetesDeploymentAdapter(reconciler))
    for adapter in extra_adapters:
        adapters.register(adapter)
    return DeploymentService(store, catalog, adapters, reconciler)


__all__ = [
    "BaseDeploymentAdapter",
    "DeploymentService",
    "PlatformAdapterRegistry",
    "Reconciler",
    "create_deployment_service",
]
