"""Built-in adapter for the Kubernetes (kagent) platform."""

from __future__ import annotations

import logging
import threading
import uuid
from typing import TYPE_CHECKING, Any

from aregistry.config.defaults import MANAGED_LABEL
from aregistry.deploy.adapters.base import BaseDeploymentAdapter
from aregistry.models.deployment import (
    NAMESPACE_CONFIG_KEY,
    Deployment,
    DeploymentOrigin,
    DeploymentStatus,
    Platform,
    ResourceType,
)
from aregistry.runtime.translation.kubernetes import (
    AGENT_KIND,
    MCP_SERVER_KINDS,
    VERSION_ANNOTATION,
    CustomResourceKind,
)

if TYPE_CHECKING:
    from aregistry.deploy.reconciler import Reconciler

logger = logging.getLogger(__name__)

# Provider config key naming the namespace to discover in
PROVIDER_NAMESPACE_KEY = "namespace"

_DISCOVERY_NAMESPACE = uuid.UUID("4f6c1d0e-93c2-4a52-9d0b-7b0a3c1e5f21")


def discovered_deployment_id(
    provider_id: str, kind: str, namespace: str, name: str
) -> str:
    """Return a stable id for a resource found on a cluster."""
    return str(
        uuid.uuid5(_DISCOVERY_NAMESPACE, f"{provider_id}/{kind}/{namespace}/{name}")
    )


def is_managed(resource: dict[str, Any]) -> bool:
    """Return True if a custom resource carries the managed label."""
    labels = resource.get("metadata", {}).get("labels") or {}
    return str(labels.get(MANAGED_LABEL, "")).lower() == "true"


class KubernetesDeploymentAdapter(BaseDeploymentAdapter):
    """Deploys to a cluster through full reconciliation.

    Discovery reports agent and MCP server resources that lack the managed
    label, i.e. resources created outside the registry.
    """

    def __init__(self, reconciler: Reconciler) -> None:
        self.reconciler = reconciler

    def platform(self) -> str:
        return Platform.KUBERNETES.value

    def supported_resource_types(self) -> list[str]:
        return [ResourceType.MCP.value, ResourceType.AGENT.value]

    def deploy(
        self,
        deployment: Deployment,
        cancel_event: threading.Event | None = None,
    ) -> Deployment:
        return self.reconciler.deploy(deployment, cancel_event=cancel_event)

    def undeploy(
        self,
        deployment: Deployment,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.reconciler.undeploy(deployment, cancel_event=cancel_event)

    def discover(self, provider_id: str) -> list[Deployment]:
        """List unmanaged agents and MCP servers in the provider's namespace.

        Raises:
            NotFoundError: If the provider does not exist
            DeploymentError: If the cluster cannot be listed
        """
        provider = self.reconciler.store.get_provider(provider_id)
        namespace = str(
            provider.config.get(PROVIDER_NAMESPACE_KEY)
            or self.reconciler.settings.default_namespace
        )
        kube = self.reconciler.kube_client

        discovered: list[Deployment] = []
        kinds: list[tuple[CustomResourceKind, ResourceType]] = [
            (AGENT_KIND, ResourceType.AGENT),
            *((kind, ResourceType.MCP) for kind in MCP_SERVER_KINDS),
        ]
        for kind, resource_type in kinds:
            for resource in kube.list_resources(kind, namespace):
                if is_managed(resource):
                    continue
                discovered.append(
                    self._to_deployment(
                        resource, kind, resource_type, provider_id, namespace
                    )
                )
        logger.debug(
            f"Discovered {len(discovered)} unmanaged resource(s) in {namespace}"
        )
        return discovered

    @staticmethod
    def _to_deployment(
        resource: dict[str, Any],
        kind: CustomResourceKind,
        resource_type: ResourceType,
        provider_id: str,
        namespace: str,
    ) -> Deployment:
        metadata = resource.get("metadata", {})
        name = str(metadata.get("name", ""))
        annotations = metadata.get("annotations") or {}
        return Deployment(
            id=discovered_deployment_id(provider_id, kind.kind, namespace, name),
            resource_name=name,
            version=str(annotations.get(VERSION_ANNOTATION) or "latest"),
            resource_type=resource_type,
            provider_id=provider_id,
            status=DeploymentStatus.DEPLOYED,
            origin=DeploymentOrigin.DISCOVERED,
            config={NAMESPACE_CONFIG_KEY: namespace},
            cloud_metadata={
                "kind": kind.kind,
                "namespace": namespace,
                "uid": metadata.get("uid"),
            },
        )
