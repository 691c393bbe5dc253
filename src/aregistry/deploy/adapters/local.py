"""Built-in adapter for the local Docker Compose platform."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from aregistry.deploy.adapters.base import BaseDeploymentAdapter
from aregistry.models.deployment import Deployment, Platform, ResourceType

if TYPE_CHECKING:
    from aregistry.deploy.reconciler import Reconciler


class LocalDeploymentAdapter(BaseDeploymentAdapter):
    """Deploys to the local platform through full reconciliation."""

    def __init__(self, reconciler: Reconciler) -> None:
        self.reconciler = reconciler

    def platform(self) -> str:
        return Platform.LOCAL.value

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
        # Everything in the local compose project is created by the reconciler
        return []
