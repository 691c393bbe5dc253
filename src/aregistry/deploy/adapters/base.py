"""Base interface for platform adapters."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from aregistry.lib.errors import OperationNotSupportedError
from aregistry.models.deployment import Deployment


class BaseDeploymentAdapter(ABC):
    """Abstract base class for platform adapters.

    An adapter is everything an external platform integration has to
    provide: deploy, undeploy, logs, cancel and discovery for the providers
    of one platform key.
    """

    @abstractmethod
    def platform(self) -> str:
        """Return the platform key this adapter serves."""

    @abstractmethod
    def supported_resource_types(self) -> list[str]:
        """Return the resource types (``mcp``, ``agent``) this adapter deploys."""

    @abstractmethod
    def deploy(
        self,
        deployment: Deployment,
        cancel_event: threading.Event | None = None,
    ) -> Deployment:
        """Deploy a resource and return the resulting deployment record.

        Args:
            deployment: Deployment to bring up
            cancel_event: Set by the caller to abandon a long-running apply

        Returns:
            Deployment as it now exists on the platform.

        Raises:
            DeploymentError: If the platform rejects or fails the deployment.
        """

    @abstractmethod
    def undeploy(
        self,
        deployment: Deployment,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Tear a deployment down.

        Raises:
            DeploymentError: If the teardown fails.
        """

    @abstractmethod
    def discover(self, provider_id: str) -> list[Deployment]:
        """Return resources running on a provider that were not created here.

        Raises:
            DeploymentError: If the platform cannot be queried.
        """

    def get_logs(self, deployment: Deployment) -> list[str]:
        """Return recent log lines for a deployment.

        Raises:
            OperationNotSupportedError: Unless the adapter overrides it.
        """
        raise OperationNotSupportedError("get_logs", self.platform())

    def cancel(self, deployment: Deployment) -> None:
        """Cancel an in-flight deployment.

        Raises:
            OperationNotSupportedError: Unless the adapter overrides it.
        """
        raise OperationNotSupportedError("cancel", self.platform())
