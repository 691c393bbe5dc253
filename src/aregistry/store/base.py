"""Abstract boundaries to the persistent record store and the catalog."""

from __future__ import annotations

from abc import ABC, abstractmethod

from aregistry.models.catalog import CatalogAgent, CatalogServer
from aregistry.models.deployment import Deployment, Provider


class Catalog(ABC):
    """Read access to published servers and agents."""

    @abstractmethod
    def get_server(self, name: str, version: str = "latest") -> CatalogServer:
        """Return a server by exact name and version.

        Args:
            name: Server name (reverse-DNS format)
            version: Version string or "latest"

        Raises:
            NotFoundError: If no such server version is published
        """

    @abstractmethod
    def get_agent(self, name: str, version: str = "latest") -> CatalogAgent:
        """Return an agent by exact name and version.

        Raises:
            NotFoundError: If no such agent version is published
        """


class RecordStore(ABC):
    """Persistent store of deployments and providers."""

    @abstractmethod
    def list_deployments(self) -> list[Deployment]:
        """Return every persisted deployment."""

    @abstractmethod
    def get_deployment(self, deployment_id: str) -> Deployment:
        """Return a deployment by id.

        Raises:
            NotFoundError: If the deployment does not exist
        """

    @abstractmethod
    def create_deployment(self, deployment: Deployment) -> Deployment:
        """Insert a deployment.

        Raises:
            AlreadyExistsError: If a deployment with the same id or identity
                (name, version, resource type, provider) exists
        """

    @abstractmethod
    def update_deployment(self, deployment: Deployment) -> Deployment:
        """Replace a stored deployment, refreshing its ``updated_at``.

        Raises:
            NotFoundError: If the deployment does not exist
        """

    @abstractmethod
    def remove_deployment(self, deployment_id: str) -> None:
        """Delete a deployment by id.

        Raises:
            NotFoundError: If the deployment does not exist
        """

    @abstractmethod
    def list_providers(self, platform: str | None = None) -> list[Provider]:
        """Return providers, optionally restricted to one platform."""

    @abstractmethod
    def get_provider(self, provider_id: str) -> Provider:
        """Return a provider by id.

        Raises:
            NotFoundError: If the provider does not exist
        """

    @abstractmethod
    def create_provider(self, provider: Provider) -> Provider:
        """Insert a provider.

        Raises:
            AlreadyExistsError: If the provider id is taken
        """

    @abstractmethod
    def delete_provider(self, provider_id: str) -> None:
        """Delete a provider by id.

        Raises:
            NotFoundError: If the provider does not exist
            InvalidInputError: If deployments still reference it
        """

    def find_deployment(
        self,
        resource_name: str,
        version: str,
        resource_type: str,
        provider_id: str | None = None,
    ) -> Deployment | None:
        """Return the deployment with the given identity, if any."""
        for deployment in self.list_deployments():
            if (
                deployment.resource_name == resource_name
                and deployment.version == version
                and deployment.resource_type.value == resource_type
                and (provider_id is None or deployment.provider_id == provider_id)
            ):
                return deployment
        return None
