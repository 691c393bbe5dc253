"""Record-store-facing deployment service.

``DeploymentService`` is the entry point for callers: it validates
requests, dispatches each one to the adapter for the provider's platform and
merges persisted deployments with what adapters discover.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from aregistry.deploy.adapters.base import BaseDeploymentAdapter
from aregistry.deploy.adapters.registry import PlatformAdapterRegistry
from aregistry.deploy.reconciler import Reconciler
from aregistry.lib.errors import (
    DiscoveredDeploymentError,
    InvalidInputError,
    NotFoundError,
    RegistryError,
)
from aregistry.models.deployment import (
    LOCAL_PROVIDER_ID,
    Deployment,
    DeploymentFilter,
    DeploymentOrigin,
    DeploymentStatus,
    Provider,
    ResourceType,
    normalize_platform,
)
from aregistry.store.base import Catalog, RecordStore

logger = logging.getLogger(__name__)


class DeploymentService:
    """Deploy, undeploy and inspect deployments across platforms.

    Example:
        >>> service = DeploymentService(store, catalog, adapters, reconciler)
        >>> deployment = service.deploy_server("io.example/echo", "1.0.0")
        >>> deployment.status
        <DeploymentStatus.DEPLOYED: 'deployed'>
    """

    def __init__(
        self,
        store: RecordStore,
        catalog: Catalog,
        adapters: PlatformAdapterRegistry,
        reconciler: Reconciler,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.adapters = adapters
        self.reconciler = reconciler

    def _provider(self, provider_id: str | None) -> Provider:
        provider_id = (provider_id or "").strip()
        if not provider_id:
            raise InvalidInputError("provider id is required")
        return self.store.get_provider(provider_id)

    def _adapter_for(self, deployment: Deployment) -> BaseDeploymentAdapter:
        provider = self._provider(deployment.provider_id)
        return self.adapters.resolve(provider.platform)

    # Deploy

    def deploy_server(
        self,
        name: str,
        version: str = "latest",
        config: dict[str, str] | None = None,
        prefer_remote: bool = False,
        provider_id: str = LOCAL_PROVIDER_ID,
        cancel_event: threading.Event | None = None,
    ) -> Deployment:
        """Deploy a catalog MCP server.

        Args:
            name: Catalog server name
            version: Catalog version or ``latest``
            config: Env values plus ``ARG_``/``HEADER_`` prefixed overrides
            prefer_remote: Prefer a remote endpoint over a local package
            provider_id: Provider to deploy to
            cancel_event: Set to abandon a long-running apply

        Returns:
            The persisted deployment

        Raises:
            NotFoundError: If the provider or catalog server does not exist
            UnsupportedPlatformError: If no adapter serves the provider platform
            ReconciliationError: If a built-in platform fails to converge
        """
        self._provider(provider_id)
        server = self.catalog.get_server(name, version)
        deployment = Deployment(
            resource_name=name,
            version=server.version or version,
            resource_type=ResourceType.MCP,
            provider_id=provider_id,
            config=dict(config or {}),
            prefer_remote=prefer_remote,
        )
        return self.create_deployment(deployment, cancel_event=cancel_event)

    def deploy_agent(
        self,
        name: str,
        version: str = "latest",
        config: dict[str, str] | None = None,
        prefer_remote: bool = False,
        provider_id: str = LOCAL_PROVIDER_ID,
        cancel_event: threading.Event | None = None,
    ) -> Deployment:
        """Deploy a catalog agent.

        Only the agent row is persisted; servers its manifest references are
        resolved and run on every reconciliation pass.
        """
        self._provider(provider_id)
        agent = self.catalog.get_agent(name, version)
        deployment = Deployment(
            resource_name=name,
            version=agent.version or version,
            resource_type=ResourceType.AGENT,
            provider_id=provider_id,
            config=dict(config or {}),
            prefer_remote=prefer_remote,
        )
        return self.create_deployment(deployment, cancel_event=cancel_event)

    def create_deployment(
        self,
        deployment: Deployment,
        cancel_event: threading.Event | None = None,
    ) -> Deployment:
        """Dispatch a deployment to the adapter for its provider's platform.

        Built-in adapters persist the record and reconcile. For any other
        platform the adapter's result is persisted here.

        Raises:
            NotFoundError: If the provider does not exist
            UnsupportedPlatformError: If no adapter serves the platform
            InvalidInputError: If the adapter does not deploy this resource type
        """
        provider = self._provider(deployment.provider_id)
        adapter = self.adapters.resolve(provider.platform)
        if deployment.resource_type.value not in adapter.supported_resource_types():
            raise InvalidInputError(
                f"platform '{provider.platform}' does not support "
                f"{deployment.resource_type.value} deployments"
            )

        logger.info(
            f"Deploying {deployment.resource_type.value} {deployment.resource_name} "
            f"v{deployment.version} to provider {provider.id} ({provider.platform})"
        )
        result = adapter.deploy(deployment, cancel_event=cancel_event)
        if self.adapters.is_builtin(provider.platform):
            return result
        return self.reconciler.create_record(result)

    # Undeploy

    def undeploy_deployment(
        self,
        deployment_id: str,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Undeploy a managed deployment by id.

        Raises:
            NotFoundError: If the deployment does not exist
            DiscoveredDeploymentError: If it was discovered rather than created
        """
        try:
            deployment = self.store.get_deployment(deployment_id)
        except NotFoundError:
            if self._find_discovered(deployment_id) is not None:
                raise DiscoveredDeploymentError(deployment_id) from None
            raise
        if deployment.is_discovered:
            raise DiscoveredDeploymentError(deployment.id)

        provider = self._provider(deployment.provider_id)
        adapter = self.adapters.resolve(provider.platform)
        adapter.undeploy(deployment, cancel_event=cancel_event)
        if not self.adapters.is_builtin(provider.platform):
            self.store.remove_deployment(deployment.id)
        logger.info(f"Undeployed {deployment.resource_name} ({deployment.id})")

    def remove_agent(
        self,
        name: str,
        version: str,
        provider_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Undeploy the agent deployment with the given identity.

        Raises:
            NotFoundError: If no such agent deployment exists
        """
        deployment = self.store.find_deployment(
            name, version, ResourceType.AGENT.value, provider_id
        )
        if deployment is None:
            raise NotFoundError("deployment", name, version)
        self.undeploy_deployment(deployment.id, cancel_event=cancel_event)

    # Logs and cancellation

    def get_deployment_logs(self, deployment_id: str) -> list[str]:
        """Return log lines from the deployment's platform adapter.

        Raises:
            OperationNotSupportedError: If the adapter has no log support
        """
        deployment = self.store.get_deployment(deployment_id)
        return self._adapter_for(deployment).get_logs(deployment)

    def cancel_deployment(self, deployment_id: str) -> Deployment:
        """Cancel an in-flight deployment and mark it cancelled.

        Raises:
            OperationNotSupportedError: If the adapter cannot cancel
        """
        deployment = self.store.get_deployment(deployment_id)
        self._adapter_for(deployment).cancel(deployment)
        return self.update_deployment_status(deployment_id, DeploymentStatus.CANCELLED)

    # Queries

    def get_deployment(self, deployment_id: str) -> Deployment:
        """Return a persisted deployment by id."""
        return self.store.get_deployment(deployment_id)

    def list_deployments(
        self, deployment_filter: DeploymentFilter | None = None
    ) -> list[Deployment]:
        """List persisted deployments plus those adapters discover.

        A provider whose discovery fails is logged and left out; the rest of
        the listing is still returned.
        """
        wanted = deployment_filter or DeploymentFilter()
        providers = {p.id: p for p in self.store.list_providers()}

        results: list[Deployment] = []
        identities: set[tuple[str, str, str, str]] = set()
        for deployment in self.store.list_deployments():
            provider = providers.get(deployment.provider_id)
            platform = provider.platform if provider else None
            identities.add(deployment.identity())
            if wanted.matches(deployment, platform):
                results.append(deployment)

        if wanted.origin in (None, DeploymentOrigin.DISCOVERED):
            results.extend(self._discover(providers.values(), wanted, identities))
        return results

    def _discover(
        self,
        providers: Iterable[Provider],
        wanted: DeploymentFilter,
        identities: set[tuple[str, str, str, str]],
    ) -> list[Deployment]:
        discovered: list[Deployment] = []
        for provider in sorted(providers, key=lambda p: p.id):
            if wanted.provider_id is not None and provider.id != wanted.provider_id:
                continue
            if wanted.platform is not None and (
                normalize_platform(wanted.platform) != provider.platform
            ):
                continue
            adapter = self.adapters.get(provider.platform)
            if adapter is None:
                continue
            try:
                found = adapter.discover(provider.id)
            except RegistryError as e:
                logger.warning(
                    f"Discovery failed for provider {provider.id} "
                    f"({provider.platform}); skipping: {e}"
                )
                continue
            for deployment in found:
                if deployment.identity() in identities:
                    continue
                if wanted.matches(deployment, provider.platform):
                    discovered.append(deployment)
        return discovered

    # Record updates

    def adopt_deployment(self, deployment_id: str) -> Deployment:
        """Turn a discovered deployment into a managed one.

        Raises:
            NotFoundError: If no discovered deployment has this id
        """
        deployment = self._find_discovered(deployment_id)
        if deployment is None:
            raise NotFoundError("discovered deployment", deployment_id)
        adopted = deployment.model_copy(update={"origin": DeploymentOrigin.MANAGED})
        logger.info(f"Adopted {adopted.resource_name} ({adopted.id})")
        return self.reconciler.create_record(adopted)

    def _find_discovered(self, deployment_id: str) -> Deployment | None:
        discovered = self.list_deployments(
            DeploymentFilter(origin=DeploymentOrigin.DISCOVERED)
        )
        for deployment in discovered:
            if deployment.id == deployment_id:
                return deployment
        return None

    def update_deployment_status(
        self,
        deployment_id: str,
        status: DeploymentStatus,
        error: str | None = None,
    ) -> Deployment:
        """Record a new lifecycle status (and optional error) for a deployment."""
        deployment = self.store.get_deployment(deployment_id)
        return self.store.update_deployment(
            deployment.model_copy(update={"status": status, "error": error})
        )

    def update_deployment_config(
        self,
        deployment_id: str,
        config: dict[str, str],
        cancel_event: threading.Event | None = None,
    ) -> Deployment:
        """Replace a deployment's config overrides and converge the platform.

        Raises:
            DiscoveredDeploymentError: If the deployment is not managed
            DeploymentError: If reconciliation fails; the new config stays
                persisted so the next pass retries it
        """
        deployment = self.store.get_deployment(deployment_id)
        if deployment.is_discovered:
            raise DiscoveredDeploymentError(deployment.id)
        updated = self.store.update_deployment(
            deployment.model_copy(update={"config": dict(config)})
        )

        provider = self._provider(updated.provider_id)
        if self.adapters.is_builtin(provider.platform):
            self.reconciler.reconcile_all(cancel_event=cancel_event)
            return self.store.get_deployment(updated.id)
        result = self.adapters.resolve(provider.platform).deploy(
            updated, cancel_event=cancel_event
        )
        return self.store.update_deployment(result)
