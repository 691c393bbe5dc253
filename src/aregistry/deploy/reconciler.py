"""Level-triggered reconciliation of persisted deployments.

Every pass re-derives the desired state of each built-in platform from the
record store, translates it and applies it in full. Deployments on other
platforms are handed to their adapter instead.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from aregistry.config.defaults import COMPOSE_FILE_NAME
from aregistry.config.loader import RuntimeSettings
from aregistry.deploy.adapters.registry import PlatformAdapterRegistry
from aregistry.lib.errors import (
    AlreadyExistsError,
    DeploymentError,
    DiscoveredDeploymentError,
    NotFoundError,
    ReconciliationError,
    RegistryError,
    UnsupportedPlatformError,
)
from aregistry.lib.utils import resource_name
from aregistry.models.deployment import (
    NAMESPACE_CONFIG_KEY,
    Deployment,
    Platform,
    ResourceType,
)
from aregistry.models.run_request import AgentRunRequest, MCPServerRunRequest
from aregistry.runtime.kubernetes import KubernetesClient
from aregistry.runtime.local import LocalRuntime
from aregistry.runtime.resolver import RunRequestResolver
from aregistry.runtime.translation.compose import ComposeTranslator
from aregistry.runtime.translation.kubernetes import KubernetesTranslator
from aregistry.runtime.translation.registry import RegistryTranslator
from aregistry.store.base import Catalog, RecordStore

logger = logging.getLogger(__name__)


class ResourceNameLocks:
    """One lock per resource name, created on demand.

    Serializes record creation for a name; it does not span the apply step.
    A lock is dropped once no caller holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, name: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(name, threading.Lock())
            self._users[name] = self._users.get(name, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[name] -= 1
                if not self._users[name]:
                    del self._users[name]
                    del self._locks[name]


@dataclass
class PlatformGroup:
    """Deployments and run requests for one platform in one pass."""

    platform: str
    deployments: list[Deployment] = field(default_factory=list)
    servers: list[MCPServerRunRequest] = field(default_factory=list)
    agents: list[AgentRunRequest] = field(default_factory=list)


class Reconciler:
    """Converges platforms to the persisted deployment records.

    Example:
        >>> reconciler = Reconciler(store, catalog, adapters, settings)
        >>> reconciler.reconcile_all()
    """

    def __init__(
        self,
        store: RecordStore,
        catalog: Catalog,
        adapters: PlatformAdapterRegistry,
        settings: RuntimeSettings,
        local_runtime: LocalRuntime | None = None,
        kube_client: KubernetesClient | None = None,
    ) -> None:
        """Create a reconciler.

        Args:
            store: Record store holding deployments and providers
            catalog: Catalog used to resolve deployments
            adapters: Adapters for platforms reconciled out of process
            settings: Runtime settings
            local_runtime: Local apply backend (defaults to Docker Compose)
            kube_client: Cluster apply backend
        """
        self.store = store
        self.adapters = adapters
        self.settings = settings
        self.resolver = RunRequestResolver(catalog)
        self.translator = RegistryTranslator()
        self.compose_translator = ComposeTranslator(settings)
        self.kube_translator = KubernetesTranslator(settings)
        self.local_runtime = local_runtime or LocalRuntime(settings)
        self.kube_client = kube_client or KubernetesClient()
        self._name_locks = ResourceNameLocks()

    def platform_for(self, provider_id: str) -> str:
        """Return the platform key of a provider.

        Raises:
            NotFoundError: If the provider does not exist
        """
        return self.store.get_provider(provider_id).platform

    def cluster_namespace(self, deployment: Deployment) -> str:
        """Return the cluster namespace a deployment lives in."""
        return (
            deployment.config.get(NAMESPACE_CONFIG_KEY)
            or self.settings.default_namespace
        )

    # Reconciliation

    def reconcile_all(self, cancel_event: threading.Event | None = None) -> None:
        """Run one full reconciliation pass.

        Any failure aborts the affected platform group and is raised; groups
        are processed in platform-key order.

        Raises:
            DeploymentError: If a platform group fails to translate or apply
        """
        deployments = self.store.list_deployments()
        logger.info(f"Reconciling {len(deployments)} deployment(s)")

        groups = self._collect(deployments)
        if Platform.LOCAL.value not in groups and self._local_artifacts_exist():
            # Last local deployment removed; apply the empty set to stop orphans
            groups[Platform.LOCAL.value] = PlatformGroup(Platform.LOCAL.value)

        for platform in sorted(groups):
            group = groups[platform]
            try:
                if self.adapters.is_builtin(platform):
                    self._reconcile_builtin(group, cancel_event)
                else:
                    self._reconcile_with_adapter(group, cancel_event)
            except DeploymentError as e:
                if e.operation == "reconcile":
                    raise
                raise DeploymentError(
                    operation="reconcile",
                    message=f"failed {platform} reconciliation: {e}",
                ) from e
            except RegistryError as e:
                raise DeploymentError(
                    operation="reconcile",
                    message=f"failed {platform} reconciliation: {e}",
                ) from e

    def _collect(self, deployments: list[Deployment]) -> dict[str, PlatformGroup]:
        platforms: dict[str, str | None] = {}
        groups: dict[str, PlatformGroup] = {}
        for deployment in deployments:
            if deployment.is_discovered:
                continue
            if deployment.provider_id not in platforms:
                try:
                    platforms[deployment.provider_id] = self.platform_for(
                        deployment.provider_id
                    )
                except NotFoundError as e:
                    logger.warning(
                        f"Deployment {deployment.id} has unknown provider "
                        f"'{deployment.provider_id}'; skipping: {e}"
                    )
                    platforms[deployment.provider_id] = None
            platform = platforms[deployment.provider_id]
            if platform is None:
                continue
            group = groups.setdefault(platform, PlatformGroup(platform))
            group.deployments.append(deployment)
        return groups

    def _local_artifacts_exist(self) -> bool:
        return (self.settings.runtime_dir / COMPOSE_FILE_NAME).exists()

    def _resolve_group(self, group: PlatformGroup) -> None:
        for deployment in group.deployments:
            try:
                request = self.resolver.resolve(deployment)
            except NotFoundError as e:
                if e.name != deployment.resource_name:
                    raise
                logger.warning(
                    f"Catalog entry for {deployment.resource_type.value} "
                    f"{deployment.resource_name} v{deployment.version} is missing; "
                    f"skipping deployment {deployment.id}"
                )
                continue
            if isinstance(request, AgentRunRequest):
                group.agents.append(request)
            else:
                group.servers.append(request)

        # Fold servers resolved from agent manifests into the group
        present = {(r.server.name, r.server.version) for r in group.servers}
        for agent_request in group.agents:
            for server_request in agent_request.resolved_servers:
                key = (server_request.server.name, server_request.server.version)
                if key in present:
                    continue
                present.add(key)
                group.servers.append(server_request)
            if agent_request.resolved_servers and self.settings.verbose:
                logger.debug(
                    f"Resolved {len(agent_request.resolved_servers)} MCP server(s) "
                    f"for {group.platform} agent {agent_request.agent.name}"
                )

    def _reconcile_builtin(
        self, group: PlatformGroup, cancel_event: threading.Event | None
    ) -> None:
        self._resolve_group(group)
        desired = self.translator.translate(group.servers, group.agents)
        logger.info(
            f"Desired {group.platform} state: {len(desired.agents)} agent(s), "
            f"{len(desired.mcp_servers)} MCP server(s)"
        )

        if group.platform == Platform.KUBERNETES.value:
            self.kube_client.apply(
                self.kube_translator.translate(desired), cancel_event=cancel_event
            )
            return

        self.local_runtime.apply(
            self.compose_translator.translate(desired),
            agents=group.agents,
            cancel_event=cancel_event,
        )

    def _reconcile_with_adapter(
        self, group: PlatformGroup, cancel_event: threading.Event | None
    ) -> None:
        try:
            adapter = self.adapters.resolve(group.platform)
        except UnsupportedPlatformError as e:
            logger.warning(f"Skipping {len(group.deployments)} deployment(s): {e}")
            return
        for deployment in group.deployments:
            try:
                adapter.deploy(deployment, cancel_event=cancel_event)
            except RegistryError as e:
                raise DeploymentError(
                    operation="reconcile",
                    message=(
                        f"failed {group.platform} adapter reconciliation for "
                        f"deployment {deployment.id}: {e}"
                    ),
                ) from e

    # Built-in deploy and undeploy

    def create_record(self, deployment: Deployment) -> Deployment:
        """Insert a deployment, replacing a stale record with the same identity.

        Raises:
            AlreadyExistsError: If the retry after replacement also collides
        """
        with self._name_locks.hold(deployment.resource_name):
            try:
                return self.store.create_deployment(deployment)
            except AlreadyExistsError:
                stale = self.store.find_deployment(
                    deployment.resource_name,
                    deployment.version,
                    deployment.resource_type.value,
                    deployment.provider_id,
                )
                if stale is None:
                    stale = self.store.get_deployment(deployment.id)
                logger.info(
                    f"Deployment for {deployment.resource_name}/{deployment.version} "
                    "already exists, replacing stale record"
                )
                self._remove_stale(stale)
                return self.store.create_deployment(deployment)

    def _remove_stale(self, stale: Deployment) -> None:
        try:
            platform = self.platform_for(stale.provider_id)
        except NotFoundError:
            platform = ""
        if platform == Platform.KUBERNETES.value:
            try:
                self.cleanup_cluster_resources(stale)
            except DeploymentError as e:
                logger.warning(
                    f"Failed to clean up kubernetes resources for "
                    f"{stale.resource_name}: {e}"
                )
        try:
            self.store.remove_deployment(stale.id)
        except NotFoundError:
            pass

    def deploy(
        self,
        deployment: Deployment,
        cancel_event: threading.Event | None = None,
    ) -> Deployment:
        """Persist a deployment and reconcile, removing the record on failure.

        Raises:
            ReconciliationError: If reconciliation fails; carries the
                compensating-delete failure when there is one
        """
        record = self.create_record(deployment)
        try:
            self.reconcile_all(cancel_event=cancel_event)
        except Exception as e:
            message = f"deployment created but reconciliation failed: {e}"
            try:
                self.store.remove_deployment(record.id)
            except RegistryError as cleanup_error:
                raise ReconciliationError(message, cleanup_error) from e
            logger.warning(f"Removed deployment {record.id} after failed reconciliation")
            raise ReconciliationError(message) from e
        return self.store.get_deployment(record.id)

    def undeploy(
        self,
        deployment: Deployment,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Remove a managed deployment and reconcile.

        Raises:
            DiscoveredDeploymentError: If the deployment was discovered
            NotFoundError: If its provider or record is missing
            DeploymentError: If cluster cleanup or reconciliation fails
        """
        if deployment.is_discovered:
            raise DiscoveredDeploymentError(deployment.id)

        if self.platform_for(deployment.provider_id) == Platform.KUBERNETES.value:
            self.cleanup_cluster_resources(deployment)

        self.store.remove_deployment(deployment.id)
        try:
            self.reconcile_all(cancel_event=cancel_event)
        except RegistryError as e:
            raise DeploymentError(
                operation="undeploy",
                message=f"deployment removed but reconciliation failed: {e}",
            ) from e

    def cleanup_cluster_resources(self, deployment: Deployment) -> None:
        """Delete the custom resources backing a cluster deployment."""
        name = resource_name(deployment.resource_name)
        namespace = self.cluster_namespace(deployment)
        if deployment.resource_type == ResourceType.AGENT:
            self.kube_client.delete_agent(name, namespace)
        else:
            self.kube_client.delete_mcp_server(name, namespace)
