"""Pytest configuration and shared fixtures for aregistry tests."""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from kubernetes import client

from aregistry.config.loader import RuntimeSettings
from aregistry.deploy import create_deployment_service
from aregistry.deploy.adapters.base import BaseDeploymentAdapter
from aregistry.deploy.service import DeploymentService
from aregistry.lib.errors import NotFoundError
from aregistry.models.catalog import (
    AgentManifest,
    CatalogAgent,
    CatalogServer,
    ManifestMCPServer,
    RemoteConfig,
    ServerPackage,
    TransportConfig,
)
from aregistry.models.deployment import Deployment, DeploymentStatus, Provider
from aregistry.runtime.kubernetes import KubernetesClient
from aregistry.runtime.local import LocalRuntime
from aregistry.store.base import Catalog
from aregistry.store.json_store import JsonRecordStore


class InMemoryCatalog(Catalog):
    """Catalog backed by dictionaries keyed by (name, version)."""

    def __init__(self) -> None:
        self.servers: dict[tuple[str, str], CatalogServer] = {}
        self.agents: dict[tuple[str, str], CatalogAgent] = {}

    def add_server(self, server: CatalogServer) -> CatalogServer:
        self.servers[(server.name, server.version)] = server
        return server

    def add_agent(self, agent: CatalogAgent) -> CatalogAgent:
        self.agents[(agent.name, agent.version)] = agent
        return agent

    def get_server(self, name: str, version: str = "latest") -> CatalogServer:
        return self._lookup(self.servers, "server", name, version)

    def get_agent(self, name: str, version: str = "latest") -> CatalogAgent:
        return self._lookup(self.agents, "agent", name, version)

    @staticmethod
    def _lookup(
        entries: dict[tuple[str, str], Any], kind: str, name: str, version: str
    ) -> Any:
        if version in ("", "latest"):
            matches = [entry for (n, _), entry in entries.items() if n == name]
            if matches:
                return matches[-1]
        elif (name, version) in entries:
            return entries[(name, version)]
        raise NotFoundError(kind, name, version)


class RecordingAdapter(BaseDeploymentAdapter):
    """Adapter for an extension platform that records every call."""

    def __init__(
        self,
        key: str = "acme",
        resource_types: list[str] | None = None,
        discovered: list[Deployment] | None = None,
    ) -> None:
        self.key = key
        self.resource_types = resource_types or ["mcp", "agent"]
        self.discovered = discovered or []
        self.deployed: list[Deployment] = []
        self.undeployed: list[Deployment] = []
        self.discover_error: Exception | None = None
        self.deploy_error: Exception | None = None

    def platform(self) -> str:
        return self.key

    def supported_resource_types(self) -> list[str]:
        return self.resource_types

    def deploy(
        self,
        deployment: Deployment,
        cancel_event: threading.Event | None = None,
    ) -> Deployment:
        if self.deploy_error is not None:
            raise self.deploy_error
        self.deployed.append(deployment)
        return deployment.model_copy(update={"status": DeploymentStatus.DEPLOYED})

    def undeploy(
        self,
        deployment: Deployment,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.undeployed.append(deployment)

    def discover(self, provider_id: str) -> list[Deployment]:
        if self.discover_error is not None:
            raise self.discover_error
        return [d for d in self.discovered if d.provider_id == provider_id]


def build_server(
    name: str = "io.example/echo",
    version: str = "1.0.0",
    packages: list[ServerPackage] | None = None,
    remotes: list[RemoteConfig] | None = None,
) -> CatalogServer:
    """Build a catalog server; defaults to one stdio npm package."""
    if packages is None and remotes is None:
        packages = [
            ServerPackage(
                registry_type="npm",
                identifier="@example/echo-mcp",
                version=version,
                transport=TransportConfig(type="stdio"),
            )
        ]
    return CatalogServer(
        name=name,
        version=version,
        packages=packages or [],
        remotes=remotes or [],
    )


def build_agent(
    name: str = "io.example/planner",
    version: str = "1.0.0",
    image: str | None = "ghcr.io/example/planner:1.0.0",
    mcp_servers: list[ManifestMCPServer] | None = None,
    port: int = 8080,
    remotes: list[RemoteConfig] | None = None,
) -> CatalogAgent:
    """Build a catalog agent with a minimal manifest."""
    return CatalogAgent(
        name=name,
        version=version,
        manifest=AgentManifest(
            name=name,
            image=image,
            model_provider="openai",
            model_name="gpt-4o-mini",
            port=port,
            mcp_servers=mcp_servers or [],
        ),
        remotes=remotes or [],
    )


def registry_ref(
    server_name: str, version: str | None = None, prefer_remote: bool = False
) -> ManifestMCPServer:
    """Build a manifest reference to a catalog server."""
    return ManifestMCPServer(
        type="registry",
        name=server_name.rsplit("/", 1)[-1],
        registry_server_name=server_name,
        registry_server_version=version,
        registry_server_prefer_remote=prefer_remote,
    )


@pytest.fixture
def make_server() -> Callable[..., CatalogServer]:
    """Factory for catalog servers."""
    return build_server


@pytest.fixture
def make_agent() -> Callable[..., CatalogAgent]:
    """Factory for catalog agents."""
    return build_agent


@pytest.fixture
def make_ref() -> Callable[..., ManifestMCPServer]:
    """Factory for manifest registry references."""
    return registry_ref


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Empty in-memory catalog."""
    return InMemoryCatalog()


@pytest.fixture
def settings(tmp_path: Path) -> RuntimeSettings:
    """Runtime settings rooted in a temporary runtime directory."""
    return RuntimeSettings(runtime_dir=tmp_path / "runtime", compose_timeout=5)


@pytest.fixture
def store(tmp_path: Path) -> JsonRecordStore:
    """Record store persisted under the test's temporary directory."""
    return JsonRecordStore(tmp_path / "records.json")


@pytest.fixture
def local_runtime() -> MagicMock:
    """Local apply backend that never touches Docker."""
    return MagicMock(spec=LocalRuntime)


@pytest.fixture
def kube_client() -> MagicMock:
    """Cluster apply backend that never touches a cluster."""
    client = MagicMock(spec=KubernetesClient)
    client.list_resources.return_value = []
    return client


@pytest.fixture
def unreachable_kube_client() -> KubernetesClient:
    """Cluster client whose API server refuses every connection."""
    configuration = client.Configuration()
    configuration.host = "http://127.0.0.1:1"
    configuration.retries = 0
    return KubernetesClient(
        api=client.CustomObjectsApi(client.ApiClient(configuration))
    )


@pytest.fixture
def service(
    store: JsonRecordStore,
    catalog: InMemoryCatalog,
    settings: RuntimeSettings,
    local_runtime: MagicMock,
    kube_client: MagicMock,
) -> DeploymentService:
    """Deployment service wired with mocked platform backends."""
    return create_deployment_service(
        store,
        catalog,
        settings,
        local_runtime=local_runtime,
        kube_client=kube_client,
    )


@pytest.fixture
def acme_adapter() -> RecordingAdapter:
    """Recording adapter for the ``acme`` platform."""
    return RecordingAdapter()


@pytest.fixture
def acme_service(
    store: JsonRecordStore,
    catalog: InMemoryCatalog,
    settings: RuntimeSettings,
    local_runtime: MagicMock,
    kube_client: MagicMock,
    acme_adapter: RecordingAdapter,
) -> DeploymentService:
    """Deployment service with the ``acme`` adapter and an ``acme-1`` provider."""
    store.create_provider(Provider(id="acme-1", name="Acme", platform="acme"))
    return create_deployment_service(
        store,
        catalog,
        settings,
        extra_adapters=[acme_adapter],
        local_runtime=local_runtime,
        kube_client=kube_client,
    )


@pytest.fixture
def make_adapter() -> type[RecordingAdapter]:
    """Recording adapter class, for tests that need custom keys or types."""
    return RecordingAdapter


@pytest.fixture
def kube_provider(store: JsonRecordStore) -> Provider:
    """Kubernetes provider registered in the store."""
    return store.create_provider(
        Provider(
            id="kubernetes-default",
            name="Kubernetes",
            platform="kubernetes",
            config={"namespace": "kagent"},
        )
    )
