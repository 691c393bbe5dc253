"""Tests for the built-in Kubernetes adapter's discovery."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

from aregistry.deploy.adapters.kubernetes import (
    KubernetesDeploymentAdapter,
    discovered_deployment_id,
    is_managed,
)
from aregistry.deploy.service import DeploymentService
from aregistry.models.deployment import DeploymentOrigin, Provider, ResourceType
from aregistry.runtime.translation.kubernetes import (
    AGENT_KIND,
    MCP_SERVER_KIND,
    REMOTE_MCP_SERVER_KIND,
)


def _resource(name: str, managed: bool = False, version: str | None = None) -> dict:
    metadata: dict[str, Any] = {"name": name, "namespace": "kagent", "uid": f"uid-{name}"}
    if managed:
        metadata["labels"] = {"aregistry.ai/managed": "true"}
    if version:
        metadata["annotations"] = {"aregistry.ai/version": version}
    return {"metadata": metadata}


class TestHelpers:
    """Tests for discovery helpers."""

    def test_discovered_ids_are_stable(self) -> None:
        """Test the same resource always maps to the same id."""
        first = discovered_deployment_id("k8s", "Agent", "kagent", "planner")
        second = discovered_deployment_id("k8s", "Agent", "kagent", "planner")
        other = discovered_deployment_id("k8s", "Agent", "other", "planner")

        assert first == second
        assert first != other

    def test_is_managed(self) -> None:
        """Test only labelled resources count as managed."""
        assert is_managed(_resource("echo", managed=True))
        assert not is_managed(_resource("echo"))
        assert not is_managed({})


class TestDiscover:
    """Tests for discover()."""

    def _adapter(self, service: DeploymentService) -> KubernetesDeploymentAdapter:
        adapter = service.adapters.resolve("kubernetes")
        assert isinstance(adapter, KubernetesDeploymentAdapter)
        return adapter

    def test_reports_unmanaged_resources(
        self,
        service: DeploymentService,
        kube_client: MagicMock,
        kube_provider: Provider,
    ) -> None:
        """Test unmanaged agents and servers are reported as discovered."""

        def list_resources(kind: Any, namespace: str) -> list[dict]:
            assert namespace == "kagent"
            return {
                AGENT_KIND: [_resource("planner", version="3.1.0")],
                MCP_SERVER_KIND: [_resource("echo", managed=True)],
                REMOTE_MCP_SERVER_KIND: [_resource("search")],
            }[kind]

        kube_client.list_resources.side_effect = list_resources

        found = self._adapter(service).discover(kube_provider.id)

        assert [(d.resource_name, d.resource_type) for d in found] == [
            ("planner", ResourceType.AGENT),
            ("search", ResourceType.MCP),
        ]
        planner = found[0]
        assert planner.origin == DeploymentOrigin.DISCOVERED
        assert planner.version == "3.1.0"
        assert planner.provider_id == kube_provider.id
        assert planner.config == {"KAGENT_NAMESPACE": "kagent"}
        assert planner.cloud_metadata == {
            "kind": "Agent",
            "namespace": "kagent",
            "uid": "uid-planner",
        }
        assert found[1].version == "latest"

    def test_default_namespace(
        self,
        service: DeploymentService,
        store: Any,
        kube_client: MagicMock,
    ) -> None:
        """Test providers without a namespace use the default namespace."""
        store.create_provider(Provider(id="k8s-2", name="K8s", platform="kubernetes"))

        self._adapter(service).discover("k8s-2")

        namespaces = {c.args[1] for c in kube_client.list_resources.call_args_list}
        assert namespaces == {service.reconciler.settings.default_namespace}
