"""Tests for resolving deployments into run requests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from aregistry.lib.errors import InvalidInputError, NotFoundError
from aregistry.models.catalog import ManifestMCPServer
from aregistry.models.deployment import Deployment, ResourceType
from aregistry.models.run_request import AgentRunRequest, MCPServerRunRequest
from aregistry.runtime.resolver import RunRequestResolver


class TestResolveServer:
    """Tests for mcp deployments."""

    def test_splits_config_into_overrides(
        self, catalog: Any, make_server: Callable[..., Any]
    ) -> None:
        """Test env, argument and header overrides are separated."""
        catalog.add_server(make_server())
        deployment = Deployment(
            resource_name="io.example/echo",
            version="1.0.0",
            prefer_remote=True,
            config={"API_KEY": "k", "ARG_port": "9000", "HEADER_X-Team": "core"},
        )

        request = RunRequestResolver(catalog).resolve(deployment)

        assert isinstance(request, MCPServerRunRequest)
        assert request.prefer_remote is True
        assert request.env_values == {"API_KEY": "k"}
        assert request.arg_values == {"port": "9000"}
        assert request.header_values == {"X-Team": "core"}
        assert request.deployment_id == deployment.id

    def test_missing_server_raises(self, catalog: Any) -> None:
        """Test a missing catalog entry raises NotFoundError."""
        deployment = Deployment(resource_name="io.example/missing", version="1.0.0")

        with pytest.raises(NotFoundError):
            RunRequestResolver(catalog).resolve(deployment)


class TestResolveAgent:
    """Tests for agent deployments and manifest fan-out."""

    def test_resolves_registry_references(
        self,
        catalog: Any,
        make_server: Callable[..., Any],
        make_agent: Callable[..., Any],
        make_ref: Callable[..., Any],
    ) -> None:
        """Test registry references become server run requests."""
        catalog.add_server(make_server("io.example/echo", "1.0.0"))
        catalog.add_server(make_server("io.example/weather", "2.0.0"))
        catalog.add_agent(
            make_agent(
                mcp_servers=[
                    make_ref("io.example/echo", "1.0.0"),
                    make_ref("io.example/weather", prefer_remote=True),
                    ManifestMCPServer(type="command", name="fs", command="npx"),
                ]
            )
        )
        deployment = Deployment(
            resource_name="io.example/planner",
            version="1.0.0",
            resource_type=ResourceType.AGENT,
            config={"OPENAI_API_KEY": "sk"},
        )

        request = RunRequestResolver(catalog).resolve(deployment)

        assert isinstance(request, AgentRunRequest)
        assert request.env_values == {"OPENAI_API_KEY": "sk"}
        names = [r.server.name for r in request.resolved_servers]
        assert names == ["io.example/echo", "io.example/weather"]
        assert request.resolved_servers[0].server.version == "1.0.0"
        assert request.resolved_servers[1].prefer_remote is True

    def test_namespace_propagates_to_servers(
        self,
        catalog: Any,
        make_server: Callable[..., Any],
        make_agent: Callable[..., Any],
        make_ref: Callable[..., Any],
    ) -> None:
        """Test the agent's namespace is copied onto resolved servers."""
        catalog.add_server(make_server())
        catalog.add_agent(make_agent(mcp_servers=[make_ref("io.example/echo")]))
        deployment = Deployment(
            resource_name="io.example/planner",
            version="1.0.0",
            resource_type=ResourceType.AGENT,
            config={"KAGENT_NAMESPACE": "team-a"},
        )

        request = RunRequestResolver(catalog).resolve(deployment)

        assert isinstance(request, AgentRunRequest)
        assert request.resolved_servers[0].env_values == {"KAGENT_NAMESPACE": "team-a"}

    def test_duplicate_references_resolved_once(
        self,
        catalog: Any,
        make_server: Callable[..., Any],
        make_agent: Callable[..., Any],
        make_ref: Callable[..., Any],
    ) -> None:
        """Test the same server and version referenced twice is resolved once."""
        catalog.add_server(make_server())
        catalog.add_agent(
            make_agent(
                mcp_servers=[
                    make_ref("io.example/echo", "1.0.0"),
                    make_ref("io.example/echo", "1.0.0"),
                ]
            )
        )
        deployment = Deployment(
            resource_name="io.example/planner",
            version="1.0.0",
            resource_type=ResourceType.AGENT,
        )

        request = RunRequestResolver(catalog).resolve(deployment)

        assert isinstance(request, AgentRunRequest)
        assert len(request.resolved_servers) == 1

    def test_reference_without_server_name_rejected(
        self, catalog: Any, make_agent: Callable[..., Any]
    ) -> None:
        """Test a registry reference must name its server."""
        catalog.add_agent(
            make_agent(mcp_servers=[ManifestMCPServer(type="registry", name="echo")])
        )
        deployment = Deployment(
            resource_name="io.example/planner",
            version="1.0.0",
            resource_type=ResourceType.AGENT,
        )

        with pytest.raises(InvalidInputError, match="no registry server name"):
            RunRequestResolver(catalog).resolve(deployment)

    def test_missing_referenced_server_raises(
        self,
        catalog: Any,
        make_agent: Callable[..., Any],
        make_ref: Callable[..., Any],
    ) -> None:
        """Test a reference to an unpublished server fails resolution."""
        catalog.add_agent(make_agent(mcp_servers=[make_ref("io.example/ghost", "1.0")]))
        deployment = Deployment(
            resource_name="io.example/planner",
            version="1.0.0",
            resource_type=ResourceType.AGENT,
        )

        with pytest.raises(NotFoundError) as exc_info:
            RunRequestResolver(catalog).resolve(deployment)
        assert exc_info.value.name == "io.example/ghost"

