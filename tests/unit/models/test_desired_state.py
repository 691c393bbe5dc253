"""Tests for desired-state and gateway models."""

import pytest
from pydantic import ValidationError

from aregistry.models.desired_state import (
    ContainerDeployment,
    LocalMCPServer,
    MCPServer,
    RemoteEndpoint,
    ResourceKind,
    TransportType,
)
from aregistry.models.gateway import (
    Bind,
    GatewayConfig,
    Listener,
    PathMatch,
    Route,
    RouteMatch,
)


def _local() -> LocalMCPServer:
    return LocalMCPServer(
        deployment=ContainerDeployment(image="node:24-alpine3.21", cmd="npx"),
        transport_type=TransportType.STDIO,
    )


class TestDescriptorVariants:
    """Tests that exactly one variant is populated."""

    def test_local_server(self) -> None:
        """Test a local server with only a local variant is valid."""
        server = MCPServer(name="echo", resource_type=ResourceKind.LOCAL, local=_local())
        assert server.remote is None

    def test_remote_server(self) -> None:
        """Test a remote server with only a remote variant is valid."""
        server = MCPServer(
            name="echo",
            resource_type=ResourceKind.REMOTE,
            remote=RemoteEndpoint(host="mcp.example.com", port=443),
        )
        assert server.local is None

    def test_local_without_variant_rejected(self) -> None:
        """Test a local server needs its local variant."""
        with pytest.raises(ValidationError, match="local resources"):
            MCPServer(name="echo", resource_type=ResourceKind.LOCAL)

    def test_both_variants_rejected(self) -> None:
        """Test a server cannot be both remote and local."""
        with pytest.raises(ValidationError, match="remote resources"):
            MCPServer(
                name="echo",
                resource_type=ResourceKind.REMOTE,
                remote=RemoteEndpoint(host="mcp.example.com", port=443),
                local=_local(),
            )


class TestGatewayConfig:
    """Tests for gateway config serialization."""

    def test_document_uses_aliases_and_drops_none(self) -> None:
        """Test camelCase aliases are used and unset fields omitted."""
        config = GatewayConfig(
            binds=[
                Bind(
                    port=21212,
                    listeners=[
                        Listener(
                            routes=[
                                Route(
                                    name="mcp_route",
                                    matches=[
                                        RouteMatch(path=PathMatch(path_prefix="/mcp"))
                                    ],
                                )
                            ]
                        )
                    ],
                )
            ]
        )

        document = config.to_document()

        route = document["binds"][0]["listeners"][0]["routes"][0]
        assert route["matches"][0]["path"] == {"pathPrefix": "/mcp"}
        assert "policies" not in route
        assert [r.name for r in config.routes()] == ["mcp_route"]
