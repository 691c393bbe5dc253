"""Agent gateway routing-policy models.

Serialized with ``model_dump(by_alias=True, exclude_none=True)`` into the
gateway's YAML configuration file.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _GatewayModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class StdioTarget(_GatewayModel):
    """MCP target launched in-process by the gateway."""

    cmd: str
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)


class SSETarget(_GatewayModel):
    """MCP target reached over HTTP/SSE."""

    host: str
    port: int
    path: str = ""


class MCPTarget(_GatewayModel):
    """One server aggregated behind the MCP route."""

    name: str
    stdio: StdioTarget | None = None
    sse: SSETarget | None = None


class MCPBackend(_GatewayModel):
    targets: list[MCPTarget] = Field(default_factory=list)


class RouteBackend(_GatewayModel):
    weight: int = 100
    host: str | None = None
    mcp: MCPBackend | None = None


class PathMatch(_GatewayModel):
    path_prefix: str = Field(..., alias="pathPrefix")


class RouteMatch(_GatewayModel):
    path: PathMatch


class PathRewrite(_GatewayModel):
    prefix: str = ""


class URLRewrite(_GatewayModel):
    path: PathRewrite | None = None


class AgentProtocolPolicy(_GatewayModel):
    """Marks a route as speaking the agent-to-agent protocol."""


class RoutePolicies(_GatewayModel):
    url_rewrite: URLRewrite | None = Field(None, alias="urlRewrite")
    a2a: AgentProtocolPolicy | None = None


class Route(_GatewayModel):
    name: str
    matches: list[RouteMatch] = Field(default_factory=list)
    backends: list[RouteBackend] = Field(default_factory=list)
    policies: RoutePolicies | None = None


class Listener(_GatewayModel):
    name: str = "default"
    protocol: str = "HTTP"
    routes: list[Route] = Field(default_factory=list)


class Bind(_GatewayModel):
    port: int
    listeners: list[Listener] = Field(default_factory=list)


class GatewayConfig(_GatewayModel):
    """Top-level gateway configuration document."""

    config: dict[str, Any] = Field(default_factory=dict)
    binds: list[Bind] = Field(default_factory=list)

    def routes(self) -> list[Route]:
        """Return every route across binds and listeners, in order."""
        return [
            route
            for bind in self.binds
            for listener in bind.listeners
            for route in listener.routes
        ]

    def to_document(self) -> dict[str, Any]:
        """Return the plain-data document written to disk."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
