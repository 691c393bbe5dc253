"""Platform-neutral desired state.

The desired state is the abstract description of what should be running,
derived fresh from persisted deployments on every reconciliation pass. Each
server or agent descriptor is either ``remote`` (route to an existing
endpoint) or ``local`` (run a container).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ResourceKind(str, Enum):
    """Where a resource runs."""

    REMOTE = "remote"
    LOCAL = "local"


class TransportType(str, Enum):
    """How the gateway talks to a local MCP server."""

    STDIO = "stdio"
    HTTP = "http"


class HTTPTransport(BaseModel):
    """HTTP transport parameters for a local resource."""

    model_config = ConfigDict(extra="forbid")

    port: int = Field(0, ge=0, le=65535, description="Container port (0 = unset)")
    path: str = Field("", description="HTTP path served by the resource")


class RemoteEndpoint(BaseModel):
    """Connection details for a remotely hosted resource."""

    model_config = ConfigDict(extra="forbid")

    host: str
    port: int = Field(..., ge=1, le=65535)
    path: str = ""
    scheme: str = "https"
    headers: dict[str, str] = Field(default_factory=dict)


class ContainerDeployment(BaseModel):
    """How to run a resource as a container."""

    model_config = ConfigDict(extra="forbid")

    image: str = Field("", description="Container image")
    cmd: str = Field("", description="Command to run")
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)


class LocalMCPServer(BaseModel):
    """Local MCP server: a container plus its transport."""

    model_config = ConfigDict(extra="forbid")

    deployment: ContainerDeployment
    transport_type: TransportType
    http: HTTPTransport | None = None


class LocalAgent(BaseModel):
    """Local agent: a container reachable over HTTP."""

    model_config = ConfigDict(extra="forbid")

    deployment: ContainerDeployment
    http: HTTPTransport | None = None


class _Descriptor(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Unique resource name")
    resource_type: ResourceKind
    remote: RemoteEndpoint | None = None
    namespace: str | None = Field(
        None, description="Execution scope requested by the run request"
    )

    @model_validator(mode="after")
    def validate_variant(self) -> _Descriptor:
        """Ensure exactly the variant matching resource_type is populated."""
        local = getattr(self, "local", None)
        if self.resource_type == ResourceKind.REMOTE:
            if self.remote is None or local is not None:
                raise ValueError(f"{self.name}: remote resources need only 'remote'")
        elif local is None or self.remote is not None:
            raise ValueError(f"{self.name}: local resources need only 'local'")
        return self


class MCPServer(_Descriptor):
    """Desired MCP server."""

    local: LocalMCPServer | None = None


class Agent(_Descriptor):
    """Desired agent."""

    local: LocalAgent | None = None
    version: str = Field("", description="Catalog version of the agent")
    has_resolved_servers: bool = Field(
        False, description="Agent has a companion mcp-servers.json to mount"
    )


class DesiredState(BaseModel):
    """Desired set of MCP servers and agents for one platform group."""

    model_config = ConfigDict(extra="forbid")

    mcp_servers: list[MCPServer] = Field(default_factory=list)
    agents: list[Agent] = Field(default_factory=list)
