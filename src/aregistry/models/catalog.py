"""Catalog data models for MCP servers and agents.

These models describe the published catalog entries a deployment refers to.
Server entries follow the MCP registry ``server.json`` shape (packages and
remotes); agent entries wrap an agent manifest.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from aregistry.config.defaults import DEFAULT_AGENT_PORT


class EnvVarConfig(BaseModel):
    """Environment variable declared by a package.

    Describes an environment variable that an MCP server requires
    for configuration (e.g., API keys, credentials).
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Environment variable name")
    description: str | None = Field(None, description="Description of the variable")
    required: bool = Field(True, description="Whether the variable is required")
    default: str | None = Field(None, description="Default value")


class ArgumentConfig(BaseModel):
    """Runtime or package argument declared by a package.

    Positional arguments contribute ``value``; named arguments contribute
    ``name value`` (or ``name=value`` when the name ends with ``=``).
    """

    model_config = ConfigDict(extra="forbid")

    type: Literal["positional", "named"] = Field(
        "positional", description="Argument kind"
    )
    name: str | None = Field(None, description="Flag name for named arguments")
    value: str | None = Field(None, description="Argument value")
    value_hint: str | None = Field(
        None, description="Override key for positional arguments"
    )


class TransportConfig(BaseModel):
    """Transport configuration for MCP server communication.

    Defines how to connect to an MCP server, supporting stdio (local process),
    SSE (server-sent events), or streamable HTTP transports.
    """

    model_config = ConfigDict(extra="forbid")

    type: Literal["stdio", "sse", "streamable-http"] = Field(
        ..., description="Transport protocol type"
    )
    url: str | None = Field(
        None, description="Server URL for HTTP-based transports (sse, streamable-http)"
    )


class ServerPackage(BaseModel):
    """Package distribution information for a catalog server.

    Describes how to install and run an MCP server, including the package
    manager, package identifier, and required environment variables.
    """

    model_config = ConfigDict(extra="forbid")

    registry_type: Literal["npm", "pypi", "docker", "oci", "nuget", "mcpb"] = Field(
        ..., description="Package registry type (npm, pypi, docker, etc.)"
    )
    identifier: str = Field(
        ..., description="Package identifier (e.g., '@modelcontextprotocol/server-fs')"
    )
    version: str | None = Field(None, description="Package version")
    runtime_hint: str | None = Field(
        None, description="Interpreter command used to launch the package (npx, uvx)"
    )
    transport: TransportConfig = Field(..., description="Transport configuration")
    runtime_arguments: list[ArgumentConfig] = Field(default_factory=list)
    package_arguments: list[ArgumentConfig] = Field(default_factory=list)
    environment_variables: list[EnvVarConfig] = Field(
        default_factory=list, description="Declared environment variables"
    )


class HeaderConfig(BaseModel):
    """HTTP header sent to a remote endpoint."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Header name")
    value: str | None = Field(None, description="Default header value")
    required: bool = Field(False, description="Whether the header is required")


class RemoteConfig(BaseModel):
    """Remote endpoint where a catalog resource is already hosted."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["sse", "streamable-http"] = Field(
        "streamable-http", description="Remote transport type"
    )
    url: str = Field(..., description="Endpoint URL")
    headers: list[HeaderConfig] = Field(default_factory=list)


class CatalogServer(BaseModel):
    """Published MCP server entry.

    Contains everything needed to decide between a remote endpoint and a
    locally run package.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        ...,
        description="Server name in reverse-DNS format (e.g., 'io.github.user/server')",
    )
    description: str = Field("", description="Human-readable server description")
    title: str | None = Field(None, description="Display title for the server")
    version: str = Field(..., description="Server version")
    website_url: str | None = Field(None, description="Project website URL")
    packages: list[ServerPackage] = Field(
        default_factory=list, description="Available package distributions"
    )
    remotes: list[RemoteConfig] = Field(
        default_factory=list, description="Hosted remote endpoints"
    )


class ManifestMCPServer(BaseModel):
    """MCP server reference declared in an agent manifest.

    ``registry`` references are resolved against the catalog at deploy time;
    ``remote`` and ``command`` servers are baked into the agent's own image.
    """

    model_config = ConfigDict(extra="forbid")

    type: Literal["remote", "command", "registry"] = Field(
        ..., description="Reference kind"
    )
    name: str = Field(..., description="Local name of the server in the agent")
    image: str | None = None
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: list[str] = Field(default_factory=list)
    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    registry_url: str | None = None
    registry_server_name: str | None = None
    registry_server_version: str | None = None
    registry_server_prefer_remote: bool = False


class SkillRef(BaseModel):
    """Skill reference declared in an agent manifest."""

    model_config = ConfigDict(extra="forbid")

    name: str
    image: str | None = None
    registry_url: str | None = None
    registry_skill_name: str | None = None
    registry_skill_version: str | None = None


class AgentManifest(BaseModel):
    """Agent project configuration and metadata."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Agent name")
    image: str | None = Field(None, description="Container image for the agent")
    language: str = Field("python", description="Implementation language")
    framework: str = Field("adk", description="Agent framework")
    model_provider: str | None = None
    model_name: str | None = None
    description: str = ""
    port: int = Field(
        DEFAULT_AGENT_PORT, ge=1, le=65535, description="HTTP port the agent serves"
    )
    telemetry_endpoint: str | None = None
    mcp_servers: list[ManifestMCPServer] = Field(default_factory=list)
    skills: list[SkillRef] = Field(default_factory=list)


class CatalogAgent(BaseModel):
    """Published agent entry."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Agent name")
    version: str = Field(..., description="Agent version")
    description: str = ""
    manifest: AgentManifest
    remotes: list[RemoteConfig] = Field(
        default_factory=list, description="Hosted remote endpoints"
    )
