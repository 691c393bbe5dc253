"""Run requests: resolved, override-applied translation inputs.

Run requests are rebuilt from deployment records and catalog lookups on every
reconciliation pass and are never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from aregistry.models.catalog import CatalogAgent, CatalogServer


@dataclass
class MCPServerRunRequest:
    """Request to run one catalog MCP server.

    Attributes:
        server: Catalog server entry
        prefer_remote: Use a remote endpoint when the server has one
        env_values: Environment overrides
        arg_values: Argument overrides, keyed by argument name
        header_values: Header overrides for remote endpoints
        deployment_id: Deployment row this request came from, if any
    """

    server: CatalogServer
    prefer_remote: bool = False
    env_values: dict[str, str] = field(default_factory=dict)
    arg_values: dict[str, str] = field(default_factory=dict)
    header_values: dict[str, str] = field(default_factory=dict)
    deployment_id: str | None = None


@dataclass
class AgentRunRequest:
    """Request to run one catalog agent.

    Attributes:
        agent: Catalog agent entry
        env_values: Environment overrides
        resolved_servers: Catalog servers resolved from the agent manifest
        deployment_id: Deployment row this request came from, if any
    """

    agent: CatalogAgent
    env_values: dict[str, str] = field(default_factory=dict)
    resolved_servers: list[MCPServerRunRequest] = field(default_factory=list)
    deployment_id: str | None = None


RunRequest = MCPServerRunRequest | AgentRunRequest
