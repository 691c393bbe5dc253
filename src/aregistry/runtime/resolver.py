"""Resolve deployment records into run requests.

An ``mcp`` deployment becomes one ``MCPServerRunRequest``. An ``agent``
deployment becomes an ``AgentRunRequest`` whose manifest ``registry``
server references are themselves resolved into server run requests.
"""

from __future__ import annotations

import logging

from aregistry.lib.errors import InvalidInputError
from aregistry.models.catalog import AgentManifest
from aregistry.models.deployment import (
    NAMESPACE_CONFIG_KEY,
    Deployment,
    ResourceType,
)
from aregistry.models.run_request import (
    AgentRunRequest,
    MCPServerRunRequest,
    RunRequest,
)
from aregistry.store.base import Catalog

logger = logging.getLogger(__name__)


class RunRequestResolver:
    """Turns deployments into run requests using catalog lookups.

    Resolution is a pure read: nothing is written to the catalog or the
    record store.
    """

    def __init__(self, catalog: Catalog) -> None:
        """Create a resolver reading from ``catalog``."""
        self.catalog = catalog

    def resolve(self, deployment: Deployment) -> RunRequest:
        """Resolve one deployment into a run request.

        Args:
            deployment: Persisted deployment record

        Returns:
            MCPServerRunRequest or AgentRunRequest (with resolved servers)

        Raises:
            NotFoundError: If the catalog entry (or a referenced server) is missing
            InvalidInputError: If the resource type is unknown
        """
        if deployment.resource_type == ResourceType.MCP:
            return self.resolve_server(deployment)
        if deployment.resource_type == ResourceType.AGENT:
            return self.resolve_agent(deployment)
        raise InvalidInputError(
            f"invalid resource type {deployment.resource_type!r} "
            f"for deployment {deployment.id}"
        )

    def resolve_server(self, deployment: Deployment) -> MCPServerRunRequest:
        """Resolve an ``mcp`` deployment at its exact name and version."""
        server = self.catalog.get_server(deployment.resource_name, deployment.version)
        env_values, arg_values, header_values = deployment.split_config()
        return MCPServerRunRequest(
            server=server,
            prefer_remote=deployment.prefer_remote,
            env_values=env_values,
            arg_values=arg_values,
            header_values=header_values,
            deployment_id=deployment.id,
        )

    def resolve_agent(self, deployment: Deployment) -> AgentRunRequest:
        """Resolve an ``agent`` deployment and the servers its manifest references."""
        agent = self.catalog.get_agent(deployment.resource_name, deployment.version)
        request = AgentRunRequest(
            agent=agent,
            env_values=dict(deployment.config),
            deployment_id=deployment.id,
        )
        request.resolved_servers = self.resolve_manifest_servers(
            agent.manifest,
            namespace=request.env_values.get(NAMESPACE_CONFIG_KEY),
            visited={(agent.name, agent.version)},
        )
        if request.resolved_servers:
            logger.debug(
                f"Resolved {len(request.resolved_servers)} registry MCP server(s) "
                f"for agent {agent.name}"
            )
        return request

    def resolve_manifest_servers(
        self,
        manifest: AgentManifest,
        namespace: str | None = None,
        visited: set[tuple[str, str]] | None = None,
    ) -> list[MCPServerRunRequest]:
        """Resolve ``registry`` server references from an agent manifest.

        Servers baked into the agent image (``remote``/``command``) are left
        alone. Each reference is resolved at its declared version, or
        ``latest``.

        Args:
            manifest: Agent manifest to walk
            namespace: Execution scope propagated to every resolved server
            visited: (name, version) pairs already resolved in this walk

        Returns:
            Server run requests, one per distinct catalog reference
        """
        seen = visited if visited is not None else set()

        resolved: list[MCPServerRunRequest] = []
        for ref in manifest.mcp_servers:
            if ref.type != "registry":
                continue
            if not ref.registry_server_name:
                raise InvalidInputError(
                    f"agent {manifest.name}: registry MCP server '{ref.name}' "
                    "has no registry server name"
                )

            version = ref.registry_server_version or "latest"
            key = (ref.registry_server_name, version)
            if key in seen:
                logger.debug(
                    f"Skipping already resolved MCP server {key[0]} v{key[1]}"
                )
                continue
            seen.add(key)

            server = self.catalog.get_server(ref.registry_server_name, version)
            env_values: dict[str, str] = {}
            if namespace:
                env_values[NAMESPACE_CONFIG_KEY] = namespace
            resolved.append(
                MCPServerRunRequest(
                    server=server,
                    prefer_remote=ref.registry_server_prefer_remote,
                    env_values=env_values,
                )
            )
        return resolved
