"""Cluster platform translator: desired state to kagent custom resources."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from aregistry.config.defaults import DEFAULT_MCP_HTTP_PATH, MANAGED_LABEL
from aregistry.config.loader import RuntimeSettings
from aregistry.lib.errors import DuplicateResourceError, TranslationError
from aregistry.models.desired_state import (
    Agent,
    DesiredState,
    MCPServer,
    RemoteEndpoint,
    TransportType,
)

logger = logging.getLogger(__name__)

KAGENT_GROUP = "kagent.dev"
VERSION_ANNOTATION = "aregistry.ai/version"


class CustomResourceKind(NamedTuple):
    """Coordinates of a custom resource type in the cluster API."""

    kind: str
    version: str
    plural: str
    group: str = KAGENT_GROUP

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"


AGENT_KIND = CustomResourceKind("Agent", "v1alpha2", "agents")
MCP_SERVER_KIND = CustomResourceKind("MCPServer", "v1alpha1", "mcpservers")
REMOTE_MCP_SERVER_KIND = CustomResourceKind(
    "RemoteMCPServer", "v1alpha2", "remotemcpservers"
)

# Kinds a single MCP server may be materialized as
MCP_SERVER_KINDS = (MCP_SERVER_KIND, REMOTE_MCP_SERVER_KIND)


@dataclass
class KubernetesRuntimeConfig:
    """Custom resource documents for the cluster platform."""

    resources: list[dict[str, Any]] = field(default_factory=list)

    def by_kind(self, kind: CustomResourceKind) -> list[dict[str, Any]]:
        """Return the resources of one kind."""
        return [r for r in self.resources if r["kind"] == kind.kind]


def _remote_url(remote: RemoteEndpoint) -> str:
    default_port = 443 if remote.scheme == "https" else 80
    netloc = remote.host if remote.port == default_port else f"{remote.host}:{remote.port}"
    return f"{remote.scheme}://{netloc}{remote.path}"


class KubernetesTranslator:
    """Builds kagent custom resources from a desired state.

    Each local MCP server becomes an ``MCPServer``, each remote one a
    ``RemoteMCPServer`` and each local agent a BYO ``Agent``. Every object
    carries the managed label so discovery can tell it apart from resources
    created outside the registry.
    """

    def __init__(self, settings: RuntimeSettings) -> None:
        """Create a translator for the given runtime settings."""
        self.settings = settings

    def namespace_for(self, namespace: str | None) -> str:
        """Return the namespace to use, falling back to the default."""
        return namespace or self.settings.default_namespace

    def translate(self, desired: DesiredState) -> KubernetesRuntimeConfig:
        """Translate a desired state into custom resource documents.

        Raises:
            DuplicateResourceError: If two servers or two agents share a name
                within one namespace
            TranslationError: If a local resource lacks an image or port
        """
        resources: dict[tuple[str, str, str], dict[str, Any]] = {}

        for server in desired.mcp_servers:
            document = self._mcp_server(server)
            key = ("MCPServer", document["metadata"]["namespace"], server.name)
            if key in resources:
                raise DuplicateResourceError("MCPServer", server.name)
            resources[key] = document

        for agent in desired.agents:
            if agent.remote is not None:
                logger.debug(f"Agent {agent.name} is remote; nothing to apply")
                continue
            document = self._agent(agent)
            key = ("Agent", document["metadata"]["namespace"], agent.name)
            if key in resources:
                raise DuplicateResourceError("Agent", agent.name)
            resources[key] = document

        return KubernetesRuntimeConfig(
            resources=[resources[key] for key in sorted(resources)]
        )

    def _metadata(
        self, name: str, namespace: str | None, version: str | None = None
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "name": name,
            "namespace": self.namespace_for(namespace),
            "labels": {
                MANAGED_LABEL: "true",
                "app.kubernetes.io/managed-by": "aregistry",
            },
        }
        if version:
            metadata["annotations"] = {VERSION_ANNOTATION: version}
        return metadata

    def _mcp_server(self, server: MCPServer) -> dict[str, Any]:
        if server.remote is not None:
            spec: dict[str, Any] = {
                "description": "",
                "protocol": "STREAMABLE_HTTP",
                "url": _remote_url(server.remote),
            }
            if server.remote.headers:
                spec["headersFrom"] = [
                    {"name": key, "value": value}
                    for key, value in sorted(server.remote.headers.items())
                ]
            return {
                "apiVersion": REMOTE_MCP_SERVER_KIND.api_version,
                "kind": REMOTE_MCP_SERVER_KIND.kind,
                "metadata": self._metadata(server.name, server.namespace),
                "spec": spec,
            }

        local = server.local
        if local is None:
            raise TranslationError(server.name, "local resource has no deployment")
        deployment = local.deployment
        if not deployment.image:
            raise TranslationError(server.name, "image must be specified for MCPServer")

        container: dict[str, Any] = {"image": deployment.image}
        if deployment.cmd:
            container["cmd"] = deployment.cmd
        if deployment.args:
            container["args"] = list(deployment.args)
        if deployment.env:
            container["env"] = dict(sorted(deployment.env.items()))

        spec = {"deployment": container}
        if local.transport_type == TransportType.STDIO:
            spec["transportType"] = "stdio"
            spec["stdioTransport"] = {}
        else:
            if local.http is None or local.http.port == 0:
                raise TranslationError(
                    server.name, "HTTP transport requires a target port"
                )
            container["port"] = local.http.port
            spec["transportType"] = "http"
            spec["httpTransport"] = {
                "targetPort": local.http.port,
                "path": local.http.path or DEFAULT_MCP_HTTP_PATH,
            }

        return {
            "apiVersion": MCP_SERVER_KIND.api_version,
            "kind": MCP_SERVER_KIND.kind,
            "metadata": self._metadata(server.name, server.namespace),
            "spec": spec,
        }

    def _agent(self, agent: Agent) -> dict[str, Any]:
        local = agent.local
        if local is None:
            raise TranslationError(agent.name, "local resource has no deployment")
        deployment = local.deployment
        if not deployment.image:
            raise TranslationError(agent.name, "image must be specified for Agent")

        container: dict[str, Any] = {
            "image": deployment.image,
            "env": [
                {"name": key, "value": value}
                for key, value in sorted(deployment.env.items())
            ],
        }
        if deployment.cmd:
            container["cmd"] = deployment.cmd
        if deployment.args:
            container["args"] = list(deployment.args)

        return {
            "apiVersion": AGENT_KIND.api_version,
            "kind": AGENT_KIND.kind,
            "metadata": self._metadata(agent.name, agent.namespace, agent.version),
            "spec": {
                "type": "BYO",
                "description": "",
                "byo": {"deployment": container},
            },
        }
