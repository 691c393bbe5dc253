"""Local platform translator: desired state to compose project and gateway config.

Every local resource except stdio MCP servers becomes a compose service next
to the agent gateway. The gateway aggregates all MCP servers behind one
``/mcp`` route and exposes each agent under ``/agent/{name}``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import yaml

from aregistry.config.defaults import (
    AGENT_CONFIG_MOUNT,
    AGENT_MCP_CONFIG_ENV,
    AGENT_MCP_SERVERS_FILE_NAME,
    DEFAULT_MCP_HTTP_PATH,
    GATEWAY_CONFIG_FILE_NAME,
    GATEWAY_CONFIG_MOUNT,
    GATEWAY_SERVICE_NAME,
)
from aregistry.config.loader import RuntimeSettings
from aregistry.lib.errors import DuplicateResourceError, TranslationError
from aregistry.lib.utils import agent_config_dir
from aregistry.models.desired_state import (
    Agent,
    ContainerDeployment,
    DesiredState,
    LocalAgent,
    LocalMCPServer,
    MCPServer,
    TransportType,
)
from aregistry.models.gateway import (
    AgentProtocolPolicy,
    Bind,
    GatewayConfig,
    Listener,
    MCPBackend,
    MCPTarget,
    PathMatch,
    PathRewrite,
    Route,
    RouteBackend,
    RouteMatch,
    RoutePolicies,
    SSETarget,
    StdioTarget,
    URLRewrite,
)

logger = logging.getLogger(__name__)

MCP_ROUTE_NAME = "mcp_route"
AGENT_ROUTE_PREFIX = "agent_route_"


def dump_yaml(document: dict[str, Any]) -> str:
    """Serialize a document deterministically."""
    return yaml.safe_dump(document, sort_keys=True, default_flow_style=False)


@dataclass
class LocalRuntimeConfig:
    """Artifacts for the local platform.

    Attributes:
        compose: Compose project document
        gateway: Gateway routing configuration
    """

    compose: dict[str, Any]
    gateway: GatewayConfig

    def compose_yaml(self) -> str:
        """Render the compose project file."""
        return dump_yaml(self.compose)

    def gateway_yaml(self) -> str:
        """Render the gateway configuration file."""
        return dump_yaml(self.gateway.to_document())


def _environment(env: dict[str, str]) -> list[str]:
    return sorted(f"{key}={value}" for key, value in env.items())


def _command(deployment: ContainerDeployment) -> list[str]:
    command = [deployment.cmd] if deployment.cmd else []
    return command + list(deployment.args)


def _check_unique(kind: str, names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise DuplicateResourceError(kind, name)
        seen.add(name)


class ComposeTranslator:
    """Builds the compose project and gateway config for the local platform.

    Output is a pure function of the desired state and settings: services
    and routes are ordered by name so identical input renders identical
    files.
    """

    def __init__(self, settings: RuntimeSettings) -> None:
        """Create a translator for the given runtime settings."""
        self.settings = settings

    def translate(self, desired: DesiredState) -> LocalRuntimeConfig:
        """Translate a desired state into local runtime artifacts.

        Raises:
            DuplicateResourceError: If two services would share a name
            TranslationError: If a local resource lacks an image or port
        """
        _check_unique("MCPServer", [server.name for server in desired.mcp_servers])
        _check_unique("Agent", [agent.name for agent in desired.agents])

        services: dict[str, dict[str, Any]] = {
            GATEWAY_SERVICE_NAME: self._gateway_service(),
        }

        for server in desired.mcp_servers:
            if server.local is None:
                continue
            if server.local.transport_type == TransportType.STDIO:
                continue
            if server.name in services:
                raise DuplicateResourceError("MCPServer", server.name)
            services[server.name] = self._server_service(server.name, server.local)

        for agent in desired.agents:
            if agent.local is None:
                continue
            if agent.name in services:
                raise DuplicateResourceError("Agent", agent.name)
            services[agent.name] = self._agent_service(agent, agent.local)

        compose = {
            "name": self.settings.project_name,
            "services": {name: services[name] for name in sorted(services)},
        }
        gateway = self._gateway_config(desired)
        return LocalRuntimeConfig(compose=compose, gateway=gateway)

    def _gateway_service(self) -> dict[str, Any]:
        port = self.settings.agent_gateway_port
        return {
            "image": self.settings.gateway_image,
            "command": ["-f", f"{GATEWAY_CONFIG_MOUNT}/{GATEWAY_CONFIG_FILE_NAME}"],
            "ports": [f"{port}:{port}"],
            "volumes": [
                {
                    "type": "bind",
                    "source": str(self.settings.runtime_dir),
                    "target": GATEWAY_CONFIG_MOUNT,
                }
            ],
        }

    def _server_service(self, name: str, local: LocalMCPServer) -> dict[str, Any]:
        deployment = local.deployment
        if not deployment.image:
            raise TranslationError(
                name,
                "image must be specified for MCPServer or the command must be "
                "'uvx' or 'npx'",
            )
        service: dict[str, Any] = {"image": deployment.image}
        command = _command(deployment)
        if command:
            service["command"] = command
        environment = _environment(deployment.env)
        if environment:
            service["environment"] = environment
        return service

    def _agent_service(self, agent: Agent, local: LocalAgent) -> dict[str, Any]:
        deployment = local.deployment
        if not deployment.image:
            raise TranslationError(agent.name, "image must be specified for Agent")
        if local.http is None or local.http.port == 0:
            raise TranslationError(agent.name, "HTTP transport requires a target port")

        port = local.http.port
        service: dict[str, Any] = {
            "image": deployment.image,
            "ports": [f"{port}:{port}"],
        }
        command = _command(deployment)
        if command:
            service["command"] = command

        env = dict(deployment.env)
        if agent.has_resolved_servers:
            # Side file is bind-mounted below; request env may still override
            env.setdefault(
                AGENT_MCP_CONFIG_ENV,
                f"{AGENT_CONFIG_MOUNT}/{AGENT_MCP_SERVERS_FILE_NAME}",
            )
        environment = _environment(env)
        if environment:
            service["environment"] = environment
        if agent.has_resolved_servers:
            source = agent_config_dir(
                self.settings.runtime_dir, agent.name, agent.version
            )
            service["volumes"] = [
                {"type": "bind", "source": str(source), "target": AGENT_CONFIG_MOUNT}
            ]
        return service

    def _mcp_target(self, server: MCPServer) -> MCPTarget:
        if server.remote is not None:
            return MCPTarget(
                name=server.name,
                sse=SSETarget(
                    host=server.remote.host,
                    port=server.remote.port,
                    path=server.remote.path,
                ),
            )

        local = server.local
        if local is None:
            raise TranslationError(server.name, "local resource has no deployment")
        if local.transport_type == TransportType.STDIO:
            deployment = local.deployment
            return MCPTarget(
                name=server.name,
                stdio=StdioTarget(
                    cmd=deployment.cmd,
                    args=list(deployment.args),
                    env=dict(sorted(deployment.env.items())),
                ),
            )

        http = local.http
        if http is None or http.port == 0:
            raise TranslationError(server.name, "HTTP transport requires a target port")
        return MCPTarget(
            name=server.name,
            sse=SSETarget(
                host=server.name,
                port=http.port,
                path=http.path or DEFAULT_MCP_HTTP_PATH,
            ),
        )

    def _agent_route(self, agent: Agent) -> Route:
        if agent.remote is not None:
            host, port, path = agent.remote.host, agent.remote.port, agent.remote.path
        else:
            http = agent.local.http if agent.local is not None else None
            if http is None or http.port == 0:
                raise TranslationError(
                    agent.name, "HTTP transport requires a target port"
                )
            host, port, path = agent.name, http.port, http.path

        return Route(
            name=f"{AGENT_ROUTE_PREFIX}{agent.name}",
            matches=[RouteMatch(path=PathMatch(path_prefix=f"/agent/{agent.name}"))],
            backends=[RouteBackend(weight=100, host=f"{host}:{port}")],
            policies=RoutePolicies(
                url_rewrite=URLRewrite(path=PathRewrite(prefix=path)),
                a2a=AgentProtocolPolicy(),
            ),
        )

    def _gateway_config(self, desired: DesiredState) -> GatewayConfig:
        targets = sorted(
            (self._mcp_target(server) for server in desired.mcp_servers),
            key=lambda target: target.name,
        )

        routes: list[Route] = []
        if targets:
            routes.append(
                Route(
                    name=MCP_ROUTE_NAME,
                    matches=[
                        RouteMatch(path=PathMatch(path_prefix=DEFAULT_MCP_HTTP_PATH))
                    ],
                    backends=[
                        RouteBackend(weight=100, mcp=MCPBackend(targets=targets))
                    ],
                )
            )
        for agent in sorted(desired.agents, key=lambda a: a.name):
            routes.append(self._agent_route(agent))

        logger.debug(
            f"Gateway config: {len(targets)} MCP target(s), "
            f"{len(desired.agents)} agent route(s)"
        )
        return GatewayConfig(
            binds=[
                Bind(
                    port=self.settings.agent_gateway_port,
                    listeners=[Listener(routes=routes)],
                )
            ]
        )
