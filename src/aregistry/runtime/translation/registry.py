"""Translate run requests into a platform-neutral desired state."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from urllib.parse import urlparse

from pydantic import ValidationError as PydanticValidationError

from aregistry.config.defaults import (
    DEFAULT_MCP_HTTP_PATH,
    INTERPRETER_IMAGES,
    PACKAGE_RUNTIME_HINTS,
)
from aregistry.config.validator import flatten_pydantic_errors
from aregistry.lib.errors import DuplicateResourceError, TranslationError
from aregistry.lib.utils import resource_name
from aregistry.models.catalog import ArgumentConfig, RemoteConfig, ServerPackage
from aregistry.models.deployment import NAMESPACE_CONFIG_KEY
from aregistry.models.desired_state import (
    Agent,
    ContainerDeployment,
    DesiredState,
    HTTPTransport,
    LocalAgent,
    LocalMCPServer,
    MCPServer,
    RemoteEndpoint,
    ResourceKind,
    TransportType,
)
from aregistry.models.run_request import AgentRunRequest, MCPServerRunRequest

logger = logging.getLogger(__name__)

MAX_PORT = 65535


def _remote_endpoint(
    name: str, remote: RemoteConfig, header_values: dict[str, str]
) -> RemoteEndpoint:
    parsed = urlparse(remote.url)
    if not parsed.hostname:
        raise TranslationError(name, f"remote URL has no host: {remote.url}")
    scheme = parsed.scheme or "https"
    try:
        port = parsed.port or (443 if scheme == "https" else 80)
    except ValueError as exc:
        raise TranslationError(name, f"invalid remote URL port: {remote.url}") from exc

    headers = {h.name: h.value for h in remote.headers if h.value is not None}
    headers.update(header_values)
    return RemoteEndpoint(
        host=parsed.hostname,
        port=port,
        path=parsed.path,
        scheme=scheme,
        headers=headers,
    )


def _render_arguments(
    arguments: Iterable[ArgumentConfig], overrides: dict[str, str]
) -> list[str]:
    """Render declared arguments, consuming matching overrides.

    Named arguments match overrides by flag name with leading dashes removed;
    positional arguments match by their value hint.
    """
    rendered: list[str] = []
    for arg in arguments:
        if arg.type == "named" and arg.name:
            key = arg.name.lstrip("-").rstrip("=")
            value = overrides.pop(key, arg.value)
            if arg.name.endswith("="):
                rendered.append(f"{arg.name}{value or ''}")
            else:
                rendered.append(arg.name)
                if value:
                    rendered.append(value)
        else:
            key = arg.value_hint or ""
            value = overrides.pop(key, arg.value) if key else arg.value
            if value:
                rendered.append(value)
    return rendered


def _package_launch(name: str, package: ServerPackage) -> tuple[str, str, list[str]]:
    """Return (image, command, base args) for a package."""
    if package.registry_type in ("oci", "docker"):
        image = package.identifier
        last_segment = image.rsplit("/", 1)[-1]
        if ":" not in last_segment and "@" not in image:
            image = f"{image}:{package.version or 'latest'}"
        return image, "", []

    command = package.runtime_hint or PACKAGE_RUNTIME_HINTS.get(package.registry_type)
    image = INTERPRETER_IMAGES.get(command or "")
    if not command or not image:
        raise TranslationError(
            name,
            "image must be specified for the package or its command must be "
            f"one of {sorted(INTERPRETER_IMAGES)} "
            f"(registry type '{package.registry_type}', command {command!r})",
        )

    if command == "npx":
        args = ["-y", f"{package.identifier}@{package.version or 'latest'}"]
    elif command == "uvx":
        args = [
            f"{package.identifier}=={package.version}"
            if package.version
            else package.identifier
        ]
    else:
        args = [package.identifier]
    return image, command, args


def _http_transport(name: str, package: ServerPackage, env: dict[str, str]) -> HTTPTransport:
    port = 0
    path = DEFAULT_MCP_HTTP_PATH
    if package.transport.url:
        # Transport URLs may carry template placeholders such as {PORT}
        url = package.transport.url
        for key, value in env.items():
            url = url.replace(f"{{{key}}}", value)
        parsed = urlparse(url)
        try:
            port = parsed.port or 0
        except ValueError:
            logger.debug(f"{name}: transport URL port is not numeric: {url}")
        path = parsed.path or DEFAULT_MCP_HTTP_PATH
    if not port and env.get("PORT", "").isdigit():
        port = int(env["PORT"])
        if not 0 < port <= MAX_PORT:
            raise TranslationError(
                name, f"PORT must be between 1 and {MAX_PORT}, got {env['PORT']}"
            )
    return HTTPTransport(port=port, path=path)


@contextmanager
def _typed_errors(resource: str) -> Iterator[None]:
    """Re-raise model validation failures as TranslationError."""
    try:
        yield
    except PydanticValidationError as exc:
        raise TranslationError(
            resource, "; ".join(flatten_pydantic_errors(exc))
        ) from exc


class RegistryTranslator:
    """Maps server and agent run requests to desired-state descriptors.

    Example:
        >>> translator = RegistryTranslator()
        >>> state = translator.translate(servers=[request], agents=[])
        >>> state.mcp_servers[0].resource_type
        <ResourceKind.LOCAL: 'local'>
    """

    def translate(
        self,
        servers: Sequence[MCPServerRunRequest],
        agents: Sequence[AgentRunRequest],
    ) -> DesiredState:
        """Translate a batch of run requests into a DesiredState.

        Raises:
            DuplicateResourceError: If two servers or two agents share a name
            TranslationError: If a resource cannot be run as requested
        """
        state = DesiredState()

        seen_servers: set[str] = set()
        for request in servers:
            with _typed_errors(request.server.name):
                mcp_server = self.translate_mcp_server(request)
            if mcp_server.name in seen_servers:
                raise DuplicateResourceError("MCPServer", mcp_server.name)
            seen_servers.add(mcp_server.name)
            state.mcp_servers.append(mcp_server)

        seen_agents: set[str] = set()
        for request in agents:
            with _typed_errors(request.agent.name):
                agent = self.translate_agent(request)
            if agent.name in seen_agents:
                raise DuplicateResourceError("Agent", agent.name)
            seen_agents.add(agent.name)
            state.agents.append(agent)

        return state

    def translate_mcp_server(self, request: MCPServerRunRequest) -> MCPServer:
        """Translate one server run request.

        A remote endpoint is used when the server has one and the caller
        prefers remote or the server publishes no package.
        """
        server = request.server
        name = resource_name(server.name)
        if not name:
            raise TranslationError(server.name, "cannot derive a resource name")
        namespace = request.env_values.get(NAMESPACE_CONFIG_KEY)

        use_remote = bool(server.remotes) and (
            request.prefer_remote or not server.packages
        )
        if use_remote:
            return MCPServer(
                name=name,
                resource_type=ResourceKind.REMOTE,
                remote=_remote_endpoint(
                    name, server.remotes[0], request.header_values
                ),
                namespace=namespace,
            )

        if not server.packages:
            raise TranslationError(name, "server has no packages or remotes")

        package = server.packages[0]
        image, command, base_args = _package_launch(name, package)

        overrides = dict(request.arg_values)
        args = _render_arguments(package.runtime_arguments, overrides)
        args += base_args
        args += _render_arguments(package.package_arguments, overrides)
        for key in sorted(overrides):
            args += [f"--{key}", overrides[key]]

        env = {
            ev.name: ev.default
            for ev in package.environment_variables
            if ev.default is not None
        }
        env.update(request.env_values)

        if package.transport.type == "stdio":
            transport_type = TransportType.STDIO
            http = None
        else:
            transport_type = TransportType.HTTP
            http = _http_transport(name, package, env)

        return MCPServer(
            name=name,
            resource_type=ResourceKind.LOCAL,
            local=LocalMCPServer(
                deployment=ContainerDeployment(
                    image=image, cmd=command, args=args, env=env
                ),
                transport_type=transport_type,
                http=http,
            ),
            namespace=namespace,
        )

    def translate_agent(self, request: AgentRunRequest) -> Agent:
        """Translate one agent run request.

        Agents publishing a remote endpoint and no image are routed to
        remotely; everything else runs the manifest image over HTTP.
        """
        agent = request.agent
        manifest = agent.manifest
        name = resource_name(agent.name)
        if not name:
            raise TranslationError(agent.name, "cannot derive a resource name")
        namespace = request.env_values.get(NAMESPACE_CONFIG_KEY)
        has_resolved = bool(request.resolved_servers)

        if agent.remotes and not manifest.image:
            return Agent(
                name=name,
                resource_type=ResourceKind.REMOTE,
                remote=_remote_endpoint(name, agent.remotes[0], {}),
                namespace=namespace,
                version=agent.version,
                has_resolved_servers=has_resolved,
            )

        if not manifest.image:
            raise TranslationError(name, "image must be specified for Agent")

        env = {
            "AGENT_NAME": manifest.name,
            "AGENT_VERSION": agent.version,
            "PORT": str(manifest.port),
        }
        if manifest.model_provider:
            env["MODEL_PROVIDER"] = manifest.model_provider
        if manifest.model_name:
            env["MODEL_NAME"] = manifest.model_name
        if manifest.telemetry_endpoint:
            env["OTEL_EXPORTER_OTLP_ENDPOINT"] = manifest.telemetry_endpoint
        env.update(request.env_values)

        return Agent(
            name=name,
            resource_type=ResourceKind.LOCAL,
            local=LocalAgent(
                deployment=ContainerDeployment(image=manifest.image, env=env),
                http=HTTPTransport(port=manifest.port),
            ),
            namespace=namespace,
            version=agent.version,
            has_resolved_servers=has_resolved,
        )
