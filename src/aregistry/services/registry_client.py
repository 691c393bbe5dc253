"""HTTP catalog client.

This module provides ``RegistryClient``, a ``Catalog`` implementation that
reads published servers and agents from a remote agent registry API.
"""

import contextlib
import logging
from typing import Any
from urllib.parse import quote

import requests
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout

from aregistry.config.defaults import DEFAULT_AGENT_PORT
from aregistry.lib.errors import (
    NotFoundError,
    RegistryAPIError,
    RegistryConnectionError,
)
from aregistry.models.catalog import (
    AgentManifest,
    ArgumentConfig,
    CatalogAgent,
    CatalogServer,
    EnvVarConfig,
    HeaderConfig,
    ManifestMCPServer,
    RemoteConfig,
    ServerPackage,
    SkillRef,
    TransportConfig,
)
from aregistry.store.base import Catalog

logger = logging.getLogger(__name__)


def _opt_str(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _parse_arguments(raw: Any) -> list[ArgumentConfig]:
    return [
        ArgumentConfig(
            type="named" if arg.get("type") == "named" else "positional",
            name=_opt_str(arg.get("name")),
            value=_opt_str(arg.get("value") or arg.get("default")),
            value_hint=_opt_str(arg.get("valueHint")),
        )
        for arg in _dicts(raw)
    ]


def _parse_remotes(raw: Any) -> list[RemoteConfig]:
    remotes: list[RemoteConfig] = []
    for remote in _dicts(raw):
        if not remote.get("url"):
            continue
        remote_type = "sse" if remote.get("type") == "sse" else "streamable-http"
        remotes.append(
            RemoteConfig(
                type=remote_type,
                url=str(remote["url"]),
                headers=[
                    HeaderConfig(
                        name=str(h.get("name", "")),
                        value=_opt_str(h.get("value") or h.get("default")),
                        required=bool(h.get("isRequired", False)),
                    )
                    for h in _dicts(remote.get("headers"))
                ],
            )
        )
    return remotes


def parse_server(data: dict[str, Any]) -> CatalogServer:
    """Parse a ``server.json`` document into a CatalogServer.

    Converts the API's camelCase keys and drops fields the runtime does not use.
    """
    packages: list[ServerPackage] = []
    for pkg in _dicts(data.get("packages")):
        transport_data = pkg.get("transport")
        if not isinstance(transport_data, dict):
            transport_data = {}
        packages.append(
            ServerPackage(
                registry_type=str(pkg.get("registryType", "npm")),  # type: ignore[arg-type]
                identifier=str(pkg.get("identifier", "")),
                version=_opt_str(pkg.get("version")),
                runtime_hint=_opt_str(pkg.get("runtimeHint")),
                transport=TransportConfig(
                    type=str(transport_data.get("type", "stdio")),  # type: ignore[arg-type]
                    url=_opt_str(transport_data.get("url")),
                ),
                runtime_arguments=_parse_arguments(pkg.get("runtimeArguments")),
                package_arguments=_parse_arguments(pkg.get("packageArguments")),
                environment_variables=[
                    EnvVarConfig(
                        name=str(ev.get("name", "")),
                        description=_opt_str(ev.get("description")),
                        required=bool(ev.get("isRequired", ev.get("required", True))),
                        default=_opt_str(ev.get("default") or ev.get("value")),
                    )
                    for ev in _dicts(pkg.get("environmentVariables"))
                ],
            )
        )

    return CatalogServer(
        name=str(data.get("name", "")),
        description=str(data.get("description", "")),
        title=_opt_str(data.get("title")),
        version=str(data.get("version", "")),
        website_url=_opt_str(data.get("websiteUrl")),
        packages=packages,
        remotes=_parse_remotes(data.get("remotes")),
    )


def parse_agent(data: dict[str, Any]) -> CatalogAgent:
    """Parse an agent document into a CatalogAgent."""
    manifest_data = data.get("agentManifest") or data
    mcp_servers = [
        ManifestMCPServer(
            type=str(ref.get("type", "command")),  # type: ignore[arg-type]
            name=str(ref.get("name", "")),
            image=_opt_str(ref.get("image")),
            command=_opt_str(ref.get("command")),
            args=[str(a) for a in ref.get("args") or []],
            env=[str(e) for e in ref.get("env") or []],
            url=_opt_str(ref.get("url")),
            headers={str(k): str(v) for k, v in (ref.get("headers") or {}).items()},
            registry_url=_opt_str(ref.get("registryURL")),
            registry_server_name=_opt_str(ref.get("registryServerName")),
            registry_server_version=_opt_str(ref.get("registryServerVersion")),
            registry_server_prefer_remote=bool(
                ref.get("registryServerPreferRemote", False)
            ),
        )
        for ref in _dicts(manifest_data.get("mcpServers"))
    ]
    skills = [
        SkillRef(
            name=str(skill.get("name", "")),
            image=_opt_str(skill.get("image")),
            registry_url=_opt_str(skill.get("registryURL")),
            registry_skill_name=_opt_str(skill.get("registrySkillName")),
            registry_skill_version=_opt_str(skill.get("registrySkillVersion")),
        )
        for skill in _dicts(manifest_data.get("skills"))
    ]
    name = str(data.get("name") or manifest_data.get("name", ""))
    manifest = AgentManifest(
        name=name,
        image=_opt_str(manifest_data.get("image")),
        language=str(manifest_data.get("language") or "python"),
        framework=str(manifest_data.get("framework") or "adk"),
        model_provider=_opt_str(manifest_data.get("modelProvider")),
        model_name=_opt_str(manifest_data.get("modelName")),
        description=str(manifest_data.get("description", "")),
        port=int(manifest_data.get("port") or DEFAULT_AGENT_PORT),
        telemetry_endpoint=_opt_str(manifest_data.get("telemetryEndpoint")),
        mcp_servers=mcp_servers,
        skills=skills,
    )
    return CatalogAgent(
        name=name,
        version=str(data.get("version", "")),
        description=str(data.get("description", "")),
        manifest=manifest,
        remotes=_parse_remotes(data.get("remotes")),
    )


class RegistryClient(Catalog):
    """Catalog backed by a remote agent registry API.

    Example:
        >>> client = RegistryClient("http://localhost:12121")
        >>> server = client.get_server("io.github.user/weather", "1.0.0")
        >>> server.packages[0].identifier
        '@user/weather-mcp'
    """

    DEFAULT_BASE_URL = "http://localhost:12121"
    DEFAULT_TIMEOUT = 5.0  # seconds - fail fast

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize client with base URL and timeout.

        Args:
            base_url: Registry API base URL
            timeout: Request timeout in seconds (default: 5.0)
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_server(self, name: str, version: str = "latest") -> CatalogServer:
        data = self._get_versioned("servers", "server", name, version)
        return parse_server(data.get("server", data))

    def get_agent(self, name: str, version: str = "latest") -> CatalogAgent:
        data = self._get_versioned("agents", "agent", name, version)
        return parse_agent(data.get("agent", data))

    def _get_versioned(
        self, collection: str, kind: str, name: str, version: str
    ) -> dict[str, Any]:
        # Names contain '/' in reverse-DNS format
        encoded_name = quote(name, safe="")
        encoded_version = quote(version or "latest", safe="")
        url = (
            f"{self.base_url}/v0/{collection}/{encoded_name}/versions/{encoded_version}"
        )

        try:
            response = self._request("GET", url)
        except RegistryAPIError as e:
            if e.status_code == 404:
                raise NotFoundError(kind, name, version) from e
            raise

        payload = response.json()
        if not isinstance(payload, dict):
            raise RegistryAPIError(response.status_code, f"Unexpected payload for {url}")
        return payload

    def _request(self, method: str, url: str) -> requests.Response:
        """Execute HTTP request with error handling.

        Raises:
            RegistryConnectionError: Connection/timeout issues
            RegistryAPIError: Non-2xx status code
        """
        try:
            response = self._session.request(
                method=method,
                url=url,
                timeout=self.timeout,
            )
        except Timeout as e:
            raise RegistryConnectionError(self.base_url, "request timed out") from e
        except RequestsConnectionError as e:
            raise RegistryConnectionError(self.base_url, str(e)) from e

        if not response.ok:
            detail = response.reason or "request failed"
            with contextlib.suppress(ValueError, AttributeError):
                detail = response.json().get("detail") or detail
            logger.debug(f"{method} {url} returned {response.status_code}: {detail}")
            raise RegistryAPIError(response.status_code, str(detail))

        return response
