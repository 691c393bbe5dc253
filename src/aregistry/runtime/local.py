"""Local platform apply.

Writes the compose project and gateway config into the runtime directory,
keeps per-agent ``mcp-servers.json`` side files in sync, and recreates the
compose stack with ``docker compose up``.
"""

from __future__ import annotations

import json
import logging
import subprocess  # nosec B404
import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import docker
import requests
from docker.errors import DockerException

from aregistry.config.defaults import (
    AGENT_MCP_SERVERS_FILE_NAME,
    COMPOSE_FILE_NAME,
    GATEWAY_CONFIG_FILE_NAME,
)
from aregistry.config.loader import RuntimeSettings
from aregistry.lib.errors import DeploymentError, DockerNotAvailableError
from aregistry.lib.utils import agent_config_dir, atomic_write_text, resource_name
from aregistry.models.run_request import AgentRunRequest, MCPServerRunRequest
from aregistry.runtime.translation.compose import LocalRuntimeConfig

logger = logging.getLogger(__name__)

COMPOSE_UP_COMMAND = [
    "docker",
    "compose",
    "up",
    "-d",
    "--remove-orphans",
    "--force-recreate",
]

# Seconds between cancellation checks while compose runs
POLL_INTERVAL = 0.5


def side_file_entries(
    resolved_servers: Sequence[MCPServerRunRequest],
) -> list[dict[str, Any]]:
    """Describe resolved servers in the agent's MCP server config format.

    Servers with neither packages nor remotes are left out. Remote entries
    carry the endpoint URL and headers, with request header values taking
    precedence over catalog header values.
    """
    entries: list[dict[str, Any]] = []
    for request in resolved_servers:
        server = request.server
        if not server.remotes and not server.packages:
            continue

        entry: dict[str, Any] = {"name": resource_name(server.name)}
        use_remote = bool(server.remotes) and (
            request.prefer_remote or not server.packages
        )
        if use_remote:
            remote = server.remotes[0]
            entry["type"] = "remote"
            entry["url"] = remote.url
            headers = {h.name: h.value or "" for h in remote.headers}
            headers.update(request.header_values)
            if headers:
                entry["headers"] = headers
        else:
            entry["type"] = "command"
        entries.append(entry)
    return entries


def _default_docker_client() -> Any:
    return docker.from_env()  # type: ignore[attr-defined]


class LocalRuntime:
    """Applies local runtime artifacts with Docker Compose.

    Example:
        >>> runtime = LocalRuntime(settings)
        >>> runtime.apply(config, agents=agent_requests)
    """

    def __init__(
        self,
        settings: RuntimeSettings,
        docker_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        """Create a local runtime.

        Args:
            settings: Runtime settings (runtime directory, timeout, verbosity)
            docker_client_factory: Returns a Docker SDK client; defaults to
                ``docker.from_env``
        """
        self.settings = settings
        self._docker_client_factory = docker_client_factory or _default_docker_client

    @property
    def runtime_dir(self) -> Path:
        return self.settings.runtime_dir

    def apply(
        self,
        config: LocalRuntimeConfig,
        agents: Sequence[AgentRunRequest] = (),
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Write artifacts and recreate the compose stack.

        Args:
            config: Compose project and gateway config to apply
            agents: Agent run requests whose side files should be synced
            cancel_event: Set to terminate a running ``docker compose`` process

        Raises:
            DockerNotAvailableError: If the Docker daemon cannot be reached
            DeploymentError: If writing artifacts or compose fails
        """
        self.ensure_docker()
        self.write_artifacts(config)
        self.sync_agent_side_files(agents)
        self.compose_up(cancel_event=cancel_event)

    def ensure_docker(self) -> None:
        """Check that the Docker daemon answers a ping.

        Raises:
            DockerNotAvailableError: If the daemon is unreachable
        """
        try:
            client = self._docker_client_factory()
            client.ping()
        except (DockerException, requests.exceptions.RequestException) as e:
            raise DockerNotAvailableError(operation="apply") from e

    def write_artifacts(self, config: LocalRuntimeConfig) -> tuple[Path, Path]:
        """Fully overwrite the compose and gateway files.

        Returns:
            Paths of the compose file and the gateway config file
        """
        compose_path = self.runtime_dir / COMPOSE_FILE_NAME
        gateway_path = self.runtime_dir / GATEWAY_CONFIG_FILE_NAME
        compose_yaml = config.compose_yaml()
        gateway_yaml = config.gateway_yaml()

        try:
            self.runtime_dir.mkdir(parents=True, exist_ok=True)
            atomic_write_text(compose_path, compose_yaml)
            atomic_write_text(gateway_path, gateway_yaml)
        except OSError as e:
            raise DeploymentError(
                operation="apply",
                message=f"Failed to write runtime artifacts to {self.runtime_dir}: {e}",
            ) from e

        if self.settings.verbose:
            logger.debug(f"Docker Compose YAML:\n{compose_yaml}")
            logger.debug(f"Agent Gateway YAML:\n{gateway_yaml}")
        return compose_path, gateway_path

    def sync_agent_side_files(self, agents: Sequence[AgentRunRequest]) -> None:
        """Write or remove each agent's ``mcp-servers.json``.

        Raises:
            DeploymentError: If a side file cannot be written or removed
        """
        for request in agents:
            agent = request.agent
            path = (
                agent_config_dir(self.runtime_dir, agent.name, agent.version)
                / AGENT_MCP_SERVERS_FILE_NAME
            )
            try:
                if request.resolved_servers:
                    payload = json.dumps(
                        side_file_entries(request.resolved_servers), indent=2
                    )
                    atomic_write_text(path, payload)
                    logger.debug(
                        f"Wrote MCP server config for agent {agent.name} "
                        f"version {agent.version} to {path}"
                    )
                elif path.exists():
                    path.unlink()
                    logger.debug(
                        f"Removed stale MCP server config for agent {agent.name} "
                        f"version {agent.version}"
                    )
            except OSError as e:
                raise DeploymentError(
                    operation="apply",
                    message=f"Failed to sync MCP server config for agent "
                    f"{agent.name}: {e}",
                ) from e

    def compose_up(self, cancel_event: threading.Event | None = None) -> None:
        """Run ``docker compose up`` in the runtime directory.

        Raises:
            DeploymentError: On non-zero exit, timeout or cancellation
        """
        logger.info(f"Recreating compose stack in {self.runtime_dir}")
        try:
            process = subprocess.Popen(  # noqa: S603  # nosec B603 B607
                COMPOSE_UP_COMMAND,
                cwd=self.runtime_dir,
                stdout=None if self.settings.verbose else subprocess.PIPE,
                stderr=None if self.settings.verbose else subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise DeploymentError(
                operation="apply", message=f"Failed to start docker compose: {e}"
            ) from e

        deadline = time.monotonic() + self.settings.compose_timeout
        while True:
            try:
                output, _ = process.communicate(timeout=POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    self._terminate(process)
                    raise DeploymentError(
                        operation="apply", message="docker compose was cancelled"
                    ) from None
                if time.monotonic() >= deadline:
                    self._terminate(process)
                    raise DeploymentError(
                        operation="apply",
                        message=(
                            "docker compose timed out after "
                            f"{self.settings.compose_timeout:g}s"
                        ),
                    ) from None

        if process.returncode != 0:
            detail = (output or "").strip().splitlines()[-5:]
            raise DeploymentError(
                operation="apply",
                message=(
                    f"Failed to start docker compose (exit {process.returncode})"
                    + (": " + " | ".join(detail) if detail else "")
                ),
            )
        logger.info("Docker containers started")

    @staticmethod
    def _terminate(process: subprocess.Popen[str]) -> None:
        process.terminate()
        try:
            process.wait(timeout=10)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
