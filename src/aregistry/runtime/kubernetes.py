"""Cluster platform apply through the Kubernetes custom-objects API."""

from __future__ import annotations

import logging
import threading
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as TransportError

from aregistry.lib.errors import DeploymentError
from aregistry.runtime.translation.kubernetes import (
    AGENT_KIND,
    MCP_SERVER_KINDS,
    CustomResourceKind,
    KubernetesRuntimeConfig,
)

logger = logging.getLogger(__name__)

_KINDS_BY_NAME = {kind.kind: kind for kind in (AGENT_KIND, *MCP_SERVER_KINDS)}


def _unreachable(operation: str, error: Exception) -> DeploymentError:
    return DeploymentError(
        operation=operation,
        message=f"Kubernetes API is unreachable: {error}",
    )


def load_kubernetes_config(context: str | None = None) -> None:
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        config.load_kube_config(context=context)
        logger.debug("Loaded local Kubernetes config")


class KubernetesClient:
    """Creates, lists and deletes kagent custom resources.

    The Kubernetes configuration is loaded on first use so constructing a
    client never touches the cluster.

    Example:
        >>> kube = KubernetesClient()
        >>> kube.apply(translator.translate(desired))
    """

    def __init__(
        self,
        api: client.CustomObjectsApi | None = None,
        context: str | None = None,
    ) -> None:
        """Create a client.

        Args:
            api: Pre-built custom-objects API (skips config loading)
            context: kubeconfig context used outside a cluster
        """
        self._api = api
        self._context = context

    @property
    def api(self) -> client.CustomObjectsApi:
        if self._api is None:
            try:
                load_kubernetes_config(self._context)
            except config.ConfigException as e:
                raise DeploymentError(
                    operation="kubernetes",
                    message=f"Failed to load Kubernetes configuration: {e}",
                ) from e
            self._api = client.CustomObjectsApi()
        return self._api

    def apply(
        self,
        runtime_config: KubernetesRuntimeConfig,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Create or update every resource in ``runtime_config``.

        Raises:
            DeploymentError: On any API failure or cancellation
        """
        for document in runtime_config.resources:
            if cancel_event is not None and cancel_event.is_set():
                raise DeploymentError(
                    operation="apply", message="kubernetes apply was cancelled"
                )
            self.apply_resource(document)
        logger.info(f"Applied {len(runtime_config.resources)} kubernetes resource(s)")

    def apply_resource(self, document: dict[str, Any]) -> None:
        """Create one resource, patching it when it already exists."""
        kind = _KINDS_BY_NAME.get(document.get("kind", ""))
        if kind is None:
            raise DeploymentError(
                operation="apply",
                message=f"unknown custom resource kind: {document.get('kind')}",
            )
        metadata = document["metadata"]
        name, namespace = metadata["name"], metadata["namespace"]

        try:
            self.api.create_namespaced_custom_object(
                group=kind.group,
                version=kind.version,
                namespace=namespace,
                plural=kind.plural,
                body=document,
            )
            logger.debug(f"Created {kind.kind} {namespace}/{name}")
            return
        except ApiException as e:
            if e.status != 409:
                raise DeploymentError(
                    operation="apply",
                    message=f"Failed to create {kind.kind} {namespace}/{name}: {e.reason}",
                ) from e
        except TransportError as e:
            raise _unreachable("apply", e) from e

        try:
            self.api.patch_namespaced_custom_object(
                group=kind.group,
                version=kind.version,
                namespace=namespace,
                plural=kind.plural,
                name=name,
                body=document,
            )
            logger.debug(f"Updated {kind.kind} {namespace}/{name}")
        except ApiException as e:
            raise DeploymentError(
                operation="apply",
                message=f"Failed to update {kind.kind} {namespace}/{name}: {e.reason}",
            ) from e
        except TransportError as e:
            raise _unreachable("apply", e) from e

    def list_resources(
        self, kind: CustomResourceKind, namespace: str
    ) -> list[dict[str, Any]]:
        """List resources of ``kind`` in ``namespace``.

        Raises:
            DeploymentError: If the list call fails
        """
        try:
            response = self.api.list_namespaced_custom_object(
                group=kind.group,
                version=kind.version,
                namespace=namespace,
                plural=kind.plural,
            )
        except ApiException as e:
            if e.status == 404:
                return []
            raise DeploymentError(
                operation="discover",
                message=f"Failed to list {kind.kind} in {namespace}: {e.reason}",
            ) from e
        except TransportError as e:
            raise _unreachable("discover", e) from e
        items = response.get("items", []) if isinstance(response, dict) else []
        return [item for item in items if isinstance(item, dict)]

    def delete_resource(
        self, kind: CustomResourceKind, name: str, namespace: str
    ) -> bool:
        """Delete one resource.

        Returns:
            True if a resource was deleted, False if it did not exist

        Raises:
            DeploymentError: On any other API failure
        """
        try:
            self.api.delete_namespaced_custom_object(
                group=kind.group,
                version=kind.version,
                namespace=namespace,
                plural=kind.plural,
                name=name,
            )
        except ApiException as e:
            if e.status == 404:
                return False
            raise DeploymentError(
                operation="undeploy",
                message=f"Failed to delete {kind.kind} {namespace}/{name}: {e.reason}",
            ) from e
        except TransportError as e:
            raise _unreachable("undeploy", e) from e
        logger.info(f"Deleted {kind.kind} {namespace}/{name}")
        return True

    def delete_agent(self, name: str, namespace: str) -> None:
        """Delete an agent resource, ignoring one that is already gone."""
        self.delete_resource(AGENT_KIND, name, namespace)

    def delete_mcp_server(self, name: str, namespace: str) -> None:
        """Delete both the local and remote forms of an MCP server."""
        for kind in MCP_SERVER_KINDS:
            self.delete_resource(kind, name, namespace)
