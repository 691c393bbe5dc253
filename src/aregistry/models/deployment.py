"""Pydantic models for persisted deployment records and providers.

A ``Deployment`` identifies one running resource (MCP server or agent) on a
``Provider``, which is a concrete instance of a target platform.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ARG_PREFIX = "ARG_"
HEADER_PREFIX = "HEADER_"

LOCAL_PROVIDER_ID = "local"

# Deployment config key selecting the cluster namespace for a resource
NAMESPACE_CONFIG_KEY = "KAGENT_NAMESPACE"


class ResourceType(str, Enum):
    """Kinds of catalog resources that can be deployed."""

    MCP = "mcp"
    AGENT = "agent"


class DeploymentStatus(str, Enum):
    """Lifecycle status of a deployment."""

    DEPLOYED = "deployed"
    DEPLOYING = "deploying"
    CANCELLED = "cancelled"
    FAILED = "failed"


class DeploymentOrigin(str, Enum):
    """Whether a deployment was created here or found on the platform."""

    MANAGED = "managed"
    DISCOVERED = "discovered"


class Platform(str, Enum):
    """Built-in provider platforms reconciled in-process."""

    LOCAL = "local"
    KUBERNETES = "kubernetes"


BUILTIN_PLATFORMS = frozenset(p.value for p in Platform)


def normalize_platform(platform: str | None) -> str:
    """Normalize a platform key for adapter lookup."""
    return (platform or "").strip().lower()


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Provider(BaseModel):
    """A concrete deployment target instance (e.g. one cluster context).

    Attributes:
        id: Provider identifier referenced by deployments
        name: Human-readable provider name
        platform: Platform key (local, kubernetes, or extension-defined)
        config: Opaque platform-specific configuration
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="Provider identifier")
    name: str = Field(..., description="Human-readable provider name")
    platform: str = Field(..., description="Provider platform key")
    config: dict[str, Any] = Field(
        default_factory=dict, description="Opaque provider configuration"
    )
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: str) -> str:
        """Store platform keys normalized."""
        normalized = normalize_platform(v)
        if not normalized:
            raise ValueError("platform must not be empty")
        return normalized


class Deployment(BaseModel):
    """Persisted record of one deployed resource.

    Attributes:
        id: Opaque identifier, generated when absent
        resource_name: Catalog name of the deployed server or agent
        version: Catalog version
        resource_type: mcp or agent
        provider_id: Provider the resource runs on
        status: Lifecycle status
        origin: managed (created here) or discovered (found running)
        config: Environment, argument (ARG_) and header (HEADER_) overrides
        prefer_remote: Prefer a remote endpoint over a local package
        cloud_metadata: Optional platform-specific metadata
        error: Last error message, if any
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=_new_id, description="Deployment identifier")
    resource_name: str = Field(..., description="Catalog resource name")
    version: str = Field(default="latest", description="Catalog resource version")
    resource_type: ResourceType = Field(
        default=ResourceType.MCP, description="Resource type"
    )
    provider_id: str = Field(
        default=LOCAL_PROVIDER_ID, description="Provider instance identifier"
    )
    status: DeploymentStatus = Field(
        default=DeploymentStatus.DEPLOYED, description="Deployment status"
    )
    origin: DeploymentOrigin = Field(
        default=DeploymentOrigin.MANAGED, description="Deployment origin"
    )
    config: dict[str, str] = Field(
        default_factory=dict, description="Env/argument/header overrides"
    )
    prefer_remote: bool = Field(
        default=False, description="Prefer remote endpoint over local package"
    )
    cloud_metadata: dict[str, Any] | None = Field(
        default=None, description="Platform-specific metadata"
    )
    error: str | None = Field(default=None, description="Last error message")
    deployed_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def is_discovered(self) -> bool:
        """Return True if this deployment was found rather than created."""
        return self.origin == DeploymentOrigin.DISCOVERED

    def identity(self) -> tuple[str, str, str, str]:
        """Return the tuple that makes a deployment unique in the store."""
        return (
            self.resource_name,
            self.version,
            self.resource_type.value,
            self.provider_id,
        )

    def split_config(self) -> tuple[dict[str, str], dict[str, str], dict[str, str]]:
        """Split the collapsed config map into env, argument and header maps.

        Keys prefixed ``ARG_`` become argument values and keys prefixed
        ``HEADER_`` become header values, both with the prefix removed. A key
        that is only the prefix stays an environment value.
        """
        env: dict[str, str] = {}
        args: dict[str, str] = {}
        headers: dict[str, str] = {}
        for key, value in self.config.items():
            if key.startswith(HEADER_PREFIX) and len(key) > len(HEADER_PREFIX):
                headers[key[len(HEADER_PREFIX) :]] = value
            elif key.startswith(ARG_PREFIX) and len(key) > len(ARG_PREFIX):
                args[key[len(ARG_PREFIX) :]] = value
            else:
                env[key] = value
        return env, args, headers


class DeploymentFilter(BaseModel):
    """Filtering options for deployment queries."""

    model_config = ConfigDict(extra="forbid")

    platform: str | None = Field(default=None, description="Provider platform key")
    provider_id: str | None = Field(default=None, description="Provider identifier")
    resource_type: ResourceType | None = Field(default=None)
    status: DeploymentStatus | None = Field(default=None)
    origin: DeploymentOrigin | None = Field(default=None)
    resource_name: str | None = Field(
        default=None, description="Case-insensitive substring on resource name"
    )

    def matches(self, deployment: Deployment, platform: str | None = None) -> bool:
        """Return True if the deployment passes every set filter field.

        Args:
            deployment: Deployment to test
            platform: Resolved platform of the deployment's provider, if known
        """
        if self.platform is not None and normalize_platform(
            self.platform
        ) != normalize_platform(platform):
            return False
        if self.provider_id is not None and deployment.provider_id != self.provider_id:
            return False
        if (
            self.resource_type is not None
            and deployment.resource_type != self.resource_type
        ):
            return False
        if self.status is not None and deployment.status != self.status:
            return False
        if self.origin is not None and deployment.origin != self.origin:
            return False
        if self.resource_name is not None and (
            self.resource_name.lower() not in deployment.resource_name.lower()
        ):
            return False
        return True
