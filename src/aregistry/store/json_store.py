"""JSON-file backed record store."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from aregistry.lib.errors import (
    AlreadyExistsError,
    DeploymentError,
    InvalidInputError,
    NotFoundError,
)
from aregistry.lib.utils import atomic_write_text
from aregistry.models.deployment import (
    LOCAL_PROVIDER_ID,
    Deployment,
    Platform,
    Provider,
    normalize_platform,
)
from aregistry.store.base import RecordStore

STATE_VERSION = "1.0"


class StoreState(BaseModel):
    """Top-level document stored on disk."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default=STATE_VERSION, description="State file version")
    deployments: dict[str, Deployment] = Field(
        default_factory=dict, description="Deployments keyed by id"
    )
    providers: dict[str, Provider] = Field(
        default_factory=dict, description="Providers keyed by id"
    )


def default_local_provider() -> Provider:
    """Return the built-in local provider singleton."""
    return Provider(id=LOCAL_PROVIDER_ID, name="Local", platform=Platform.LOCAL.value)


def load_state(state_path: Path) -> StoreState:
    """Load store state from disk, seeding the local provider."""
    state = StoreState()
    if state_path.exists():
        try:
            content = state_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise DeploymentError(
                operation="state",
                message=f"Failed to read record store at {state_path}: {exc}",
            ) from exc
        if content.strip():
            try:
                state = StoreState.model_validate_json(content)
            except ValidationError as exc:
                raise DeploymentError(
                    operation="state",
                    message=f"Invalid record store format in {state_path}: {exc}",
                ) from exc

    if LOCAL_PROVIDER_ID not in state.providers:
        state.providers[LOCAL_PROVIDER_ID] = default_local_provider()
    return state


def save_state(state_path: Path, state: StoreState) -> None:
    """Persist store state, replacing the file atomically."""
    payload = json.dumps(state.model_dump(mode="json"), indent=2, sort_keys=True)
    try:
        atomic_write_text(state_path, payload)
    except OSError as exc:
        raise DeploymentError(
            operation="state",
            message=f"Failed to write record store to {state_path}: {exc}",
        ) from exc


class JsonRecordStore(RecordStore):
    """Record store persisted to a single JSON document.

    Every mutation reads the document, applies the change and rewrites the
    whole file under a process-wide lock.

    Example:
        >>> store = JsonRecordStore(Path("/tmp/registry/records.json"))
        >>> store.get_provider("local").platform
        'local'
    """

    def __init__(self, state_path: Path) -> None:
        """Create a store backed by ``state_path``."""
        self.state_path = Path(state_path)
        self._lock = threading.RLock()

    def list_deployments(self) -> list[Deployment]:
        with self._lock:
            state = load_state(self.state_path)
        return sorted(state.deployments.values(), key=lambda d: d.deployed_at)

    def get_deployment(self, deployment_id: str) -> Deployment:
        with self._lock:
            state = load_state(self.state_path)
        deployment = state.deployments.get(deployment_id)
        if deployment is None:
            raise NotFoundError("deployment", deployment_id)
        return deployment

    def create_deployment(self, deployment: Deployment) -> Deployment:
        with self._lock:
            state = load_state(self.state_path)
            if deployment.id in state.deployments:
                raise AlreadyExistsError("deployment", deployment.id)
            for existing in state.deployments.values():
                if existing.identity() == deployment.identity():
                    raise AlreadyExistsError(
                        "deployment",
                        f"{deployment.resource_name}@{deployment.version}",
                    )
            state.deployments[deployment.id] = deployment
            save_state(self.state_path, state)
        return deployment

    def update_deployment(self, deployment: Deployment) -> Deployment:
        with self._lock:
            state = load_state(self.state_path)
            if deployment.id not in state.deployments:
                raise NotFoundError("deployment", deployment.id)
            updated = deployment.model_copy(
                update={"updated_at": datetime.now(timezone.utc)}
            )
            state.deployments[deployment.id] = updated
            save_state(self.state_path, state)
        return updated

    def remove_deployment(self, deployment_id: str) -> None:
        with self._lock:
            state = load_state(self.state_path)
            if state.deployments.pop(deployment_id, None) is None:
                raise NotFoundError("deployment", deployment_id)
            save_state(self.state_path, state)

    def list_providers(self, platform: str | None = None) -> list[Provider]:
        with self._lock:
            state = load_state(self.state_path)
        providers = sorted(state.providers.values(), key=lambda p: p.id)
        if platform is None:
            return providers
        wanted = normalize_platform(platform)
        return [p for p in providers if p.platform == wanted]

    def get_provider(self, provider_id: str) -> Provider:
        with self._lock:
            state = load_state(self.state_path)
        provider = state.providers.get(provider_id)
        if provider is None:
            raise NotFoundError("provider", provider_id)
        return provider

    def create_provider(self, provider: Provider) -> Provider:
        with self._lock:
            state = load_state(self.state_path)
            if provider.id in state.providers:
                raise AlreadyExistsError("provider", provider.id)
            state.providers[provider.id] = provider
            save_state(self.state_path, state)
        return provider

    def delete_provider(self, provider_id: str) -> None:
        with self._lock:
            state = load_state(self.state_path)
            if provider_id not in state.providers:
                raise NotFoundError("provider", provider_id)
            in_use = [
                d.id for d in state.deployments.values() if d.provider_id == provider_id
            ]
            if in_use:
                raise InvalidInputError(
                    f"provider '{provider_id}' is referenced by "
                    f"{len(in_use)} deployment(s)"
                )
            del state.providers[provider_id]
            save_state(self.state_path, state)
