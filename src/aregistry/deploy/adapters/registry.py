"""Registry mapping provider platform keys to adapters."""

from __future__ import annotations

import logging
import threading

from aregistry.deploy.adapters.base import BaseDeploymentAdapter
from aregistry.lib.errors import InvalidInputError, UnsupportedPlatformError
from aregistry.models.deployment import (
    BUILTIN_PLATFORMS,
    ResourceType,
    normalize_platform,
)

logger = logging.getLogger(__name__)

_RESOURCE_TYPES = frozenset(t.value for t in ResourceType)


class PlatformAdapterRegistry:
    """Flat, lock-protected map from platform key to adapter.

    Adapters are validated when registered so a lookup either returns a
    usable adapter or raises ``UnsupportedPlatformError``.

    Example:
        >>> adapters = PlatformAdapterRegistry()
        >>> adapters.register(AcmeAdapter())
        >>> adapters.resolve("ACME").platform()
        'acme'
    """

    def __init__(self) -> None:
        self._adapters: dict[str, BaseDeploymentAdapter] = {}
        self._lock = threading.Lock()

    def register(
        self, adapter: BaseDeploymentAdapter, replace: bool = False
    ) -> None:
        """Register an adapter under its platform key.

        Args:
            adapter: Adapter to register
            replace: Allow overriding an adapter already registered for the key

        Raises:
            InvalidInputError: If the adapter is malformed or the key is taken
        """
        if not isinstance(adapter, BaseDeploymentAdapter):
            raise InvalidInputError(
                f"adapter must subclass BaseDeploymentAdapter, got {type(adapter).__name__}"
            )
        key = normalize_platform(adapter.platform())
        if not key:
            raise InvalidInputError("adapter platform key must not be empty")

        resource_types = set(adapter.supported_resource_types())
        if not resource_types:
            raise InvalidInputError(f"adapter '{key}' supports no resource types")
        unknown = resource_types - _RESOURCE_TYPES
        if unknown:
            raise InvalidInputError(
                f"adapter '{key}' declares unknown resource types: {sorted(unknown)}"
            )

        with self._lock:
            if key in self._adapters and not replace:
                raise InvalidInputError(
                    f"an adapter is already registered for platform '{key}'"
                )
            self._adapters[key] = adapter
        logger.debug(f"Registered platform adapter '{key}'")

    def get(self, platform: str | None) -> BaseDeploymentAdapter | None:
        """Return the adapter for ``platform`` or None."""
        with self._lock:
            return self._adapters.get(normalize_platform(platform))

    def resolve(self, platform: str | None) -> BaseDeploymentAdapter:
        """Return the adapter for ``platform``.

        Raises:
            UnsupportedPlatformError: If no adapter is registered for it
        """
        adapter = self.get(platform)
        if adapter is None:
            raise UnsupportedPlatformError(platform or "")
        return adapter

    @staticmethod
    def is_builtin(platform: str | None) -> bool:
        """Return True for platforms reconciled in-process."""
        return normalize_platform(platform) in BUILTIN_PLATFORMS
