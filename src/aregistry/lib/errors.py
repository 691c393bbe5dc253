"""Custom exception hierarchy for the agent registry runtime."""


class RegistryError(Exception):
    """Base exception for all registry errors.

    All registry-specific exceptions inherit from this class, enabling
    centralized exception handling at the API boundary.
    """

    pass


class ConfigError(RegistryError):
    """Exception raised for configuration errors.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class NotFoundError(RegistryError):
    """Exception raised when a catalog entry, provider or deployment is missing.

    Attributes:
        kind: Kind of record that was looked up (server, agent, provider, ...)
        name: Name or identifier that was looked up
        version: Optional version that was looked up
    """

    def __init__(self, kind: str, name: str, version: str | None = None) -> None:
        """Create a not-found error for a record kind and identifier."""
        self.kind = kind
        self.name = name
        self.version = version
        label = f"{name} (version {version})" if version else name
        super().__init__(f"{kind} '{label}' not found")


class AlreadyExistsError(RegistryError):
    """Exception raised when a record with the same identity already exists."""

    def __init__(self, kind: str, name: str) -> None:
        """Create an already-exists error."""
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} '{name}' already exists")


class InvalidInputError(RegistryError):
    """Exception raised for malformed requests detected before any side effect."""

    def __init__(self, message: str) -> None:
        """Create an invalid-input error."""
        self.message = message
        super().__init__(message)


class DuplicateResourceError(InvalidInputError):
    """Exception raised when a desired state holds two resources with one name."""

    def __init__(self, kind: str, name: str) -> None:
        """Create a duplicate-name error for a resource kind."""
        self.kind = kind
        self.name = name
        super().__init__(f"duplicate {kind} name found: {name}")


class DiscoveredDeploymentError(InvalidInputError):
    """Exception raised when a discovered deployment is undeployed directly."""

    def __init__(self, deployment_id: str) -> None:
        """Create an error for a discovered deployment."""
        self.deployment_id = deployment_id
        super().__init__(
            f"Deployment '{deployment_id}' was discovered on the platform and "
            "cannot be undeployed directly; adopt it first"
        )


class UnsupportedPlatformError(RegistryError):
    """Exception raised when no adapter is registered for a provider platform."""

    def __init__(self, platform: str) -> None:
        """Create an unsupported-platform error."""
        self.platform = platform.strip() or "unknown"
        super().__init__(f"unsupported provider platform: {self.platform}")


class OperationNotSupportedError(RegistryError):
    """Exception raised by adapters that do not implement an operation."""

    def __init__(self, operation: str, platform: str) -> None:
        """Create an operation-not-supported error."""
        self.operation = operation
        self.platform = platform
        super().__init__(
            f"{operation} is not supported for provider platform '{platform}'"
        )


class TranslationError(InvalidInputError):
    """Exception raised when a resource cannot be translated to runtime config.

    Attributes:
        resource: Name of the resource that failed translation
    """

    def __init__(self, resource: str, message: str) -> None:
        """Create a translation error naming the offending resource."""
        self.resource = resource
        super().__init__(f"{resource}: {message}")


class DeploymentError(RegistryError):
    """Exception raised when applying runtime artifacts fails.

    Attributes:
        operation: The operation that failed (apply, reconcile, undeploy, ...)
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Initialize DeploymentError with operation and message."""
        self.operation = operation
        self.message = message
        super().__init__(f"Deployment {operation} failed: {message}")


class ReconciliationError(DeploymentError):
    """Exception raised when a deployment was stored but could not be converged.

    Carries the compensating-delete failure, when there was one, so neither
    error masks the other.

    Attributes:
        cleanup_error: Error raised while removing the just-created record
    """

    def __init__(
        self, message: str, cleanup_error: Exception | None = None
    ) -> None:
        """Create a reconciliation error with an optional cleanup failure."""
        self.cleanup_error = cleanup_error
        if cleanup_error is not None:
            message = f"{message} (cleanup failed: {cleanup_error})"
        super().__init__(operation="reconcile", message=message)


class DockerNotAvailableError(DeploymentError):
    """Exception raised when the Docker daemon cannot be reached."""

    def __init__(self, operation: str) -> None:
        """Create an error for an unavailable Docker daemon."""
        super().__init__(
            operation=operation,
            message=(
                "Docker is not available. Ensure the Docker daemon is running "
                "and accessible (docker info)."
            ),
        )


class RegistryAPIError(RegistryError):
    """Exception raised when the remote registry API returns an error status."""

    def __init__(self, status_code: int, message: str) -> None:
        """Create an API error with the HTTP status code."""
        self.status_code = status_code
        self.message = message
        super().__init__(f"Registry API error ({status_code}): {message}")


class RegistryConnectionError(RegistryError):
    """Exception raised on network failures talking to the remote registry."""

    def __init__(self, url: str, message: str) -> None:
        """Create a connection error for a registry URL."""
        self.url = url
        self.message = message
        super().__init__(f"Failed to connect to registry at {url}: {message}")
