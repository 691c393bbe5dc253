"""Tests for the exception hierarchy in aregistry.lib.errors."""

import pytest

from aregistry.lib.errors import (
    AlreadyExistsError,
    ConfigError,
    DeploymentError,
    DiscoveredDeploymentError,
    DockerNotAvailableError,
    DuplicateResourceError,
    InvalidInputError,
    NotFoundError,
    OperationNotSupportedError,
    ReconciliationError,
    RegistryAPIError,
    RegistryConnectionError,
    RegistryError,
    TranslationError,
    UnsupportedPlatformError,
)


@pytest.mark.unit
class TestErrorHierarchy:
    """Tests that every error is catchable at the API boundary."""

    @pytest.mark.parametrize(
        "error",
        [
            ConfigError("runtime_dir", "bad"),
            NotFoundError("server", "io.example/echo"),
            AlreadyExistsError("deployment", "abc"),
            InvalidInputError("bad"),
            UnsupportedPlatformError("acme"),
            OperationNotSupportedError("get_logs", "local"),
            DeploymentError("apply", "boom"),
            RegistryAPIError(500, "boom"),
            RegistryConnectionError("http://localhost", "refused"),
        ],
    )
    def test_all_errors_are_registry_errors(self, error: Exception) -> None:
        """Test each error type derives from RegistryError."""
        assert isinstance(error, RegistryError)

    def test_input_errors_share_invalid_input_base(self) -> None:
        """Test duplicate, discovered and translation errors are input errors."""
        assert isinstance(DuplicateResourceError("MCPServer", "echo"), InvalidInputError)
        assert isinstance(DiscoveredDeploymentError("abc"), InvalidInputError)
        assert isinstance(TranslationError("echo", "no image"), InvalidInputError)


@pytest.mark.unit
class TestErrorMessages:
    """Tests for error message formatting."""

    def test_config_error_includes_field(self) -> None:
        """Test ConfigError names the offending field."""
        error = ConfigError("agent_gateway_port", "must be positive")
        assert error.field == "agent_gateway_port"
        assert "agent_gateway_port" in str(error)
        assert "must be positive" in str(error)

    def test_not_found_with_version(self) -> None:
        """Test NotFoundError includes the version when given."""
        error = NotFoundError("server", "io.example/echo", "1.0.0")
        assert str(error) == "server 'io.example/echo (version 1.0.0)' not found"
        assert error.name == "io.example/echo"

    def test_not_found_without_version(self) -> None:
        """Test NotFoundError omits an absent version."""
        assert str(NotFoundError("provider", "acme-1")) == "provider 'acme-1' not found"

    def test_duplicate_resource_message(self) -> None:
        """Test DuplicateResourceError message names kind and resource."""
        error = DuplicateResourceError("MCPServer", "echo")
        assert str(error) == "duplicate MCPServer name found: echo"

    def test_unsupported_platform_blank_key(self) -> None:
        """Test a blank platform key is reported as unknown."""
        assert "unknown" in str(UnsupportedPlatformError("  "))

    def test_deployment_error_keeps_operation(self) -> None:
        """Test DeploymentError exposes the failed operation."""
        error = DeploymentError("apply", "compose failed")
        assert error.operation == "apply"
        assert str(error) == "Deployment apply failed: compose failed"

    def test_reconciliation_error_carries_cleanup_failure(self) -> None:
        """Test both the reconcile and cleanup failures are reported."""
        cleanup = RuntimeError("store offline")
        error = ReconciliationError("reconciliation failed", cleanup)
        assert error.operation == "reconcile"
        assert error.cleanup_error is cleanup
        assert "reconciliation failed" in str(error)
        assert "cleanup failed: store offline" in str(error)

    def test_reconciliation_error_without_cleanup_failure(self) -> None:
        """Test no cleanup text is added when cleanup succeeded."""
        error = ReconciliationError("reconciliation failed")
        assert error.cleanup_error is None
        assert "cleanup failed" not in str(error)

    def test_docker_not_available_is_deployment_error(self) -> None:
        """Test DockerNotAvailableError points at the Docker daemon."""
        error = DockerNotAvailableError("apply")
        assert isinstance(error, DeploymentError)
        assert "Docker is not available" in str(error)

    def test_registry_api_error_status(self) -> None:
        """Test RegistryAPIError keeps the HTTP status."""
        error = RegistryAPIError(503, "unavailable")
        assert error.status_code == 503
        assert "503" in str(error)
