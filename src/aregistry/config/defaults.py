"""Default configuration values for the registry runtime."""

DEFAULT_RUNTIME_DIR = "/tmp/arctl-runtime"  # nosec B108
DEFAULT_AGENT_GATEWAY_PORT = 21212
DEFAULT_PROJECT_NAME = "agentregistry_runtime"
DEFAULT_GATEWAY_IMAGE = (
    "localhost:5001/agentregistry-dev/agentregistry/arctl-agentgateway:latest"
)
DEFAULT_NAMESPACE = "kagent"
DEFAULT_COMPOSE_TIMEOUT = 300  # seconds

DEFAULT_CONFIG_PATH = "~/.aregistry/config.yaml"

# Artifact file names inside the runtime directory
COMPOSE_FILE_NAME = "docker-compose.yaml"
GATEWAY_CONFIG_FILE_NAME = "agent-gateway.yaml"
AGENT_MCP_SERVERS_FILE_NAME = "mcp-servers.json"

GATEWAY_SERVICE_NAME = "agent_gateway"
GATEWAY_CONFIG_MOUNT = "/config"
AGENT_CONFIG_MOUNT = "/config"
AGENT_MCP_CONFIG_ENV = "MCP_SERVERS_CONFIG"

# Interpreter commands the gateway image and these base images can run
INTERPRETER_IMAGES: dict[str, str] = {
    "npx": "node:24-alpine3.21",
    "uvx": "ghcr.io/astral-sh/uv:debian",
}

PACKAGE_RUNTIME_HINTS: dict[str, str] = {
    "npm": "npx",
    "pypi": "uvx",
}

DEFAULT_MCP_HTTP_PATH = "/mcp"
DEFAULT_AGENT_PORT = 8080

MANAGED_LABEL = "aregistry.ai/managed"
