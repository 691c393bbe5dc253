"""Small helpers shared by the translators and the local runtime."""

import os
import re
import tempfile
from pathlib import Path

_INVALID_VERSION_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")


def sanitize_version(version: str) -> str:
    """Make a version string safe for use as a single path segment.

    Example:
        >>> sanitize_version("1.0.0+build/7")
        '1.0.0_build_7'
    """
    sanitized = _INVALID_VERSION_CHARS.sub("_", version.strip())
    # ".." would escape the agent directory
    sanitized = sanitized.replace("..", "_")
    return sanitized or "latest"


def resource_name(catalog_name: str) -> str:
    """Derive a runtime resource name from a reverse-DNS catalog name.

    Takes the segment after the last ``/`` and normalizes it to a lowercase
    DNS label, which is what both compose service names and Kubernetes
    object names accept.

    Example:
        >>> resource_name("io.example/Echo_Server")
        'echo-server'
    """
    short = catalog_name.rsplit("/", 1)[-1].lower()
    short = _INVALID_NAME_CHARS.sub("-", short).strip("-")
    return short[:63].rstrip("-")


def atomic_write_text(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` in one step.

    Writes to a temporary file in the same directory and renames it over the
    target, so readers never observe a partially written file.

    Raises:
        OSError: If the directory cannot be created or the write fails
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def agent_config_dir(runtime_dir: Path, agent_name: str, version: str) -> Path:
    """Return the directory holding an agent version's side files.

    Example:
        >>> agent_config_dir(Path("/tmp/rt"), "io.example/planner", "1.0.0")
        PosixPath('/tmp/rt/planner/1.0.0')
    """
    directory = runtime_dir / resource_name(agent_name)
    if version:
        directory = directory / sanitize_version(version)
    return directory
