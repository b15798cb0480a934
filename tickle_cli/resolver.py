import logging
import os
from pathlib import Path
from typing import Optional

from .errors import ComposeFileUnreadableError, NoTargetFoundError
from .schemas import ServiceTarget

log = logging.getLogger(__name__)

# Searched in this order; the first one present wins.
COMPOSE_FILE_CANDIDATES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
    "container-compose.yml",
    "container-compose.yaml",
)


def find_compose_file(cwd: Path) -> Optional[Path]:
    """Returns the highest-priority compose file present in cwd, if any."""
    for candidate in COMPOSE_FILE_CANDIDATES:
        path = cwd / candidate
        if path.exists():
            return path
    return None


def resolve_target(name: Optional[str], cwd: Path) -> ServiceTarget:
    """
    Decides what an invocation operates on.

    A given name is always a systemd unit; its existence is checked later by
    the classifier. Without a name, the compose file in cwd is used.

    Raises:
        NoTargetFoundError: no name and no compose file in cwd.
        ComposeFileUnreadableError: the compose file found cannot be read.
    """
    if name:
        log.debug(f"Targeting systemd unit: {name}")
        return ServiceTarget.unit(name)

    cwd = cwd.resolve()
    compose_file = find_compose_file(cwd)
    if compose_file is None:
        raise NoTargetFoundError(
            "No service name provided and no compose file found",
            f"Pass a service name, or run tickle in a directory containing one of: {', '.join(COMPOSE_FILE_CANDIDATES)}",
        )

    if not compose_file.is_file() or not os.access(compose_file, os.R_OK):
        raise ComposeFileUnreadableError(
            f"Compose file {compose_file} is not a readable file",
            "Check the file's permissions.",
        )

    log.debug(f"Compose file detected: {compose_file}")
    return ServiceTarget.compose(compose_file)
