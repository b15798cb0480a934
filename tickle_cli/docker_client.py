import docker
import shutil
import subprocess
import logging
from pathlib import Path
from typing import Iterator, List, Optional

from .schemas import (
    AppConfig,
    ActionResult,
    EnvironmentCheck,
    SubStep,
)

log = logging.getLogger(__name__)

COMPOSE_ARGS = {
    SubStep.DOWN: ["down"],
    SubStep.UP: ["up", "-d"],
}


class ComposeClient:
    """A wrapper for Docker Compose operations."""

    def __init__(self, config: AppConfig):
        self.config = config
        self._client = None
        self._compose_command: Optional[List[str]] = None

    @property
    def client(self):
        """Docker SDK client, connected on first use; None if the daemon is unreachable."""
        if self._client is None:
            try:
                client = docker.from_env()
                client.ping()  # Test connection
                log.debug("Docker client initialized successfully")
                self._client = client
            except docker.errors.DockerException as e:
                log.debug(f"Failed to initialize Docker client: {e}")
        return self._client

    def compose_command(self) -> Optional[List[str]]:
        """
        Returns the first working compose CLI from the configured candidates.

        `docker compose` (the plugin) is preferred over the legacy
        `docker-compose` binary by default.
        """
        if self._compose_command is not None:
            return self._compose_command

        for candidate in self.config.compose_commands:
            if not candidate or shutil.which(candidate[0]) is None:
                continue
            try:
                result = subprocess.run(candidate + ["version"], capture_output=True, text=True, errors="replace")
            except OSError as e:
                log.debug(f"Compose candidate {' '.join(candidate)} failed: {e}")
                continue
            if result.returncode == 0:
                log.debug(f"Using compose command: {' '.join(candidate)}")
                self._compose_command = list(candidate)
                return self._compose_command
        return None

    # =============================================================================
    # Docker Compose Operations
    # =============================================================================

    def _run_compose_command(self, command: list, compose_file: Path) -> ActionResult:
        """Helper to run a compose command against a single compose file."""
        base_cmd = self.compose_command()
        if base_cmd is None:
            log.error("Neither `docker compose` nor `docker-compose` is available.")
            return ActionResult(success=False, message="No compose command available")

        full_cmd = base_cmd + ["-f", str(compose_file)] + command

        try:
            process = subprocess.Popen(
                full_cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                encoding='utf-8',
                errors='replace',
            )
        except OSError as e:
            log.error(f"Failed to run {' '.join(base_cmd)}: {e}")
            return ActionResult(success=False, message=str(e))

        output_lines = []
        for line in iter(process.stdout.readline, ''):
            output_lines.append(line)
            log.debug(line.rstrip())

        process.wait()

        if process.returncode != 0:
            error_output = "".join(output_lines).strip()
            log.error(
                f"Compose command failed with exit code {process.returncode}. "
                f"Command: `{' '.join(full_cmd)}` Output: {error_output}"
            )
            return ActionResult(success=False, message=f"Compose command failed: {error_output}")
        return ActionResult(success=True)

    def run_action(self, step: SubStep, compose_file: Path) -> ActionResult:
        args = COMPOSE_ARGS.get(step)
        if args is None:
            raise ValueError(f"{step.value} is not a compose action")
        if step is SubStep.DOWN:
            log.info(f"Bringing down compose stack {compose_file.name}...")
        else:
            log.info("Bringing stack up in detached mode...")
        return self._run_compose_command(args, compose_file)

    # =============================================================================
    # Log Streaming
    # =============================================================================

    def stream_logs(self, compose_file: Path, follow: bool = False, tail: Optional[int] = None) -> Iterator[str]:
        """Streams logs from the whole compose stack."""
        base_cmd = self.compose_command()
        if base_cmd is None:
            log.error("Neither `docker compose` nor `docker-compose` is available.")
            return

        log_cmd = ["logs"]
        if follow:
            log_cmd.append("--follow")
        if tail:
            log_cmd.extend(["--tail", str(tail)])

        full_cmd = base_cmd + ["-f", str(compose_file)] + log_cmd

        try:
            process = subprocess.Popen(
                full_cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                encoding='utf-8',
                errors='replace',
            )

            for line in iter(process.stdout.readline, ''):
                yield line.rstrip("\n")

            process.wait()
            if process.returncode != 0:
                log.error(f"Compose log command failed with exit code {process.returncode}")

        except FileNotFoundError:
            log.error(f"{base_cmd[0]} command not found. Is it installed and in your PATH?")

    # =============================================================================
    # Environment Validation
    # =============================================================================

    def run_environment_checks(self) -> List[EnvironmentCheck]:
        """Runs Docker-specific environment checks."""
        checks = []

        compose_cmd = self.compose_command()
        if compose_cmd:
            checks.append(EnvironmentCheck(
                name="Compose CLI Available",
                passed=True,
                details=f"Using `{' '.join(compose_cmd)}`",
            ))
        else:
            checks.append(EnvironmentCheck(
                name="Compose CLI Available",
                passed=False,
                details="Neither `docker compose` nor `docker-compose` could be run",
                suggestion="Install Docker with the compose plugin to manage compose stacks.",
            ))

        if self.client is not None:
            checks.append(EnvironmentCheck(
                name="Docker Daemon Running",
                passed=True,
                details="Docker daemon is accessible and responding",
            ))
        else:
            checks.append(EnvironmentCheck(
                name="Docker Daemon Running",
                passed=False,
                details="Docker daemon is not running or not accessible",
                suggestion="Please start Docker (or your Docker service) and try again.",
            ))

        return checks
