import subprocess
import logging
from typing import Dict, Iterator, Optional

from .errors import BackendUnavailableError, UnitNotFoundError
from .schemas import (
    AppConfig,
    ActionResult,
    EnvironmentCheck,
    ServiceState,
    ServiceType,
    SubStep,
    UnitProperties,
)

log = logging.getLogger(__name__)

QUERY_PROPERTIES = ["LoadState", "ActiveState", "Type", "RemainAfterExit", "CanStart", "CanStop"]

# stderr fragments meaning systemctl could not reach the service manager at all
UNAVAILABLE_MARKERS = (
    "failed to connect to bus",
    "system has not been booted with systemd",
    "host is down",
)

NOT_FOUND_MARKERS = (
    "not found",
    "not loaded",
    "no such file",
)

SYSTEMCTL_VERBS = {
    SubStep.RESTART: "restart",
    SubStep.STOP: "stop",
    SubStep.START: "start",
}


def parse_show_output(output: str) -> Dict[str, str]:
    """Parses `systemctl show` Key=Value lines into a dict."""
    properties = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            properties[key.strip()] = value.strip()
    return properties


def parse_unit_properties(properties: Dict[str, str]) -> UnitProperties:
    raw_type = properties.get("Type") or "simple"
    try:
        service_type = ServiceType(raw_type)
    except ValueError:
        service_type = ServiceType.OTHER
    if service_type is ServiceType.OTHER:
        log.debug(f"Treating unit type '{raw_type}' as a generic long-running service")

    # Properties older systemd versions don't report are assumed permissive
    can_start = properties.get("CanStart", "yes") == "yes"
    can_stop = properties.get("CanStop", "yes") == "yes"

    return UnitProperties(
        service_type=service_type,
        raw_type=raw_type,
        remain_after_exit=properties.get("RemainAfterExit", "no") == "yes",
        can_restart=can_start and can_stop,
    )


class SystemdClient:
    """A wrapper for systemctl and journalctl operations."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.systemctl = config.systemctl_command

    def _run_systemctl(self, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.systemctl, *args],
            capture_output=True,
            text=True,
            errors="replace",
        )

    # =============================================================================
    # Queries
    # =============================================================================

    def check_available(self):
        """Raises BackendUnavailableError if systemctl cannot be executed."""
        try:
            self._run_systemctl("--version")
        except OSError as e:
            raise BackendUnavailableError(
                f"{self.systemctl} is not available: {e}",
                "tickle requires systemd to manage named services.",
            ) from e

    def show(self, unit: str, properties: list[str]) -> Dict[str, str]:
        """Runs `systemctl show` for the given properties of a unit."""
        try:
            result = self._run_systemctl("show", unit, f"--property={','.join(properties)}")
        except OSError as e:
            raise BackendUnavailableError(
                f"Failed to run {self.systemctl}: {e}",
                "tickle requires systemd to manage named services.",
            ) from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            lowered = stderr.lower()
            if any(marker in lowered for marker in UNAVAILABLE_MARKERS):
                raise BackendUnavailableError(
                    f"Cannot reach the service manager: {stderr}",
                    "Make sure systemd is running on this host.",
                )
            if any(marker in lowered for marker in NOT_FOUND_MARKERS):
                raise UnitNotFoundError(f"Service {unit} not found: {stderr}")
            raise BackendUnavailableError(f"Failed to query {unit}: {stderr or f'exit code {result.returncode}'}")

        return parse_show_output(result.stdout)

    def query(self, unit: str) -> tuple[ServiceState, UnitProperties]:
        """Returns the current state and structural properties of a unit."""
        properties = self.show(unit, QUERY_PROPERTIES)
        if properties.get("LoadState") == "not-found":
            raise UnitNotFoundError(
                f"Service {unit} not found",
                "Check the unit name with `systemctl list-units --type=service`.",
            )
        state = ServiceState.from_active_state(properties.get("ActiveState", ""))
        return state, parse_unit_properties(properties)

    def get_state(self, unit: str) -> ServiceState:
        properties = self.show(unit, ["ActiveState"])
        return ServiceState.from_active_state(properties.get("ActiveState", ""))

    # =============================================================================
    # Actions
    # =============================================================================

    def run_action(self, step: SubStep, unit: str) -> ActionResult:
        """Runs `systemctl <verb> <unit>` and reports success or the stderr text."""
        verb = SYSTEMCTL_VERBS.get(step)
        if verb is None:
            raise ValueError(f"{step.value} is not a systemd action")

        log.info(f"Running {self.systemctl} {verb} {unit}...")
        try:
            result = self._run_systemctl(verb, unit)
        except OSError as e:
            log.error(f"Failed to execute {verb} command: {e}")
            return ActionResult(success=False, message=f"Failed to execute {verb} command: {e}")

        if result.returncode != 0:
            stderr = result.stderr.strip()
            log.error(f"{verb.capitalize()} failed: {stderr}")
            return ActionResult(success=False, message=f"{verb.capitalize()} failed: {stderr}")
        return ActionResult(success=True)

    # =============================================================================
    # Log Streaming
    # =============================================================================

    def stream_logs(self, unit: str, follow: bool = False, tail: Optional[int] = None) -> Iterator[str]:
        """Streams journal lines for a unit."""
        log_cmd = [self.config.journalctl_command, "-u", unit, "--no-pager"]
        if follow:
            log_cmd.append("--follow")
        if tail:
            log_cmd.extend(["-n", str(tail)])

        try:
            process = subprocess.Popen(
                log_cmd,
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
                log.error(f"journalctl failed with exit code {process.returncode}")

        except FileNotFoundError:
            log.error(f"{self.config.journalctl_command} command not found. Is it installed and in your PATH?")

    # =============================================================================
    # Environment Validation
    # =============================================================================

    def run_environment_checks(self) -> list[EnvironmentCheck]:
        try:
            result = self._run_systemctl("--version")
        except OSError as e:
            log.debug(f"systemctl check failed: {e}")
            return [EnvironmentCheck(
                name="systemctl Available",
                passed=False,
                details=f"{self.systemctl} could not be executed: {e}",
                suggestion="Named services require systemd. Compose stacks still work without it.",
            )]

        version = result.stdout.splitlines()[0] if result.stdout else self.systemctl
        return [EnvironmentCheck(
            name="systemctl Available",
            passed=result.returncode == 0,
            details=version,
        )]
