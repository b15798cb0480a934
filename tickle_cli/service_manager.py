import os
import logging
from pathlib import Path
from typing import Iterator, Optional

from typing_extensions import assert_never

from .classifier import classify
from .docker_client import ComposeClient
from .executor import OperationExecutor, has_elevated_privileges
from .resolver import resolve_target
from .schemas import (
    AppConfig,
    CheckReport,
    Command,
    EnvironmentCheck,
    InvocationPhase,
    OperationOutcome,
    RestartStrategy,
    ServiceTarget,
    TargetKind,
)
from .systemd_client import SystemdClient

log = logging.getLogger(__name__)


class ServiceManager:
    """
    Orchestrates a single tickle invocation.

    Owns the systemd and compose backends and walks a target through
    resolution, classification (units only) and execution.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self.systemd_client = SystemdClient(config)
        self.compose_client = ComposeClient(config)
        self.executor = OperationExecutor(self.systemd_client, self.compose_client)

    # =============================================================================
    # Resolution and Classification
    # =============================================================================

    def resolve(self, service: Optional[str], cwd: Optional[Path] = None) -> ServiceTarget:
        target = resolve_target(service, cwd or Path.cwd())
        log.debug(f"{target.label}: {InvocationPhase.RESOLVED.value}")
        return target

    def classify(self, target: ServiceTarget) -> RestartStrategy:
        """Picks the restart strategy for a unit; raises if the unit can't be queried."""
        self.systemd_client.check_available()
        state, strategy = classify(self.systemd_client, target.name)
        log.info(f"Current state of {target.name}: {state.value}")
        log.debug(f"{target.label}: {InvocationPhase.CLASSIFIED.value}")
        return strategy

    # =============================================================================
    # Operations
    # =============================================================================

    def tickle(self, target: ServiceTarget, force_stop_start: bool = False) -> OperationOutcome:
        """Restarts a target, classifying units first."""
        if target.kind is TargetKind.UNIT:
            strategy = self.classify(target)
            if force_stop_start:
                strategy = RestartStrategy.STOP_START
        elif target.kind is TargetKind.COMPOSE:
            strategy = RestartStrategy.STOP_START
        else:
            assert_never(target.kind)

        log.info(f"Using strategy: {strategy.value}")
        return self.executor.execute(target, strategy)

    def start(self, target: ServiceTarget) -> OperationOutcome:
        return self._single_action(target, Command.START)

    def stop(self, target: ServiceTarget) -> OperationOutcome:
        return self._single_action(target, Command.STOP)

    def _single_action(self, target: ServiceTarget, command: Command) -> OperationOutcome:
        if target.kind is TargetKind.UNIT:
            self.systemd_client.check_available()
        return self.executor.execute_action(target, command)

    # =============================================================================
    # Log Streaming
    # =============================================================================

    def stream_logs(self, target: ServiceTarget, follow: bool = False, tail: Optional[int] = None) -> Iterator[str]:
        if target.kind is TargetKind.UNIT:
            return self.systemd_client.stream_logs(target.name, follow=follow, tail=tail)
        if target.kind is TargetKind.COMPOSE:
            return self.compose_client.stream_logs(target.compose_file, follow=follow, tail=tail)
        assert_never(target.kind)

    # =============================================================================
    # Environment Validation
    # =============================================================================

    def run_environment_checks(self) -> CheckReport:
        """Run environment checks by delegating to both backends."""
        log.debug("Running environment checks...")
        checks = []
        checks.extend(self.systemd_client.run_environment_checks())
        checks.extend(self.compose_client.run_environment_checks())
        checks.append(self._check_history_writable())
        checks.append(self._check_privileges())
        return CheckReport(checks=checks)

    def _check_history_writable(self) -> EnvironmentCheck:
        history_path = self.config.history_path
        # Walk up to the nearest existing directory; append creates the rest
        directory = history_path.parent
        while not directory.exists() and directory != directory.parent:
            directory = directory.parent

        target = history_path if history_path.exists() else directory
        if os.access(target, os.W_OK):
            return EnvironmentCheck(
                name="History Log Writable",
                passed=True,
                details=str(history_path),
            )
        return EnvironmentCheck(
            name="History Log Writable",
            passed=False,
            details=f"Cannot write to {target}",
            suggestion="Fix the permissions or set TICKLE_HISTORY_DIRECTORY in ~/.tickle/.env.",
        )

    def _check_privileges(self) -> EnvironmentCheck:
        if has_elevated_privileges():
            return EnvironmentCheck(name="Elevated Privileges", passed=True, details="Running as root")
        return EnvironmentCheck(
            name="Elevated Privileges",
            passed=False,
            details="Not running as root",
            suggestion="System units usually need sudo; user units do not.",
        )
