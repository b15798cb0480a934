"""
Runs restart, start and stop operations against a resolved target.

Every operation ends in an OperationOutcome, never an exception, so that the
caller can always write a terminal entry to the history log.

Unit targets run their sub-steps in order and stop at the first failure.
Compose targets always attempt `up` after `down`.
"""

import os
import logging
from typing import List, Optional

from typing_extensions import assert_never

from .errors import TickleError
from .protocols import ComposeBackend, ServiceBackend
from .schemas import (
    ActionResult,
    Command,
    ErrorKind,
    InvocationPhase,
    OperationError,
    OperationOutcome,
    RestartStrategy,
    ServiceState,
    ServiceTarget,
    SubStep,
    TargetKind,
)

log = logging.getLogger(__name__)

PRIVILEGE_ADVISORY = "You may need to run with sudo for system services"


def unit_steps(command: Command, strategy: Optional[RestartStrategy]) -> List[SubStep]:
    if command is Command.TICKLE:
        if strategy is RestartStrategy.RESTART:
            return [SubStep.RESTART]
        if strategy is RestartStrategy.STOP_START:
            return [SubStep.STOP, SubStep.START]
        raise ValueError("A restart of a unit needs a strategy")
    if command is Command.START:
        return [SubStep.START]
    if command is Command.STOP:
        return [SubStep.STOP]
    assert_never(command)


def compose_steps(command: Command) -> List[SubStep]:
    if command is Command.TICKLE:
        return [SubStep.DOWN, SubStep.UP]
    if command is Command.START:
        return [SubStep.UP]
    if command is Command.STOP:
        return [SubStep.DOWN]
    assert_never(command)


def has_elevated_privileges() -> bool:
    return os.geteuid() == 0


class OperationExecutor:
    """Executes the sub-steps of an operation and observes the result."""

    def __init__(self, service_backend: ServiceBackend, compose_backend: ComposeBackend):
        self.service_backend = service_backend
        self.compose_backend = compose_backend

    def execute(self, target: ServiceTarget, strategy: RestartStrategy) -> OperationOutcome:
        """Restarts the target with the given strategy."""
        return self._run(target, Command.TICKLE, strategy)

    def execute_action(self, target: ServiceTarget, command: Command) -> OperationOutcome:
        """Runs a single start or stop on the target."""
        if command is Command.TICKLE:
            raise ValueError("Use execute() for restarts")
        return self._run(target, command, None)

    def _run(self, target: ServiceTarget, command: Command, strategy: Optional[RestartStrategy]) -> OperationOutcome:
        log.debug(f"{target.label}: {InvocationPhase.EXECUTING.value}")
        if target.kind is TargetKind.UNIT:
            outcome = self._run_unit(target, command, strategy)
        elif target.kind is TargetKind.COMPOSE:
            outcome = self._run_compose(target, command)
        else:
            assert_never(target.kind)
        log.debug(f"{target.label}: {outcome.phase.value}")
        return outcome

    def _observe(self, unit: str) -> ServiceState:
        try:
            return self.service_backend.get_state(unit)
        except TickleError as e:
            log.debug(f"Could not query state of {unit}: {e}")
            return ServiceState.UNKNOWN

    def _act(self, backend, step: SubStep, name) -> ActionResult:
        try:
            return backend.run_action(step, name)
        except TickleError as e:
            log.error(f"{step.value} failed: {e}")
            return ActionResult(success=False, message=str(e))

    def _run_unit(self, target: ServiceTarget, command: Command, strategy: Optional[RestartStrategy]) -> OperationOutcome:
        advisories = []
        if not has_elevated_privileges():
            log.warning(PRIVILEGE_ADVISORY)
            advisories.append(PRIVILEGE_ADVISORY)

        initial_state = self._observe(target.name)
        error = None
        for step in unit_steps(command, strategy):
            result = self._act(self.service_backend, step, target.name)
            if not result.success:
                error = OperationError(
                    kind=ErrorKind.SUB_STEP_FAILED,
                    step=step,
                    message=result.message or f"{step.value} failed",
                )
                break
        final_state = self._observe(target.name)

        if error is None and final_state is ServiceState.FAILED:
            log.warning(f"{target.name} reports a failed state after {command.value}")

        return OperationOutcome(
            target=target,
            command=command,
            strategy=strategy,
            initial_state=initial_state,
            final_state=final_state,
            succeeded=error is None,
            error=error,
            advisories=advisories,
        )

    def _run_compose(self, target: ServiceTarget, command: Command) -> OperationOutcome:
        failures = {}
        for step in compose_steps(command):
            result = self._act(self.compose_backend, step, target.compose_file)
            if not result.success:
                failures[step] = result.message or f"{step.value} failed"

        error = None
        if failures:
            # up failing outranks down failing
            step = SubStep.UP if SubStep.UP in failures else SubStep.DOWN
            error = OperationError(kind=ErrorKind.SUB_STEP_FAILED, step=step, message=failures[step])

        return OperationOutcome(
            target=target,
            command=command,
            strategy=RestartStrategy.STOP_START if command is Command.TICKLE else None,
            initial_state=ServiceState.UNKNOWN,
            final_state=ServiceState.UNKNOWN,
            succeeded=error is None,
            error=error,
        )
