"""
Restart ("tickle") command implementation for the tickle CLI.

This is the default command: `tickle nginx` and `tickle restart nginx` are the
same invocation. A named service is a systemd unit whose restart strategy is
picked from its properties; with no name, the compose stack in the current
directory is brought down and back up.

## Execution Flow Diagram

```mermaid
sequenceDiagram
    participant CLI as CLI
    participant Main as main.py
    participant Restart as restart.py
    participant Ctx as context.py<br/>(AppContext)
    participant SM as service_manager.py<br/>(ServiceManager)
    participant Res as resolver.py
    participant Cls as classifier.py
    participant Exe as executor.py<br/>(OperationExecutor)
    participant SC as systemd_client.py<br/>(SystemdClient)
    participant Hist as history.py<br/>(HistoryLog)

    CLI->>Main: tickle nginx
    Main->>Main: DefaultCommandGroup routes to "restart"
    Main->>Ctx: AppContext(verbose=False)
    Main->>Restart: restart(ctx, service="nginx")
    Restart->>SM: resolve("nginx", cwd)
    SM->>Res: resolve_target("nginx", cwd)
    Res-->>SM: ServiceTarget(UNIT, "nginx")

    Note over SM: RESOLVED
    Restart->>SM: tickle(target, force_stop_start=False)
    SM->>SC: check_available()
    SM->>Cls: classify(systemd_client, "nginx")
    Cls->>SC: query("nginx")
    SC->>SC: systemctl show nginx --property=LoadState,ActiveState,Type,...
    SC-->>Cls: (ACTIVE, UnitProperties(type=simple, can_restart=True))
    Cls-->>SM: (ACTIVE, RESTART)

    Note over SM: CLASSIFIED
    SM->>Exe: execute(target, RESTART)
    Note over Exe: EXECUTING
    Exe->>SC: get_state("nginx") → ACTIVE
    Exe->>SC: run_action(RESTART, "nginx")
    SC->>SC: systemctl restart nginx
    Exe->>SC: get_state("nginx") → ACTIVE
    Exe-->>SM: OperationOutcome(succeeded=True)
    Note over Exe: VERIFIED

    Restart->>Ctx: record(outcome)
    Ctx->>Hist: append("... | tickle | nginx | SUCCESS")
    Restart->>Restart: display.outcome(outcome)
```

## Key Architecture Points

- **No Entry Without An Attempt**: resolution and classification errors abort
  before `record()` is reached, so the history log only holds attempts
- **Failed Attempts Are Recorded**: a failed sub-step still yields an outcome,
  which is logged as FAILED before the non-zero exit
- **History Is Best Effort**: a failed history write is a warning and never
  changes the exit code
- **Forced Stop/Start**: `--stop-start` overrides the classified strategy, but
  classification still runs so unknown units are rejected up front
"""

import typer
import logging
from pathlib import Path
from typing import Optional
from typing_extensions import Annotated

from ..context import AppContext
from ..errors import TickleError
from ..schemas import OperationOutcome, TargetKind
from .logs import follow_logs_logic

log = logging.getLogger(__name__)


def restart_services_logic(
    app_context: AppContext,
    service: Optional[str] = None,
    stop_start: bool = False,
    cwd: Optional[Path] = None,
) -> OperationOutcome:
    """Business logic for restarting a service or compose stack."""
    manager = app_context.service_manager
    target = manager.resolve(service, cwd)
    if target.kind is TargetKind.COMPOSE:
        log.info(f"Compose file detected: {target.compose_file.name}")

    outcome = manager.tickle(target, force_stop_start=stop_start)
    app_context.record(outcome)
    return outcome


def finish_operation(app_context: AppContext, outcome: OperationOutcome, follow: bool = False):
    """Reports an outcome and sets the exit code, following logs on success if asked."""
    app_context.display.outcome(outcome)
    if not outcome.succeeded:
        raise typer.Exit(code=1)
    if follow:
        follow_logs_logic(app_context, outcome.target)


def restart(
    ctx: typer.Context,
    service: Annotated[
        Optional[str],
        typer.Argument(help="Systemd unit to restart. Omit to restart the compose stack in the current directory."),
    ] = None,
    stop_start: Annotated[
        bool,
        typer.Option("--stop-start", "-s", help="Force stop/start instead of restart."),
    ] = False,
    follow: Annotated[
        bool,
        typer.Option("--follow", "-f", help="Follow logs after the operation completes."),
    ] = False,
):
    """Restarts (tickles) a service or compose stack. This is the default command."""
    app_context: AppContext = ctx.obj
    try:
        outcome = restart_services_logic(app_context, service=service, stop_start=stop_start)
    except TickleError as e:
        log.debug(f"Restart aborted: {e.kind.value}")
        app_context.display.error(e.message, e.suggestion)
        raise typer.Exit(code=1)
    finish_operation(app_context, outcome, follow=follow)
