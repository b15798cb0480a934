"""
Stop command implementation for the tickle CLI.

`tickle stop nginx` runs `systemctl stop nginx`; with no name, the compose
stack in the current directory is taken down.
"""

import typer
import logging
from pathlib import Path
from typing import Optional
from typing_extensions import Annotated

from ..context import AppContext
from ..errors import TickleError
from ..schemas import OperationOutcome
from .restart import finish_operation

log = logging.getLogger(__name__)


def stop_services_logic(
    app_context: AppContext,
    service: Optional[str] = None,
    cwd: Optional[Path] = None,
) -> OperationOutcome:
    """Business logic for stopping a service or compose stack."""
    target = app_context.service_manager.resolve(service, cwd)
    outcome = app_context.service_manager.stop(target)
    app_context.record(outcome)
    return outcome


def stop(
    ctx: typer.Context,
    service: Annotated[
        Optional[str],
        typer.Argument(help="Systemd unit to stop. Omit to stop the compose stack in the current directory."),
    ] = None,
    follow: Annotated[
        bool,
        typer.Option("--follow", "-f", help="Follow logs after the operation completes."),
    ] = False,
):
    """Stops a service or compose stack."""
    app_context: AppContext = ctx.obj
    try:
        outcome = stop_services_logic(app_context, service=service)
    except TickleError as e:
        app_context.display.error(e.message, e.suggestion)
        raise typer.Exit(code=1)
    finish_operation(app_context, outcome, follow=follow)
