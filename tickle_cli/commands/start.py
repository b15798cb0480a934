"""
Start command implementation for the tickle CLI.

`tickle start nginx` runs `systemctl start nginx`; with no name, the compose
stack in the current directory is brought up with `up -d`. No classification
is involved. The attempt is recorded in the history log either way.
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


def start_services_logic(
    app_context: AppContext,
    service: Optional[str] = None,
    cwd: Optional[Path] = None,
) -> OperationOutcome:
    """Business logic for starting a service or compose stack."""
    target = app_context.service_manager.resolve(service, cwd)
    outcome = app_context.service_manager.start(target)
    app_context.record(outcome)
    return outcome


def start(
    ctx: typer.Context,
    service: Annotated[
        Optional[str],
        typer.Argument(help="Systemd unit to start. Omit to start the compose stack in the current directory."),
    ] = None,
    follow: Annotated[
        bool,
        typer.Option("--follow", "-f", help="Follow logs after the operation completes."),
    ] = False,
):
    """Starts a service or compose stack."""
    app_context: AppContext = ctx.obj
    try:
        outcome = start_services_logic(app_context, service=service)
    except TickleError as e:
        app_context.display.error(e.message, e.suggestion)
        raise typer.Exit(code=1)
    finish_operation(app_context, outcome, follow=follow)
