"""
Logs command implementation for the tickle CLI.

Streams the journal of a systemd unit (`journalctl -u`) or the logs of the
compose stack in the current directory. The same streaming backs the
`--follow` flag of restart, start and stop.
"""

import typer
import logging
from pathlib import Path
from typing import Iterator, Optional
from typing_extensions import Annotated

from ..context import AppContext
from ..errors import TickleError
from ..schemas import ServiceTarget

log = logging.getLogger(__name__)


def logs_services_logic(
    app_context: AppContext,
    service: Optional[str] = None,
    follow: bool = False,
    tail: Optional[int] = None,
    cwd: Optional[Path] = None,
) -> Iterator[str]:
    """Business logic for streaming logs."""
    target = app_context.service_manager.resolve(service, cwd)
    return app_context.service_manager.stream_logs(target, follow=follow, tail=tail)


def follow_logs_logic(app_context: AppContext, target: ServiceTarget):
    """Follows a target's logs until interrupted."""
    log.info("Following logs (Ctrl+C to stop)...")
    try:
        for line in app_context.service_manager.stream_logs(target, follow=True):
            app_context.display.log_message(line)
    except KeyboardInterrupt:
        log.info("Log streaming interrupted")


def logs(
    ctx: typer.Context,
    service: Annotated[
        Optional[str],
        typer.Argument(help="Systemd unit to show logs for. Omit for the compose stack in the current directory."),
    ] = None,
    follow: Annotated[
        bool,
        typer.Option("--follow", "-f", help="Continuously stream new log entries."),
    ] = False,
    tail: Annotated[
        Optional[int],
        typer.Option("--tail", "-n", min=1, help="Number of lines to show from the end of the logs."),
    ] = None,
):
    """Shows the logs of a service or compose stack."""
    app_context: AppContext = ctx.obj
    try:
        log_stream = logs_services_logic(app_context, service=service, follow=follow, tail=tail)

        line_count = 0
        for log_line in log_stream:
            app_context.display.log_message(log_line)
            line_count += 1

        if line_count == 0:
            log.info("No log output received")

    except KeyboardInterrupt:
        log.info("Log streaming interrupted")
    except TickleError as e:
        app_context.display.error(e.message, e.suggestion)
        raise typer.Exit(code=1)
