"""
History command implementation for the tickle CLI.

`tickle history` prints the audit log of restart, start and stop attempts,
`tickle history -n 10` only the last ten, and `tickle history clear` empties it.
"""

import typer
import logging
from enum import Enum
from typing import List, Optional
from typing_extensions import Annotated

from ..context import AppContext
from ..errors import HistoryWriteFailedError
from ..schemas import HistoryEntry

log = logging.getLogger(__name__)


class HistoryAction(str, Enum):
    CLEAR = "clear"


def history_logic(app_context: AppContext, lines: Optional[int] = None) -> tuple[List[HistoryEntry], int]:
    """Returns the entries to show and the total number of entries."""
    entries = app_context.history.read()
    if lines is None:
        return entries, len(entries)
    shown = entries[-lines:] if lines > 0 else []
    return shown, len(entries)


def clear_history_logic(app_context: AppContext):
    """Business logic for clearing the history."""
    app_context.history.clear()
    log.info("History cleared successfully.")


def history(
    ctx: typer.Context,
    action: Annotated[
        Optional[HistoryAction],
        typer.Argument(help="Use 'clear' to remove all history entries."),
    ] = None,
    lines: Annotated[
        Optional[int],
        typer.Option("-n", "--lines", min=0, help="Show only the last N entries."),
    ] = None,
):
    """Shows or clears the command history."""
    app_context: AppContext = ctx.obj

    if action is HistoryAction.CLEAR:
        try:
            clear_history_logic(app_context)
        except HistoryWriteFailedError as e:
            app_context.display.error(e.message)
            raise typer.Exit(code=1)
        return

    history_path = app_context.history.path
    if not history_path.exists():
        log.info("No history found. Start using tickle to build your history!")
        return

    try:
        entries, total = history_logic(app_context, lines=lines)
    except OSError as e:
        app_context.display.error(f"Failed to read history file: {e}")
        raise typer.Exit(code=1)

    if total == 0:
        log.info("History file is empty.")
        return

    app_context.display.history(entries, total, history_path)
