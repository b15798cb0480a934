import logging
from pathlib import Path
from rich.logging import RichHandler
from rich.console import Console
from rich.panel import Panel
from rich.markup import escape
from rich.table import Table
from typing import List, Optional

from .schemas import CheckReport, HistoryEntry, HistoryStatus, OperationOutcome, ServiceState


class Display:
    """
    A centralized display handler for all CLI output.

    LOGGING STANDARDS:

    This module handles structured UI elements (tables, panels) and configures
    the logging system. All other modules use Python's logging system for user
    communication:

    - DEBUG: Internal state changes, backend commands, phase transitions (verbose mode only)
    - INFO: User-facing progress of an operation
    - WARNING: Recoverable issues: privilege advisories, history write failures
    - ERROR: Failed sub-steps and backend errors

    EXCEPTION: log_message() is for streaming journal and compose logs and uses
    direct console output since these are raw log streams, not application messages.
    """

    def __init__(self, verbose: bool = False):
        self._console = Console()
        self._verbose = verbose

        # Clear any existing handlers to avoid duplicate logs
        root_logger = logging.getLogger()
        if root_logger.hasHandlers():
            root_logger.handlers.clear()

        # Configure logging to use RichHandler
        logging.basicConfig(
            level="DEBUG" if verbose else "INFO",
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=self._console, rich_tracebacks=True, show_path=verbose, show_level=verbose)]
        )

    @property
    def verbose(self) -> bool:
        """Returns whether verbose mode is enabled."""
        return self._verbose

    def success(self, message: str):
        """Prints a success message."""
        self._console.print(f"[bold green]Success:[/] {message}")

    def error(self, message: str, suggestion: Optional[str] = None):
        """Prints an error message and an optional suggestion."""
        error_panel = Panel(
            f"[bold red]Error:[/] {escape(message)}\n"
            + (f"\n[bold]Suggestion:[/] {escape(suggestion)}" if suggestion else ""),
            border_style="red",
            expand=False,
        )
        self._console.print(error_panel)

    def outcome(self, outcome: OperationOutcome):
        """Summarises a finished operation."""
        action = outcome.command.value.capitalize()
        if outcome.succeeded:
            self.success(f"{action} of {outcome.target.label} completed.")
        else:
            step = outcome.error.step.value if outcome.error.step else outcome.command.value
            self.error(
                f"{action} of {outcome.target.label} failed during {step}: {outcome.error.message}",
                "Run with --verbose for the full backend output.",
            )
        if ServiceState.UNKNOWN not in (outcome.initial_state, outcome.final_state):
            self._console.print(
                f"[cyan]State:[/] {outcome.initial_state.value} -> {outcome.final_state.value}"
            )

    def history(self, entries: List[HistoryEntry], total: int, path: Path):
        """Displays history entries in a table."""
        table = Table(title=f"Tickle History ({path})")
        table.add_column("Timestamp", style="cyan")
        table.add_column("Command", style="magenta")
        table.add_column("Target", style="yellow")
        table.add_column("Status")

        for entry in entries:
            status_style = "green" if entry.status is HistoryStatus.SUCCESS else "red"
            table.add_row(
                entry.timestamp,
                entry.command,
                entry.target_label,
                f"[{status_style}]{entry.status.value}[/]",
            )

        self._console.print(table)
        self._console.print(f"Total entries: {total}")

    def check_report(self, report: CheckReport):
        """Displays the results of an environment check."""
        for check in report.checks:
            status = "[bold green]PASSED[/]" if check.passed else "[bold red]FAILED[/]"
            self._console.print(f"{status}: {check.name}")
            if check.details and (self._verbose or not check.passed):
                self._console.print(f"  [cyan]Details:[/] {check.details}")
            if not check.passed and check.suggestion:
                self._console.print(f"  [cyan]Suggestion:[/] {check.suggestion}")

    def log_message(self, message: str):
        """Prints a single log line."""
        # Raw journal/compose output; markup and highlighting would mangle it
        self._console.print(message, markup=False, highlight=False)

    def print(self, *args, **kwargs):
        """A wrapper around rich.print for general output."""
        self._console.print(*args, **kwargs)
