"""
Check command implementation for the tickle CLI.

Verifies that the backends tickle drives are usable on this host: systemctl,
the compose CLI and Docker daemon, the history log location, and whether the
process runs with elevated privileges. Failed checks are informational; a
host without Docker can still tickle systemd units and vice versa.
"""

import typer
import logging
from typing_extensions import Annotated

from ..context import AppContext
from ..schemas import CheckReport

log = logging.getLogger(__name__)


def check_environment_logic(app_context: AppContext, fix: bool = False) -> CheckReport:
    """Business logic for running environment checks."""
    log.info("Running environment checks...")

    # Check if config fell back to defaults and inform user
    if app_context.config.fell_back_to_defaults:
        log.warning("Configuration file appears to be empty or corrupted. Using default settings.")
        if fix:
            try:
                app_context.config.save()
                log.info(f"Wrote default configuration to {app_context.config.config_path}")
            except OSError as e:
                log.error(f"Failed to write configuration file: {e}")

    report = app_context.service_manager.run_environment_checks()

    passed_count = sum(1 for check in report.checks if check.passed)
    total_count = len(report.checks)

    if passed_count == total_count:
        log.info(f"All environment checks passed ({passed_count}/{total_count})")
    else:
        failed_count = total_count - passed_count
        log.warning(f"Environment check results: {passed_count} passed, {failed_count} failed")

    return report


def check(
    ctx: typer.Context,
    fix: Annotated[
        bool,
        typer.Option("--fix", help="Rewrite a corrupted configuration file with defaults."),
    ] = False,
):
    """Verifies that systemd, Docker Compose and the history log are usable."""
    app_context: AppContext = ctx.obj
    report = check_environment_logic(app_context, fix=fix)
    app_context.display.check_report(report)
