import typer
from typing import Optional
from typing_extensions import Annotated
from typer.core import TyperGroup

from . import __version__
from .context import AppContext
from .commands.restart import restart
from .commands.start import start
from .commands.stop import stop
from .commands.history import history
from .commands.logs import logs
from .commands.check import check


class DefaultCommandGroup(TyperGroup):
    """
    Routes anything that isn't a known command to `restart`.

    This keeps `tickle nginx`, `tickle -s nginx` and a bare `tickle` working
    alongside the explicit subcommands.
    """

    default_command = "restart"
    group_options = ("--verbose", "--version", "-v", "--help", "-h")

    def parse_args(self, ctx, args):
        index = 0
        while index < len(args) and args[index] in self.group_options:
            index += 1
        help_requested = "--help" in args[:index] or "-h" in args[:index]
        if not help_requested and (index == len(args) or args[index] not in self.commands):
            args = args[:index] + [self.default_command] + args[index:]
        return super().parse_args(ctx, args)


app = typer.Typer(
    cls=DefaultCommandGroup,
    help="Restart a systemd service or Docker Compose stack the right way.",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command()(restart)
app.command()(start)
app.command()(stop)
app.command()(history)
app.command()(logs)
app.command()(check)


def version_callback(value: bool):
    if value:
        typer.echo(f"tickle {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Enable verbose output for debugging.",
        ),
    ] = False,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version information.",
        ),
    ] = None,
):
    """
    Initialize the AppContext and attach it to the Typer context.
    """
    ctx.obj = AppContext(verbose=verbose)


if __name__ == "__main__":
    app()
