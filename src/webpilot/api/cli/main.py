"""WebPilot CLI entry point."""

import logging

import structlog
import typer
from rich.console import Console

from webpilot.api.cli.commands import actions, config, history

app = typer.Typer(
    name="webpilot",
    help="WebPilot - LLM-driven browser agent",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.add_typer(config.app, name="config", help="Configuration management")
app.add_typer(history.app, name="history", help="Step history management")
app.add_typer(actions.app, name="actions", help="Browser action catalogue")


def setup_logging(level_name: str = "WARNING", debug: bool = False) -> None:
    """Configure stdlib logging and structlog with the same level."""
    level = logging.DEBUG if debug else logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
):
    """WebPilot browser agent CLI."""
    setup_logging(log_level, debug)
    ctx.obj = {"debug": debug}


@app.command()
def version():
    """Show WebPilot version."""
    from webpilot import __version__

    console.print(f"[bold blue]WebPilot[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
