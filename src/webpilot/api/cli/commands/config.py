"""Config command - Show and initialize settings."""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from webpilot.config.settings import DEFAULT_CONFIG_PATH, WebPilotSettings

app = typer.Typer(help="Configuration management")
console = Console()


@app.command("show")
def show_config(
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="YAML settings file"
    ),
):
    """Show the effective configuration."""
    settings = WebPilotSettings.load_from_file(config_file)
    config_data = settings.model_dump()

    table = Table(title="WebPilot Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_column("Description", style="dim")

    for field_name, field_info in WebPilotSettings.model_fields.items():
        value = config_data.get(field_name, "")
        if isinstance(value, list):
            value = ", ".join(str(item) for item in value)
        table.add_row(field_name, str(value), field_info.description or "")

    console.print(table)


@app.command("init")
def init_config(
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="YAML settings file"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write the default configuration to a YAML file."""
    if config_file.exists() and not force:
        console.print(f"[yellow]Config already exists: {config_file}[/yellow] (use --force)")
        raise typer.Exit(1)

    path = WebPilotSettings().save_to_file(config_file)
    console.print(f"[green]Configuration written to {path}[/green]")
