"""Actions command - List and inspect browser actions."""

import typer
from rich.console import Console
from rich.table import Table

from webpilot.core.tools.browser_actions import default_browser_tools

app = typer.Typer(help="Browser action catalogue")
console = Console()


@app.command("list")
def list_actions():
    """List available browser actions."""
    table = Table(title="Browser Actions")
    table.add_column("Name", style="cyan")
    table.add_column("Description", style="white")

    for tool in default_browser_tools():
        table.add_row(tool.name, tool.description)

    console.print(table)


@app.command("inspect")
def inspect_action(action_name: str = typer.Argument(..., help="Action name to inspect")):
    """Inspect action details and parameters."""
    tool = next((t for t in default_browser_tools() if t.name == action_name), None)
    if tool is None:
        console.print(f"[red]Action '{action_name}' not found[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold cyan]{tool.name}[/bold cyan]")
    console.print(f"{tool.description}\n")
    console.print("[bold]Parameters:[/bold]")
    console.print_json(data=tool.parameters_schema)
