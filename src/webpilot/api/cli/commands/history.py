"""History command - Inspect and delete persisted step histories."""

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

from webpilot.config.settings import WebPilotSettings
from webpilot.core.domain.history import AgentStepHistory
from webpilot.infrastructure.persistence.file_history import FileHistoryStore

app = typer.Typer(help="Step history management")
console = Console()


def _store(history_dir: str | None) -> FileHistoryStore:
    return FileHistoryStore(history_dir or WebPilotSettings().history_dir)


@app.command("list")
def list_histories(
    history_dir: str | None = typer.Option(None, "--dir", help="History directory"),
):
    """List all stored step histories."""
    histories = asyncio.run(_store(history_dir).list_histories())

    table = Table(title="Step Histories")
    table.add_column("Task ID", style="cyan")
    table.add_column("Task", style="white")
    table.add_column("Steps", style="magenta")
    table.add_column("Created", style="dim")

    for stored in histories:
        steps = len(AgentStepHistory.from_json(stored.history))
        table.add_row(stored.task_id, stored.task[:60], str(steps), stored.created_at)

    console.print(table)


@app.command("show")
def show_history(
    task_id: str = typer.Argument(..., help="Task ID"),
    history_dir: str | None = typer.Option(None, "--dir", help="History directory"),
):
    """Show the recorded steps of one task."""
    stored = asyncio.run(_store(history_dir).load_agent_step_history(task_id))
    if stored is None:
        console.print(f"[red]No history for task '{task_id}'[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold]Task:[/bold] {stored.task}")
    console.print(f"[bold]Created:[/bold] {stored.created_at}")
    console.print_json(data=json.loads(stored.history))


@app.command("delete")
def delete_history(
    task_id: str = typer.Argument(..., help="Task ID"),
    history_dir: str | None = typer.Option(None, "--dir", help="History directory"),
):
    """Delete the stored history of one task."""
    deleted = asyncio.run(_store(history_dir).delete_agent_step_history(task_id))
    if not deleted:
        console.print(f"[red]No history for task '{task_id}'[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted history for task '{task_id}'[/green]")
