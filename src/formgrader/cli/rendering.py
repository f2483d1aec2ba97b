"""Rich views for workspace CLI output."""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table

from formgrader.workspace import (
    ReimportDetails,
    ReimportResult,
    Workspace,
    WorkspaceSummary,
    format_change_counts,
)


def render_workspace_list(console: Console, summaries: Sequence[WorkspaceSummary]) -> None:
    """Render workspace summaries as a table, newest first.

    Args:
        console: Rich console.
        summaries: Summaries in display order.
    """
    if not summaries:
        console.print(
            Panel(
                "No workspaces found.",
                title="Workspaces",
                border_style="yellow",
                expand=True,
            )
        )
        return
    table = Table(title="Workspaces", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("File", style="magenta")
    table.add_column("Responses", justify="right")
    table.add_column("Questions", justify="right")
    table.add_column("Updated", style="green")
    for summary in summaries:
        table.add_row(
            summary.id,
            summary.name,
            summary.file_name,
            str(summary.total_responses),
            str(summary.total_questions),
            summary.updated_at.isoformat(timespec="seconds"),
        )
    console.print(table)


def render_workspace(console: Console, workspace: Workspace, *, title: str) -> None:
    """Render one full workspace document as JSON."""
    console.print(
        Panel(
            JSON(workspace.model_dump_json(indent=2)),
            title=f"{title} [{workspace.id}]",
            border_style="green",
            expand=True,
        )
    )


def render_message(console: Console, message: str, *, ok: bool = True) -> None:
    """Render a one-line status panel."""
    console.print(
        Panel(
            message,
            title="Formgrader",
            border_style="green" if ok else "bold red",
            expand=True,
        )
    )


def render_reimport(console: Console, result: ReimportResult) -> None:
    """Render reimport counts, or the per-question mismatch list.

    Args:
        console: Rich console.
        result: Reimport outcome.
    """
    if isinstance(result.details, ReimportDetails):
        table = Table(title="Reimport", show_header=True, header_style="bold cyan")
        table.add_column("Added", justify="right")
        table.add_column("Updated", justify="right")
        table.add_column("Removed", justify="right")
        table.add_column("Total", justify="right")
        table.add_row(
            str(result.details.added),
            str(result.details.updated),
            str(result.details.removed),
            str(result.details.total_responses),
        )
        console.print(table)
        console.print(
            format_change_counts(
                added=result.details.added,
                updated=result.details.updated,
                removed=result.details.removed,
            )
        )
        return
    lines = [result.error or "Reimport failed"]
    if isinstance(result.details, list):
        lines.extend(f"- {item}" for item in result.details)
    render_message(console, "\n".join(lines), ok=False)
