"""``signalpost drain`` — read and remove envelopes from a SQLite queue."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from signalpost.cli._formatting import summarize_envelope
from signalpost.cli.sinks import render_envelope_json
from signalpost.core.codec import EnvelopeValidationError
from signalpost.routing.sinks.queue import QueueSink

console = Console()


def drain_cmd(
    queue_db: Path = typer.Argument(..., help="Path to the queue's SQLite file."),
    max_messages: int = typer.Option(100, "--max", "-n", help="Maximum envelopes to drain."),
    as_json: bool = typer.Option(False, "--json", help="Print full envelopes as JSON."),
) -> None:
    """Drain envelopes from a persistent queue destination."""
    if not queue_db.exists():
        console.print(f"[red]Queue not found:[/red] {queue_db}")
        raise typer.Exit(code=1)

    with QueueSink(queue_db.stem, db_path=queue_db) as queue:
        try:
            envelopes = queue.drain(max_messages=max_messages)
        except EnvelopeValidationError as exc:
            console.print(f"[red]Corrupt envelope in queue:[/red] {exc}")
            raise typer.Exit(code=1)

    if not envelopes:
        console.print("[dim]Queue is empty.[/dim]")
        return

    if as_json:
        for envelope in envelopes:
            console.print_json(render_envelope_json(envelope))
        return

    table = Table(title=f"Queue {queue_db.stem}")
    table.add_column("Invocation", style="cyan")
    table.add_column("Function")
    table.add_column("Condition")
    table.add_column("Response")
    table.add_column("Timestamp", style="dim")
    for envelope in envelopes:
        ctx = envelope.request_context
        table.add_row(
            ctx.request_id,
            ctx.function_arn,
            ctx.condition.value,
            summarize_envelope(envelope),
            envelope.timestamp.isoformat(),
        )
    console.print(table)
