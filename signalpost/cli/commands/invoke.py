"""``signalpost invoke`` — run one invocation and route its outcome.

Loads the handler from a ``module:function`` reference, invokes it with
the given JSON event, waits for routing to finish and prints the outcome
and where it was delivered.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from signalpost.cli._formatting import format_destination, format_status
from signalpost.cli.sinks import build_cli_registry, close_resources
from signalpost.config import config
from signalpost.core.executor import HandlerLoadError, load_handler
from signalpost.core.runtime import FunctionRuntime
from signalpost.models.destinations import DestinationConfig
from signalpost.models.outcomes import InvocationFailure
from signalpost.models.routing import RouteStatus

console = Console()


def invoke_cmd(
    handler: str = typer.Argument(..., help="Handler reference, e.g. 'app.handlers:process'."),
    event: str = typer.Option(
        "null",
        "--event",
        "-e",
        help="Invocation input as a JSON document.",
    ),
    destinations_file: Path = typer.Option(
        None,
        "--destinations",
        "-d",
        help="JSON file with onSuccess / onFailure destinations.",
    ),
    queue_dir: Path = typer.Option(
        None,
        "--queue-dir",
        "-q",
        help="Directory holding SQLite queues for enqueue destinations.",
    ),
    function_name: str = typer.Option(
        None,
        "--function-name",
        "-f",
        help="Source identity stamped on envelopes.",
    ),
    timeout: float = typer.Option(30.0, help="Seconds to wait for routing."),
) -> None:
    """Invoke a handler once and route its outcome to its destinations."""
    try:
        payload = json.loads(event)
    except json.JSONDecodeError as exc:
        console.print(f"[red]--event is not valid JSON:[/red] {exc}")
        raise typer.Exit(code=2)

    try:
        fn = load_handler(handler)
    except HandlerLoadError as exc:
        console.print(f"[red]Cannot load handler:[/red] {exc}")
        raise typer.Exit(code=2)

    destinations = DestinationConfig()
    if destinations_file:
        try:
            destinations = DestinationConfig.from_file(destinations_file)
        except (ValidationError, OSError) as exc:
            console.print(f"[red]Cannot load destinations:[/red] {exc}")
            raise typer.Exit(code=2)
    registry, resources = build_cli_registry(
        destinations,
        queue_dir=queue_dir or config.queue_dir,
        console=console,
        settings=config,
    )

    runtime = FunctionRuntime(
        fn,
        destinations,
        registry,
        function_name=function_name,
        settings=config,
    )
    try:
        handle = runtime.invoke(payload)
        outcome = handle.result(timeout)
        routed = handle.routing_result(timeout)
    finally:
        runtime.shutdown(wait=True)
        close_resources(resources)

    if isinstance(outcome, InvocationFailure):
        outcome_line = (
            f"[bold red]Failure[/bold red]  {outcome.error_type}: {outcome.error_message}"
        )
    else:
        outcome_line = f"[bold green]Success[/bold green]  {outcome.payload!r}"

    lines = [
        f"[bold]Invocation:[/bold]   {handle.invocation_id}",
        f"[bold]Function:[/bold]     {runtime.function_name}:{runtime.function_version}",
        f"[bold]Outcome:[/bold]      {outcome_line}",
        f"[bold]Routing:[/bold]      {format_status(routed)}",
        f"[bold]Destination:[/bold]  {format_destination(routed)}",
    ]
    if routed.ack is not None:
        lines.append(f"[bold]Message ID:[/bold]   {routed.ack.message_id}")
    if routed.error:
        lines.append(f"[bold]Error:[/bold]        [red]{routed.error}[/red]")

    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]signalpost invoke[/bold]",
            border_style="red" if routed.status is RouteStatus.DELIVERY_FAILED else "green",
            padding=(1, 2),
        )
    )

    if routed.status is RouteStatus.DELIVERY_FAILED:
        raise typer.Exit(code=1)
