"""``signalpost demo`` — route a batch of sample invocations.

Runs an order-processing handler over sample orders.  Successes are
enqueued on an in-memory queue, failures are published to an alerts
topic, and the routing of every invocation is shown in a table.
"""

from __future__ import annotations

from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from signalpost.cli._formatting import format_destination, format_status
from signalpost.config import config
from signalpost.core.runtime import FunctionRuntime
from signalpost.models.destinations import DestinationConfig, QueueRef, TopicRef
from signalpost.models.envelopes import DeliveryEnvelope
from signalpost.models.outcomes import InvocationFailure
from signalpost.routing.registry import SinkRegistry
from signalpost.routing.sinks.queue import QueueSink
from signalpost.routing.sinks.topic import TopicSink

console = Console()

SAMPLE_ORDERS: list[dict[str, Any]] = [
    {"order_id": "A-100", "quantity": 2, "unit_price": 9.5},
    {"order_id": "A-101", "quantity": 0, "unit_price": 4.0},
    {"order_id": "A-102", "quantity": 1},
    {"order_id": "A-103", "quantity": 3, "unit_price": 1.25, "coupon": "BOGUS"},
    {"order_id": "A-104", "quantity": 5, "unit_price": 2.0},
]


def process_order(order: dict[str, Any]) -> dict[str, Any]:
    """Sample handler: totals an order."""
    if order["quantity"] <= 0:
        raise ValueError(f"order {order['order_id']} has no items")
    total = order["quantity"] * order["unit_price"]  # KeyError when price is missing
    discount = 0.0
    if "coupon" in order:
        try:
            discount = {"SAVE10": 0.1}[order["coupon"]]
        except KeyError:
            discount = 0.0
    return {"order_id": order["order_id"], "total": round(total * (1 - discount), 2)}


def demo_cmd(
    fail_queue: bool = typer.Option(
        False,
        "--fail-queue",
        help="Shrink the success queue to one slot to demonstrate delivery failures.",
    ),
) -> None:
    """Run sample invocations through success and failure destinations."""
    with QueueSink("orders-completed", max_depth=1 if fail_queue else 100) as completed:
        _route_samples(completed)


def _route_samples(completed: QueueSink) -> None:
    alerts = TopicSink("orders-alerts")
    alerted: list[DeliveryEnvelope] = []
    alerts.subscribe("demo", alerted.append)

    registry = SinkRegistry()
    registry.add(completed)
    registry.add(alerts)
    destinations = DestinationConfig(
        on_success=QueueRef(destination=completed.sink_name),
        on_failure=TopicRef(destination=alerts.sink_name),
    )

    rows = []
    with FunctionRuntime(
        process_order,
        destinations,
        registry,
        function_name="process-order",
        settings=config,
    ) as runtime:
        # invoke sequentially so the queue fills in order
        for order in SAMPLE_ORDERS:
            handle = runtime.invoke(order)
            rows.append((order, handle.result(), handle.routing_result(timeout=10)))

    table = Table(title="signalpost demo: process-order")
    table.add_column("Order", style="cyan")
    table.add_column("Outcome")
    table.add_column("Detail")
    table.add_column("Destination")
    table.add_column("Routing")
    for order, outcome, routed in rows:
        if isinstance(outcome, InvocationFailure):
            label, detail = "[red]failure[/red]", f"{outcome.error_type}: {outcome.error_message}"
        else:
            label, detail = "[green]success[/green]", str(outcome.payload)
        table.add_row(
            order["order_id"], label, detail, format_destination(routed), format_status(routed)
        )

    console.print()
    console.print(table)
    console.print(
        f"[bold]{completed.sink_name}[/bold] depth: {completed.depth}    "
        f"[bold]{alerts.sink_name}[/bold] alerts: {len(alerted)}"
    )
