"""Sink wiring for CLI runs.

Queue destinations become SQLite-backed queues under the queue directory
so another ``signalpost drain`` can read them.  Topic, event-bus and
function destinations print what they receive to the console.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from rich.console import Console

from signalpost.config import RouterSettings
from signalpost.core.runtime import FunctionRuntime
from signalpost.models.destinations import DestinationConfig, SinkCapability
from signalpost.models.envelopes import DeliveryEnvelope
from signalpost.routing.registry import SinkRegistry
from signalpost.routing.sinks.event_bus import EventBusSink, EventRule
from signalpost.routing.sinks.function import FunctionSink
from signalpost.routing.sinks.queue import QueueSink
from signalpost.routing.sinks.topic import TopicSink


def address_name(address: str) -> str:
    """``"queue:orders"`` -> ``"orders"``; unprefixed addresses are returned as-is."""
    _, sep, name = address.partition(":")
    return name if sep and name else address


def queue_db_path(queue_dir: Path, address: str) -> Path:
    return queue_dir / f"{address_name(address)}.db"


def build_cli_registry(
    destinations: DestinationConfig,
    *,
    queue_dir: Path,
    console: Console,
    settings: RouterSettings,
) -> tuple[SinkRegistry, list[Any]]:
    """Create a sink for every destination in *destinations*.

    Returns the registry and the resources the caller must close
    (queues and nested runtimes).
    """
    registry = SinkRegistry()
    resources: list[Any] = []

    def _echo(label: str) -> Any:
        def _print(item: Any) -> None:
            data = item.to_wire() if hasattr(item, "to_wire") else item
            console.print(f"[bold cyan]{label}[/bold cyan] received:")
            console.print_json(json.dumps(data, default=str))

        return _print

    for ref in (destinations.on_success, destinations.on_failure):
        if ref is None or ref.destination in registry:
            continue
        capability = SinkCapability(ref.capability)
        if capability is SinkCapability.ENQUEUE:
            sink: Any = QueueSink(
                address_name(ref.destination),
                max_depth=settings.queue_max_depth,
                db_path=queue_db_path(queue_dir, ref.destination),
            )
            resources.append(sink)
        elif capability is SinkCapability.PUBLISH:
            sink = TopicSink(address_name(ref.destination))
            sink.subscribe("console", _echo(ref.destination))
        elif capability is SinkCapability.EMIT:
            sink = EventBusSink(
                address_name(ref.destination),
                history_size=settings.event_bus_history,
            )
            sink.put_rule(EventRule(name="console"), _echo(ref.destination))
        else:
            nested = FunctionRuntime(
                _echo(ref.destination),
                function_name=address_name(ref.destination),
                settings=settings,
            )
            resources.append(nested)
            sink = FunctionSink(nested)
        registry.register(ref.destination, sink)

    return registry, resources


def close_resources(resources: list[Any]) -> None:
    for resource in resources:
        if isinstance(resource, FunctionRuntime):
            resource.shutdown(wait=True)
        else:
            resource.close()


def render_envelope_json(envelope: DeliveryEnvelope) -> str:
    return json.dumps(envelope.to_wire(), indent=2, sort_keys=True)
