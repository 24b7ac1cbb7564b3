"""Integration test — invocations routed end to end through real sinks.

Wires one function to a persistent SQLite success queue and an event-bus
failure destination whose failure rule feeds an alerts topic, then runs a
mixed batch concurrently and checks every outcome landed exactly once in
the right place.
"""

from __future__ import annotations

import json

import pytest

from signalpost.core.codec import decode_envelope
from signalpost.core.runtime import FunctionRuntime
from signalpost.models.destinations import DestinationConfig, EventBusRef, QueueRef
from signalpost.models.envelopes import FailureEnvelope, SuccessEnvelope
from signalpost.models.routing import InvocationState, RouteStatus
from signalpost.routing.registry import SinkRegistry
from signalpost.routing.sinks.event_bus import DETAIL_TYPE_FAILURE, EventBusSink, EventRule
from signalpost.routing.sinks.queue import QueueSink
from signalpost.routing.sinks.topic import TopicSink


def score(event):
    """Handler: rejects negative scores, handles missing bonus itself."""
    if event["score"] < 0:
        raise ValueError(f"negative score for {event['player']}")
    try:
        bonus = event["bonus"]
    except KeyError:
        bonus = 0
    return {"player": event["player"], "total": event["score"] + bonus}


@pytest.fixture
def pipeline(tmp_path, settings):
    completed = QueueSink("scores", db_path=tmp_path / "scores.db")
    bus = EventBusSink("default", source="scoring")
    alerts = TopicSink("alerts")
    alerted = []
    alerts.subscribe("pager", alerted.append)
    bus.put_rule(
        EventRule(name="failures-to-alerts", detail_types=[DETAIL_TYPE_FAILURE]),
        lambda event: alerts.deliver(decode_envelope(json.dumps(event["detail"]))),
    )

    registry = SinkRegistry()
    registry.add(completed)
    registry.add(bus)
    destinations = DestinationConfig(
        on_success=QueueRef(destination="queue:scores"),
        on_failure=EventBusRef(destination="bus:default"),
    )
    runtime = FunctionRuntime(
        score, destinations, registry, function_name="scoring", settings=settings
    )
    yield runtime, completed, bus, alerted
    runtime.shutdown(wait=True)
    completed.close()


class TestFullPipeline:
    def test_mixed_batch_routes_each_outcome_once(self, pipeline, tmp_path):
        runtime, completed, bus, alerted = pipeline
        events = [
            {"player": "ada", "score": 10, "bonus": 5},
            {"player": "bob", "score": -1},
            {"player": "cy", "score": 7},
            {"player": "dee", "score": -3},
            {"player": "eve", "score": 0},
        ]

        handles = [runtime.submit(event) for event in events]
        results = [h.routing_result(timeout=10) for h in handles]

        assert all(r.status is RouteStatus.DELIVERED for r in results)
        assert [r.outcome for r in results] == [
            "success", "failure", "success", "failure", "success",
        ]
        assert all(h.state is InvocationState.ROUTED_DELIVERED for h in handles)

        queued = completed.drain()
        assert len(queued) == 3
        assert all(isinstance(e, SuccessEnvelope) for e in queued)
        totals = {e.response_payload["player"]: e.response_payload["total"] for e in queued}
        assert totals == {"ada": 15, "cy": 7, "eve": 0}

        assert len(bus.events) == 2
        assert len(alerted) == 2
        assert all(isinstance(e, FailureEnvelope) for e in alerted)
        assert sorted(e.error_message for e in alerted) == [
            "negative score for bob",
            "negative score for dee",
        ]
        for envelope in alerted:
            assert envelope.request_context.function_arn == "scoring:7"
            assert envelope.request_context.condition.value == "RetriesExhausted"
            assert envelope.response_context.function_error == "Unhandled"
            assert envelope.response_payload.error_type == "ValueError"
            assert envelope.response_payload.stack_trace

    def test_success_queue_survives_restart(self, pipeline, tmp_path):
        runtime, completed, _, _ = pipeline
        handle = runtime.invoke({"player": "fay", "score": 3})
        handle.routing_result(timeout=10)

        with QueueSink("scores", db_path=tmp_path / "scores.db") as reopened:
            envelope = reopened.receive()

        assert envelope is not None
        assert envelope.invocation_id == handle.invocation_id
        assert envelope.request_payload == {"player": "fay", "score": 3}
        assert completed.depth == 0

    def test_full_success_queue_reports_delivery_failure(self, tmp_path, settings):
        small = QueueSink("tiny", max_depth=1)
        registry = SinkRegistry()
        registry.add(small)
        config = DestinationConfig(on_success=QueueRef(destination="queue:tiny"))

        with FunctionRuntime(score, config, registry, settings=settings) as runtime:
            first = runtime.invoke({"player": "a", "score": 1})
            first.routing_result(timeout=10)
            second = runtime.invoke({"player": "b", "score": 2})
            routed = second.routing_result(timeout=10)

        assert routed.status is RouteStatus.DELIVERY_FAILED
        assert "full" in routed.error
        assert second.result().payload == {"player": "b", "total": 2}
        assert second.state is InvocationState.ROUTED_DELIVERY_FAILED
        assert small.depth == 1
