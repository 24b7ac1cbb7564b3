"""Unit tests for the queue, topic, event-bus and function sinks."""

from __future__ import annotations

from pathlib import Path

import pytest

from signalpost.models.destinations import SinkCapability
from signalpost.models.envelopes import SuccessEnvelope
from signalpost.models.outcomes import InvocationFailure, InvocationSuccess
from signalpost.routing.router import build_envelope
from signalpost.routing.sinks import DeliveryError, Sink
from signalpost.routing.sinks.event_bus import (
    DETAIL_TYPE_FAILURE,
    DETAIL_TYPE_SUCCESS,
    EventBusSink,
    EventRule,
)
from signalpost.routing.sinks.function import FunctionSink
from signalpost.routing.sinks.queue import QueueSink
from signalpost.routing.sinks.topic import TopicSink


@pytest.fixture
def success_envelope(make_context):
    return build_envelope(InvocationSuccess(payload={"n": 1}), make_context())


@pytest.fixture
def failure_envelope(make_context):
    failure = InvocationFailure(error_type="ValueError", error_message="bad")
    return build_envelope(failure, make_context(invocation_id="inv-fail"))


# ---------------------------------------------------------------------------
# Test: QueueSink (in-memory)
# ---------------------------------------------------------------------------


class TestQueueSinkInMemory:
    def test_deliver_then_receive(self, success_envelope):
        queue = QueueSink("orders")
        ack = queue.deliver(success_envelope)

        assert ack.sink_name == "queue:orders"
        assert ack.message_id == "1"
        assert queue.depth == 1

        received = queue.receive()
        assert isinstance(received, SuccessEnvelope)
        assert received.invocation_id == success_envelope.invocation_id
        assert queue.depth == 0

    def test_fifo_ordering(self, success_envelope, failure_envelope):
        queue = QueueSink("orders")
        queue.deliver(success_envelope)
        queue.deliver(failure_envelope)

        assert [e.outcome for e in queue.drain()] == ["success", "failure"]

    def test_receive_returns_none_when_empty(self):
        assert QueueSink("orders").receive() is None

    def test_full_queue_rejects(self, success_envelope):
        queue = QueueSink("orders", max_depth=2)
        queue.deliver(success_envelope)
        queue.deliver(success_envelope)
        with pytest.raises(DeliveryError, match="full"):
            queue.deliver(success_envelope)
        assert queue.depth == 2

    def test_closed_queue_rejects(self, success_envelope):
        queue = QueueSink("orders")
        queue.close()
        with pytest.raises(DeliveryError, match="closed"):
            queue.deliver(success_envelope)
        assert queue.receive() is None

    def test_protocol_compliance(self):
        queue = QueueSink("orders")
        assert isinstance(queue, Sink)
        assert queue.capability is SinkCapability.ENQUEUE
        assert queue.is_persistent is False


# ---------------------------------------------------------------------------
# Test: QueueSink (SQLite)
# ---------------------------------------------------------------------------


class TestQueueSinkSQLite:
    def test_round_trip(self, tmp_path: Path, success_envelope):
        with QueueSink("orders", db_path=tmp_path / "orders.db") as queue:
            assert queue.is_persistent
            queue.deliver(success_envelope)
            received = queue.receive()
        assert received is not None
        assert received.response_payload == {"n": 1}

    def test_persistence_across_restart(self, tmp_path: Path, failure_envelope):
        db = tmp_path / "nested" / "dlq.db"
        first = QueueSink("dlq", db_path=db)
        first.deliver(failure_envelope)
        first.close()

        second = QueueSink("dlq", db_path=db)
        received = second.receive()
        second.close()

        assert received is not None
        assert received.error_type == "ValueError"

    def test_bounded_at_max_depth(self, tmp_path: Path, success_envelope):
        with QueueSink("orders", db_path=tmp_path / "q.db", max_depth=1) as queue:
            queue.deliver(success_envelope)
            with pytest.raises(DeliveryError):
                queue.deliver(success_envelope)

    def test_drain_respects_max(self, tmp_path: Path, success_envelope):
        with QueueSink("orders", db_path=tmp_path / "q.db") as queue:
            for _ in range(5):
                queue.deliver(success_envelope)
            assert len(queue.drain(max_messages=3)) == 3
            assert queue.depth == 2


# ---------------------------------------------------------------------------
# Test: TopicSink
# ---------------------------------------------------------------------------


class TestTopicSink:
    def test_fan_out_to_all_subscribers(self, success_envelope):
        topic = TopicSink("alerts")
        a, b = [], []
        topic.subscribe("a", a.append)
        topic.subscribe("b", b.append)

        ack = topic.deliver(success_envelope)

        assert ack.sink_name == "topic:alerts"
        assert ack.detail["delivered"] == ["a", "b"]
        assert len(a) == 1 and len(b) == 1

    def test_partial_failure_tolerated(self, success_envelope):
        topic = TopicSink("alerts")
        good = []

        def _broken(envelope):
            raise RuntimeError("subscriber down")

        topic.subscribe("good", good.append)
        topic.subscribe("broken", _broken)

        ack = topic.deliver(success_envelope)
        assert ack.detail == {"delivered": ["good"], "failed": ["broken"]}
        assert len(good) == 1

    def test_all_subscribers_fail(self, success_envelope):
        topic = TopicSink("alerts")

        def _broken(envelope):
            raise RuntimeError("down")

        topic.subscribe("broken", _broken)
        with pytest.raises(DeliveryError, match="All 1 subscribers"):
            topic.deliver(success_envelope)

    def test_no_subscribers_accepted(self, success_envelope):
        ack = TopicSink("alerts").deliver(success_envelope)
        assert ack.detail["delivered"] == []

    def test_unsubscribe(self, success_envelope):
        topic = TopicSink("alerts")
        seen = []
        topic.subscribe("a", seen.append)
        topic.unsubscribe("a")
        topic.unsubscribe("a")
        topic.deliver(success_envelope)
        assert seen == []
        assert topic.subscriber_ids == []


# ---------------------------------------------------------------------------
# Test: EventBusSink
# ---------------------------------------------------------------------------


class TestEventBusSink:
    def test_event_document(self, success_envelope):
        bus = EventBusSink("default", source="orders")
        bus.deliver(success_envelope)

        event = bus.events[0]
        assert event["source"] == "orders"
        assert event["detail-type"] == DETAIL_TYPE_SUCCESS
        assert event["resources"] == ["test-fn:7"]
        assert event["detail"]["responsePayload"] == {"n": 1}

    def test_rules_filter_by_detail_type(self, success_envelope, failure_envelope):
        bus = EventBusSink("default")
        failures, everything = [], []
        bus.put_rule(
            EventRule(name="failures", detail_types=[DETAIL_TYPE_FAILURE]),
            failures.append,
        )
        bus.put_rule(EventRule(name="all"), everything.append)

        bus.deliver(success_envelope)
        ack = bus.deliver(failure_envelope)

        assert ack.detail["matched_rules"] == ["failures", "all"]
        assert len(failures) == 1
        assert failures[0]["detail"]["errorType"] == "ValueError"
        assert len(everything) == 2

    def test_rules_filter_by_source(self, success_envelope):
        bus = EventBusSink("default", source="orders")
        seen = []
        bus.put_rule(EventRule(name="other", sources=["billing"]), seen.append)
        ack = bus.deliver(success_envelope)
        assert ack.detail["matched_rules"] == []
        assert seen == []

    def test_failing_target_does_not_reject_event(self, success_envelope):
        bus = EventBusSink("default")

        def _broken(event):
            raise RuntimeError("target down")

        bus.put_rule(EventRule(name="broken"), _broken)
        ack = bus.deliver(success_envelope)
        assert ack.detail["failed_rules"] == ["broken"]
        assert len(bus.events) == 1

    def test_history_is_bounded(self, success_envelope):
        bus = EventBusSink("default", history_size=2)
        for _ in range(3):
            bus.deliver(success_envelope)
        assert len(bus.events) == 2


# ---------------------------------------------------------------------------
# Test: FunctionSink
# ---------------------------------------------------------------------------


class _StubInvoker:
    def __init__(self, fail: bool = False) -> None:
        self.events = []
        self._fail = fail

    @property
    def function_name(self) -> str:
        return "next-step"

    def submit(self, event):
        if self._fail:
            raise RuntimeError("runtime is shut down")
        self.events.append(event)

        class _Handle:
            invocation_id = "nested-1"

        return _Handle()


class TestFunctionSink:
    def test_submits_wire_form(self, success_envelope):
        target = _StubInvoker()
        sink = FunctionSink(target)

        ack = sink.deliver(success_envelope)

        assert sink.sink_name == "function:next-step"
        assert sink.capability is SinkCapability.INVOKE
        assert ack.message_id == "nested-1"
        assert target.events[0]["responsePayload"] == {"n": 1}
        assert target.events[0]["requestContext"]["requestId"] == "inv-0001"

    def test_refused_invocation_is_delivery_error(self, success_envelope):
        with pytest.raises(DeliveryError, match="did not accept"):
            FunctionSink(_StubInvoker(fail=True)).deliver(success_envelope)
