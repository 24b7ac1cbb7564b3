"""Event bus sink — emits envelopes as events and matches them against rules.

Each envelope is wrapped in an event document::

    {
      "id": "...",
      "source": "signalpost",
      "detail-type": "Function Invocation Result - Success",
      "time": "2026-01-01T00:00:00+00:00",
      "resources": ["orders-ingest:$LATEST"],
      "detail": { ...envelope wire form... }
    }

Rules select events by ``detail-type`` and/or ``source``; every matching
rule's target receives the event.  Emitted events are retained in a
bounded history for inspection.
"""

from __future__ import annotations

import collections
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from signalpost.models.destinations import SinkCapability
from signalpost.models.envelopes import DeliveryEnvelope
from signalpost.models.routing import DeliveryAck
from signalpost.routing.sinks import DeliveryError

logger = logging.getLogger(__name__)

DETAIL_TYPE_SUCCESS = "Function Invocation Result - Success"
DETAIL_TYPE_FAILURE = "Function Invocation Result - Failure"

EventTarget = Callable[[dict[str, Any]], None]


class EventRule(BaseModel):
    """Matches emitted events.  ``None`` fields match anything."""

    model_config = ConfigDict(frozen=True)

    name: str
    detail_types: list[str] | None = None
    sources: list[str] | None = None

    def matches(self, event: dict[str, Any]) -> bool:
        if self.detail_types is not None and event["detail-type"] not in self.detail_types:
            return False
        if self.sources is not None and event["source"] not in self.sources:
            return False
        return True


class EventBusSink:
    """An event bus that routes emitted envelopes to rule targets.

    Parameters
    ----------
    name:
        Bus name; the sink is named ``bus:<name>``.
    source:
        The ``source`` field stamped on every emitted event.
    history_size:
        How many emitted events to retain.
    """

    def __init__(
        self,
        name: str,
        *,
        source: str = "signalpost",
        history_size: int = 1024,
    ) -> None:
        self._name = name
        self._source = source
        self._rules: list[tuple[EventRule, EventTarget]] = []
        self._history: collections.deque[dict[str, Any]] = collections.deque(
            maxlen=history_size
        )
        self._lock = threading.Lock()

    @property
    def sink_name(self) -> str:
        return f"bus:{self._name}"

    @property
    def capability(self) -> SinkCapability:
        return SinkCapability.EMIT

    def put_rule(self, rule: EventRule, target: EventTarget) -> None:
        """Attach *target* to events matching *rule*."""
        self._rules.append((rule, target))
        logger.info("EventBus %s: added rule %s", self._name, rule.name)

    @property
    def events(self) -> list[dict[str, Any]]:
        """Return a copy of the retained event history, oldest first."""
        with self._lock:
            return list(self._history)

    def build_event(self, envelope: DeliveryEnvelope) -> dict[str, Any]:
        detail_type = (
            DETAIL_TYPE_SUCCESS if envelope.outcome == "success" else DETAIL_TYPE_FAILURE
        )
        return {
            "id": str(uuid.uuid4()),
            "source": self._source,
            "detail-type": detail_type,
            "time": datetime.now(timezone.utc).isoformat(),
            "resources": [envelope.request_context.function_arn],
            "detail": envelope.to_wire(),
        }

    def deliver(self, envelope: DeliveryEnvelope) -> DeliveryAck:
        """Emit *envelope* and hand the event to every matching rule target.

        The event is accepted once it is on the bus; a failing rule target
        is logged and reported in the ack detail but does not reject the
        event.
        """
        try:
            event = self.build_event(envelope)
        except Exception as exc:
            raise DeliveryError(
                f"EventBus {self._name}: cannot build event: {exc}"
            ) from exc

        with self._lock:
            self._history.append(event)

        matched: list[str] = []
        failed: list[str] = []
        for rule, target in list(self._rules):
            if not rule.matches(event):
                continue
            matched.append(rule.name)
            try:
                target(event)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "EventBus %s: target of rule %s failed for event %s: %s",
                    self._name,
                    rule.name,
                    event["id"],
                    exc,
                )
                failed.append(rule.name)

        logger.debug(
            "EventBus %s: emitted %s (%s), %d rules matched",
            self._name,
            event["id"],
            event["detail-type"],
            len(matched),
        )
        return DeliveryAck(
            sink_name=self.sink_name,
            message_id=event["id"],
            detail={"matched_rules": matched, "failed_rules": failed},
        )
