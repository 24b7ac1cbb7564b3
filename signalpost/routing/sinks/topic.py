"""Topic sink — publishes each envelope to ALL topic subscribers.

A failure in one subscriber does not block the others.  The publish is
rejected only when every subscriber fails.  Publishing to a topic with no
subscribers succeeds: the message is accepted and reaches nobody.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable

from signalpost.models.destinations import SinkCapability
from signalpost.models.envelopes import DeliveryEnvelope
from signalpost.models.routing import DeliveryAck
from signalpost.routing.sinks import DeliveryError

logger = logging.getLogger(__name__)

Subscriber = Callable[[DeliveryEnvelope], None]


class TopicSink:
    """Fans envelopes out to registered subscribers.

    Usage
    -----
    >>> topic = TopicSink("alerts")
    >>> topic.subscribe("pager", pager.notify)
    >>> topic.subscribe("audit", audit_log.append)
    >>> topic.deliver(envelope)
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._subscribers: dict[str, Subscriber] = {}

    @property
    def sink_name(self) -> str:
        return f"topic:{self._name}"

    @property
    def capability(self) -> SinkCapability:
        return SinkCapability.PUBLISH

    # ------------------------------------------------------------------
    # Subscription management
    # ------------------------------------------------------------------

    def subscribe(self, subscriber_id: str, subscriber: Subscriber) -> None:
        """Register *subscriber* under *subscriber_id*, replacing any previous one."""
        self._subscribers[subscriber_id] = subscriber
        logger.info("Topic %s: subscribed %s", self._name, subscriber_id)

    def unsubscribe(self, subscriber_id: str) -> None:
        """Remove a subscriber; unknown ids are ignored."""
        if self._subscribers.pop(subscriber_id, None) is not None:
            logger.info("Topic %s: unsubscribed %s", self._name, subscriber_id)

    @property
    def subscriber_ids(self) -> list[str]:
        return list(self._subscribers)

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def deliver(self, envelope: DeliveryEnvelope) -> DeliveryAck:
        """Publish *envelope* to every subscriber.

        Raises
        ------
        DeliveryError
            If *all* subscribers fail.  Individual failures are tolerated
            and reported in the ack detail.
        """
        message_id = str(uuid.uuid4())
        subscribers = list(self._subscribers.items())
        if not subscribers:
            logger.warning(
                "Topic %s has no subscribers; invocation %s published to nobody",
                self._name,
                envelope.invocation_id,
            )

        delivered: list[str] = []
        errors: list[tuple[str, Exception]] = []
        for subscriber_id, subscriber in subscribers:
            try:
                subscriber(envelope)
                delivered.append(subscriber_id)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Topic %s: subscriber %s failed for invocation %s: %s",
                    self._name,
                    subscriber_id,
                    envelope.invocation_id,
                    exc,
                )
                errors.append((subscriber_id, exc))

        if errors and not delivered:
            raise DeliveryError(
                f"All {len(errors)} subscribers of topic {self._name} failed: "
                + "; ".join(f"{sid}: {exc}" for sid, exc in errors)
            )

        return DeliveryAck(
            sink_name=self.sink_name,
            message_id=message_id,
            detail={
                "delivered": delivered,
                "failed": [sid for sid, _ in errors],
            },
        )
