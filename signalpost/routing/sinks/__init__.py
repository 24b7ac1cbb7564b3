"""Sink protocol and delivery errors for signalpost routing.

All sinks implement the ``Sink`` protocol: ``sink_name`` and
``capability`` properties and a ``deliver(envelope)`` method returning a
``DeliveryAck``.  A sink that cannot accept an envelope raises
``DeliveryError``; the router turns that into a ``delivery_failed``
routing result.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from signalpost.models.destinations import SinkCapability
from signalpost.models.envelopes import DeliveryEnvelope
from signalpost.models.routing import DeliveryAck


class DeliveryError(RuntimeError):
    """Raised when a configured sink could not accept an envelope.

    Distinct from an invocation failure: the invocation's outcome stands,
    only its delivery failed.
    """


@runtime_checkable
class Sink(Protocol):
    """Protocol that every signalpost sink must implement.

    Attributes
    ----------
    sink_name : str
        A human-readable identifier for this sink instance
        (e.g. ``"queue:orders-dlq"``).
    capability : SinkCapability
        How the sink accepts envelopes; must match the capability of the
        ``SinkRef`` that addresses it.
    """

    @property
    def sink_name(self) -> str:
        """Return the name of this sink."""
        ...

    @property
    def capability(self) -> SinkCapability:
        """Return the delivery capability of this sink."""
        ...

    def deliver(self, envelope: DeliveryEnvelope) -> DeliveryAck:
        """Accept an envelope.

        Raises
        ------
        DeliveryError
            If the envelope could not be accepted.  Other exceptions are
            wrapped into ``DeliveryError`` by the router.
        """
        ...
