"""Sink registry — resolves destination addresses to sink instances.

Sink references in a ``DestinationConfig`` carry only an address and a
capability.  The registry maps each address to the concrete sink that
accepts envelopes for it and checks the capabilities agree.  It is
populated at setup time and only read while invocations are routed.
"""

from __future__ import annotations

import logging

from signalpost.models.destinations import SinkRef
from signalpost.routing.sinks import DeliveryError, Sink

logger = logging.getLogger(__name__)


class UnknownDestinationError(DeliveryError):
    """Raised when no sink is registered for a destination address."""


class CapabilityMismatchError(DeliveryError):
    """Raised when the registered sink cannot deliver the way the ref asks."""


class SinkRegistry:
    """Maps destination addresses to sinks.

    Usage
    -----
    >>> registry = SinkRegistry()
    >>> registry.register("queue:orders-dlq", QueueSink("orders-dlq"))
    >>> registry.resolve(QueueRef(destination="queue:orders-dlq"))
    """

    def __init__(self) -> None:
        self._sinks: dict[str, Sink] = {}

    def register(self, address: str, sink: Sink) -> None:
        """Register *sink* under *address*, replacing any previous sink."""
        if not isinstance(sink, Sink):
            raise TypeError(f"{sink!r} does not implement the Sink protocol")
        previous = self._sinks.get(address)
        self._sinks[address] = sink
        if previous is not None and previous is not sink:
            logger.warning(
                "Replaced sink for %s: %s -> %s",
                address,
                previous.sink_name,
                sink.sink_name,
            )
        else:
            logger.info("Registered sink %s at %s", sink.sink_name, address)

    def add(self, sink: Sink) -> None:
        """Register *sink* under its own ``sink_name``."""
        self.register(sink.sink_name, sink)

    def unregister(self, address: str) -> None:
        """Remove the sink at *address*; unknown addresses are ignored."""
        if self._sinks.pop(address, None) is not None:
            logger.info("Unregistered sink at %s", address)

    def __contains__(self, address: object) -> bool:
        return address in self._sinks

    @property
    def addresses(self) -> list[str]:
        return sorted(self._sinks)

    def resolve(self, ref: SinkRef) -> Sink:
        """Return the sink for *ref*.

        Raises
        ------
        UnknownDestinationError
            If nothing is registered at ``ref.destination``.
        CapabilityMismatchError
            If the registered sink's capability differs from ``ref.capability``.
        """
        sink = self._sinks.get(ref.destination)
        if sink is None:
            raise UnknownDestinationError(
                f"No sink registered for destination {ref.destination!r}"
            )
        if sink.capability.value != ref.capability:
            raise CapabilityMismatchError(
                f"Destination {ref.destination!r} is a {sink.capability.value} sink, "
                f"but the destination config asks to {ref.capability}"
            )
        return sink
