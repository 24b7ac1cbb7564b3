"""Function sink — asynchronously invokes another function with the envelope.

The nested function receives the envelope's wire form (a camelCase dict)
as its input.  Delivery succeeds once the nested invocation has been
accepted; the nested function's own outcome is routed through *its*
destinations, not reported back here.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from signalpost.models.destinations import SinkCapability
from signalpost.models.envelopes import DeliveryEnvelope
from signalpost.models.routing import DeliveryAck
from signalpost.routing.sinks import DeliveryError

logger = logging.getLogger(__name__)


@runtime_checkable
class AsyncInvoker(Protocol):
    """Anything that can accept an asynchronous invocation.

    ``FunctionRuntime`` satisfies this protocol.
    """

    @property
    def function_name(self) -> str:
        ...

    def submit(self, event: Any) -> Any:
        """Queue an invocation; the return value exposes ``invocation_id``."""
        ...


class FunctionSink:
    """Delivers envelopes by invoking a nested function.

    Parameters
    ----------
    target:
        The runtime of the function to invoke.
    """

    def __init__(self, target: AsyncInvoker) -> None:
        self._target = target

    @property
    def sink_name(self) -> str:
        return f"function:{self._target.function_name}"

    @property
    def capability(self) -> SinkCapability:
        return SinkCapability.INVOKE

    def deliver(self, envelope: DeliveryEnvelope) -> DeliveryAck:
        """Submit the envelope as the nested function's input.

        Raises
        ------
        DeliveryError
            If the nested runtime refuses the invocation (e.g. it has
            been shut down).
        """
        try:
            handle = self._target.submit(envelope.to_wire())
        except Exception as exc:
            raise DeliveryError(
                f"Function {self._target.function_name} did not accept the "
                f"invocation: {exc}"
            ) from exc

        nested_id = str(getattr(handle, "invocation_id", ""))
        logger.debug(
            "FunctionSink: invocation %s chained into %s as %s",
            envelope.invocation_id,
            self._target.function_name,
            nested_id,
        )
        return DeliveryAck(
            sink_name=self.sink_name,
            message_id=nested_id,
            detail={"function": self._target.function_name},
        )
