"""DestinationRouter — routes one invocation outcome to at most one sink.

Selection is a dispatch on the outcome tag (``success`` ->
``on_success``, ``failure`` -> ``on_failure``).  For the selected sink the
router builds a ``DeliveryEnvelope`` and calls ``deliver`` exactly once:

- no sink configured for the tag -> ``skipped``, nothing delivered;
- sink accepted the envelope -> ``delivered`` with the sink's ack;
- envelope could not be built, the destination could not be resolved, or
  the sink raised -> ``delivery_failed``.

Delivery failures are never retried here and never alter the outcome.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

from signalpost.models.destinations import DestinationConfig
from signalpost.models.envelopes import (
    Condition,
    DeliveryEnvelope,
    ErrorDocument,
    FailureEnvelope,
    RequestContext,
    ResponseContext,
    SuccessEnvelope,
)
from signalpost.models.outcomes import (
    InvocationContext,
    InvocationFailure,
    InvocationResult,
    OutcomeKind,
)
from signalpost.models.routing import RouteStatus, RoutingResult
from signalpost.routing.registry import SinkRegistry
from signalpost.routing.sinks import DeliveryError

logger = logging.getLogger(__name__)

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


def to_json_compatible(value: Any) -> Any:
    """Convert a payload into a JSON-compatible value.

    Bytes are decoded as UTF-8 JSON when possible, as UTF-8 text
    otherwise, and base64-encoded when they are not text at all.
    Structured values go through pydantic's JSON-mode serializer, so
    models, dataclasses, datetimes and the like are supported.

    Raises
    ------
    DeliveryError
        If the value has no JSON representation.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(raw).decode("ascii")
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text

    try:
        return _ANY_ADAPTER.dump_python(value, mode="json")
    except PydanticSerializationError as exc:
        raise DeliveryError(
            f"Payload of type {type(value).__name__} is not JSON-serializable: {exc}"
        ) from exc


def build_envelope(
    result: InvocationResult,
    context: InvocationContext,
    *,
    version: str = "1.0",
) -> DeliveryEnvelope:
    """Wrap *result* and *context* into the envelope a destination receives."""
    request_payload = to_json_compatible(context.request_payload)

    if isinstance(result, InvocationFailure):
        return FailureEnvelope(
            version=version,
            request_context=RequestContext(
                request_id=context.invocation_id,
                function_arn=context.function_arn,
                condition=Condition.RETRIES_EXHAUSTED,
                approximate_invoke_count=context.approximate_invoke_count,
            ),
            request_payload=request_payload,
            response_context=ResponseContext(
                executed_version=context.function_version,
                function_error="Unhandled",
            ),
            error_type=result.error_type,
            error_message=result.error_message,
            response_payload=ErrorDocument(
                error_type=result.error_type,
                error_message=result.error_message,
                stack_trace=(result.stack_trace or "").splitlines(),
            ),
        )

    return SuccessEnvelope(
        version=version,
        request_context=RequestContext(
            request_id=context.invocation_id,
            function_arn=context.function_arn,
            condition=Condition.SUCCESS,
            approximate_invoke_count=context.approximate_invoke_count,
        ),
        request_payload=request_payload,
        response_context=ResponseContext(executed_version=context.function_version),
        response_payload=to_json_compatible(result.payload),
    )


class DestinationRouter:
    """Delivers invocation outcomes to the sink configured for their tag.

    Parameters
    ----------
    registry:
        Resolves destination addresses to sinks.
    envelope_version:
        The ``version`` stamped on every envelope.
    """

    def __init__(self, registry: SinkRegistry, *, envelope_version: str = "1.0") -> None:
        self._registry = registry
        self._envelope_version = envelope_version

    @property
    def registry(self) -> SinkRegistry:
        return self._registry

    def route(
        self,
        result: InvocationResult,
        destinations: DestinationConfig,
        context: InvocationContext,
    ) -> RoutingResult:
        """Route *result* according to *destinations*.

        Never raises for delivery problems; they are reported as a
        ``delivery_failed`` routing result.
        """
        outcome = OutcomeKind(result.kind)
        ref = destinations.sink_for(outcome)

        if ref is None:
            logger.debug(
                "Invocation %s (%s): no destination configured, skipping",
                context.invocation_id,
                outcome.value,
            )
            return RoutingResult(
                invocation_id=context.invocation_id,
                outcome=outcome,
                status=RouteStatus.SKIPPED,
            )

        try:
            envelope = build_envelope(result, context, version=self._envelope_version)
            sink = self._registry.resolve(ref)
            ack = sink.deliver(envelope)
        except Exception as exc:
            error = exc
            if not isinstance(exc, DeliveryError):
                error = DeliveryError(f"{type(exc).__name__}: {exc}")
            logger.error(
                "Invocation %s (%s): delivery to %s failed: %s",
                context.invocation_id,
                outcome.value,
                ref.destination,
                exc,
            )
            return RoutingResult(
                invocation_id=context.invocation_id,
                outcome=outcome,
                status=RouteStatus.DELIVERY_FAILED,
                destination=ref,
                error=str(error),
                error_type=type(error).__name__,
            )

        logger.debug(
            "Invocation %s (%s): delivered to %s as %s",
            context.invocation_id,
            outcome.value,
            ack.sink_name,
            ack.message_id,
        )
        return RoutingResult(
            invocation_id=context.invocation_id,
            outcome=outcome,
            status=RouteStatus.DELIVERED,
            destination=ref,
            ack=ack,
        )
