"""signalpost data models — all Pydantic v2, all frozen (immutable)."""

from signalpost.models.destinations import (
    DestinationConfig,
    EventBusRef,
    FunctionRef,
    QueueRef,
    SinkCapability,
    SinkRef,
    TopicRef,
)
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
    CANCELLED_ERROR_TYPE,
    InvocationContext,
    InvocationFailure,
    InvocationResult,
    InvocationSuccess,
    OutcomeKind,
)
from signalpost.models.routing import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    DeliveryAck,
    InvocationState,
    RouteStatus,
    RoutingResult,
    StateTransition,
)

__all__ = [
    # outcomes
    "OutcomeKind",
    "InvocationSuccess",
    "InvocationFailure",
    "InvocationResult",
    "InvocationContext",
    "CANCELLED_ERROR_TYPE",
    # destinations
    "SinkCapability",
    "SinkRef",
    "QueueRef",
    "TopicRef",
    "FunctionRef",
    "EventBusRef",
    "DestinationConfig",
    # envelopes
    "Condition",
    "RequestContext",
    "ResponseContext",
    "ErrorDocument",
    "SuccessEnvelope",
    "FailureEnvelope",
    "DeliveryEnvelope",
    # routing
    "InvocationState",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "RouteStatus",
    "DeliveryAck",
    "StateTransition",
    "RoutingResult",
]
