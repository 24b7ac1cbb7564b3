"""Routing models — per-invocation lifecycle states and routing results."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from signalpost.models.destinations import SinkRef
from signalpost.models.outcomes import OutcomeKind


class InvocationState(str, Enum):
    """Strict lifecycle of a single invocation."""

    PENDING = "pending"
    EXECUTED_SUCCESS = "executed_success"
    EXECUTED_FAILURE = "executed_failure"
    ROUTED_DELIVERED = "routed_delivered"
    ROUTED_SKIPPED = "routed_skipped"
    ROUTED_DELIVERY_FAILED = "routed_delivery_failed"


_ROUTED = {
    InvocationState.ROUTED_DELIVERED,
    InvocationState.ROUTED_SKIPPED,
    InvocationState.ROUTED_DELIVERY_FAILED,
}

# Valid state transitions — enforced structurally by InvocationLifecycle.
# Terminal states (Routed.*) have no outgoing transitions.
VALID_TRANSITIONS: dict[InvocationState, set[InvocationState]] = {
    InvocationState.PENDING: {
        InvocationState.EXECUTED_SUCCESS,
        InvocationState.EXECUTED_FAILURE,
    },
    InvocationState.EXECUTED_SUCCESS: set(_ROUTED),
    InvocationState.EXECUTED_FAILURE: set(_ROUTED),
    InvocationState.ROUTED_DELIVERED: set(),  # terminal
    InvocationState.ROUTED_SKIPPED: set(),  # terminal
    InvocationState.ROUTED_DELIVERY_FAILED: set(),  # terminal
}

TERMINAL_STATES: frozenset[InvocationState] = frozenset(_ROUTED)


class RouteStatus(str, Enum):
    """What the router did with an outcome."""

    DELIVERED = "delivered"
    SKIPPED = "skipped"  # no destination configured for the outcome
    DELIVERY_FAILED = "delivery_failed"

    @property
    def state(self) -> InvocationState:
        return {
            RouteStatus.DELIVERED: InvocationState.ROUTED_DELIVERED,
            RouteStatus.SKIPPED: InvocationState.ROUTED_SKIPPED,
            RouteStatus.DELIVERY_FAILED: InvocationState.ROUTED_DELIVERY_FAILED,
        }[self]


class DeliveryAck(BaseModel):
    """A sink's acknowledgement that it accepted an envelope."""

    model_config = ConfigDict(frozen=True)

    sink_name: str
    message_id: str
    detail: dict[str, Any] = {}


class StateTransition(BaseModel):
    """Records a single lifecycle transition."""

    model_config = ConfigDict(frozen=True)

    invocation_id: str
    from_state: InvocationState
    to_state: InvocationState
    at: str  # ISO 8601


class RoutingResult(BaseModel):
    """The terminal routing record for one invocation.

    ``outcome`` is the invocation's tag and is never changed by delivery:
    a ``DELIVERY_FAILED`` status on a ``SUCCESS`` outcome is still a
    successful invocation whose envelope could not be delivered.
    """

    model_config = ConfigDict(frozen=True)

    invocation_id: str
    outcome: OutcomeKind
    status: RouteStatus
    destination: SinkRef | None = None
    ack: DeliveryAck | None = None
    error: str | None = None
    error_type: str | None = None  # DeliveryError subclass name
