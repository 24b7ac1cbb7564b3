"""Per-invocation state machine.

Enforces ``Pending -> Executed{Success|Failure} -> Routed{Delivered|Skipped|DeliveryFailed}``:

- Valid state transitions only (VALID_TRANSITIONS table)
- No transition re-enters Pending or Executed
- Every transition recorded in the lifecycle history

One lifecycle is created per invocation; lifecycles are never shared.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from signalpost.models.outcomes import OutcomeKind
from signalpost.models.routing import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    InvocationState,
    RouteStatus,
    StateTransition,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested lifecycle transition is not valid."""


class InvocationLifecycle:
    """Tracks one invocation through its lifecycle.

    Parameters
    ----------
    invocation_id:
        The invocation this lifecycle belongs to.
    """

    def __init__(self, invocation_id: str) -> None:
        self._invocation_id = invocation_id
        self._state = InvocationState.PENDING
        self._history: list[StateTransition] = []

    @property
    def invocation_id(self) -> str:
        return self._invocation_id

    @property
    def state(self) -> InvocationState:
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        """Return a copy of the recorded transitions, oldest first."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(self, target_state: InvocationState) -> StateTransition:
        """Move to *target_state*, recording the transition.

        Raises
        ------
        InvalidTransitionError
            If the transition is not allowed from the current state.
        """
        current = self._state
        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition invocation {self._invocation_id} from "
                f"{current.value} to {target_state.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        record = StateTransition(
            invocation_id=self._invocation_id,
            from_state=current,
            to_state=target_state,
            at=datetime.now(timezone.utc).isoformat(),
        )
        self._history.append(record)
        self._state = target_state
        logger.debug(
            "Invocation %s: %s -> %s",
            self._invocation_id,
            current.value,
            target_state.value,
        )
        return record

    # ------------------------------------------------------------------
    # Convenience methods
    # ------------------------------------------------------------------

    def mark_executed(self, outcome: OutcomeKind | str) -> StateTransition:
        """Record the classifier's tag."""
        target = (
            InvocationState.EXECUTED_SUCCESS
            if OutcomeKind(outcome) is OutcomeKind.SUCCESS
            else InvocationState.EXECUTED_FAILURE
        )
        return self.transition(target)

    def mark_routed(self, status: RouteStatus) -> StateTransition:
        """Record the router's terminal status."""
        return self.transition(status.state)
