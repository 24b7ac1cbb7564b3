"""Outcome classifier — tags an invocation's terminal state.

The classifier observes the natural propagation boundary of the
invocation call:

- a normal return (including ``None``) is a ``Success`` carrying the value
  verbatim;
- an exception that escapes the handler is a ``Failure``;
- a cancellation (``concurrent.futures`` or ``asyncio``) is a ``Failure``
  with errorType ``InvocationCancelled``.

Errors the handler catches itself never reach this boundary and so never
produce a ``Failure``.  ``KeyboardInterrupt`` and ``SystemExit`` are
process-level signals, not invocation outcomes; they keep propagating.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import traceback
from typing import Any

from signalpost.core.executor import InvocationExecutor
from signalpost.models.outcomes import (
    CANCELLED_ERROR_TYPE,
    InvocationFailure,
    InvocationResult,
    InvocationSuccess,
)

logger = logging.getLogger(__name__)

_CANCELLATION_ERRORS: tuple[type[BaseException], ...] = (
    concurrent.futures.CancelledError,
    asyncio.CancelledError,
)


def _safe_str(exc: BaseException) -> str:
    try:
        return str(exc)
    except Exception:  # noqa: BLE001
        return f"<unprintable {type(exc).__name__}>"


def failure_from_exception(
    exc: BaseException, *, include_stack_trace: bool = True
) -> InvocationFailure:
    """Build an ``InvocationFailure`` describing *exc*."""
    stack: str | None = None
    if include_stack_trace:
        stack = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return InvocationFailure(
        error_type=type(exc).__name__,
        error_message=_safe_str(exc),
        stack_trace=stack,
    )


def cancellation_failure(reason: str = "Invocation was cancelled") -> InvocationFailure:
    """Build the failure recorded for a cancelled invocation."""
    return InvocationFailure(error_type=CANCELLED_ERROR_TYPE, error_message=reason)


class OutcomeClassifier:
    """Runs an executor behind a capturing call boundary and tags the result.

    Parameters
    ----------
    include_stack_trace:
        Whether failures carry the formatted traceback.
    """

    def __init__(self, *, include_stack_trace: bool = True) -> None:
        self._include_stack_trace = include_stack_trace

    def classify(self, executor: InvocationExecutor, event: Any) -> InvocationResult:
        """Execute *event* through *executor* and return the tagged outcome."""
        try:
            value = executor.execute(event)
        except _CANCELLATION_ERRORS as exc:
            logger.warning("Invocation of %s cancelled", executor.handler_name)
            return cancellation_failure(_safe_str(exc) or "Invocation was cancelled")
        except Exception as exc:
            logger.info(
                "Invocation of %s failed: %s: %s",
                executor.handler_name,
                type(exc).__name__,
                _safe_str(exc),
            )
            return failure_from_exception(
                exc, include_stack_trace=self._include_stack_trace
            )
        return InvocationSuccess(payload=value)

    async def aclassify(
        self, executor: InvocationExecutor, event: Any
    ) -> InvocationResult:
        """Async variant of ``classify`` for coroutine handlers.

        ``asyncio.CancelledError`` is not captured here: the awaiting task
        is being cancelled and must see it.  The runtime records the
        cancellation before re-raising.
        """
        try:
            value = await executor.aexecute(event)
        except concurrent.futures.CancelledError as exc:
            return cancellation_failure(_safe_str(exc) or "Invocation was cancelled")
        except Exception as exc:
            logger.info(
                "Invocation of %s failed: %s: %s",
                executor.handler_name,
                type(exc).__name__,
                _safe_str(exc),
            )
            return failure_from_exception(
                exc, include_stack_trace=self._include_stack_trace
            )
        return InvocationSuccess(payload=value)
