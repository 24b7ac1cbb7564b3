"""Function runtime — executes, classifies and routes invocations.

Composes the pipeline for one configured function::

    executor -> classifier -> router

Routing is fire-and-forget relative to the invocation: ``invoke`` returns
as soon as the outcome is classified, while delivery runs on the
delivery pool and completes ``handle.routing``.  ``submit`` additionally
runs the invocation itself on the invocation pool.

Invocations share no mutable state: each gets its own context and
lifecycle; the destination config and sink registry are read-only after
setup.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from signalpost.config import RouterSettings, config as default_config
from signalpost.core.classifier import (
    OutcomeClassifier,
    cancellation_failure,
    failure_from_exception,
)
from signalpost.core.executor import InvocationExecutor
from signalpost.core.lifecycle import InvocationLifecycle
from signalpost.models.destinations import DestinationConfig
from signalpost.models.outcomes import InvocationContext, InvocationResult, OutcomeKind
from signalpost.models.routing import InvocationState, RouteStatus, RoutingResult
from signalpost.routing.registry import (
    CapabilityMismatchError,
    SinkRegistry,
    UnknownDestinationError,
)
from signalpost.routing.router import DestinationRouter
from signalpost.routing.sinks import DeliveryError

logger = logging.getLogger(__name__)

_DELIVERY_ERRORS: dict[str, type[DeliveryError]] = {
    cls.__name__: cls
    for cls in (DeliveryError, UnknownDestinationError, CapabilityMismatchError)
}


class RuntimeClosedError(RuntimeError):
    """Raised when an invocation is submitted to a runtime that was shut down."""


class InvocationHandle:
    """Caller-side view of one invocation.

    ``outcome`` resolves once the invocation is classified; ``routing``
    resolves once its destination delivery (or skip) is done.
    """

    def __init__(self, context: InvocationContext) -> None:
        self._context = context
        self._lifecycle = InvocationLifecycle(context.invocation_id)
        self._outcome: Future[InvocationResult] = Future()
        self._routing: Future[RoutingResult] = Future()
        self._execution: Future[Any] | None = None

    @property
    def invocation_id(self) -> str:
        return self._context.invocation_id

    @property
    def context(self) -> InvocationContext:
        return self._context

    @property
    def lifecycle(self) -> InvocationLifecycle:
        return self._lifecycle

    @property
    def state(self) -> InvocationState:
        return self._lifecycle.state

    @property
    def outcome(self) -> Future[InvocationResult]:
        return self._outcome

    @property
    def routing(self) -> Future[RoutingResult]:
        return self._routing

    def result(self, timeout: float | None = None) -> InvocationResult:
        """Block until the invocation is classified and return its outcome."""
        return self._outcome.result(timeout)

    def routing_result(self, timeout: float | None = None) -> RoutingResult:
        """Block until routing is done and return the routing result."""
        return self._routing.result(timeout)

    def raise_for_delivery(self, timeout: float | None = None) -> None:
        """Raise ``DeliveryError`` if the outcome's delivery failed.

        The raised class matches the recorded ``error_type`` when it is a
        known ``DeliveryError`` subclass.
        """
        routed = self.routing_result(timeout)
        if routed.status is RouteStatus.DELIVERY_FAILED:
            error_cls = _DELIVERY_ERRORS.get(routed.error_type or "", DeliveryError)
            raise error_cls(
                f"Invocation {routed.invocation_id}: {routed.error or 'delivery failed'}"
            )

    def cancel(self) -> bool:
        """Cancel a submitted invocation that has not started yet.

        A cancelled invocation is classified as a failure with errorType
        ``InvocationCancelled`` and still routed.  Returns ``True`` if the
        cancellation took effect.
        """
        if self._execution is None:
            return False
        return self._execution.cancel()

    def __repr__(self) -> str:
        return f"InvocationHandle(invocation_id={self.invocation_id!r}, state={self.state.value})"


class FunctionRuntime:
    """Runs a handler and routes each outcome to its destination.

    Parameters
    ----------
    handler:
        The single-argument callable to invoke.
    destinations:
        Which sink receives successes and which receives failures.
    registry:
        Resolves destination addresses to sinks.
    function_name:
        Source identity stamped on envelopes.  Defaults to
        ``settings.function_name``.
    settings:
        Router settings; defaults to the module-level ``config``.
    """

    def __init__(
        self,
        handler: Callable[[Any], Any],
        destinations: DestinationConfig | None = None,
        registry: SinkRegistry | None = None,
        *,
        function_name: str | None = None,
        function_version: str | None = None,
        settings: RouterSettings | None = None,
    ) -> None:
        self._settings = settings or default_config
        self._function_name = function_name or self._settings.function_name
        self._function_version = function_version or self._settings.function_version
        self._destinations = destinations or DestinationConfig()
        self._executor = InvocationExecutor(handler)
        self._classifier = OutcomeClassifier(
            include_stack_trace=self._settings.include_stack_trace
        )
        self._router = DestinationRouter(
            registry or SinkRegistry(),
            envelope_version=self._settings.envelope_version,
        )
        self._invocation_pool = ThreadPoolExecutor(
            max_workers=self._settings.invocation_workers,
            thread_name_prefix=f"{self._function_name}-invoke",
        )
        self._delivery_pool = ThreadPoolExecutor(
            max_workers=self._settings.delivery_workers,
            thread_name_prefix=f"{self._function_name}-deliver",
        )
        self._closed = False
        self._close_lock = threading.Lock()
        logger.info(
            "FunctionRuntime %s:%s started (invocation_workers=%d, delivery_workers=%d)",
            self._function_name,
            self._function_version,
            self._settings.invocation_workers,
            self._settings.delivery_workers,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def function_name(self) -> str:
        return self._function_name

    @property
    def function_version(self) -> str:
        return self._function_version

    @property
    def destinations(self) -> DestinationConfig:
        return self._destinations

    @property
    def router(self) -> DestinationRouter:
        return self._router

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def invoke(self, event: Any) -> InvocationHandle:
        """Run one invocation on the calling thread.

        Returns after classification; routing continues on the delivery
        pool and completes ``handle.routing``.
        """
        handle = self._new_handle(event)
        self._run(handle, event)
        return handle

    def submit(self, event: Any) -> InvocationHandle:
        """Queue one invocation on the invocation pool and return at once."""
        handle = self._new_handle(event)
        execution = self._invocation_pool.submit(self._run, handle, event)
        handle._execution = execution
        execution.add_done_callback(lambda f: self._on_execution_done(handle, f))
        return handle

    async def ainvoke(self, event: Any) -> InvocationHandle:
        """Run one invocation of a coroutine (or plain) handler.

        If the awaiting task is cancelled mid-invocation, the invocation
        is recorded as an ``InvocationCancelled`` failure and routed before
        the cancellation propagates.
        """
        handle = self._new_handle(event)
        try:
            result = await self._classifier.aclassify(self._executor, event)
        except asyncio.CancelledError:
            self._complete(handle, cancellation_failure())
            raise
        self._complete(handle, result)
        return handle

    def invoke_and_wait(
        self, event: Any, timeout: float | None = None
    ) -> tuple[InvocationResult, RoutingResult]:
        """Invoke and block until routing completes."""
        handle = self.invoke(event)
        return handle.result(timeout), handle.routing_result(timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting invocations and, if *wait*, drain both pools."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        # Invocations queued before shutdown still route onto the delivery pool.
        self._invocation_pool.shutdown(wait=wait)
        self._delivery_pool.shutdown(wait=wait)
        logger.info("FunctionRuntime %s stopped", self._function_name)

    def __enter__(self) -> FunctionRuntime:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown(wait=True)

    def __repr__(self) -> str:
        return (
            f"FunctionRuntime(function={self._function_name!r}, "
            f"version={self._function_version!r}, closed={self._closed})"
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _new_handle(self, event: Any) -> InvocationHandle:
        if self._closed:
            raise RuntimeClosedError(f"FunctionRuntime {self._function_name} is shut down")
        context = InvocationContext(
            function_name=self._function_name,
            function_version=self._function_version,
            request_payload=event,
        )
        return InvocationHandle(context)

    def _run(self, handle: InvocationHandle, event: Any) -> None:
        result = self._classifier.classify(self._executor, event)
        self._complete(handle, result)

    def _on_execution_done(self, handle: InvocationHandle, execution: Future[Any]) -> None:
        if execution.cancelled():
            self._complete(handle, cancellation_failure())
        elif execution.exception() is not None and not handle.outcome.done():
            # a process-level signal escaped classification
            self._complete(
                handle,
                failure_from_exception(
                    execution.exception(),
                    include_stack_trace=self._settings.include_stack_trace,
                ),
            )

    def _complete(self, handle: InvocationHandle, result: InvocationResult) -> None:
        handle.lifecycle.mark_executed(OutcomeKind(result.kind))
        handle.outcome.set_result(result)
        try:
            self._delivery_pool.submit(self._deliver, handle, result)
        except RuntimeError as exc:
            # delivery pool already shut down: route inline
            logger.warning(
                "Delivery pool unavailable for invocation %s (%s); routing inline",
                handle.invocation_id,
                exc,
            )
            self._deliver(handle, result)

    def _deliver(self, handle: InvocationHandle, result: InvocationResult) -> None:
        try:
            routed = self._router.route(result, self._destinations, handle.context)
        except Exception as exc:
            logger.exception("Routing of invocation %s crashed", handle.invocation_id)
            routed = RoutingResult(
                invocation_id=handle.invocation_id,
                outcome=OutcomeKind(result.kind),
                status=RouteStatus.DELIVERY_FAILED,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        handle.lifecycle.mark_routed(routed.status)
        handle.routing.set_result(routed)
