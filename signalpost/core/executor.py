"""Invocation executor — runs one unit of user logic with one input.

The executor calls the handler and either returns what it produced or
lets whatever it raised propagate.  Retries, timeouts and side effects
belong to the host and to the handler itself.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from typing import Any, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class InvocationHandler(Protocol):
    """Any single-argument callable satisfies this protocol."""

    def __call__(self, event: Any) -> Any:
        ...


class HandlerLoadError(ImportError):
    """Raised when a ``module:function`` handler reference cannot be loaded."""


class InvocationExecutor:
    """Executes a single invocation of a handler.

    Parameters
    ----------
    handler:
        The user-supplied logic.  Called with exactly one positional
        argument, the invocation input.
    """

    def __init__(self, handler: Callable[[Any], Any]) -> None:
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")
        self._handler = handler

    @property
    def handler(self) -> Callable[[Any], Any]:
        return self._handler

    @property
    def handler_name(self) -> str:
        return getattr(self._handler, "__qualname__", repr(self._handler))

    def execute(self, event: Any) -> Any:
        """Run the handler with *event*.

        Returns the handler's return value.  Any exception the handler
        does not catch itself propagates unchanged.  A coroutine handler is
        run to completion on a fresh event loop; inside a running loop it
        is rejected with ``TypeError`` (use ``aexecute`` there).
        """
        logger.debug("Executing handler %s", self.handler_name)
        value = self._handler(event)
        if not inspect.isawaitable(value):
            return value
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(_await(value))
        if inspect.iscoroutine(value):
            value.close()
        raise TypeError(
            f"Handler {self.handler_name} returned an awaitable inside a running "
            "event loop; invoke it asynchronously"
        )

    async def aexecute(self, event: Any) -> Any:
        """Run the handler, awaiting its result when it returns an awaitable."""
        logger.debug("Executing handler %s (async)", self.handler_name)
        value = self._handler(event)
        if inspect.isawaitable(value):
            value = await value
        return value


async def _await(value: Any) -> Any:
    return await value


def load_handler(reference: str) -> Callable[[Any], Any]:
    """Resolve a ``package.module:attribute`` reference to a callable.

    Raises
    ------
    HandlerLoadError
        If the reference is malformed, the module cannot be imported, the
        attribute is missing, or the attribute is not callable.
    """
    module_name, sep, attr_path = reference.partition(":")
    if not sep or not module_name or not attr_path:
        raise HandlerLoadError(
            f"Handler reference must look like 'module:function', got {reference!r}"
        )

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise HandlerLoadError(f"Cannot import module {module_name!r}: {exc}") from exc

    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise HandlerLoadError(
                f"Module {module_name!r} has no attribute {attr_path!r}"
            ) from exc

    if not callable(target):
        raise HandlerLoadError(f"Handler {reference!r} is not callable")
    return target
