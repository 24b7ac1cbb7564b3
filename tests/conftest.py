"""Shared test fixtures for signalpost."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest

from signalpost.config import RouterSettings
from signalpost.core.runtime import FunctionRuntime
from signalpost.models.destinations import DestinationConfig, SinkCapability
from signalpost.models.envelopes import DeliveryEnvelope
from signalpost.models.outcomes import InvocationContext
from signalpost.models.routing import DeliveryAck
from signalpost.routing.registry import SinkRegistry
from signalpost.routing.sinks import DeliveryError


# ---------------------------------------------------------------------------
# Test sinks — shared across test modules
# ---------------------------------------------------------------------------


class RecordingSink:
    """A sink that records every envelope it accepts."""

    def __init__(
        self,
        name: str = "recording",
        capability: SinkCapability = SinkCapability.ENQUEUE,
    ) -> None:
        self._name = name
        self._capability = capability
        self.received: list[DeliveryEnvelope] = []

    @property
    def sink_name(self) -> str:
        return self._name

    @property
    def capability(self) -> SinkCapability:
        return self._capability

    def deliver(self, envelope: DeliveryEnvelope) -> DeliveryAck:
        self.received.append(envelope)
        return DeliveryAck(sink_name=self._name, message_id=str(len(self.received)))


class FailingSink:
    """A sink that always raises."""

    def __init__(
        self,
        name: str = "failing",
        capability: SinkCapability = SinkCapability.ENQUEUE,
        exc: Exception | None = None,
    ) -> None:
        self._name = name
        self._capability = capability
        self._exc = exc or DeliveryError(f"{name} is unreachable")
        self.attempts = 0

    @property
    def sink_name(self) -> str:
        return self._name

    @property
    def capability(self) -> SinkCapability:
        return self._capability

    def deliver(self, envelope: DeliveryEnvelope) -> DeliveryAck:
        self.attempts += 1
        raise self._exc


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> RouterSettings:
    """Router settings with small pools and a deterministic identity."""
    return RouterSettings(
        function_name="test-fn",
        function_version="7",
        invocation_workers=2,
        delivery_workers=2,
    )


@pytest.fixture
def registry() -> SinkRegistry:
    return SinkRegistry()


@pytest.fixture
def make_context() -> Callable[..., InvocationContext]:
    """Factory fixture: build an InvocationContext with sensible defaults."""

    def _factory(**overrides: Any) -> InvocationContext:
        defaults: dict[str, Any] = {
            "invocation_id": "inv-0001",
            "function_name": "test-fn",
            "function_version": "7",
            "request_payload": {"order_id": "A-1"},
        }
        defaults.update(overrides)
        return InvocationContext(**defaults)

    return _factory


@pytest.fixture
def make_runtime(
    settings: RouterSettings, registry: SinkRegistry
) -> Iterator[Callable[..., FunctionRuntime]]:
    """Factory fixture: build FunctionRuntimes that are shut down after the test."""
    runtimes: list[FunctionRuntime] = []

    def _factory(
        handler: Callable[[Any], Any],
        destinations: DestinationConfig | None = None,
        **kwargs: Any,
    ) -> FunctionRuntime:
        kwargs.setdefault("settings", settings)
        runtime = FunctionRuntime(handler, destinations, registry, **kwargs)
        runtimes.append(runtime)
        return runtime

    yield _factory
    for runtime in runtimes:
        runtime.shutdown(wait=True)


@pytest.fixture
def make_recording_sink() -> Callable[..., RecordingSink]:
    """Factory fixture: build a RecordingSink."""
    return RecordingSink


@pytest.fixture
def make_failing_sink() -> Callable[..., FailingSink]:
    """Factory fixture: build a FailingSink."""
    return FailingSink
