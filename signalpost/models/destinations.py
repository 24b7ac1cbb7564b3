"""Destination configuration models — which sink receives which outcome.

A ``DestinationConfig`` holds at most one sink reference per outcome tag.
Sink references are addressing data only; the concrete sink objects that
accept envelopes are resolved at routing time through the
``SinkRegistry``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from signalpost.models.outcomes import OutcomeKind


class SinkCapability(str, Enum):
    """How a sink accepts an envelope."""

    ENQUEUE = "enqueue"  # queue-like
    PUBLISH = "publish"  # topic-like
    INVOKE = "invoke"  # nested function
    EMIT = "emit"  # event bus


class _SinkRefBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    destination: str  # address the registry resolves, e.g. "queue:orders-dlq"


class QueueRef(_SinkRefBase):
    """Enqueue the envelope onto a queue."""

    capability: Literal["enqueue"] = "enqueue"


class TopicRef(_SinkRefBase):
    """Publish the envelope to every subscriber of a topic."""

    capability: Literal["publish"] = "publish"


class FunctionRef(_SinkRefBase):
    """Asynchronously invoke another function with the envelope as input."""

    capability: Literal["invoke"] = "invoke"


class EventBusRef(_SinkRefBase):
    """Emit the envelope as an event on an event bus."""

    capability: Literal["emit"] = "emit"


SinkRef = Annotated[
    Union[QueueRef, TopicRef, FunctionRef, EventBusRef],
    Field(discriminator="capability"),
]


class DestinationConfig(BaseModel):
    """Per-function destination configuration.

    Both sinks are optional.  Set at configuration time; read-only while
    invocations are being handled.  Accepts the documented wire names
    ``onSuccess`` / ``onFailure`` as well as the Python field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    on_success: SinkRef | None = Field(default=None, alias="onSuccess")
    on_failure: SinkRef | None = Field(default=None, alias="onFailure")

    def sink_for(self, outcome: OutcomeKind) -> SinkRef | None:
        """Return the sink reference configured for *outcome*, if any."""
        return {
            OutcomeKind.SUCCESS: self.on_success,
            OutcomeKind.FAILURE: self.on_failure,
        }[OutcomeKind(outcome)]

    @classmethod
    def from_file(cls, path: Path | str) -> DestinationConfig:
        """Load a destination configuration from a JSON document.

        Example document::

            {
              "onSuccess": {"capability": "enqueue", "destination": "queue:done"},
              "onFailure": {"capability": "publish", "destination": "topic:alerts"}
            }
        """
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))
