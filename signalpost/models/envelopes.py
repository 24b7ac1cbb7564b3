"""Delivery envelopes — the documented record a destination receives.

Every envelope carries the request context (who was invoked, under which
condition), the original request payload, and the response side.  The
field names exposed to receiving sinks are fixed:

- success envelopes expose ``responsePayload`` (the returned value, or
  ``null`` when the logic returned nothing);
- failure envelopes expose ``errorType`` and ``errorMessage``, with the
  full error document also mirrored under ``responsePayload``.

Envelopes are frozen Pydantic models serialized with camelCase aliases.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Condition(str, Enum):
    """Why the envelope was emitted."""

    SUCCESS = "Success"
    RETRIES_EXHAUSTED = "RetriesExhausted"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RequestContext(_WireModel):
    request_id: str
    function_arn: str
    condition: Condition
    approximate_invoke_count: int = 1


class ResponseContext(_WireModel):
    status_code: int = 200
    executed_version: str = "$LATEST"
    function_error: str | None = None  # "Unhandled" on failure


class ErrorDocument(_WireModel):
    """The error as the receiving sink sees it inside ``responsePayload``."""

    error_type: str
    error_message: str
    stack_trace: list[str] = []


class _EnvelopeBase(_WireModel):
    version: str = "1.0"
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    request_context: RequestContext
    request_payload: Any = None
    response_context: ResponseContext = ResponseContext()

    @property
    def invocation_id(self) -> str:
        return self.request_context.request_id

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-compatible dict a sink receives (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)


class SuccessEnvelope(_EnvelopeBase):
    """Routed to the ``on_success`` destination."""

    outcome: Literal["success"] = "success"
    response_payload: Any = None


class FailureEnvelope(_EnvelopeBase):
    """Routed to the ``on_failure`` destination."""

    outcome: Literal["failure"] = "failure"
    error_type: str
    error_message: str
    response_payload: ErrorDocument


DeliveryEnvelope = Annotated[
    Union[SuccessEnvelope, FailureEnvelope],
    Field(discriminator="outcome"),
]
