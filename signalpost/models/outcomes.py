"""Invocation outcome models — the tagged result of one invocation.

Exactly one of ``InvocationSuccess`` / ``InvocationFailure`` is produced
per invocation.  Both are frozen: once the classifier has tagged an
invocation, nothing downstream (routing, delivery) can alter the outcome.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class OutcomeKind(str, Enum):
    """The two terminal tags an invocation can carry."""

    SUCCESS = "success"
    FAILURE = "failure"


# errorType used when the host cancels an in-flight or queued invocation
CANCELLED_ERROR_TYPE = "InvocationCancelled"


class InvocationSuccess(BaseModel):
    """The invocation logic returned normally.

    ``payload`` is the returned value carried verbatim, or ``None`` when
    the logic returned nothing.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["success"] = "success"
    payload: Any = None


class InvocationFailure(BaseModel):
    """An error propagated out of the invocation boundary."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["failure"] = "failure"
    error_type: str
    error_message: str
    stack_trace: str | None = None

    @property
    def is_cancellation(self) -> bool:
        return self.error_type == CANCELLED_ERROR_TYPE


InvocationResult = Annotated[
    Union[InvocationSuccess, InvocationFailure],
    Field(discriminator="kind"),
]


class InvocationContext(BaseModel):
    """Metadata describing one invocation, stamped onto its envelope.

    ``approximate_invoke_count`` is always 1 here: retries belong to the
    host runtime, not to this library.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    invocation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    function_name: str
    function_version: str = "$LATEST"
    request_payload: Any = None
    approximate_invoke_count: int = 1
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def function_arn(self) -> str:
        """Qualified source identity, e.g. ``orders-ingest:$LATEST``."""
        return f"{self.function_name}:{self.function_version}"
