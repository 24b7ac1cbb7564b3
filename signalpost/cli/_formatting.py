"""Shared formatting helpers for rendering envelopes and routing results."""

from __future__ import annotations

from signalpost.models.envelopes import DeliveryEnvelope, FailureEnvelope
from signalpost.models.routing import RouteStatus, RoutingResult

STATUS_STYLES: dict[RouteStatus, str] = {
    RouteStatus.DELIVERED: "green",
    RouteStatus.SKIPPED: "dim",
    RouteStatus.DELIVERY_FAILED: "red",
}


def summarize_envelope(envelope: DeliveryEnvelope, width: int = 60) -> str:
    """Return a one-line summary of the envelope's response side.

    Examples
    --------
    >>> summarize_envelope(failure_env)
    'ValueError: bad order id'
    """
    if isinstance(envelope, FailureEnvelope):
        text = f"{envelope.error_type}: {envelope.error_message}"
    else:
        text = repr(envelope.response_payload)
    if len(text) > width:
        text = text[: width - 3] + "..."
    return text


def format_status(result: RoutingResult) -> str:
    """Rich-markup label for a routing status."""
    style = STATUS_STYLES[result.status]
    return f"[{style}]{result.status.value}[/{style}]"


def format_destination(result: RoutingResult) -> str:
    if result.destination is None:
        return "-"
    return f"{result.destination.capability} {result.destination.destination}"
