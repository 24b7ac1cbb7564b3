"""Envelope codec — serializes and validates delivery envelopes.

Sinks that store envelopes as bytes (queues, files) use ``serialize``;
consumers reading them back use ``decode_envelope``, which picks the
envelope model from the ``outcome`` discriminator and validates every
field.
"""

from __future__ import annotations

import json

from pydantic import TypeAdapter, ValidationError

from signalpost.models.envelopes import DeliveryEnvelope

_ENVELOPE_ADAPTER: TypeAdapter[DeliveryEnvelope] = TypeAdapter(DeliveryEnvelope)


class EnvelopeValidationError(ValueError):
    """Raised when raw bytes do not decode to a valid envelope."""


def serialize(envelope: DeliveryEnvelope) -> bytes:
    """Serialize an envelope to canonical JSON bytes.

    Keys are camelCase and sorted, separators compact, output ASCII-safe,
    so the same envelope always serializes to the same bytes.
    """
    return json.dumps(
        envelope.to_wire(), sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def decode_envelope(raw: bytes | str) -> DeliveryEnvelope:
    """Deserialize and validate a raw JSON envelope.

    Raises
    ------
    EnvelopeValidationError
        For invalid JSON, a non-object document, a missing or unknown
        ``outcome`` tag, or any schema violation.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EnvelopeValidationError(f"Envelope is not UTF-8: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise EnvelopeValidationError(f"Invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise EnvelopeValidationError(
            f"Envelope must be a JSON object, got {type(data).__name__}"
        )

    outcome = data.get("outcome")
    if outcome not in ("success", "failure"):
        raise EnvelopeValidationError(f"Unknown or missing outcome: {outcome!r}")

    try:
        return _ENVELOPE_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise EnvelopeValidationError(f"Envelope validation failed: {exc}") from exc
