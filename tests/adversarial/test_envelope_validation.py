"""Adversarial tests — envelope validation and rejection.

These tests verify that:
1. Malformed JSON is rejected
2. Missing or unknown outcome tags are rejected
3. Invalid field types are rejected
4. Envelopes are immutable once built
"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from signalpost.core.codec import EnvelopeValidationError, decode_envelope, serialize
from signalpost.models.outcomes import InvocationFailure, InvocationSuccess
from signalpost.routing.router import build_envelope


@pytest.fixture
def wire_success(make_context) -> dict:
    envelope = build_envelope(InvocationSuccess(payload={"ok": True}), make_context())
    return json.loads(serialize(envelope))


@pytest.fixture
def wire_failure(make_context) -> dict:
    failure = InvocationFailure(error_type="ValueError", error_message="bad")
    return json.loads(serialize(build_envelope(failure, make_context())))


class TestEnvelopeRejection:
    @pytest.mark.parametrize(
        "raw",
        [b"", b"{", b"not json", "{'single': 'quotes'}"],
    )
    def test_malformed_json(self, raw):
        with pytest.raises(EnvelopeValidationError, match="Invalid JSON"):
            decode_envelope(raw)

    def test_invalid_utf8(self):
        with pytest.raises(EnvelopeValidationError, match="UTF-8"):
            decode_envelope(b"\xff\xfe{}")

    @pytest.mark.parametrize("raw", ["[]", "42", '"text"', "null"])
    def test_non_object_document(self, raw):
        with pytest.raises(EnvelopeValidationError, match="JSON object"):
            decode_envelope(raw)

    def test_missing_outcome(self, wire_success):
        del wire_success["outcome"]
        with pytest.raises(EnvelopeValidationError, match="outcome"):
            decode_envelope(json.dumps(wire_success))

    def test_unknown_outcome(self, wire_success):
        wire_success["outcome"] = "partial"
        with pytest.raises(EnvelopeValidationError, match="partial"):
            decode_envelope(json.dumps(wire_success))

    def test_failure_without_error_type(self, wire_failure):
        del wire_failure["errorType"]
        with pytest.raises(EnvelopeValidationError, match="validation failed"):
            decode_envelope(json.dumps(wire_failure))

    def test_success_tag_on_failure_body_loses_error_fields(self, wire_failure):
        wire_failure["outcome"] = "success"
        envelope = decode_envelope(json.dumps(wire_failure))
        assert not hasattr(envelope, "error_type")

    def test_wrong_request_context_type(self, wire_success):
        wire_success["requestContext"] = "inv-0001"
        with pytest.raises(EnvelopeValidationError):
            decode_envelope(json.dumps(wire_success))

    def test_unknown_condition(self, wire_failure):
        wire_failure["requestContext"]["condition"] = "Maybe"
        with pytest.raises(EnvelopeValidationError):
            decode_envelope(json.dumps(wire_failure))

    def test_bad_timestamp(self, wire_success):
        wire_success["timestamp"] = "yesterday"
        with pytest.raises(EnvelopeValidationError):
            decode_envelope(json.dumps(wire_success))


class TestEnvelopeImmutability:
    def test_envelope_is_frozen(self, make_context):
        envelope = build_envelope(InvocationSuccess(payload=1), make_context())
        with pytest.raises(ValidationError):
            envelope.response_payload = 2  # type: ignore[misc]

    def test_request_context_is_frozen(self, make_context):
        envelope = build_envelope(InvocationSuccess(payload=1), make_context())
        with pytest.raises(ValidationError):
            envelope.request_context.request_id = "forged"  # type: ignore[misc]
