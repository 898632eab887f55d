"""
Tests for envelope unwrapping.
"""
import json

import pytest

from insight_broker.core.envelope import unwrap_envelope


class TestUnwrapEnvelope:
    """Test payload extraction from raw gateway responses."""

    @pytest.mark.parametrize("raw", [
        "Hello world",
        "Sure! Here's the result:\n\nHello world",
        "{not json",
        "",
        "```json\n{\"a\": 1}\n```",
    ])
    def test_non_json_returned_unchanged(self, raw):
        assert unwrap_envelope(raw) == raw

    @pytest.mark.parametrize("field_name", ["response", "result", "text", "message"])
    def test_envelope_fields(self, field_name):
        raw = json.dumps({field_name: "payload", "other": "ignored"})
        assert unwrap_envelope(raw) == "payload"

    def test_field_priority(self):
        raw = json.dumps({
            "message": "fourth",
            "text": "third",
            "result": "second",
            "response": "first",
        })
        assert unwrap_envelope(raw) == "first"

        raw = json.dumps({"message": "fourth", "text": "third"})
        assert unwrap_envelope(raw) == "third"

    def test_empty_field_is_skipped(self):
        raw = json.dumps({"response": "", "result": "second"})
        assert unwrap_envelope(raw) == "second"

    def test_bare_json_string(self):
        assert unwrap_envelope(json.dumps("just text")) == "just text"

    def test_structured_object_passes_through(self):
        payload = {"marketOverview": {"marketSize": "X"}, "recommendations": ["a"]}
        assert unwrap_envelope(json.dumps(payload)) == payload

    def test_structured_object_inside_envelope(self):
        payload = {"marketOverview": {"marketSize": "X"}}
        assert unwrap_envelope(json.dumps({"response": payload})) == payload

    def test_unrecognised_json_returns_raw(self):
        for raw in ['{"foo": "bar"}', "[1, 2, 3]", "42", "null", "true"]:
            assert unwrap_envelope(raw) == raw

    def test_non_text_field_value_returns_raw(self):
        raw = json.dumps({"response": [1, 2]})
        assert unwrap_envelope(raw) == raw
