"""Unit tests for payload decoding."""

import json

import pytest

from mailpulse.application.use_cases.process_event import decode_event
from mailpulse.domain.errors import MalformedEventError


class TestDecodeEvent:
    """Flat and nested payload shapes."""

    def test_flat_payload(self):
        payload = {
            "event_id": "evt-1",
            "scope_id": "user-9",
            "sender": "boss@example.com",
            "recipients": ["me@example.com"],
            "subject": "Status",
            "sent_at": "2024-05-01T10:00:00Z",
            "has_attachments": True,
            "unexpected": "ignored",
        }
        event = decode_event(json.dumps(payload).encode())

        assert event.event_id == "evt-1"
        assert event.scope_id == "user-9"
        assert event.recipients == ("me@example.com",)
        assert event.has_attachments is True
        assert event.priority is None

    def test_nested_email_payload(self):
        payload = {
            "uid": 42,
            "user_id": "u-7",
            "account": "agents@example.com",
            "ingested_at": "2024-05-01T10:00:00Z",
            "headers": {
                "subject": "Invoice overdue",
                "from": "billing@vendor.com",
                "to": ["agents@example.com"],
                "cc": ["finance@example.com"],
                "date": "Wed, 01 May 2024 09:30:00 +0000",
                "message_id": None,
            },
            "body": {"text": "please pay"},
            "has_attachments": False,
            "attachments": [],
        }
        event = decode_event(json.dumps(payload).encode())

        assert event.event_id == "agents@example.com:42"
        assert event.scope_id == "u-7"
        assert event.sender == "billing@vendor.com"
        assert event.recipients == ("agents@example.com", "finance@example.com")
        assert event.sent_at == "Wed, 01 May 2024 09:30:00 +0000"

    def test_nested_payload_prefers_message_id(self):
        payload = {"uid": 1, "user_id": "u", "headers": {"message_id": "<abc@mail>", "to": []}}
        assert decode_event(json.dumps(payload).encode()).event_id == "<abc@mail>"

    def test_numeric_identifiers_are_coerced(self):
        event = decode_event(json.dumps({"event_id": 17, "scope_id": 3}).encode())
        assert (event.event_id, event.scope_id) == ("17", "3")

    def test_non_string_sent_at_kept_as_text(self):
        event = decode_event(json.dumps({"event_id": "e", "scope_id": "s", "sent_at": 1714550000}).encode())
        assert event.sent_at == "1714550000"

    @pytest.mark.parametrize(
        "payload",
        [
            b"not json",
            b"\xff\xfe",
            b"[1, 2, 3]",
            b'"just a string"',
            b"{}",
            b'{"event_id": "", "scope_id": "s"}',
            b'{"event_id": "e"}',
            b'{"headers": "nope", "uid": 1}',
            b'{"event_id": "e", "scope_id": "s", "recipients": "not-a-list"}',
        ],
    )
    def test_malformed_payloads_raise(self, payload):
        with pytest.raises(MalformedEventError) as exc:
            decode_event(payload)
        assert exc.value.retriable is False
