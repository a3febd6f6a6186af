"""
Tests for audit events.
"""

from datetime import datetime, timezone

from sudo_gate.domain.events import ActionBlocked, SessionActivated, SessionDeactivated


def test_event_names():
    assert SessionActivated.name == "sudo.activated"
    assert ActionBlocked.name == "sudo.action_blocked"


def test_event_payload_is_json_safe():
    expires = datetime(2026, 1, 1, tzinfo=timezone.utc)
    event = SessionActivated(principal_id="42", expires_at=expires, duration_seconds=900)

    assert event.payload() == {
        "principal_id": "42",
        "expires_at": expires.isoformat(),
        "duration_seconds": 900,
    }
    data = event.to_dict()
    assert data["name"] == "sudo.activated"
    assert data["event_id"]
    assert data["occurred_at"]


def test_event_defaults():
    event = SessionDeactivated(principal_id="42")
    assert event.reason == "manual"
    other = SessionDeactivated(principal_id="42")
    assert event.event_id != other.event_id
