"""Tests for the core data models."""

from datetime import datetime, timezone

import pytest

from inbox_sync.core import Account, Notification, make_scope_key
from inbox_sync.errors import MalformedResponse


class TestNotification:
    """Tests for Notification."""

    def test_from_dict(self):
        notification = Notification.from_dict({
            "id": "n1",
            "message": "Hello",
            "type": "info",
            "time": "2024-01-15T10:30:00+00:00",
            "read": False,
            "context": {"url": "/orders/1"},
        })

        assert notification.id == "n1"
        assert notification.message == "Hello"
        assert notification.context == {"url": "/orders/1"}
        assert notification.read is False

    @pytest.mark.parametrize("value", ["false", "true", 1, None])
    def test_read_must_be_a_boolean(self, value):
        """Only a JSON true marks a notification as read."""
        assert Notification.from_dict({"id": "n1", "read": value}).read is False

    def test_from_dict_defaults(self):
        notification = Notification.from_dict({"id": "n1"})

        assert notification.message == ""
        assert notification.read is False
        assert notification.context is None

    @pytest.mark.parametrize("data", [None, [], {"message": "no id"}, {"id": ""}, {"id": 5}])
    def test_from_dict_rejects_bad_envelope(self, data):
        with pytest.raises(MalformedResponse):
            Notification.from_dict(data)

    def test_to_dict_roundtrip(self):
        data = {"id": "n1", "message": "Hi", "type": "info", "time": "", "read": True, "context": {"a": 1}}
        assert Notification.from_dict(data).to_dict() == data

    def test_timestamp(self):
        notification = Notification(id="n1", time="2024-01-15T10:30:00+00:00")
        assert notification.timestamp == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_timestamp_unparseable(self):
        assert Notification(id="n1", time="yesterday").timestamp is None
        assert Notification(id="n1").timestamp is None

    def test_mark_read_is_idempotent(self):
        notification = Notification(id="n1")
        notification.mark_read()
        notification.mark_read()
        assert notification.read is True


class TestScopeKey:
    """Tests for make_scope_key() and Account."""

    def test_deterministic(self):
        assert make_scope_key("work") == make_scope_key("work")

    def test_distinct(self):
        assert make_scope_key("work") != make_scope_key("home")

    def test_empty_identifier(self):
        with pytest.raises(ValueError):
            make_scope_key("")

    def test_account_scope_key(self):
        account = Account(name="work", url="https://example.com/")
        assert account.scope_key == "authorization-token.work"
        assert account.keyring_service == "inbox-sync"
