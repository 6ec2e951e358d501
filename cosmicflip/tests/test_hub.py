"""
Tests for the notification hub.

Tests:
- Versions delivered strictly increasing per subscriber
- Failing subscribers are retried on the next snapshot
- Request routing to the bound handler
"""

import asyncio

import pytest

from ..engine_core.action import Action
from ..session import NotificationHub
from .conftest import make_active


def snapshot(version: int):
    return make_active(version=version)


class TestPublish:
    """Tests for snapshot fan-out."""

    def test_delivers_newer_versions_only(self):
        hub = NotificationHub()
        seen = []
        hub.subscribe("1234", lambda s: seen.append(s.version))

        for version in (1, 2, 2, 1, 4, 3, 5):
            hub.publish("1234", snapshot(version))

        assert seen == [1, 2, 4, 5]

    def test_rooms_are_separate(self):
        hub = NotificationHub()
        seen = []
        hub.subscribe("9999", lambda s: seen.append(s.version))
        assert hub.publish("1234", snapshot(1)) == 0
        assert seen == []

    def test_each_subscriber_has_its_own_watermark(self):
        hub = NotificationHub()
        early, late = [], []
        hub.subscribe("1234", lambda s: early.append(s.version))
        hub.publish("1234", snapshot(3))
        hub.subscribe("1234", lambda s: late.append(s.version))
        hub.publish("1234", snapshot(3))

        assert early == [3]
        assert late == [3]

    def test_failing_subscriber_retried(self):
        hub = NotificationHub()
        seen = []
        calls = {"n": 0}

        def flaky(session):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConnectionError("socket closed")
            seen.append(session.version)

        handle = hub.subscribe("1234", flaky)
        assert hub.publish("1234", snapshot(1)) == 0
        assert handle.failures == 1
        assert handle.last_version == -1

        assert hub.publish("1234", snapshot(1)) == 1
        assert seen == [1]

    def test_one_failure_does_not_block_others(self):
        hub = NotificationHub()
        seen = []

        def broken(session):
            raise RuntimeError("boom")

        hub.subscribe("1234", broken)
        hub.subscribe("1234", lambda s: seen.append(s.version))
        assert hub.publish("1234", snapshot(1)) == 1
        assert seen == [1]


class TestSubscriptions:
    """Tests for subscribe, unsubscribe and close_room."""

    def test_unsubscribe(self):
        hub = NotificationHub()
        seen = []
        handle = hub.subscribe("1234", seen.append, seat=0)
        assert handle.metadata == {"seat": 0}

        hub.unsubscribe(handle)
        hub.unsubscribe(handle)
        hub.publish("1234", snapshot(1))
        assert seen == []
        assert hub.subscribers("1234") == []

    def test_close_room(self):
        hub = NotificationHub()
        hub.subscribe("1234", lambda s: None)
        hub.subscribe("1234", lambda s: None)
        assert hub.close_room("1234") == 2
        assert hub.subscribers("1234") == []


class TestSubmit:
    """Tests for inbound request routing."""

    def test_routes_to_handler(self):
        hub = NotificationHub()
        received = []

        async def handler(room_code, seat, action):
            received.append((room_code, seat, action))
            return "ok"

        hub.bind(handler)
        result = asyncio.run(hub.submit("1234", 1, Action.draw_card()))

        assert result == "ok"
        assert received == [("1234", 1, Action.draw_card())]

    def test_no_handler(self):
        hub = NotificationHub()
        with pytest.raises(RuntimeError):
            asyncio.run(hub.submit("1234", 0, Action.draw_card()))
