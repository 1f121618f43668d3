"""Tests for BroadcastHub and client message parsing."""

import json
from unittest.mock import AsyncMock

import pytest

from tokenfeed.market.errors import InvalidMessageError
from tokenfeed.market.hub import parse_client_message
from tokenfeed.market.models import SubscribeMessage, UnsubscribeMessage

from .helpers import make_token


class Inbox:
    """Collects frames sent to one connection."""

    def __init__(self) -> None:
        self.frames: list[dict] = []

    async def __call__(self, text: str) -> None:
        self.frames.append(json.loads(text))


class TestParseClientMessage:
    """Client frame decoding."""

    def test_subscribe(self):
        message = parse_client_message('{"type": "subscribe", "tokens": ["a", "b"]}')
        assert message == SubscribeMessage(tokens=("a", "b"))

    def test_unsubscribe(self):
        message = parse_client_message('{"type": "unsubscribe", "tokens": ["a"]}')
        assert message == UnsubscribeMessage(tokens=("a",))

    def test_missing_tokens_is_empty(self):
        assert parse_client_message('{"type": "subscribe"}') == SubscribeMessage(tokens=())

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[1, 2]",
            '{"type": "ping"}',
            '{"tokens": ["a"]}',
            '{"type": "subscribe", "tokens": "a"}',
            '{"type": "subscribe", "tokens": [1]}',
        ],
    )
    def test_invalid_frames(self, text):
        with pytest.raises(InvalidMessageError):
            parse_client_message(text)


class TestSubscriptions:
    """Registry and subscription bookkeeping."""

    def test_connect_and_disconnect(self, hub):
        connection = hub.connect(Inbox())
        assert hub.connection_count == 1
        assert not connection.closed

        hub.disconnect(connection)
        hub.disconnect(connection)

        assert hub.connection_count == 0
        assert connection.closed

    def test_subscribe_and_unsubscribe(self, hub):
        connection = hub.connect(Inbox())

        hub.handle_message(connection, '{"type": "subscribe", "tokens": ["a", "b"]}')
        assert hub.subscriptions(connection) == {"a", "b"}

        hub.handle_message(connection, '{"type": "unsubscribe", "tokens": ["a", "zzz"]}')
        assert hub.subscriptions(connection) == {"b"}

    def test_bad_frame_is_ignored(self, hub):
        """Test that a malformed frame leaves subscriptions untouched."""
        connection = hub.connect(Inbox())
        hub.subscribe(connection, ["a"])

        hub.handle_message(connection, "{oops")

        assert hub.subscriptions(connection) == {"a"}

    def test_closed_handle_is_ignored(self, hub):
        connection = hub.connect(Inbox())
        hub.disconnect(connection)

        hub.handle_message(connection, '{"type": "subscribe", "tokens": ["a"]}')
        hub.subscribe(connection, ["a"])

        assert hub.subscriptions(connection) == frozenset()
        assert hub.connection_count == 0


@pytest.mark.asyncio
class TestBroadcast:
    """Fan-out with subscription filtering."""

    async def test_unfiltered_connection_receives_everything(self, hub):
        inbox = Inbox()
        hub.connect(inbox)

        await hub.broadcast_price_update("x", make_token("x", price=2.0, price_change_1h=3.0))
        await hub.broadcast_volume_spike("y", 100.0, 250.0)

        assert [frame["type"] for frame in inbox.frames] == ["price_update", "volume_spike"]
        price, spike = inbox.frames
        assert price["token_address"] == "x"
        assert price["price_sol"] == 2.0
        assert price["price_1hr_change"] == 3.0
        assert spike["volume_change_percent"] == 150.0
        assert spike["new_volume"] == 250.0

    async def test_subscription_filters_events(self, hub):
        """Test that a client subscribed to X does not receive Y."""
        subscribed, everything = Inbox(), Inbox()
        connection = hub.connect(subscribed)
        hub.connect(everything)
        hub.subscribe(connection, ["x"])

        delivered_y = await hub.broadcast_price_update("y", make_token("y"))
        delivered_x = await hub.broadcast_price_update("x", make_token("x"))

        assert delivered_y == 1
        assert delivered_x == 2
        assert [f["token_address"] for f in subscribed.frames] == ["x"]
        assert [f["token_address"] for f in everything.frames] == ["y", "x"]

    async def test_unsubscribing_everything_receives_all_again(self, hub):
        inbox = Inbox()
        connection = hub.connect(inbox)
        hub.subscribe(connection, ["x"])
        hub.unsubscribe(connection, ["x"])

        await hub.broadcast_price_update("y", make_token("y"))

        assert len(inbox.frames) == 1

    async def test_send_failure_is_isolated(self, hub):
        """Test that one failing client does not stop delivery to others."""
        failing = AsyncMock(side_effect=RuntimeError("socket gone"))
        healthy = Inbox()
        hub.connect(failing)
        hub.connect(healthy)

        delivered = await hub.broadcast_volume_spike("x", 10.0, 20.0)

        assert delivered == 1
        assert len(healthy.frames) == 1
        failing.assert_awaited_once()

    async def test_disconnected_client_receives_nothing(self, hub):
        inbox = Inbox()
        connection = hub.connect(inbox)
        hub.disconnect(connection)

        assert await hub.broadcast_price_update("x", make_token("x")) == 0
        assert inbox.frames == []

    async def test_disconnect_during_broadcast(self, hub):
        """Test that a send which disconnects a peer does not break iteration."""
        late = Inbox()
        late_connection = None

        async def disconnecting_send(text: str) -> None:
            hub.disconnect(late_connection)

        hub.connect(disconnecting_send)
        late_connection = hub.connect(late)

        delivered = await hub.broadcast_price_update("x", make_token("x"))

        assert delivered == 1
        assert late.frames == []

    async def test_zero_old_volume_reports_zero_change(self, hub):
        inbox = Inbox()
        hub.connect(inbox)

        await hub.broadcast_volume_spike("x", 0.0, 5.0)

        assert inbox.frames[0]["volume_change_percent"] == 0.0
