"""Real-time broadcast hub with per-connection subscription filters."""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Awaitable, Callable, Iterable

from .errors import InvalidMessageError
from .models import (
    ClientMessage,
    PriceUpdateEvent,
    ServerEvent,
    SubscribeMessage,
    TokenRecord,
    UnsubscribeMessage,
    VolumeSpikeEvent,
)

logger = logging.getLogger(__name__)

Sender = Callable[[str], Awaitable[None]]

_connection_ids = itertools.count(1)


class Connection:
    """Opaque handle for one live client. Only the hub can send through it."""

    __slots__ = ("id", "_send", "_closed")

    def __init__(self, send: Sender) -> None:
        self.id = next(_connection_ids)
        self._send = send
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Connection {self.id} {state}>"


def parse_client_message(text: str | bytes) -> ClientMessage:
    """Decode a client frame into a tagged message.

    Raises InvalidMessageError for bad JSON, unknown types or a non-list
    ``tokens`` field.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise InvalidMessageError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidMessageError("message must be a JSON object")

    tokens = data.get("tokens", [])
    if not isinstance(tokens, list) or not all(isinstance(t, str) for t in tokens):
        raise InvalidMessageError("'tokens' must be a list of addresses")

    kind = data.get("type")
    if kind == "subscribe":
        return SubscribeMessage(tokens=tuple(tokens))
    if kind == "unsubscribe":
        return UnsubscribeMessage(tokens=tuple(tokens))
    raise InvalidMessageError(f"unknown message type: {kind!r}")


class BroadcastHub:
    """Tracks live connections and fans out price/volume events.

    An empty subscription set means the connection receives every event.
    All registry mutation happens on the event loop thread.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[Connection, set[str]] = {}

    @property
    def connection_count(self) -> int:
        return len(self._subscriptions)

    def connect(self, send: Sender) -> Connection:
        connection = Connection(send)
        self._subscriptions[connection] = set()
        logger.info("WebSocket client connected (%d live)", self.connection_count)
        return connection

    def disconnect(self, connection: Connection) -> None:
        """Forget the connection. Safe to call more than once."""
        connection._closed = True
        if self._subscriptions.pop(connection, None) is not None:
            logger.info("WebSocket client disconnected (%d live)", self.connection_count)

    def subscriptions(self, connection: Connection) -> frozenset[str]:
        return frozenset(self._subscriptions.get(connection, ()))

    def subscribe(self, connection: Connection, tokens: Iterable[str]) -> None:
        subscribed = self._subscriptions.get(connection)
        if subscribed is None:
            return
        tokens = list(tokens)
        subscribed.update(tokens)
        logger.debug("Connection %d subscribed to %d tokens", connection.id, len(tokens))

    def unsubscribe(self, connection: Connection, tokens: Iterable[str]) -> None:
        subscribed = self._subscriptions.get(connection)
        if subscribed is None:
            return
        tokens = list(tokens)
        subscribed.difference_update(tokens)
        logger.debug("Connection %d unsubscribed from %d tokens", connection.id, len(tokens))

    def handle_message(self, connection: Connection, text: str | bytes) -> None:
        """Apply one client frame. Bad frames are logged and ignored."""
        if connection.closed or connection not in self._subscriptions:
            return
        try:
            message = parse_client_message(text)
        except InvalidMessageError as e:
            logger.warning("Ignoring WebSocket message from %d: %s", connection.id, e)
            return

        if isinstance(message, SubscribeMessage):
            self.subscribe(connection, message.tokens)
        elif isinstance(message, UnsubscribeMessage):
            self.unsubscribe(connection, message.tokens)
        else:
            raise TypeError(f"unhandled client message: {message!r}")

    async def broadcast_price_update(self, address: str, token: TokenRecord) -> int:
        event = PriceUpdateEvent(
            token_address=address,
            price_sol=token.price,
            price_1hr_change=token.price_change_1h,
        )
        return await self._broadcast(address, event)

    async def broadcast_volume_spike(
        self, address: str, old_volume: float, new_volume: float
    ) -> int:
        change_percent = (new_volume - old_volume) / old_volume * 100 if old_volume else 0.0
        event = VolumeSpikeEvent(
            token_address=address,
            volume_change_percent=change_percent,
            new_volume=new_volume,
        )
        return await self._broadcast(address, event)

    async def _broadcast(self, address: str, event: ServerEvent) -> int:
        """Send to every interested connection. Returns the delivery count."""
        data = event.to_dict()
        payload = json.dumps(data)
        delivered = 0
        # Snapshot: a send may await and let disconnects mutate the registry
        for connection, tokens in list(self._subscriptions.items()):
            if tokens and address not in tokens:
                continue
            if connection.closed:
                continue
            try:
                await connection._send(payload)
            except Exception as e:
                logger.error("Error sending WebSocket message to %d: %s", connection.id, e)
                continue
            delivered += 1

        if delivered:
            logger.debug("Broadcast %s to %d clients", data["type"], delivered)
        return delivered
