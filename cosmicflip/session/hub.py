"""
Notification Hub - Fans session snapshots out to subscribers.

Delivery guarantees per subscriber:
- at-least-once for the latest snapshot
- strictly increasing version; duplicates and stale snapshots coming
  back from the transport are dropped before the callback runs

Inbound action requests are accepted here too and routed to the bound
request handler (the GameLoop).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
import itertools
import logging

from ..engine_core.action import Action
from ..engine_core.state import Session


logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Session], Any]
RequestHandler = Callable[[str, int, Action], Awaitable[Any]]


@dataclass
class Subscription:
    """Handle returned by subscribe()."""
    subscription_id: int
    room_code: str
    callback: SnapshotCallback
    last_version: int = -1
    delivered: int = 0
    failures: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


class NotificationHub:
    """
    One-to-many snapshot fan-out, grouped by room.

    Usage:
        hub = NotificationHub()
        handle = hub.subscribe("1234", on_snapshot)
        hub.publish("1234", session)
        hub.unsubscribe(handle)
    """

    def __init__(self):
        self._rooms: dict[str, dict[int, Subscription]] = {}
        self._ids = itertools.count(1)
        self._request_handler: RequestHandler | None = None

    def bind(self, handler: RequestHandler):
        """Route inbound action requests to `handler(room_code, seat, action)`."""
        self._request_handler = handler

    def subscribe(self, room_code: str, callback: SnapshotCallback, **metadata: Any) -> Subscription:
        subscription = Subscription(
            subscription_id=next(self._ids),
            room_code=room_code,
            callback=callback,
            metadata=metadata,
        )
        self._rooms.setdefault(room_code, {})[subscription.subscription_id] = subscription
        return subscription

    def unsubscribe(self, handle: Subscription):
        room = self._rooms.get(handle.room_code)
        if not room:
            return
        room.pop(handle.subscription_id, None)
        if not room:
            del self._rooms[handle.room_code]

    def subscribers(self, room_code: str) -> list[Subscription]:
        return list(self._rooms.get(room_code, {}).values())

    def publish(self, room_code: str, snapshot: Session) -> int:
        """
        Deliver a snapshot to every subscriber of the room.

        Returns the number of callbacks invoked. A raising callback is
        logged and keeps its old watermark so a later snapshot is retried.
        """
        delivered = 0
        for subscription in self.subscribers(room_code):
            if self.deliver(subscription, snapshot):
                delivered += 1
        return delivered

    def deliver(self, subscription: Subscription, snapshot: Session) -> bool:
        """Deliver to one subscriber if the snapshot is newer than its last."""
        if snapshot.version <= subscription.last_version:
            return False
        try:
            subscription.callback(snapshot)
        except Exception:
            subscription.failures += 1
            logger.warning(
                "subscriber %d of room %s failed on version %d",
                subscription.subscription_id,
                subscription.room_code,
                snapshot.version,
                exc_info=True,
            )
            return False
        subscription.last_version = snapshot.version
        subscription.delivered += 1
        return True

    async def submit(self, room_code: str, seat: int, action: Action) -> Any:
        """Forward an inbound action request to the engine."""
        if self._request_handler is None:
            raise RuntimeError("NotificationHub has no request handler bound")
        return await self._request_handler(room_code, seat, action)

    def close_room(self, room_code: str) -> int:
        """Drop every subscription of a destroyed room."""
        room = self._rooms.pop(room_code, {})
        return len(room)
