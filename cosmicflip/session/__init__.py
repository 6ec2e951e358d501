"""
Session Module - Live rooms and their serialization.

A room represents one two-player match:
- Created when the host asks for a room code
- Joined by the second player with that code
- Driven by action requests, serialized per room
- Destroyed after the result is acknowledged or times out

Snapshots are written through a compare-and-swap store and fanned out
to subscribers by the notification hub.
"""

from .manager import SessionRegistry
from .hub import NotificationHub, Subscription
from .store import SessionStore, InMemorySessionStore
from .game_loop import GameLoop, TurnResult

__all__ = [
    "SessionRegistry",
    "NotificationHub",
    "Subscription",
    "SessionStore",
    "InMemorySessionStore",
    "GameLoop",
    "TurnResult",
]
