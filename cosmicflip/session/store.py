"""
Session Store - Persistence boundary for session snapshots.

The engine requires exactly one write primitive: compare-and-swap on
the snapshot version. No store-held locks; a writer that lost the race
re-reads and tries again.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
import asyncio

from ..engine_core.state import Session


class SessionStore(ABC):
    """
    Abstract key/value store for sessions, keyed by room code.

    Implementations wrap whatever document or key/value service the
    deployment uses.
    """

    @abstractmethod
    async def load(self, room_code: str) -> Session | None:
        """Return the stored snapshot, or None."""
        pass

    @abstractmethod
    async def compare_and_swap(
        self,
        room_code: str,
        expected_version: int | None,
        snapshot: Session,
    ) -> bool:
        """
        Store `snapshot` if the stored version equals `expected_version`.

        expected_version=None means the key must not exist yet.
        Returns False on mismatch without writing.
        """
        pass

    @abstractmethod
    async def delete(self, room_code: str) -> None:
        """Remove a snapshot. Missing keys are ignored."""
        pass


class InMemorySessionStore(SessionStore):
    """Process-local store. Snapshots are immutable, so no copying needed."""

    def __init__(self):
        self._data: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def load(self, room_code: str) -> Session | None:
        return self._data.get(room_code)

    async def compare_and_swap(
        self,
        room_code: str,
        expected_version: int | None,
        snapshot: Session,
    ) -> bool:
        async with self._lock:
            current = self._data.get(room_code)
            stored_version = current.version if current is not None else None
            if stored_version != expected_version:
                return False
            self._data[room_code] = snapshot
            return True

    async def delete(self, room_code: str) -> None:
        async with self._lock:
            self._data.pop(room_code, None)

    def keys(self) -> list[str]:
        return list(self._data)
