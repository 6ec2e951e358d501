"""
Session Registry - Creates, looks up and destroys rooms by code.

LIFECYCLE:
1. Host creates a room -> fresh 4-digit code, session in WAITING
2. Second player joins with the code
3. Countdown, game, result
4. Room destroyed (acknowledged, timed out or cancelled)
5. Code becomes available again

RULES:
- At most one live session per code
- Codes are only recycled after the session is removed
- Each room has its own lock; rooms never share mutable state
"""

from __future__ import annotations
import asyncio
import logging
import random

from ..engine_core.errors import CodeExhaustionError, RoomNotFoundError
from ..engine_core.reducer import SessionStateMachine
from ..engine_core.state import Session


logger = logging.getLogger(__name__)

RANDOM_CODE_ATTEMPTS = 32


class SessionRegistry:
    """
    Tracks live sessions in memory.

    Room codes are human-typed join keys, not secrets.
    """

    def __init__(
        self,
        machine: SessionStateMachine | None = None,
        code_min: int = 1000,
        code_max: int = 9999,
        max_rooms: int | None = None,
        rng: random.Random | None = None,
    ):
        self.machine = machine or SessionStateMachine()
        self.code_min = code_min
        self.code_max = code_max
        code_space = code_max - code_min + 1
        self.capacity = min(code_space, max_rooms) if max_rooms is not None else code_space
        self._rng = rng or random.Random()
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __contains__(self, room_code: str) -> bool:
        return room_code in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def create_room(self, now: float, seed: int | None = None) -> Session:
        """
        Reserve a fresh code and register a WAITING session under it.

        Raises CodeExhaustionError when the code space is used up.
        """
        room_code = self._generate_code()
        if seed is None:
            seed = self._rng.getrandbits(32)
        session = self.machine.create(room_code, now, seed=seed)
        self._sessions[room_code] = session
        self._locks[room_code] = asyncio.Lock()
        logger.info("room %s created", room_code)
        return session

    def _generate_code(self) -> str:
        if len(self._sessions) >= self.capacity:
            raise CodeExhaustionError(
                "No room codes available",
                live_rooms=len(self._sessions),
                capacity=self.capacity,
            )

        for _ in range(RANDOM_CODE_ATTEMPTS):
            code = str(self._rng.randint(self.code_min, self.code_max))
            if code not in self._sessions:
                return code

        free = [
            str(n) for n in range(self.code_min, self.code_max + 1)
            if str(n) not in self._sessions
        ]
        if not free:
            raise CodeExhaustionError("No room codes available", live_rooms=len(self._sessions))
        return self._rng.choice(free)

    def lookup(self, room_code: str) -> Session | None:
        """Get a session by code."""
        return self._sessions.get(room_code)

    def get(self, room_code: str) -> Session:
        """Get a session by code, raising if it does not exist."""
        session = self._sessions.get(room_code)
        if session is None:
            raise RoomNotFoundError(f"Room {room_code} not found", room_code=room_code)
        return session

    def replace(self, session: Session):
        """Install a newer snapshot for a live room."""
        if session.room_code not in self._sessions:
            raise RoomNotFoundError(f"Room {session.room_code} not found", room_code=session.room_code)
        self._sessions[session.room_code] = session

    def remove(self, room_code: str) -> Session | None:
        """
        Destroy a room and release its code.

        Returns the last snapshot, or None if the room was unknown.
        """
        session = self._sessions.pop(room_code, None)
        self._locks.pop(room_code, None)
        if session is not None:
            logger.info("room %s destroyed at version %d", room_code, session.version)
        return session

    def lock_for(self, room_code: str) -> asyncio.Lock:
        """The serialization token for one room."""
        lock = self._locks.get(room_code)
        if lock is None:
            raise RoomNotFoundError(f"Room {room_code} not found", room_code=room_code)
        return lock

    def owns_lock(self, room_code: str, lock: asyncio.Lock) -> bool:
        """Whether `lock` still serializes the live room under this code."""
        return self._locks.get(room_code) is lock

    def list_rooms(self) -> list[str]:
        """Codes of all live rooms."""
        return list(self._sessions)

    def list_active_sessions(self) -> list[str]:
        """Codes of rooms whose game has not finished."""
        return [
            code for code, session in self._sessions.items()
            if not session.is_finished
        ]
