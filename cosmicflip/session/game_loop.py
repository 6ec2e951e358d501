"""
Game Loop - The per-room serialization point.

Every request follows the same path:
1. Client request arrives (HTTP, WebSocket or NotificationHub.submit)
2. Room is looked up in the registry
3. Room lock is acquired (FIFO; rooms never wait on each other)
4. State machine validates and computes the new snapshot in memory
5. Snapshot is written with compare-and-swap; conflicts are re-read,
   re-validated and retried a bounded number of times
6. Lock is released and the snapshot is published to subscribers

Countdowns, disconnect forfeits and room destruction are driven by a
single periodic tick() instead of per-room timers.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Callable, TypeVar
import asyncio
import logging
import random
import time

from ..config import EngineConfig
from ..engine_core.action import Action, ActionType, ApplyResult, NeedsColorChoice
from ..engine_core.errors import ConcurrentUpdateError, IllegalMoveError, RoomNotFoundError
from ..engine_core.reducer import SessionStateMachine
from ..engine_core.state import Session, SessionStatus
from .hub import NotificationHub
from .manager import SessionRegistry
from .store import InMemorySessionStore, SessionStore


logger = logging.getLogger(__name__)

T = TypeVar("T", Session, ApplyResult)


@dataclass
class TurnResult:
    """
    Result of submitting an action.

    accepted is False only for a color prompt; rejections raise.
    """
    session: Session
    accepted: bool
    needs_color: NeedsColorChoice | None = None
    changes: list[str] = field(default_factory=list)

    @property
    def version(self) -> int:
        return self.session.version

    @property
    def winner_seat(self) -> int | None:
        return self.session.winner_seat


class GameLoop:
    """
    Owns the registry, the store and the hub for one engine process.

    Usage:
        loop = GameLoop()
        room = await loop.create_room("alice")
        await loop.join(room.room_code, "bob")

        # Periodic clock (see run_clock)
        await loop.tick()

        result = await loop.submit(room.room_code, seat, Action.play_card("fire-7"))
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        registry: SessionRegistry | None = None,
        store: SessionStore | None = None,
        hub: NotificationHub | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or EngineConfig()
        self.machine = SessionStateMachine(
            countdown_seconds=self.config.countdown_seconds,
            hand_size=self.config.hand_size,
        )
        self.registry = registry or SessionRegistry(
            machine=self.machine,
            code_min=self.config.code_min,
            code_max=self.config.code_max,
            max_rooms=self.config.max_rooms,
            rng=random.Random(self.config.seed) if self.config.seed is not None else None,
        )
        self.store = store or InMemorySessionStore()
        self.hub = hub or NotificationHub()
        self.hub.bind(self.submit)
        self.clock = clock

        # (room_code, seat) -> wild card waiting for a color
        self._color_prompts: dict[tuple[str, int], str] = {}

    # =========================================================================
    # Rooms
    # =========================================================================

    async def create_room(self, player_id: str) -> Session:
        """Create a room and seat its host."""
        for attempt in range(1, self.config.max_cas_retries + 1):
            session = self.registry.create_room(self.clock(), seed=self.config.seed)
            room_code = session.room_code
            async with self.registry.lock_for(room_code):
                hosted = self.machine.join(session, player_id, self.clock())
                if await self.store.compare_and_swap(room_code, None, hosted):
                    self.registry.replace(hosted)
                    break
            # Code already held in the store by another engine instance
            logger.warning("room code %s taken in store (attempt %d)", room_code, attempt)
            self.registry.remove(room_code)
        else:
            raise ConcurrentUpdateError(
                "Could not reserve a room code, try again",
                attempts=self.config.max_cas_retries,
            )

        logger.info("room %s hosted by %s", room_code, player_id)
        self.hub.publish(room_code, hosted)
        return hosted

    async def join(self, room_code: str, player_id: str) -> Session:
        """Seat a second player; starts the countdown."""
        session = await self._mutate(
            room_code,
            lambda s: self.machine.join(s, player_id, self.clock()),
        )
        logger.info("room %s joined by %s (status %s)", room_code, player_id, session.status.value)
        return session

    def snapshot(self, room_code: str) -> Session:
        """Current snapshot of a live room."""
        return self.registry.get(room_code)

    async def destroy(self, room_code: str) -> Session | None:
        """Remove a room everywhere and free its code."""
        try:
            lock = self.registry.lock_for(room_code)
        except RoomNotFoundError:
            return None
        async with lock:
            session = self.registry.remove(room_code)
            await self.store.delete(room_code)
        self.hub.close_room(room_code)
        for key in [k for k in self._color_prompts if k[0] == room_code]:
            del self._color_prompts[key]
        return session

    # =========================================================================
    # Actions
    # =========================================================================

    async def submit(self, room_code: str, seat: int, action: Action) -> TurnResult:
        """
        Apply an action from `seat`.

        select_color without a card completes the wild card this seat
        was last prompted for.
        """
        prompt_key = (room_code, seat)
        if action.action_type == ActionType.SELECT_COLOR and action.card_id is None:
            card_id = self._color_prompts.get(prompt_key)
            if card_id is None:
                raise IllegalMoveError("No wild card is waiting for a color", seat=seat)
            action = replace(action, card_id=card_id)

        result = await self._mutate(
            room_code,
            lambda s: self.machine.apply(s, seat, action, self.clock()),
        )

        if result.needs_color is not None:
            self._color_prompts[prompt_key] = result.needs_color.card_id
            return TurnResult(session=result.session, accepted=False, needs_color=result.needs_color)

        self._color_prompts.pop(prompt_key, None)
        logger.debug("room %s v%d: %s", room_code, result.session.version, "; ".join(result.changes))
        if result.session.is_finished:
            logger.info("room %s finished, winner seat %s", room_code, result.session.winner_seat)
        return TurnResult(session=result.session, accepted=True, changes=result.changes)

    async def disconnect(self, room_code: str, seat: int) -> Session:
        return await self._mutate(room_code, lambda s: self.machine.disconnect(s, seat, self.clock()))

    async def reconnect(self, room_code: str, seat: int) -> Session:
        return await self._mutate(room_code, lambda s: self.machine.reconnect(s, seat, self.clock()))

    async def leave(self, room_code: str, seat: int) -> Session:
        session = await self._mutate(room_code, lambda s: self.machine.leave(s, seat, self.clock()))
        logger.info("seat %d left room %s (status %s)", seat, room_code, session.status.value)
        return session

    async def acknowledge(self, room_code: str, seat: int) -> Session:
        """Record that a seat saw the result; destroys the room once all have."""
        session = await self._mutate(room_code, lambda s: self.machine.acknowledge(s, seat, self.clock()))
        if all(p.acknowledged for p in session.seated):
            await self.destroy(room_code)
        return session

    # =========================================================================
    # Clock
    # =========================================================================

    async def tick(self, now: float | None = None) -> list[str]:
        """
        Advance every room that has something due.

        Returns the codes of rooms that changed or were destroyed.
        """
        now = self.clock() if now is None else now
        touched = []
        for room_code in self.registry.list_rooms():
            session = self.registry.lookup(room_code)
            if session is None:
                continue

            if session.is_finished:
                if self._expired(session, now):
                    await self.destroy(room_code)
                    touched.append(room_code)
                continue

            if not self._due(session, now):
                continue
            try:
                before = session.version
                after = await self._mutate(room_code, lambda s: self._advance(s, now))
            except RoomNotFoundError:
                continue
            if after.version != before:
                touched.append(room_code)
                if after.status == SessionStatus.ACTIVE and session.status == SessionStatus.COUNTDOWN:
                    logger.info("room %s started, seat %s opens", room_code, after.current_seat)
        return touched

    def _advance(self, session: Session, now: float) -> Session:
        session = self.machine.expire(session, now, self.config.disconnect_grace_seconds)
        return self.machine.tick(session, now)

    def _due(self, session: Session, now: float) -> bool:
        if session.status == SessionStatus.COUNTDOWN and (
            session.countdown_deadline is not None and now >= session.countdown_deadline
        ):
            return True
        return any(
            not p.connected and now - p.last_seen_at >= self.config.disconnect_grace_seconds
            for p in session.seated
        )

    def _expired(self, session: Session, now: float) -> bool:
        if session.seated and all(p.acknowledged for p in session.seated):
            return True
        finished_at = session.finished_at if session.finished_at is not None else session.updated_at
        return now - finished_at >= self.config.finished_retention_seconds

    async def run_clock(self, stop: asyncio.Event):
        """Call tick() every tick_interval_seconds until `stop` is set."""
        while not stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("clock tick failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.config.tick_interval_seconds)
            except asyncio.TimeoutError:
                pass

    # =========================================================================
    # Serialization
    # =========================================================================

    async def _mutate(self, room_code: str, transition: Callable[[Session], T]) -> T:
        """
        Run `transition` under the room lock and persist its result.

        Waiting for the lock is cancellable and has no effect. Once the
        lock is held the critical section and the publish run to
        completion even if the caller goes away.
        """
        lock = self.registry.lock_for(room_code)
        await lock.acquire()
        task = asyncio.ensure_future(self._commit(room_code, lock, transition))
        return await asyncio.shield(task)

    async def _commit(
        self,
        room_code: str,
        lock: asyncio.Lock,
        transition: Callable[[Session], T],
    ) -> T:
        result, published = await self._critical(room_code, lock, transition)
        if published is not None:
            self.hub.publish(room_code, published)
        return result

    async def _critical(
        self,
        room_code: str,
        lock: asyncio.Lock,
        transition: Callable[[Session], T],
    ) -> tuple[T, Session | None]:
        try:
            # The room may have been destroyed, and its code reused, while we waited
            if not self.registry.owns_lock(room_code, lock):
                raise RoomNotFoundError(f"Room {room_code} not found", room_code=room_code)
            session = self.registry.get(room_code)
            for attempt in range(1, self.config.max_cas_retries + 1):
                result = transition(session)
                new_session = result.session if isinstance(result, ApplyResult) else result
                if new_session.version == session.version:
                    return result, None

                if await self.store.compare_and_swap(room_code, session.version, new_session):
                    self.registry.replace(new_session)
                    return result, new_session

                logger.warning(
                    "version conflict on room %s at v%d (attempt %d)",
                    room_code, session.version, attempt,
                )
                stored = await self.store.load(room_code)
                if stored is None:
                    self.registry.remove(room_code)
                    raise RoomNotFoundError(f"Room {room_code} not found", room_code=room_code)
                self.registry.replace(stored)
                session = stored

            raise ConcurrentUpdateError(
                "The room changed too many times while saving, try again",
                room_code=room_code,
                attempts=self.config.max_cas_retries,
            )
        finally:
            lock.release()

    def stats(self) -> dict[str, Any]:
        return {
            "rooms": len(self.registry),
            "active": len(self.registry.list_active_sessions()),
        }
