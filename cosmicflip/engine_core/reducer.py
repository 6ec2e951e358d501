"""
Session State Machine - Applies lifecycle events and actions to sessions.

The state machine is the single point of session mutation.
All state changes must go through one of its transitions.

States: waiting -> countdown -> active -> finished

Design principles:
- Pure: (session, input) -> new session, nothing else is touched
- Total: invalid input raises a structured error, the input session
  is never modified
- Versioned: each accepted mutation increments version exactly once
- Rules are delegated to rules.py; randomness comes from the seed
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import random

from . import deck as deck_ops
from . import rules
from .action import Action, ActionType, ApplyResult, DrawMode, NeedsColorChoice, Outcome
from .errors import (
    ConsistencyError,
    DuplicateJoinError,
    GameFinishedError,
    IllegalMoveError,
    InsufficientDeckError,
    RoomFullError,
    SeatError,
    SessionStateError,
    StaleVersionError,
)
from .state import (
    SEAT_COUNT,
    Direction,
    FinishReason,
    Player,
    Session,
    SessionStatus,
    empty_seats,
)


@dataclass
class SessionStateMachine:
    """
    Transitions for one session at a time.

    Stateless - all state is in Session. Configuration only.
    """
    countdown_seconds: float = 3.0
    hand_size: int = 7

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create(self, room_code: str, now: float, seed: int | None = None) -> Session:
        """New room in WAITING with both seats open."""
        if seed is None:
            seed = random.getrandbits(32)
        return Session(
            room_code=room_code,
            players=empty_seats(),
            status=SessionStatus.WAITING,
            random_seed=seed,
            created_at=now,
            updated_at=now,
        )

    def join(self, session: Session, player_id: str, now: float) -> Session:
        """
        Seat a player in the lowest free seat.

        The second seat starts the launch countdown.
        """
        if session.seat_of(player_id) is not None:
            raise DuplicateJoinError(
                f"Player {player_id} is already seated in room {session.room_code}",
                player_id=player_id,
                seat=session.seat_of(player_id),
            )
        if session.is_full:
            raise RoomFullError(f"Room {session.room_code} is full", room_code=session.room_code)
        if session.status == SessionStatus.FINISHED:
            raise GameFinishedError(f"Room {session.room_code} has finished")
        if session.status != SessionStatus.WAITING:
            raise SessionStateError(
                f"Room {session.room_code} is not accepting players",
                status=session.status.value,
            )

        seat = next(i for i, p in enumerate(session.players) if p is None)
        player = Player(
            seat=seat,
            player_id=player_id,
            connected=True,
            last_seen_at=now,
            is_host=not session.seated,
        )
        new_session = session.with_player(player)

        if new_session.is_full:
            new_session = new_session._copy_with(
                status=SessionStatus.COUNTDOWN,
                countdown_deadline=now + self.countdown_seconds,
            )
        return self._bump(new_session, now)

    def tick(self, session: Session, now: float, rng: random.Random | None = None) -> Session:
        """
        Start the game once the countdown has elapsed.

        Deals, turns the opening discard and picks the first seat at
        random. Returns the session unchanged when nothing is due or
        a seat is currently disconnected.
        """
        if session.status != SessionStatus.COUNTDOWN:
            return session
        if session.countdown_deadline is None or now < session.countdown_deadline:
            return session
        if not session.is_full or not all(p.connected for p in session.seated):
            return session

        if rng is None:
            rng = random.Random(session.random_seed)

        shuffled = deck_ops.shuffle(deck_ops.generate(), rng)
        hands, remainder = deck_ops.deal_opening_hands(shuffled, self.hand_size, len(session.players))
        discard, draw_pile = deck_ops.draw_opening_discard(remainder, rng)

        new_session = session
        for player in session.seated:
            new_session = new_session.with_player(
                Player(
                    seat=player.seat,
                    player_id=player.player_id,
                    hand=tuple(hands[player.seat]),
                    connected=player.connected,
                    last_seen_at=player.last_seen_at,
                    is_host=player.is_host,
                )
            )

        new_session = new_session._copy_with(
            status=SessionStatus.ACTIVE,
            countdown_deadline=None,
            draw_pile=tuple(draw_pile),
            discard_top=discard,
            discard_pile=(),
            current_seat=rng.randrange(len(session.players)),
            direction=Direction.FORWARD,
            pending_draw=0,
        )
        self._guard_closed_deck(deck_ops.deck_ids(), new_session)
        return self._bump(new_session, now)

    # =========================================================================
    # Actions
    # =========================================================================

    def apply(self, session: Session, seat: int, action: Action, now: float) -> ApplyResult:
        """
        Apply a player action.

        Returns ApplyResult with the new session, or a color prompt
        with the session unchanged. Raises on any rejection.
        """
        if session.status == SessionStatus.FINISHED:
            raise GameFinishedError(
                f"Game in room {session.room_code} is over",
                winner_seat=session.winner_seat,
            )
        if action.expected_version is not None and action.expected_version != session.version:
            raise StaleVersionError(
                f"Session is at version {session.version}, request was based on {action.expected_version}",
                expected_version=action.expected_version,
                current_version=session.version,
            )

        try:
            outcome = self._resolve(session, seat, action)
        except InsufficientDeckError:
            # Nothing left to draw and nothing to play: no move can ever be accepted
            if any(a.action_type == ActionType.PLAY_CARD for a in rules.legal_actions(session, seat)):
                raise
            new_session = self._finish(self._bump(session, now), now, FinishReason.ABANDONED, None)
            return ApplyResult(
                session=new_session,
                changes=[f"seat {seat}: {action.describe()}", "deck exhausted, game abandoned"],
                details={"drawn": 0, "played": None},
            )
        if isinstance(outcome, NeedsColorChoice):
            return ApplyResult.prompt(session, outcome)

        new_session = outcome.commit(session)
        self._guard_closed_deck(frozenset(session.card_census()), new_session)
        new_session = self._bump(new_session, now)

        changes = [f"seat {seat}: {action.describe()}"]
        winner = rules.check_winner(new_session)
        if winner is not None:
            new_session = self._finish(new_session, now, FinishReason.WON, winner.seat)
            changes.append(f"seat {winner.seat} wins")

        return ApplyResult(
            session=new_session,
            changes=changes,
            details={"drawn": len(outcome.drawn), "played": outcome.played.id if outcome.played else None},
        )

    def _resolve(self, session: Session, seat: int, action: Action) -> Outcome | NeedsColorChoice:
        """Dispatch an action to the rule engine."""
        if action.action_type == ActionType.PLAY_CARD:
            if action.card_id is None:
                raise IllegalMoveError("play_card requires a card_id")
            return rules.resolve_play(session, seat, action.card_id, action.color)

        if action.action_type == ActionType.SELECT_COLOR:
            if action.card_id is None or action.color is None:
                raise IllegalMoveError("No wild card is waiting for a color")
            return rules.resolve_play(session, seat, action.card_id, action.color)

        if action.action_type == ActionType.DRAW_CARD:
            return self._draw(session, seat, DrawMode.SINGLE)

        if action.action_type == ActionType.ACCEPT_DRAW:
            return self._draw(session, seat, DrawMode.ACCEPT_PENDING)

        raise IllegalMoveError(f"Unknown action type: {action.action_type}")

    def _draw(self, session: Session, seat: int, mode: DrawMode) -> Outcome:
        """Resolve a draw, recycling the discard history if the pile runs short."""
        try:
            return rules.resolve_draw(session, seat, mode)
        except InsufficientDeckError:
            if not session.discard_pile:
                raise
        return rules.resolve_draw(self._recycle_discards(session), seat, mode)

    def _recycle_discards(self, session: Session) -> Session:
        """Shuffle the discard history under the draw pile."""
        rng = random.Random(f"{session.random_seed}:{session.version}")
        recycled = deck_ops.shuffle(session.discard_pile, rng)
        return session._copy_with(
            draw_pile=session.draw_pile + tuple(recycled),
            discard_pile=(),
        )

    # =========================================================================
    # Connectivity
    # =========================================================================

    def disconnect(self, session: Session, seat: int, now: float) -> Session:
        """Mark a seat disconnected. Hands are untouched."""
        player = self._seated(session, seat)
        if not player.connected:
            return session
        return self._bump(
            session.with_player(replace(player, connected=False, last_seen_at=now)),
            now,
        )

    def reconnect(self, session: Session, seat: int, now: float) -> Session:
        """Mark a seat connected again."""
        player = self._seated(session, seat)
        if player.connected:
            return session
        return self._bump(
            session.with_player(replace(player, connected=True, last_seen_at=now)),
            now,
        )

    def leave(self, session: Session, seat: int, now: float) -> Session:
        """
        A player walks away.

        Before the game: the seat is vacated (host leaving an unfilled
        room closes it). During the game: forfeit, the opponent wins.
        """
        if session.status == SessionStatus.FINISHED:
            raise GameFinishedError(f"Game in room {session.room_code} is over")
        player = self._seated(session, seat)

        if session.status == SessionStatus.ACTIVE:
            opponent = next(p for p in session.seated if p.seat != seat)
            return self._finish(self._bump(session, now), now, FinishReason.FORFEIT, opponent.seat)

        if player.is_host and session.status == SessionStatus.WAITING:
            return self._finish(self._bump(session, now), now, FinishReason.CANCELLED, None)

        return self._bump(self._vacate(session, [seat], FinishReason.CANCELLED, now), now)

    def expire(self, session: Session, now: float, grace_seconds: float) -> Session:
        """
        Apply the disconnect grace policy.

        Active: every seat gone too long -> abandoned, no winner;
        one seat gone too long -> forfeit to the other.
        Before the game: stale seats are vacated.
        """
        if session.status == SessionStatus.FINISHED:
            return session

        stale = [
            p.seat for p in session.seated
            if not p.connected and now - p.last_seen_at >= grace_seconds
        ]
        if not stale:
            return session

        if session.status == SessionStatus.ACTIVE:
            remaining = [p for p in session.seated if p.seat not in stale]
            if not remaining:
                return self._finish(self._bump(session, now), now, FinishReason.ABANDONED, None)
            return self._finish(self._bump(session, now), now, FinishReason.FORFEIT, remaining[0].seat)

        return self._bump(self._vacate(session, stale, FinishReason.ABANDONED, now), now)

    def acknowledge(self, session: Session, seat: int, now: float) -> Session:
        """Record that a seat has seen the final result."""
        if session.status != SessionStatus.FINISHED:
            raise SessionStateError(
                "Only finished games can be acknowledged",
                status=session.status.value,
            )
        player = self._seated(session, seat)
        if player.acknowledged:
            return session
        return self._bump(session.with_player(replace(player, acknowledged=True)), now)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _seated(self, session: Session, seat: int) -> Player:
        if not 0 <= seat < SEAT_COUNT:
            raise SeatError(f"Seat {seat} does not exist", seat=seat)
        player = session.player_at(seat)
        if player is None:
            raise SeatError(f"Seat {seat} is not occupied", seat=seat)
        return player

    def _vacate(self, session: Session, seats: list[int], empty_reason: FinishReason, now: float) -> Session:
        """Free seats before the game starts; an empty room finishes."""
        new_session = session
        for seat in seats:
            new_session = new_session.without_seat(seat)

        if not new_session.seated:
            return self._finish(new_session, now, empty_reason, None)

        remaining = new_session.seated
        if not any(p.is_host for p in remaining):
            host = remaining[0]
            new_session = new_session.with_player(replace(host, is_host=True))
        return new_session._copy_with(status=SessionStatus.WAITING, countdown_deadline=None)

    def _finish(
        self,
        session: Session,
        now: float,
        reason: FinishReason,
        winner_seat: int | None,
    ) -> Session:
        return session._copy_with(
            status=SessionStatus.FINISHED,
            finish_reason=reason,
            winner_seat=winner_seat,
            countdown_deadline=None,
            finished_at=now,
        )

    def _bump(self, session: Session, now: float) -> Session:
        return session._copy_with(version=session.version + 1, updated_at=now)

    def _guard_closed_deck(self, population: frozenset[str], session: Session):
        """Reject any result where a card of the population is duplicated or lost."""
        census = session.card_census()
        duplicated = sorted(card_id for card_id, n in census.items() if n != 1)
        missing = sorted(population - set(census))
        extra = sorted(set(census) - population)
        if duplicated or missing or extra:
            raise ConsistencyError(
                "Card population would no longer be closed",
                duplicated=duplicated,
                missing=missing,
                extra=extra,
            )


def apply_action(machine: SessionStateMachine, session: Session, seat: int, action: Action, now: float) -> ApplyResult:
    """Convenience function to apply an action."""
    return machine.apply(session, seat, action, now)
