"""
Session State - Immutable snapshots of one game room.

Design principles:
- Immutable: every accepted mutation produces a new Session
- Versioned: version increments once per accepted mutation
- Serializable: snapshots are handed to clients as-is
- Closed deck: every card lives in exactly one place
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum


SEAT_COUNT = 2


class Element(str, Enum):
    """Card elements. WILD is only printed on wild cards."""
    FIRE = "fire"
    WATER = "water"
    GRASS = "grass"
    ELECTRIC = "electric"
    WILD = "wild"


# Elements a player may pick for a wild card
COLOR_CHOICES = (Element.FIRE, Element.WATER, Element.GRASS, Element.ELECTRIC)


class CardValue(str, Enum):
    """Card ranks and actions."""
    ZERO = "0"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    SKIP = "skip"
    REVERSE = "reverse"
    PLUS2 = "plus2"
    PLUS4 = "plus4"
    WILD = "wild"

    @property
    def is_action(self) -> bool:
        return self in ACTION_VALUES

    @property
    def is_draw(self) -> bool:
        return self in (CardValue.PLUS2, CardValue.PLUS4)

    @property
    def needs_color(self) -> bool:
        return self in (CardValue.WILD, CardValue.PLUS4)


NUMBER_VALUES = tuple(CardValue(str(n)) for n in range(10))
ACTION_VALUES = frozenset({
    CardValue.SKIP,
    CardValue.REVERSE,
    CardValue.PLUS2,
    CardValue.PLUS4,
    CardValue.WILD,
})
DRAW_AMOUNTS = {CardValue.PLUS2: 2, CardValue.PLUS4: 4}


class Direction(str, Enum):
    """Direction of play."""
    FORWARD = "forward"
    REVERSE = "reverse"

    def flipped(self) -> Direction:
        return Direction.REVERSE if self == Direction.FORWARD else Direction.FORWARD

    @property
    def step(self) -> int:
        return 1 if self == Direction.FORWARD else -1


class SessionStatus(str, Enum):
    """Lifecycle of a room."""
    WAITING = "waiting"  # Room created, seats open
    COUNTDOWN = "countdown"  # Both seats filled, launch pending
    ACTIVE = "active"  # Cards dealt, game in progress
    FINISHED = "finished"  # Winner decided, forfeited or abandoned


class FinishReason(str, Enum):
    """Why a session reached FINISHED."""
    WON = "won"
    FORFEIT = "forfeit"
    ABANDONED = "abandoned"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Card:
    """
    A single card. Value object, compared by id.

    Wild cards carry element WILD in the deck; once played, the discard
    top holds a copy whose element is the chosen color.
    """
    id: str
    element: Element
    value: CardValue

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        if not isinstance(other, Card):
            return False
        return self.id == other.id

    @property
    def is_wild(self) -> bool:
        return self.value.needs_color

    def with_element(self, element: Element) -> Card:
        """Return a copy showing a chosen color."""
        return Card(id=self.id, element=element, value=self.value)

    def restored(self) -> Card:
        """Return the card as printed (wild variants back to WILD)."""
        if self.is_wild and self.element != Element.WILD:
            return self.with_element(Element.WILD)
        return self

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "element": self.element.value, "value": self.value.value}


@dataclass(frozen=True)
class Player:
    """
    One occupied seat.

    The hand is only ever replaced by the state machine.
    """
    seat: int
    player_id: str
    hand: tuple[Card, ...] = ()
    connected: bool = True
    last_seen_at: float = 0.0
    is_host: bool = False
    acknowledged: bool = False

    @property
    def hand_size(self) -> int:
        return len(self.hand)

    def find_card(self, card_id: str) -> Card | None:
        for card in self.hand:
            if card.id == card_id:
                return card
        return None

    def without_card(self, card_id: str) -> Player:
        return replace(self, hand=tuple(c for c in self.hand if c.id != card_id))

    def with_cards(self, cards: tuple[Card, ...]) -> Player:
        return replace(self, hand=self.hand + tuple(cards))


@dataclass(frozen=True)
class Session:
    """
    Complete state of one room at a point in time.

    This is the aggregate the engine operates on. All changes go
    through the state machine in reducer.py and yield a new instance.
    """
    room_code: str

    players: tuple[Player | None, ...] = (None, None)
    status: SessionStatus = SessionStatus.WAITING

    # Card zones
    draw_pile: tuple[Card, ...] = ()
    discard_top: Card | None = None
    discard_pile: tuple[Card, ...] = ()  # History beneath discard_top

    # Turn state
    current_seat: int | None = None
    direction: Direction = Direction.FORWARD
    pending_draw: int = 0

    # Lifecycle
    countdown_deadline: float | None = None
    version: int = 0
    winner_seat: int | None = None
    finish_reason: FinishReason | None = None

    # Random seed for determinism
    random_seed: int = 0

    # Metadata
    created_at: float = 0.0
    updated_at: float = 0.0
    finished_at: float | None = None

    @property
    def seated(self) -> list[Player]:
        """Occupied seats in seat order."""
        return [p for p in self.players if p is not None]

    @property
    def is_full(self) -> bool:
        return all(p is not None for p in self.players)

    @property
    def is_finished(self) -> bool:
        return self.status == SessionStatus.FINISHED

    @property
    def current_player(self) -> Player | None:
        if self.current_seat is None:
            return None
        return self.players[self.current_seat]

    def player_at(self, seat: int) -> Player | None:
        if seat < 0 or seat >= len(self.players):
            return None
        return self.players[seat]

    def seat_of(self, player_id: str) -> int | None:
        for player in self.seated:
            if player.player_id == player_id:
                return player.seat
        return None

    def with_player(self, player: Player) -> Session:
        """Return new session with one seat replaced."""
        players = list(self.players)
        players[player.seat] = player
        return self._copy_with(players=tuple(players))

    def without_seat(self, seat: int) -> Session:
        players = list(self.players)
        players[seat] = None
        return self._copy_with(players=tuple(players))

    def _copy_with(self, **kwargs) -> Session:
        """Create a copy with some fields replaced."""
        return replace(self, **kwargs)

    def card_census(self) -> Counter:
        """Count every card id across all zones."""
        census: Counter = Counter()
        for player in self.seated:
            census.update(c.id for c in player.hand)
        census.update(c.id for c in self.draw_pile)
        census.update(c.id for c in self.discard_pile)
        if self.discard_top is not None:
            census[self.discard_top.id] += 1
        return census

    def is_closed_deck(self, deck_ids: set[str] | frozenset[str]) -> bool:
        """True when every card in deck_ids appears exactly once."""
        census = self.card_census()
        return set(census) == set(deck_ids) and all(n == 1 for n in census.values())

    def to_dict(self) -> dict:
        """Full snapshot, including every hand. Not for client delivery."""
        return {
            "room_code": self.room_code,
            "status": self.status.value,
            "version": self.version,
            "players": [
                None if p is None else {
                    "seat": p.seat,
                    "player_id": p.player_id,
                    "hand": [c.to_dict() for c in p.hand],
                    "connected": p.connected,
                    "last_seen_at": p.last_seen_at,
                    "is_host": p.is_host,
                }
                for p in self.players
            ],
            "draw_pile": [c.to_dict() for c in self.draw_pile],
            "discard_top": self.discard_top.to_dict() if self.discard_top else None,
            "discard_pile": [c.to_dict() for c in self.discard_pile],
            "current_seat": self.current_seat,
            "direction": self.direction.value,
            "pending_draw": self.pending_draw,
            "countdown_deadline": self.countdown_deadline,
            "winner_seat": self.winner_seat,
            "finish_reason": self.finish_reason.value if self.finish_reason else None,
        }


def empty_seats() -> tuple[None, ...]:
    return tuple(None for _ in range(SEAT_COUNT))
