"""
Action System - Player actions, rule outcomes and apply results.

Actions represent the gestures a client can send:
1. Play a card (optionally with a color for wild cards)
2. Complete a pending wild play by selecting a color
3. Draw a single card
4. Accept a pending forced draw

All state changes flow through actions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .state import Card, Direction, Element, Player, Session


class ActionType(str, Enum):
    """Types of player actions."""
    PLAY_CARD = "play_card"
    SELECT_COLOR = "select_color"
    DRAW_CARD = "draw_card"
    ACCEPT_DRAW = "accept_draw"


class DrawMode(str, Enum):
    """How a draw is resolved."""
    SINGLE = "single"
    ACCEPT_PENDING = "accept_pending"


@dataclass(frozen=True)
class Action:
    """
    A complete action request from one seat.

    expected_version, when set, is the session version the client
    based its decision on; a mismatch is rejected as stale.
    """
    action_type: ActionType
    card_id: str | None = None
    color: Element | None = None
    expected_version: int | None = None

    @classmethod
    def play_card(
        cls,
        card_id: str,
        color: Element | str | None = None,
        expected_version: int | None = None,
    ) -> Action:
        """Factory for play action."""
        return cls(
            action_type=ActionType.PLAY_CARD,
            card_id=card_id,
            color=Element(color) if color is not None else None,
            expected_version=expected_version,
        )

    @classmethod
    def select_color(
        cls,
        color: Element | str,
        card_id: str | None = None,
        expected_version: int | None = None,
    ) -> Action:
        """Factory for completing a wild play."""
        return cls(
            action_type=ActionType.SELECT_COLOR,
            card_id=card_id,
            color=Element(color),
            expected_version=expected_version,
        )

    @classmethod
    def draw_card(cls, expected_version: int | None = None) -> Action:
        """Factory for single draw."""
        return cls(action_type=ActionType.DRAW_CARD, expected_version=expected_version)

    @classmethod
    def accept_draw(cls, expected_version: int | None = None) -> Action:
        """Factory for accepting a pending forced draw."""
        return cls(action_type=ActionType.ACCEPT_DRAW, expected_version=expected_version)

    def describe(self) -> str:
        parts = [self.action_type.value]
        if self.card_id:
            parts.append(self.card_id)
        if self.color:
            parts.append(self.color.value)
        return " ".join(parts)


@dataclass(frozen=True)
class Outcome:
    """
    Result of resolving one action against a session.

    Computed by the rule engine without touching the session; the state
    machine commits it atomically.
    """
    actor: Player
    draw_pile: tuple[Card, ...]
    discard_top: Card | None
    discard_pile: tuple[Card, ...]
    current_seat: int
    direction: Direction
    pending_draw: int
    played: Card | None = None
    drawn: tuple[Card, ...] = ()

    def commit(self, session: Session) -> Session:
        """Apply this outcome to a session (version untouched)."""
        return session.with_player(self.actor)._copy_with(
            draw_pile=self.draw_pile,
            discard_top=self.discard_top,
            discard_pile=self.discard_pile,
            current_seat=self.current_seat,
            direction=self.direction,
            pending_draw=self.pending_draw,
        )


@dataclass(frozen=True)
class NeedsColorChoice:
    """
    A wild or plus4 play that still needs a color.

    Nothing has been committed; the caller re-submits with a color.
    """
    seat: int
    card_id: str
    options: tuple[Element, ...]


@dataclass
class ApplyResult:
    """
    Result of applying an action through the state machine.

    Either a new session (accepted) or a color prompt with the session
    unchanged.
    """
    session: Session
    accepted: bool = True
    needs_color: NeedsColorChoice | None = None
    changes: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def prompt(cls, session: Session, choice: NeedsColorChoice) -> ApplyResult:
        return cls(session=session, accepted=False, needs_color=choice)
