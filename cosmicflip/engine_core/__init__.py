"""
Engine Core - Deterministic card game state and rule evaluation.

The engine is the runtime that:
1. Builds and shuffles the deck
2. Holds immutable Session snapshots
3. Decides legality of plays and draws
4. Applies actions via the state machine
"""

from .state import (
    Card,
    CardValue,
    Direction,
    Element,
    FinishReason,
    Player,
    Session,
    SessionStatus,
)
from .action import Action, ActionType, ApplyResult, DrawMode, NeedsColorChoice, Outcome
from .reducer import SessionStateMachine, apply_action
from .rules import check_winner, is_playable, legal_actions, resolve_draw, resolve_play
from . import deck, errors

__all__ = [
    "Card",
    "CardValue",
    "Direction",
    "Element",
    "FinishReason",
    "Player",
    "Session",
    "SessionStatus",
    "Action",
    "ActionType",
    "ApplyResult",
    "DrawMode",
    "NeedsColorChoice",
    "Outcome",
    "SessionStateMachine",
    "apply_action",
    "check_winner",
    "is_playable",
    "legal_actions",
    "resolve_draw",
    "resolve_play",
    "deck",
    "errors",
]
