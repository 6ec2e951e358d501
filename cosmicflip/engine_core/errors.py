"""
Engine Errors - Structured failures surfaced to the presentation layer.

Every rejected operation raises one of these. None of them are raised
after a mutation has been applied: validation happens first, so a
rejected request always leaves the session exactly as it was.

Families:
- GameValidationError: illegal move, wrong turn, stale version, ...
- CapacityError: room full, duplicate join, code space exhausted
- ResourceError: draw pile underflow
- ConsistencyError: persistence conflicts that outlived the retry bound
"""

from __future__ import annotations
from typing import Any


class CosmicFlipError(Exception):
    """Base class. error_code is stable and safe to show to clients."""
    error_code = "ENGINE_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details or None,
        }


class RoomNotFoundError(CosmicFlipError):
    error_code = "ROOM_NOT_FOUND"


# Validation --------------------------------------------------------------

class GameValidationError(CosmicFlipError):
    error_code = "VALIDATION_ERROR"


class IllegalMoveError(GameValidationError):
    error_code = "ILLEGAL_MOVE"


class NotYourTurnError(IllegalMoveError):
    error_code = "NOT_YOUR_TURN"


class CardNotInHandError(IllegalMoveError):
    error_code = "CARD_NOT_IN_HAND"


class InvalidColorError(IllegalMoveError):
    error_code = "INVALID_COLOR"


class StaleVersionError(GameValidationError):
    error_code = "STALE_VERSION"


class GameFinishedError(GameValidationError):
    error_code = "GAME_FINISHED"


class SessionStateError(GameValidationError):
    """Operation not allowed in the session's current status."""
    error_code = "INVALID_STATE"


class SeatError(GameValidationError):
    """Seat index out of range or unoccupied."""
    error_code = "INVALID_SEAT"


# Capacity ----------------------------------------------------------------

class CapacityError(CosmicFlipError):
    error_code = "CAPACITY_ERROR"


class RoomFullError(CapacityError):
    error_code = "ROOM_FULL"


class DuplicateJoinError(CapacityError):
    error_code = "DUPLICATE_JOIN"


class CodeExhaustionError(CapacityError):
    error_code = "CODE_EXHAUSTED"


# Resources ---------------------------------------------------------------

class ResourceError(CosmicFlipError):
    error_code = "RESOURCE_ERROR"


class InsufficientDeckError(ResourceError):
    error_code = "INSUFFICIENT_DECK"


# Consistency -------------------------------------------------------------

class ConsistencyError(CosmicFlipError):
    error_code = "CONSISTENCY_ERROR"


class ConcurrentUpdateError(ConsistencyError):
    """Repeated compare-and-swap conflicts. The client should try again."""
    error_code = "TRY_AGAIN"
