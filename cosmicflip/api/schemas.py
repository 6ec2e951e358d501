"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between the mobile client and
the engine. Views are seat-scoped: a client sees its own hand and only
the size of the opponent's.

Error Codes:
- ROOM_NOT_FOUND: Room does not exist or has been destroyed
- ILLEGAL_MOVE / NOT_YOUR_TURN / CARD_NOT_IN_HAND / INVALID_COLOR
- STALE_VERSION: Request based on an outdated snapshot
- GAME_FINISHED: No more actions accepted
- ROOM_FULL / DUPLICATE_JOIN / CODE_EXHAUSTED
- INSUFFICIENT_DECK: Not enough cards left to draw
- TRY_AGAIN: Repeated write conflicts, resubmit
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field

from ..engine_core.action import ActionType
from ..engine_core.state import Direction, Element, SessionStatus, CardValue


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ILLEGAL_MOVE = "ILLEGAL_MOVE"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    CARD_NOT_IN_HAND = "CARD_NOT_IN_HAND"
    INVALID_COLOR = "INVALID_COLOR"
    STALE_VERSION = "STALE_VERSION"
    GAME_FINISHED = "GAME_FINISHED"
    INVALID_STATE = "INVALID_STATE"
    INVALID_SEAT = "INVALID_SEAT"
    CAPACITY_ERROR = "CAPACITY_ERROR"
    ROOM_FULL = "ROOM_FULL"
    DUPLICATE_JOIN = "DUPLICATE_JOIN"
    CODE_EXHAUSTED = "CODE_EXHAUSTED"
    RESOURCE_ERROR = "RESOURCE_ERROR"
    INSUFFICIENT_DECK = "INSUFFICIENT_DECK"
    CONSISTENCY_ERROR = "CONSISTENCY_ERROR"
    TRY_AGAIN = "TRY_AGAIN"
    ENGINE_ERROR = "ENGINE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class CardInfo(BaseModel):
    """Card information for display."""
    card_id: str
    element: Element
    value: CardValue

    model_config = {"from_attributes": True}


class SeatInfo(BaseModel):
    """Public information about an occupied seat."""
    seat: int
    player_id: str
    hand_size: int = 0
    connected: bool = True
    is_host: bool = False
    is_you: bool = False
    is_current_turn: bool = False


class SessionView(BaseModel):
    """Snapshot of a room as seen from one seat."""
    room_code: str
    status: SessionStatus
    version: int
    your_seat: Optional[int] = None
    your_hand: list[CardInfo] = Field(default_factory=list, description="Sorted for display")
    playable_card_ids: list[str] = Field(default_factory=list)
    seats: list[Optional[SeatInfo]] = Field(default_factory=list)
    discard_top: Optional[CardInfo] = None
    draw_pile_count: int = 0
    current_seat: Optional[int] = None
    your_turn: bool = False
    direction: Direction = Direction.FORWARD
    pending_draw: int = 0
    can_draw: bool = False
    must_accept_draw: bool = False
    countdown_deadline: Optional[float] = Field(None, description="Epoch seconds")
    winner_seat: Optional[int] = None
    finish_reason: Optional[str] = None


# =============================================================================
# Requests
# =============================================================================

class PlayerRequest(BaseModel):
    """Create or join a room."""
    player_id: str = Field(..., min_length=1, max_length=64, description="Client identity")


class SeatRequest(BaseModel):
    """Connectivity and lifecycle requests for a seat."""
    seat: int = Field(..., ge=0, le=1)


class ActionRequest(BaseModel):
    """One player gesture."""
    seat: int = Field(..., ge=0, le=1)
    type: ActionType
    card_id: Optional[str] = Field(None, description="Card to play")
    color: Optional[Element] = Field(None, description="Color for wild and plus4 cards")
    expected_version: Optional[int] = Field(None, description="Version the client acted on")


# =============================================================================
# Responses
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class RoomResponse(BaseModel):
    """Result of creating or joining a room."""
    room_code: str
    seat: int
    view: SessionView


class ActionResponse(BaseModel):
    """Result of submitting an action."""
    accepted: bool
    needs_color: bool = False
    card_id: Optional[str] = Field(None, description="Wild card waiting for a color")
    color_options: list[Element] = Field(default_factory=list)
    changes: list[str] = Field(default_factory=list)
    view: SessionView


class RoomListResponse(BaseModel):
    """Live room codes."""
    rooms: list[str]
    count: int


class EndRoomResponse(BaseModel):
    """Response from destroying a room."""
    success: bool
    room_code: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    rooms: int = 0
