"""
API Module - Mobile client interface.

Exposes the engine via REST and WebSocket.
The mobile client:
1. Creates or joins a room by 4-digit code
2. Streams seat-scoped snapshots over a WebSocket
3. Submits one action per gesture
4. Acknowledges the result when the game ends

No persistent user accounts; a player is identified by the id it sends.
"""

from .schemas import (
    # Requests
    PlayerRequest,
    SeatRequest,
    ActionRequest,
    # Responses
    RoomResponse,
    ActionResponse,
    RoomListResponse,
    EndRoomResponse,
    HealthResponse,
    ErrorResponse,
    # Shared
    CardInfo,
    SeatInfo,
    SessionView,
    ErrorCode,
)
from .service import APIService, build_view
from .app import create_app

__all__ = [
    # Requests
    "PlayerRequest",
    "SeatRequest",
    "ActionRequest",
    # Responses
    "RoomResponse",
    "ActionResponse",
    "RoomListResponse",
    "EndRoomResponse",
    "HealthResponse",
    "ErrorResponse",
    # Shared
    "CardInfo",
    "SeatInfo",
    "SessionView",
    "ErrorCode",
    # Service
    "APIService",
    "build_view",
    "create_app",
]
