"""
FastAPI Application - REST and WebSocket API for the mobile client.

Endpoints:
    POST   /api/v1/rooms                     Create room (caller takes seat 0)
    GET    /api/v1/rooms                     List live rooms
    GET    /api/v1/rooms/{code}              Seat-scoped view (?seat=N)
    DELETE /api/v1/rooms/{code}              Destroy room
    POST   /api/v1/rooms/{code}/join         Join room (seat 1)
    POST   /api/v1/rooms/{code}/actions      Play / draw / accept / select color
    POST   /api/v1/rooms/{code}/disconnect   Mark seat disconnected
    POST   /api/v1/rooms/{code}/reconnect    Mark seat connected
    POST   /api/v1/rooms/{code}/leave        Leave or forfeit
    POST   /api/v1/rooms/{code}/acknowledge  Acknowledge final result
    WS     /api/v1/rooms/{code}/ws?seat=N    Snapshot stream + inbound actions

Snapshot Flow:
    1. Any accepted mutation publishes the new snapshot on the hub
    2. Each WebSocket subscriber receives it once, in version order
    3. Stale or duplicate snapshots are never sent

All responses are JSON with explicit Pydantic schemas.
"""

from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Annotated, Optional
import asyncio
import json
import logging

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .. import __version__
from ..config import EngineConfig
from ..engine_core.errors import (
    CapacityError,
    ConsistencyError,
    CosmicFlipError,
    GameFinishedError,
    GameValidationError,
    ResourceError,
    RoomNotFoundError,
    SeatError,
)
from ..engine_core.state import Session
from ..session import GameLoop
from .schemas import (
    # Request models
    ActionRequest,
    PlayerRequest,
    SeatRequest,
    # Response models
    ActionResponse,
    EndRoomResponse,
    ErrorResponse,
    HealthResponse,
    RoomListResponse,
    RoomResponse,
    SessionView,
    # Enums
    ErrorCode,
)
from .service import APIService, build_view, to_action


logger = logging.getLogger(__name__)


def status_for(error: CosmicFlipError) -> int:
    """HTTP status for an engine error family."""
    if isinstance(error, RoomNotFoundError):
        return 404
    if isinstance(error, GameFinishedError):
        return 410
    if isinstance(error, GameValidationError):
        return 400
    if isinstance(error, (CapacityError, ConsistencyError)):
        return 409
    if isinstance(error, ResourceError):
        return 503
    return 500


def error_payload(error: CosmicFlipError) -> dict:
    try:
        code = ErrorCode(error.error_code)
    except ValueError:
        code = ErrorCode.ENGINE_ERROR
    return ErrorResponse(
        error=error.message,
        error_code=code,
        details=error.details or None,
    ).model_dump(mode="json")


def create_app(service: APIService | None = None, config: EngineConfig | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)
        config: Optional EngineConfig (read from environment if not provided)

    Returns:
        FastAPI application instance
    """
    config = config or EngineConfig.from_env()
    api_service = service or APIService(game_loop=GameLoop(config=config))
    game_loop = api_service.game_loop

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop = asyncio.Event()
        clock_task = asyncio.create_task(game_loop.run_clock(stop))
        logger.info("clock started (every %.2fs)", game_loop.config.tick_interval_seconds)
        try:
            yield
        finally:
            stop.set()
            await clock_task

    app = FastAPI(
        title="Cosmic Flip Engine API",
        description="""
Authoritative session engine for Cosmic Flip, a two-player card game.

## Game Flow

1. `POST /rooms` returns a 4-digit room code; the creator holds seat 0
2. `POST /rooms/{code}/join` seats the second player and starts a 3 second countdown
3. The server deals 7 cards each and picks who opens
4. `POST /rooms/{code}/actions` for every gesture; wild cards answer with
   `needs_color=true` until a color is chosen
5. Subscribe to `WS /rooms/{code}/ws` for snapshots

## Error Codes

| Code | Description |
|------|-------------|
| `ROOM_NOT_FOUND` | Room does not exist |
| `ILLEGAL_MOVE` | Card cannot be played now |
| `NOT_YOUR_TURN` | Another seat is playing |
| `STALE_VERSION` | Request based on an old snapshot |
| `GAME_FINISHED` | The game is over |
| `ROOM_FULL` | Both seats are taken |
| `INSUFFICIENT_DECK` | Not enough cards to draw |
| `TRY_AGAIN` | Write conflict, resubmit |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # CORS for mobile app
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.service = api_service

    # =========================================================================
    # Error handling
    # =========================================================================

    @app.exception_handler(CosmicFlipError)
    async def engine_error_handler(request: Request, exc: CosmicFlipError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.warning("%s on %s: %s", exc.error_code, request.url.path, exc.message)
        return JSONResponse(status_code=status_code, content=error_payload(exc))

    # =========================================================================
    # Room Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/rooms",
        response_model=RoomResponse,
        responses={409: {"model": ErrorResponse, "description": "No room codes left"}},
        tags=["Rooms"],
        summary="Create a room",
    )
    async def create_room(body: PlayerRequest) -> RoomResponse:
        """Create a room with a fresh 4-digit code. The caller is the host (seat 0)."""
        return await api_service.create_room(body)

    @app.get(
        "/api/v1/rooms",
        response_model=RoomListResponse,
        tags=["Rooms"],
        summary="List live rooms",
    )
    async def list_rooms() -> RoomListResponse:
        return api_service.list_rooms()

    @app.get(
        "/api/v1/rooms/{room_code}",
        response_model=SessionView,
        responses={404: {"model": ErrorResponse}},
        tags=["Rooms"],
        summary="Get the room as seen from a seat",
    )
    async def get_room(
        room_code: str,
        seat: Annotated[Optional[int], Query(ge=0, le=1, description="Viewer seat")] = None,
    ) -> SessionView:
        return api_service.get_view(room_code, seat)

    @app.delete(
        "/api/v1/rooms/{room_code}",
        response_model=EndRoomResponse,
        tags=["Rooms"],
        summary="Destroy a room",
    )
    async def end_room(room_code: str) -> EndRoomResponse:
        return await api_service.end_room(room_code)

    @app.post(
        "/api/v1/rooms/{room_code}/join",
        response_model=RoomResponse,
        responses={
            404: {"model": ErrorResponse, "description": "Room not found"},
            409: {"model": ErrorResponse, "description": "Room full or already joined"},
        },
        tags=["Rooms"],
        summary="Join a room by code",
    )
    async def join_room(room_code: str, body: PlayerRequest) -> RoomResponse:
        return await api_service.join_room(room_code, body)

    # =========================================================================
    # Game Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/rooms/{room_code}/actions",
        response_model=ActionResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Illegal or stale action"},
            404: {"model": ErrorResponse, "description": "Room not found"},
            410: {"model": ErrorResponse, "description": "Game finished"},
        },
        tags=["Game"],
        summary="Submit a player action",
    )
    async def submit_action(room_code: str, body: ActionRequest) -> ActionResponse:
        """
        Submit one gesture.

        **Request Body:**
        ```json
        {"seat": 0, "type": "play_card", "card_id": "fire-7", "expected_version": 4}
        ```
        """
        return await api_service.submit_action(room_code, body)

    @app.post("/api/v1/rooms/{room_code}/disconnect", response_model=SessionView, tags=["Seats"])
    async def disconnect(room_code: str, body: SeatRequest) -> SessionView:
        return await api_service.disconnect(room_code, body)

    @app.post("/api/v1/rooms/{room_code}/reconnect", response_model=SessionView, tags=["Seats"])
    async def reconnect(room_code: str, body: SeatRequest) -> SessionView:
        return await api_service.reconnect(room_code, body)

    @app.post("/api/v1/rooms/{room_code}/leave", response_model=SessionView, tags=["Seats"])
    async def leave(room_code: str, body: SeatRequest) -> SessionView:
        """Leave before the game starts, or forfeit during it."""
        return await api_service.leave(room_code, body)

    @app.post("/api/v1/rooms/{room_code}/acknowledge", response_model=SessionView, tags=["Seats"])
    async def acknowledge(room_code: str, body: SeatRequest) -> SessionView:
        """Acknowledge the result; the room is destroyed once both seats have."""
        return await api_service.acknowledge(room_code, body)

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/rooms/{room_code}/ws")
    async def websocket_endpoint(websocket: WebSocket, room_code: str, seat: Optional[int] = None):
        """
        WebSocket for real-time snapshots.

        Messages from server:
        - snapshot: Seat-scoped view, version strictly increasing
        - action_result: Reply to an inbound action
        - error: Rejected message
        - pong

        Messages from client:
        - action: {"type": "action", "action": {ActionRequest fields}},
          seat must match ?seat
        - ping: Keep-alive
        """
        await websocket.accept()

        try:
            session = game_loop.snapshot(room_code)
        except RoomNotFoundError as exc:
            await websocket.send_json({"type": "error", "payload": error_payload(exc)})
            await websocket.close(code=4404)
            return

        outbox: asyncio.Queue[Session] = asyncio.Queue()
        handle = game_loop.hub.subscribe(room_code, outbox.put_nowait, seat=seat)

        async def sender():
            while True:
                snapshot = await outbox.get()
                await websocket.send_json({
                    "type": "snapshot",
                    "payload": build_view(snapshot, seat).model_dump(mode="json"),
                })

        sender_task = asyncio.create_task(sender())
        try:
            # Initial state, then reconnect the seat if it was dropped
            game_loop.hub.deliver(handle, session)
            player = session.player_at(seat) if seat is not None else None
            if player is not None and not player.connected:
                await game_loop.reconnect(room_code, seat)

            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await websocket.send_json({"type": "error", "payload": {"message": "Invalid JSON"}})
                    continue

                if message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
                elif message.get("type") == "action":
                    try:
                        request = ActionRequest.model_validate(message.get("action") or {})
                        if request.seat != seat:
                            raise SeatError(
                                f"This connection is bound to seat {seat}, not {request.seat}",
                                seat=request.seat,
                            )
                        result = await game_loop.hub.submit(room_code, request.seat, to_action(request))
                    except ValidationError as exc:
                        await websocket.send_json({"type": "error", "payload": {"message": str(exc)}})
                    except CosmicFlipError as exc:
                        await websocket.send_json({"type": "error", "payload": error_payload(exc)})
                    else:
                        await websocket.send_json({
                            "type": "action_result",
                            "payload": {
                                "accepted": result.accepted,
                                "needs_color": result.needs_color is not None,
                                "version": result.version,
                            },
                        })
                else:
                    await websocket.send_json({"type": "error", "payload": {"message": "Unknown message type"}})

        except WebSocketDisconnect:
            pass
        finally:
            sender_task.cancel()
            game_loop.hub.unsubscribe(handle)
            if seat is not None:
                try:
                    await game_loop.disconnect(room_code, seat)
                except CosmicFlipError:
                    # Room already gone or seat vacated
                    pass

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="cosmicflip-engine",
            version=__version__,
            rooms=len(game_loop.registry),
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Cosmic Flip Engine API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app
