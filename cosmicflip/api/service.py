"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to engine calls
2. Routes them through the GameLoop
3. Formats seat-scoped views for the mobile client

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
Engine errors propagate unchanged; the transport renders them.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .schemas import (
    # Requests
    ActionRequest,
    PlayerRequest,
    SeatRequest,
    # Responses
    ActionResponse,
    EndRoomResponse,
    RoomListResponse,
    RoomResponse,
    # Shared
    CardInfo,
    SeatInfo,
    SessionView,
)
from ..engine_core import deck as deck_ops
from ..engine_core.action import Action, ActionType
from ..engine_core.rules import legal_actions
from ..engine_core.state import Card, Session, SessionStatus
from ..session import GameLoop


def card_info(card: Card) -> CardInfo:
    return CardInfo(card_id=card.id, element=card.element, value=card.value)


def build_view(session: Session, seat: int | None = None) -> SessionView:
    """
    Render a snapshot for one seat.

    seat=None gives a spectator view with no hand.
    """
    me = session.player_at(seat) if seat is not None else None
    my_turn = (
        me is not None
        and session.status == SessionStatus.ACTIVE
        and session.current_seat == me.seat
    )

    playable: list[str] = []
    if my_turn:
        playable = [
            a.card_id for a in legal_actions(session, me.seat)
            if a.action_type == ActionType.PLAY_CARD
        ]

    seats = [
        None if p is None else SeatInfo(
            seat=p.seat,
            player_id=p.player_id,
            hand_size=p.hand_size,
            connected=p.connected,
            is_host=p.is_host,
            is_you=me is not None and p.seat == me.seat,
            is_current_turn=session.status == SessionStatus.ACTIVE and session.current_seat == p.seat,
        )
        for p in session.players
    ]

    return SessionView(
        room_code=session.room_code,
        status=session.status,
        version=session.version,
        your_seat=me.seat if me else None,
        your_hand=[card_info(c) for c in deck_ops.sort_hand(me.hand)] if me else [],
        playable_card_ids=playable,
        seats=seats,
        discard_top=card_info(session.discard_top) if session.discard_top else None,
        draw_pile_count=len(session.draw_pile),
        current_seat=session.current_seat,
        your_turn=my_turn,
        direction=session.direction,
        pending_draw=session.pending_draw,
        can_draw=my_turn and session.pending_draw == 0,
        must_accept_draw=my_turn and session.pending_draw > 0,
        countdown_deadline=session.countdown_deadline,
        winner_seat=session.winner_seat,
        finish_reason=session.finish_reason.value if session.finish_reason else None,
    )


def to_action(request: ActionRequest) -> Action:
    """Convert an API request into an engine action."""
    if request.type == ActionType.PLAY_CARD:
        return Action.play_card(request.card_id, request.color, request.expected_version)
    if request.type == ActionType.SELECT_COLOR:
        return Action(
            action_type=ActionType.SELECT_COLOR,
            card_id=request.card_id,
            color=request.color,
            expected_version=request.expected_version,
        )
    if request.type == ActionType.DRAW_CARD:
        return Action.draw_card(request.expected_version)
    return Action.accept_draw(request.expected_version)


@dataclass
class APIService:
    """
    Main API service for the mobile client.

    Usage:
        service = APIService()

        # Host creates a room
        room = await service.create_room(PlayerRequest(player_id="alice"))

        # Guest joins
        await service.join_room(room.room_code, PlayerRequest(player_id="bob"))

        # Play
        response = await service.submit_action(room.room_code, request)
    """
    game_loop: GameLoop = field(default_factory=GameLoop)

    async def create_room(self, request: PlayerRequest) -> RoomResponse:
        session = await self.game_loop.create_room(request.player_id)
        seat = session.seat_of(request.player_id)
        return RoomResponse(room_code=session.room_code, seat=seat, view=build_view(session, seat))

    async def join_room(self, room_code: str, request: PlayerRequest) -> RoomResponse:
        session = await self.game_loop.join(room_code, request.player_id)
        seat = session.seat_of(request.player_id)
        return RoomResponse(room_code=room_code, seat=seat, view=build_view(session, seat))

    def get_view(self, room_code: str, seat: int | None = None) -> SessionView:
        return build_view(self.game_loop.snapshot(room_code), seat)

    async def submit_action(self, room_code: str, request: ActionRequest) -> ActionResponse:
        result = await self.game_loop.submit(room_code, request.seat, to_action(request))
        prompt = result.needs_color
        return ActionResponse(
            accepted=result.accepted,
            needs_color=prompt is not None,
            card_id=prompt.card_id if prompt else None,
            color_options=list(prompt.options) if prompt else [],
            changes=result.changes,
            view=build_view(result.session, request.seat),
        )

    async def disconnect(self, room_code: str, request: SeatRequest) -> SessionView:
        return build_view(await self.game_loop.disconnect(room_code, request.seat), request.seat)

    async def reconnect(self, room_code: str, request: SeatRequest) -> SessionView:
        return build_view(await self.game_loop.reconnect(room_code, request.seat), request.seat)

    async def leave(self, room_code: str, request: SeatRequest) -> SessionView:
        return build_view(await self.game_loop.leave(room_code, request.seat), request.seat)

    async def acknowledge(self, room_code: str, request: SeatRequest) -> SessionView:
        return build_view(await self.game_loop.acknowledge(room_code, request.seat), request.seat)

    async def end_room(self, room_code: str) -> EndRoomResponse:
        session = await self.game_loop.destroy(room_code)
        return EndRoomResponse(success=session is not None, room_code=room_code)

    def list_rooms(self) -> RoomListResponse:
        rooms = self.game_loop.registry.list_rooms()
        return RoomListResponse(rooms=rooms, count=len(rooms))
