"""
Pytest fixtures for Cosmic Flip tests.
"""

import pytest

from ..config import EngineConfig
from ..engine_core import deck as deck_ops
from ..engine_core.reducer import SessionStateMachine
from ..engine_core.state import Card, Player, Session, SessionStatus
from ..session import GameLoop


CARDS = {card.id: card for card in deck_ops.generate()}


def cards(*card_ids: str) -> tuple[Card, ...]:
    """Look up deck cards by id."""
    return tuple(CARDS[card_id] for card_id in card_ids)


def make_active(
    hand0=("fire-7",),
    hand1=("water-1",),
    draw=("grass-1", "grass-2", "grass-3"),
    top="fire-5",
    discard=(),
    current_seat=0,
    pending_draw=0,
    room_code="1234",
    version=5,
) -> Session:
    """Hand-built ACTIVE session. `top` may be a card id or a Card."""
    players = (
        Player(seat=0, player_id="alice", hand=cards(*hand0), is_host=True),
        Player(seat=1, player_id="bob", hand=cards(*hand1)),
    )
    return Session(
        room_code=room_code,
        players=players,
        status=SessionStatus.ACTIVE,
        draw_pile=cards(*draw),
        discard_top=CARDS[top] if isinstance(top, str) else top,
        discard_pile=cards(*discard),
        current_seat=current_seat,
        pending_draw=pending_draw,
        version=version,
        random_seed=7,
    )


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


async def install(loop: GameLoop, session: Session) -> Session:
    """Replace a live room's snapshot in both the store and the registry."""
    current = loop.registry.get(session.room_code)
    session = session._copy_with(version=current.version + 1)
    assert await loop.store.compare_and_swap(session.room_code, current.version, session)
    loop.registry.replace(session)
    return session


@pytest.fixture
def machine() -> SessionStateMachine:
    """State machine with default timers."""
    return SessionStateMachine()


@pytest.fixture
def lobby(machine: SessionStateMachine) -> Session:
    """Full room in COUNTDOWN, deadline at t=103."""
    session = machine.create("4321", now=100.0, seed=42)
    session = machine.join(session, "alice", now=100.0)
    return machine.join(session, "bob", now=100.0)


@pytest.fixture
def dealt(machine: SessionStateMachine, lobby: Session) -> Session:
    """Room right after dealing."""
    return machine.tick(lobby, now=103.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> EngineConfig:
    """Deterministic engine settings."""
    return EngineConfig(seed=11)


@pytest.fixture
def game_loop(config: EngineConfig, clock: FakeClock) -> GameLoop:
    return GameLoop(config=config, clock=clock)
