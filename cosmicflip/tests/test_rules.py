"""
Tests for the rule engine.

Tests:
- Matching and stacking
- Turn order after skip, reverse and number cards
- Wild color prompts and color validation
- Draw modes and pile underflow
- Purity: identical inputs give identical outcomes
"""

import pytest

from ..engine_core.action import ActionType, DrawMode, NeedsColorChoice, Outcome
from ..engine_core.errors import (
    CardNotInHandError,
    IllegalMoveError,
    InsufficientDeckError,
    InvalidColorError,
    NotYourTurnError,
    SessionStateError,
)
from ..engine_core.rules import (
    can_stack,
    check_winner,
    is_playable,
    legal_actions,
    matches,
    next_seat,
    resolve_draw,
    resolve_play,
)
from ..engine_core.state import COLOR_CHOICES, CardValue, Direction, Element, SessionStatus
from .conftest import CARDS, make_active


class TestMatching:
    """Tests for the plain matching rule."""

    def test_same_element(self):
        assert matches(CARDS["fire-5"], CARDS["fire-9"])

    def test_same_value(self):
        assert matches(CARDS["fire-5"], CARDS["water-5"])

    def test_wild_always_matches(self):
        assert matches(CARDS["fire-5"], CARDS["wild-0"])
        assert matches(CARDS["fire-5"], CARDS["wild+4-0"])

    def test_mismatch(self):
        assert not matches(CARDS["fire-5"], CARDS["water-6"])

    def test_chosen_color_counts(self):
        """A played wild matches the color chosen for it."""
        top = CARDS["wild-0"].with_element(Element.GRASS)
        assert matches(top, CARDS["grass-2"])
        assert not matches(top, CARDS["fire-2"])


class TestStacking:
    """Tests for answering pending draws."""

    def test_plus2_accepts_plus2_and_plus4(self):
        assert can_stack(CARDS["fire-plus2"], CARDS["water-plus2"])
        assert can_stack(CARDS["fire-plus2"], CARDS["wild+4-0"])

    def test_plus4_accepts_only_plus4(self):
        top = CARDS["wild+4-0"].with_element(Element.FIRE)
        assert can_stack(top, CARDS["wild+4-1"])
        assert not can_stack(top, CARDS["fire-plus2"])

    def test_plus4_on_plus2_adds_up(self):
        """plus4 on a pending plus2 makes the next seat owe six."""
        session = make_active(
            hand0=("wild+4-0", "fire-5"),
            top="fire-plus2",
            pending_draw=2,
        )
        outcome = resolve_play(session, 0, "wild+4-0", Element.WATER)

        assert isinstance(outcome, Outcome)
        assert outcome.pending_draw == 6
        assert outcome.discard_top.value == CardValue.PLUS4
        assert outcome.discard_top.element == Element.WATER
        assert outcome.current_seat == 1

    def test_plain_card_rejected_while_draw_pending(self):
        """A matching number card cannot be played onto a pending draw."""
        session = make_active(hand0=("fire-5", "wild+4-0"), top="fire-plus2", pending_draw=2)
        with pytest.raises(IllegalMoveError):
            resolve_play(session, 0, "fire-5")

    def test_plus2_adds_two(self):
        session = make_active(hand0=("fire-plus2", "fire-1"), top="fire-5")
        outcome = resolve_play(session, 0, "fire-plus2")
        assert outcome.pending_draw == 2
        assert outcome.current_seat == 1


class TestTurnOrder:
    """Tests for who plays next."""

    def test_next_seat_wraps(self):
        assert next_seat(1, Direction.FORWARD) == 0
        assert next_seat(0, Direction.REVERSE) == 1

    def test_number_passes_turn(self):
        session = make_active(hand0=("fire-7", "fire-1"))
        assert resolve_play(session, 0, "fire-7").current_seat == 1

    def test_skip_keeps_turn(self):
        """With two seats, skip gives the actor another turn."""
        session = make_active(hand0=("fire-skip", "fire-1"))
        outcome = resolve_play(session, 0, "fire-skip")
        assert outcome.current_seat == 0
        assert outcome.direction == Direction.FORWARD

    def test_reverse_acts_as_skip(self):
        """With two seats, reverse flips direction and the actor plays again."""
        session = make_active(hand0=("fire-reverse", "fire-1"))
        outcome = resolve_play(session, 0, "fire-reverse")
        assert outcome.current_seat == 0
        assert outcome.direction == Direction.REVERSE


class TestPlayValidation:
    """Tests for rejected plays."""

    def test_not_your_turn(self):
        session = make_active(hand1=("fire-8", "water-1"))
        with pytest.raises(NotYourTurnError):
            resolve_play(session, 1, "fire-8")

    def test_card_not_in_hand(self):
        session = make_active()
        with pytest.raises(CardNotInHandError):
            resolve_play(session, 0, "fire-9")

    def test_unplayable_card(self):
        session = make_active(hand0=("water-6", "fire-1"))
        with pytest.raises(IllegalMoveError):
            resolve_play(session, 0, "water-6")

    def test_inactive_session(self):
        session = make_active()._copy_with(status=SessionStatus.COUNTDOWN)
        with pytest.raises(SessionStateError):
            resolve_play(session, 0, "fire-7")

    def test_color_on_number_card(self):
        session = make_active(hand0=("fire-7", "fire-1"))
        with pytest.raises(InvalidColorError):
            resolve_play(session, 0, "fire-7", Element.WATER)

    def test_wild_is_not_a_color(self):
        session = make_active(hand0=("wild-0", "fire-1"))
        with pytest.raises(InvalidColorError):
            resolve_play(session, 0, "wild-0", Element.WILD)


class TestWildPlays:
    """Tests for color prompts."""

    def test_wild_without_color_prompts(self):
        """Playing a wild without a color commits nothing and asks for one."""
        session = make_active(hand0=("wild-0", "fire-1"))
        result = resolve_play(session, 0, "wild-0")

        assert isinstance(result, NeedsColorChoice)
        assert result.card_id == "wild-0"
        assert result.options == COLOR_CHOICES

    def test_wild_with_color(self):
        session = make_active(hand0=("wild-0", "fire-1"))
        outcome = resolve_play(session, 0, "wild-0", Element.ELECTRIC)

        assert outcome.discard_top.element == Element.ELECTRIC
        assert outcome.pending_draw == 0
        assert outcome.actor.find_card("wild-0") is None

    def test_played_wild_returns_to_history_as_printed(self):
        """A covered wild goes into the discard history without its chosen color."""
        top = CARDS["wild-0"].with_element(Element.FIRE)
        session = make_active(hand0=("fire-7", "fire-1"), top=top)
        outcome = resolve_play(session, 0, "fire-7")

        assert outcome.discard_pile[-1].id == "wild-0"
        assert outcome.discard_pile[-1].element == Element.WILD


class TestDraws:
    """Tests for single draws and accepting pending draws."""

    def test_single_draw_from_front(self):
        session = make_active(draw=("grass-1", "grass-2"))
        outcome = resolve_draw(session, 0, DrawMode.SINGLE)

        assert [c.id for c in outcome.drawn] == ["grass-1"]
        assert [c.id for c in outcome.draw_pile] == ["grass-2"]
        assert outcome.current_seat == 1

    def test_single_draw_blocked_by_pending(self):
        session = make_active(top="fire-plus2", pending_draw=2)
        with pytest.raises(IllegalMoveError):
            resolve_draw(session, 0, DrawMode.SINGLE)

    def test_accept_without_pending(self):
        session = make_active()
        with pytest.raises(IllegalMoveError):
            resolve_draw(session, 0, DrawMode.ACCEPT_PENDING)

    def test_accept_takes_all_and_resets(self):
        session = make_active(top="fire-plus2", pending_draw=2, draw=("grass-1", "grass-2", "grass-3"))
        outcome = resolve_draw(session, 0, DrawMode.ACCEPT_PENDING)

        assert len(outcome.actor.hand) == 3
        assert outcome.pending_draw == 0
        assert outcome.current_seat == 1

    def test_underflow(self):
        """Accepting more than the pile holds raises with the shortfall."""
        session = make_active(top="fire-plus2", pending_draw=2, draw=("grass-1",))
        with pytest.raises(InsufficientDeckError) as exc_info:
            resolve_draw(session, 0, DrawMode.ACCEPT_PENDING)
        assert exc_info.value.details == {"required": 2, "available": 1}


class TestPurity:
    """Tests for deterministic, side-effect free resolution."""

    def test_same_input_same_outcome(self):
        session = make_active(hand0=("fire-7", "fire-1"))
        assert resolve_play(session, 0, "fire-7") == resolve_play(session, 0, "fire-7")

    def test_input_untouched(self):
        session = make_active(hand0=("fire-7", "fire-1"))
        resolve_play(session, 0, "fire-7")
        assert session.player_at(0).hand_size == 2
        assert session.discard_top.id == "fire-5"


class TestLegalActions:
    """Tests for action enumeration."""

    def test_playable_cards_and_draw(self):
        session = make_active(hand0=("fire-7", "water-6", "wild-0"))
        actions = legal_actions(session, 0)
        plays = [a.card_id for a in actions if a.action_type == ActionType.PLAY_CARD]

        assert plays == ["fire-7", "wild-0"]
        assert actions[-1].action_type == ActionType.DRAW_CARD

    def test_pending_draw_offers_accept(self):
        session = make_active(hand0=("fire-7", "water-plus2"), top="fire-plus2", pending_draw=2)
        actions = legal_actions(session, 0)

        assert [a.card_id for a in actions if a.action_type == ActionType.PLAY_CARD] == ["water-plus2"]
        assert actions[-1].action_type == ActionType.ACCEPT_DRAW

    def test_other_seat_has_nothing(self):
        assert legal_actions(make_active(), 1) == []

    def test_is_playable_respects_turn(self):
        session = make_active(hand1=("fire-8",))
        assert not is_playable(session, 1, CARDS["fire-8"])


class TestWinner:
    """Tests for winner detection."""

    def test_empty_hand_wins(self):
        session = make_active(hand0=(), hand1=("water-1",))
        assert check_winner(session).seat == 0

    def test_no_winner(self):
        assert check_winner(make_active()) is None

    def test_not_before_dealing(self):
        session = make_active(hand0=())._copy_with(status=SessionStatus.WAITING)
        assert check_winner(session) is None
