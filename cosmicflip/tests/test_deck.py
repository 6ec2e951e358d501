"""
Tests for deck construction, shuffling and dealing.

Tests:
- 60-card composition with unique ids
- Seeded shuffles are reproducible
- Opening deal and opening discard
- Hand ordering for display
"""

import random

import pytest

from ..engine_core import deck as deck_ops
from ..engine_core.errors import InsufficientDeckError
from ..engine_core.state import COLOR_CHOICES, CardValue, Element
from .conftest import cards


class TestGenerate:
    """Tests for the deck generator."""

    def test_sixty_unique_cards(self):
        """Deck has 60 cards with unique ids."""
        deck = deck_ops.generate()
        assert len(deck) == deck_ops.DECK_SIZE == 60
        assert len({c.id for c in deck}) == 60

    def test_composition(self):
        """13 cards per element plus 4 wild and 4 plus4."""
        deck = deck_ops.generate()
        for element in COLOR_CHOICES:
            colored = [c for c in deck if c.element == element]
            assert len(colored) == 13
            assert {c.value for c in colored} >= {CardValue(str(n)) for n in range(10)}
        assert len([c for c in deck if c.value == CardValue.WILD]) == 4
        assert len([c for c in deck if c.value == CardValue.PLUS4]) == 4
        assert all(c.element == Element.WILD for c in deck if c.is_wild)

    def test_generation_is_stable(self):
        """Two generated decks are identical and in the same order."""
        assert [c.id for c in deck_ops.generate()] == [c.id for c in deck_ops.generate()]


class TestShuffle:
    """Tests for seeded shuffling."""

    def test_same_seed_same_order(self):
        """Shuffling with a seed is reproducible."""
        deck = deck_ops.generate()
        assert deck_ops.shuffle(deck, 42) == deck_ops.shuffle(deck, 42)
        assert [c.id for c in deck_ops.shuffle(deck, 42)] == [c.id for c in deck_ops.shuffle(deck, 42)]

    def test_accepts_random_instance(self):
        """A Random instance and its seed give the same order."""
        deck = deck_ops.generate()
        by_seed = [c.id for c in deck_ops.shuffle(deck, 9)]
        by_rng = [c.id for c in deck_ops.shuffle(deck, random.Random(9))]
        assert by_seed == by_rng

    def test_does_not_mutate_input(self):
        """Input deck keeps its order."""
        deck = deck_ops.generate()
        before = [c.id for c in deck]
        deck_ops.shuffle(deck, 1)
        assert [c.id for c in deck] == before

    def test_is_permutation(self):
        """Shuffled deck holds the same cards."""
        deck = deck_ops.generate()
        assert sorted(c.id for c in deck_ops.shuffle(deck, 3)) == sorted(c.id for c in deck)


class TestDeal:
    """Tests for the opening deal."""

    def test_deal_seven_each(self):
        """Two hands of 7, remainder of 46."""
        hands, remainder = deck_ops.deal_opening_hands(deck_ops.generate(), 7)
        assert [len(h) for h in hands] == [7, 7]
        assert len(remainder) == 46

    def test_deal_from_front(self):
        """Hands come off the front in order."""
        deck = deck_ops.generate()
        hands, remainder = deck_ops.deal_opening_hands(deck, 2)
        assert hands[0] == deck[0:2]
        assert hands[1] == deck[2:4]
        assert remainder == deck[4:]

    def test_deck_too_small(self):
        """Dealing more than the deck holds raises."""
        with pytest.raises(InsufficientDeckError) as exc_info:
            deck_ops.deal_opening_hands(cards("fire-1", "fire-2", "fire-3"), 2)
        assert exc_info.value.details["required"] == 4
        assert exc_info.value.details["available"] == 3


class TestOpeningDiscard:
    """Tests for turning the opening discard."""

    def test_number_on_top_is_taken(self):
        """A number card on top is used directly."""
        discard, rest = deck_ops.draw_opening_discard(cards("fire-skip", "water-4"), seed=1)
        assert discard.id == "water-4"
        assert [c.id for c in rest] == ["fire-skip"]

    def test_action_cards_are_put_back(self):
        """Action cards are returned to the deck; the result is a number card."""
        deck = deck_ops.shuffle(deck_ops.generate(), 5)
        discard, rest = deck_ops.draw_opening_discard(deck, seed=5)
        assert not discard.value.is_action
        assert len(rest) == len(deck) - 1
        assert sorted(c.id for c in rest + [discard]) == sorted(c.id for c in deck)

    def test_same_seed_same_discard(self):
        """Opening discard is reproducible."""
        deck = deck_ops.generate()
        first = deck_ops.draw_opening_discard(deck, seed=3)
        second = deck_ops.draw_opening_discard(deck, seed=3)
        assert first[0] == second[0]
        assert [c.id for c in first[1]] == [c.id for c in second[1]]

    def test_no_number_cards(self):
        """A deck of only action cards cannot produce an opening discard."""
        with pytest.raises(InsufficientDeckError):
            deck_ops.draw_opening_discard(cards("fire-skip", "wild-0"), seed=1)

    def test_empty_deck(self):
        with pytest.raises(InsufficientDeckError):
            deck_ops.draw_opening_discard([], seed=1)


class TestSortHand:
    """Tests for display ordering."""

    def test_wild_first_then_elements(self):
        """Wild cards lead, then fire, water, grass, electric."""
        hand = cards("electric-2", "water-9", "wild+4-0", "fire-skip", "fire-3", "wild-1")
        assert [c.id for c in deck_ops.sort_hand(hand)] == [
            "wild+4-0",
            "wild-1",
            "fire-3",
            "fire-skip",
            "water-9",
            "electric-2",
        ]
