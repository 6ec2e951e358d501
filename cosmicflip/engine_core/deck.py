"""
Deck - Builds, shuffles and deals the card supply.

Pure and stateless: every function returns new sequences and never
mutates its input. Randomness always comes from an explicit seed or
random.Random instance so games can be replayed.
"""

from __future__ import annotations
import random

from .errors import InsufficientDeckError
from .state import Card, CardValue, Element, COLOR_CHOICES, NUMBER_VALUES, SEAT_COUNT


COLORED_VALUES = NUMBER_VALUES + (CardValue.SKIP, CardValue.REVERSE, CardValue.PLUS2)
WILD_COPIES = 4
DECK_SIZE = len(COLOR_CHOICES) * len(COLORED_VALUES) + 2 * WILD_COPIES

# Presentation order for hands
ELEMENT_ORDER = {
    Element.WILD: 0,
    Element.FIRE: 1,
    Element.WATER: 2,
    Element.GRASS: 3,
    Element.ELECTRIC: 4,
}
VALUE_ORDER = {value: idx for idx, value in enumerate(CardValue)}


def generate() -> list[Card]:
    """
    Build the full 60-card deck in a fixed order.

    4 elements x (0-9, skip, reverse, plus2) plus 4 wild and 4 plus4.
    """
    deck: list[Card] = []
    for element in COLOR_CHOICES:
        for value in COLORED_VALUES:
            deck.append(Card(id=f"{element.value}-{value.value}", element=element, value=value))
    for i in range(WILD_COPIES):
        deck.append(Card(id=f"wild-{i}", element=Element.WILD, value=CardValue.WILD))
        deck.append(Card(id=f"wild+4-{i}", element=Element.WILD, value=CardValue.PLUS4))
    return deck


def deck_ids() -> frozenset[str]:
    return frozenset(card.id for card in generate())


def _rng(seed: int | random.Random | None) -> random.Random:
    if isinstance(seed, random.Random):
        return seed
    return random.Random(seed)


def shuffle(deck: list[Card] | tuple[Card, ...], seed: int | random.Random | None = None) -> list[Card]:
    """Return a uniformly shuffled copy (Fisher-Yates via random.Random)."""
    cards = list(deck)
    _rng(seed).shuffle(cards)
    return cards


def deal_opening_hands(
    deck: list[Card] | tuple[Card, ...],
    hand_size: int,
    players: int = SEAT_COUNT,
) -> tuple[list[list[Card]], list[Card]]:
    """
    Split hands off the front of the deck.

    Returns (hands, remainder); every card ends up in exactly one of them.
    """
    needed = hand_size * players
    if hand_size < 0 or needed > len(deck):
        raise InsufficientDeckError(
            "Deck too small to deal opening hands",
            required=needed,
            available=len(deck),
        )
    cards = list(deck)
    hands = [cards[i * hand_size:(i + 1) * hand_size] for i in range(players)]
    return hands, cards[needed:]


def draw_opening_discard(
    deck: list[Card] | tuple[Card, ...],
    seed: int | random.Random | None = None,
) -> tuple[Card, list[Card]]:
    """
    Pop the starting discard from the top of the deck.

    Action and wild cards are put back and the deck is reshuffled before
    the next attempt. Attempts are bounded by the deck size.
    """
    cards = list(deck)
    if not cards:
        raise InsufficientDeckError("Deck is empty", required=1, available=0)

    rng = _rng(seed)
    for _ in range(len(cards)):
        candidate = cards.pop()
        if not candidate.value.is_action:
            return candidate, cards
        cards.insert(0, candidate)
        rng.shuffle(cards)

    raise InsufficientDeckError(
        "No number card found for the opening discard",
        attempts=len(cards),
    )


def sort_hand(cards: list[Card] | tuple[Card, ...]) -> list[Card]:
    """Order a hand for display: by element, then by value."""
    return sorted(cards, key=lambda c: (ELEMENT_ORDER[c.element], VALUE_ORDER[c.value], c.id))
