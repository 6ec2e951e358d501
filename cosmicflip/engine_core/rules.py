"""
Rule Engine - Pure functions deciding legality and consequences.

Nothing here mutates a session or touches randomness: the same inputs
always produce the same Outcome. The state machine decides whether to
commit what these functions compute.

Two-player conventions:
- skip: the actor plays again
- reverse: flips direction and, with two seats, acts exactly like skip
- plus2 / plus4: grow the pending draw, the next seat must stack or accept
"""

from __future__ import annotations

from .action import Action, DrawMode, NeedsColorChoice, Outcome
from .errors import (
    CardNotInHandError,
    IllegalMoveError,
    InsufficientDeckError,
    InvalidColorError,
    NotYourTurnError,
    SeatError,
    SessionStateError,
)
from .state import (
    COLOR_CHOICES,
    DRAW_AMOUNTS,
    SEAT_COUNT,
    Card,
    CardValue,
    Direction,
    Element,
    Player,
    Session,
    SessionStatus,
)


def next_seat(seat: int, direction: Direction, steps: int = 1, seats: int = SEAT_COUNT) -> int:
    """Seat reached after advancing `steps` times in `direction`."""
    return (seat + direction.step * steps) % seats


def can_stack(top: Card | None, card: Card) -> bool:
    """Whether `card` may answer a pending draw raised by `top`."""
    if top is None:
        return False
    if top.value == CardValue.PLUS2:
        return card.value in (CardValue.PLUS2, CardValue.PLUS4)
    if top.value == CardValue.PLUS4:
        return card.value == CardValue.PLUS4
    return False


def matches(top: Card | None, card: Card) -> bool:
    """Plain matching rule, ignoring turn and pending draws."""
    if top is None:
        return True
    return (
        card.element == Element.WILD
        or card.value == CardValue.PLUS4
        or card.element == top.element
        or card.value == top.value
    )


def is_playable(session: Session, actor_seat: int, card: Card) -> bool:
    """Whether `actor_seat` may legally put `card` on the discard top now."""
    if session.status != SessionStatus.ACTIVE:
        return False
    if actor_seat != session.current_seat:
        return False
    if session.pending_draw > 0:
        return can_stack(session.discard_top, card)
    return matches(session.discard_top, card)


def _actor(session: Session, actor_seat: int) -> Player:
    if session.status != SessionStatus.ACTIVE:
        raise SessionStateError(
            f"Game is not active (status: {session.status.value})",
            status=session.status.value,
        )
    player = session.player_at(actor_seat)
    if player is None:
        raise SeatError(f"Seat {actor_seat} is not occupied", seat=actor_seat)
    if actor_seat != session.current_seat:
        raise NotYourTurnError(
            f"It is not seat {actor_seat}'s turn",
            seat=actor_seat,
            current_seat=session.current_seat,
        )
    return player


def _turn_after_play(session: Session, actor_seat: int, card: Card) -> tuple[int, Direction]:
    direction = session.direction
    if card.value == CardValue.SKIP:
        return next_seat(actor_seat, direction, steps=2), direction
    if card.value == CardValue.REVERSE:
        direction = direction.flipped()
        if len(session.players) == 2:
            # Two seats: reverse is a skip
            return next_seat(actor_seat, direction, steps=2), direction
        return next_seat(actor_seat, direction), direction
    return next_seat(actor_seat, direction), direction


def resolve_play(
    session: Session,
    actor_seat: int,
    card_id: str,
    chosen_color: Element | None = None,
) -> Outcome | NeedsColorChoice:
    """
    Compute the outcome of playing `card_id` from the actor's hand.

    Wild and plus4 plays without a color return NeedsColorChoice and
    commit nothing.
    """
    player = _actor(session, actor_seat)
    card = player.find_card(card_id)
    if card is None:
        raise CardNotInHandError(
            f"Card {card_id} is not in seat {actor_seat}'s hand",
            seat=actor_seat,
            card_id=card_id,
        )

    if not is_playable(session, actor_seat, card):
        top = session.discard_top
        raise IllegalMoveError(
            f"Card {card_id} cannot be played on {top.id if top else 'an empty pile'}",
            card_id=card_id,
            discard_top=top.id if top else None,
            pending_draw=session.pending_draw,
        )

    if card.is_wild:
        if chosen_color is None:
            return NeedsColorChoice(seat=actor_seat, card_id=card.id, options=COLOR_CHOICES)
        if chosen_color not in COLOR_CHOICES:
            raise InvalidColorError(
                f"{chosen_color.value} is not a color choice",
                color=chosen_color.value,
            )
        face = card.with_element(chosen_color)
    else:
        if chosen_color is not None:
            raise InvalidColorError(
                f"Card {card_id} does not take a color",
                card_id=card_id,
                color=chosen_color.value,
            )
        face = card

    current_seat, direction = _turn_after_play(session, actor_seat, card)

    discard_pile = session.discard_pile
    if session.discard_top is not None:
        discard_pile = discard_pile + (session.discard_top.restored(),)

    return Outcome(
        actor=player.without_card(card.id),
        draw_pile=session.draw_pile,
        discard_top=face,
        discard_pile=discard_pile,
        current_seat=current_seat,
        direction=direction,
        pending_draw=session.pending_draw + DRAW_AMOUNTS.get(card.value, 0),
        played=face,
    )


def draw_requirement(session: Session, mode: DrawMode) -> int:
    """Number of cards a draw in `mode` takes from the pile."""
    return 1 if mode == DrawMode.SINGLE else session.pending_draw


def resolve_draw(session: Session, actor_seat: int, mode: DrawMode) -> Outcome:
    """
    Compute the outcome of drawing.

    SINGLE: only without a pending draw; one card, then the turn passes.
    ACCEPT_PENDING: only with a pending draw; takes all of it, resets it.
    """
    player = _actor(session, actor_seat)

    if mode == DrawMode.SINGLE and session.pending_draw > 0:
        raise IllegalMoveError(
            f"Seat {actor_seat} must stack or accept {session.pending_draw} cards",
            pending_draw=session.pending_draw,
        )
    if mode == DrawMode.ACCEPT_PENDING and session.pending_draw == 0:
        raise IllegalMoveError("There is no pending draw to accept", pending_draw=0)

    required = draw_requirement(session, mode)
    if len(session.draw_pile) < required:
        raise InsufficientDeckError(
            f"Draw pile has {len(session.draw_pile)} cards, {required} required",
            required=required,
            available=len(session.draw_pile),
        )

    drawn = session.draw_pile[:required]
    return Outcome(
        actor=player.with_cards(drawn),
        draw_pile=session.draw_pile[required:],
        discard_top=session.discard_top,
        discard_pile=session.discard_pile,
        current_seat=next_seat(actor_seat, session.direction),
        direction=session.direction,
        pending_draw=0,
        drawn=drawn,
    )


def check_winner(session: Session) -> Player | None:
    """The player whose hand is empty, if any. Only meaningful once dealt."""
    if session.status not in (SessionStatus.ACTIVE, SessionStatus.FINISHED):
        return None
    for player in session.seated:
        if not player.hand:
            return player
    return None


def legal_actions(session: Session, seat: int) -> list[Action]:
    """
    Enumerate everything `seat` may do right now.

    Used by views (playable highlighting) and by the simulator.
    Wild plays are listed without a color.
    """
    if session.status != SessionStatus.ACTIVE or seat != session.current_seat:
        return []
    player = session.player_at(seat)
    if player is None:
        return []

    actions = [
        Action.play_card(card.id)
        for card in player.hand
        if is_playable(session, seat, card)
    ]
    mode = DrawMode.ACCEPT_PENDING if session.pending_draw > 0 else DrawMode.SINGLE
    if mode == DrawMode.ACCEPT_PENDING:
        actions.append(Action.accept_draw())
    else:
        actions.append(Action.draw_card())
    return actions
