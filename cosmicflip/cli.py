"""
Cosmic Flip CLI - Command-line interface for the engine.

Usage:
    cosmicflip serve [--host H] [--port P]     Run the REST/WebSocket server
    cosmicflip simulate [--seed N]             Play a two-bot game in-process
    cosmicflip deck [--seed N]                 Print the (shuffled) deck
"""

from collections import Counter
import argparse
import asyncio
import logging
import sys

from .config import EngineConfig


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Cosmic Flip - Two-player card game engine",
        prog="cosmicflip",
    )
    parser.add_argument("--log-level", help="Logging level (default from COSMICFLIP_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    # Simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Play a two-bot game")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Game seed")
    simulate_parser.add_argument("--max-turns", type=int, default=500, help="Stop after this many actions")

    # Deck command
    deck_parser = subparsers.add_parser("deck", help="Print the deck")
    deck_parser.add_argument("--seed", type=int, default=None, help="Shuffle with this seed")

    args = parser.parse_args()

    config = EngineConfig.from_env()
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        cmd_serve(args, config)
    elif args.command == "simulate":
        cmd_simulate(args, config)
    elif args.command == "deck":
        cmd_deck(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args, config):
    """Run the FastAPI app under uvicorn."""
    import uvicorn
    from .api import create_app

    print(f"Serving Cosmic Flip on {args.host}:{args.port}")
    uvicorn.run(create_app(config=config), host=args.host, port=args.port, log_level=config.log_level.lower())


def cmd_deck(args):
    """Print the deck, shuffled when a seed is given."""
    from .engine_core import deck as deck_ops

    cards = deck_ops.generate()
    if args.seed is not None:
        cards = deck_ops.shuffle(cards, args.seed)

    for position, card in enumerate(cards):
        print(f"{position:2d}  {card.id}")
    print(f"\n{len(cards)} cards")


def cmd_simulate(args, config):
    """Play a complete game between two bots."""
    config.seed = args.seed
    config.countdown_seconds = 0.0
    summary = asyncio.run(simulate(config, args.max_turns))

    print(f"Room: {summary['room_code']}")
    print(f"Actions: {summary['turns']}")
    print(f"Final version: {summary['version']}")
    print(f"Status: {summary['status']}")
    if summary["finish_reason"]:
        print(f"Reason: {summary['finish_reason']}")
    if summary["winner_seat"] is not None:
        print(f"Winner: seat {summary['winner_seat']}")
    if summary["stopped"]:
        print(f"Stopped: {summary['stopped']}")


def choose_color(hand):
    """Pick the element the bot holds most of."""
    from .engine_core.state import COLOR_CHOICES

    counts = Counter(card.element for card in hand if card.element in COLOR_CHOICES)
    if not counts:
        return COLOR_CHOICES[0]
    return counts.most_common(1)[0][0]


async def simulate(config: EngineConfig, max_turns: int = 500) -> dict:
    """
    Drive one game through the GameLoop with a manual clock.

    Each bot plays its first legal card, else draws.
    """
    from .engine_core.action import Action, ActionType
    from .engine_core.rules import legal_actions
    from .engine_core.state import SessionStatus
    from .session import GameLoop

    now = [0.0]
    loop = GameLoop(config=config, clock=lambda: now[0])

    session = await loop.create_room("bot-0")
    room_code = session.room_code
    await loop.join(room_code, "bot-1")
    now[0] += config.countdown_seconds + 0.1
    await loop.tick()

    turns = 0
    session = loop.snapshot(room_code)
    while session.status == SessionStatus.ACTIVE and turns < max_turns:
        seat = session.current_seat
        options = legal_actions(session, seat)
        plays = [a for a in options if a.action_type == ActionType.PLAY_CARD]
        if plays:
            card = session.player_at(seat).find_card(plays[0].card_id)
            color = choose_color(session.player_at(seat).hand) if card.is_wild else None
            action = Action.play_card(card.id, color, session.version)
        else:
            action = options[0]

        result = await loop.submit(room_code, seat, action)
        session = result.session
        turns += 1
        now[0] += 1.0

    stopped = None
    if session.status == SessionStatus.ACTIVE:
        stopped = f"turn limit {max_turns} reached"

    return {
        "room_code": room_code,
        "turns": turns,
        "version": session.version,
        "status": session.status.value,
        "winner_seat": session.winner_seat,
        "finish_reason": session.finish_reason.value if session.finish_reason else None,
        "stopped": stopped,
    }


if __name__ == "__main__":
    main()
