"""
Cosmic Flip - Authoritative session engine for a two-player card game.

The engine owns every shared game decision that the mobile clients used
to make on their own:
- Deck construction and shuffling
- Rule evaluation (legality, stacking, turn order)
- Per-room state machine with atomic, versioned transitions
- Room registry keyed by 4-digit codes
- Snapshot fan-out to subscribed clients
"""

__version__ = "0.1.0"
