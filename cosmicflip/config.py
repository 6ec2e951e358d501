"""
Engine configuration.

Defaults suit a single-process deployment; every field can be
overridden from the environment (COSMICFLIP_<FIELD>).
"""

from __future__ import annotations
from dataclasses import dataclass, field
import os


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass
class EngineConfig:
    """Timers, limits and server settings."""
    # Lobby countdown before dealing (seconds)
    countdown_seconds: float = 3.0
    hand_size: int = 7

    # Disconnected seats are forfeited after this long (seconds)
    disconnect_grace_seconds: float = 30.0
    # Finished rooms are destroyed after this long unless acknowledged (seconds)
    finished_retention_seconds: float = 60.0

    # Compare-and-swap attempts before surfacing "try again"
    max_cas_retries: int = 3

    # Period of the clock driving countdowns and timeouts (seconds)
    tick_interval_seconds: float = 0.5

    # Room codes: 4 digits, 1000-9999
    code_min: int = 1000
    code_max: int = 9999
    max_rooms: int = 9000

    # Fixed seed for reproducible games; None draws a fresh seed per room
    seed: int | None = None

    log_level: str = "INFO"
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> EngineConfig:
        seed = os.getenv("COSMICFLIP_SEED")
        return cls(
            countdown_seconds=_env_float("COSMICFLIP_COUNTDOWN_SECONDS", 3.0),
            hand_size=_env_int("COSMICFLIP_HAND_SIZE", 7),
            disconnect_grace_seconds=_env_float("COSMICFLIP_DISCONNECT_GRACE_SECONDS", 30.0),
            finished_retention_seconds=_env_float("COSMICFLIP_FINISHED_RETENTION_SECONDS", 60.0),
            max_cas_retries=_env_int("COSMICFLIP_MAX_CAS_RETRIES", 3),
            tick_interval_seconds=_env_float("COSMICFLIP_TICK_INTERVAL_SECONDS", 0.5),
            max_rooms=_env_int("COSMICFLIP_MAX_ROOMS", 9000),
            seed=int(seed) if seed else None,
            log_level=os.getenv("COSMICFLIP_LOG_LEVEL", "INFO"),
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
        )
