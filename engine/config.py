from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from engine.errors import ConfigError

DEFAULT_SIZE = 4
DEFAULT_WIN_TILE = 2048
DEFAULT_FOUR_PROBABILITY = 0.1


def is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


@dataclass(frozen=True)
class GameConfig:
    """Board geometry, win target and spawn odds for one engine."""

    size: int = DEFAULT_SIZE
    win_tile: int = DEFAULT_WIN_TILE
    four_probability: float = DEFAULT_FOUR_PROBABILITY

    def __post_init__(self) -> None:
        if self.size < 2:
            raise ConfigError(f"Board size must be at least 2, got {self.size}.")
        # Spawned tiles are 2 or 4, so a win must come from a merge.
        if not is_power_of_two(self.win_tile) or self.win_tile < 8:
            raise ConfigError(f"Win tile must be a power of two >= 8, got {self.win_tile}.")
        if not 0.0 <= self.four_probability <= 1.0:
            raise ConfigError(
                f"Four probability must be within [0, 1], got {self.four_probability}."
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GameConfig":
        env = os.environ if environ is None else environ
        try:
            return cls(
                size=int(env.get("GAME_BOARD_SIZE", DEFAULT_SIZE)),
                win_tile=int(env.get("GAME_WIN_TILE", DEFAULT_WIN_TILE)),
                four_probability=float(env.get("GAME_FOUR_PROBABILITY", DEFAULT_FOUR_PROBABILITY)),
            )
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ConfigError):
                raise
            raise ConfigError(f"Invalid game configuration in environment: {exc}") from exc
