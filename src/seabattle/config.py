"""Gameplay and networking settings."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict

from pydantic import BaseModel, Field

from seabattle.engine.fleet import MAX_ATTEMPTS_PER_SHIP, MAX_RESTARTS


class GameConfig(BaseModel):
    """Tunables for the scripted opponent, fleet generation and peer connections."""

    ai_delay: float = Field(default=0.8, ge=0.0)
    connect_timeout: float = Field(default=15.0, gt=0.0)
    max_placement_attempts: int = Field(default=MAX_ATTEMPTS_PER_SHIP, ge=1)
    max_board_restarts: int = Field(default=MAX_RESTARTS, ge=0)
    seed: int | None = None
    host: str = "127.0.0.1"
    port: int = Field(default=9000, ge=1, le=65535)

    @classmethod
    def from_env(cls, **overrides: Any) -> "GameConfig":
        """Construct config from `SEABATTLE_*` env vars; ``overrides`` win over both."""

        env_fields = {
            "ai_delay": "SEABATTLE_AI_DELAY",
            "connect_timeout": "SEABATTLE_CONNECT_TIMEOUT",
            "max_placement_attempts": "SEABATTLE_MAX_PLACEMENT_ATTEMPTS",
            "max_board_restarts": "SEABATTLE_MAX_BOARD_RESTARTS",
            "seed": "SEABATTLE_SEED",
            "host": "SEABATTLE_HOST",
            "port": "SEABATTLE_PORT",
        }
        data: Dict[str, Any] = {}
        for field, env_name in env_fields.items():
            value = os.getenv(env_name)
            if value is not None and value.strip():
                data[field] = value.strip()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**data)


@lru_cache(maxsize=1)
def load_game_config() -> GameConfig:
    """Load and cache game config from the environment."""

    return GameConfig.from_env()
