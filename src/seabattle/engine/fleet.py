"""Random fleet layout generation."""

from __future__ import annotations

import logging
import random

from seabattle.telemetry import get_tracer

from .board import Board, empty_grid, place_ship
from .ship import BOARD_SIZE, Ship, fleet_sizes

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.engine.fleet")

MAX_ATTEMPTS_PER_SHIP = 1000
MAX_RESTARTS = 100


class FleetGenerationError(RuntimeError):
    """Raised when no legal layout could be produced within the restart cap."""


def _try_layout(rng: random.Random, max_attempts_per_ship: int) -> Board | None:
    grid = empty_grid()
    ships: list[Ship] = []
    for size in fleet_sizes():
        for _ in range(max_attempts_per_ship):
            vertical = rng.random() > 0.5
            x = rng.randrange(BOARD_SIZE)
            y = rng.randrange(BOARD_SIZE)
            placed = place_ship(grid, ships, x, y, size, vertical)
            if placed is not None:
                grid = placed.grid
                ships.append(placed.ship)
                break
        else:
            logger.debug("random_ship_exhausted", extra={"size": size, "placed": len(ships)})
            return None
    return Board(grid=grid, ships=tuple(ships))


def generate_random_board(
    rng: random.Random | None = None,
    *,
    max_attempts_per_ship: int = MAX_ATTEMPTS_PER_SHIP,
    max_restarts: int = MAX_RESTARTS,
) -> Board:
    """Build a legal board carrying the full fleet at random positions.

    Ships are placed largest first. If any ship cannot be placed within
    ``max_attempts_per_ship`` samples the whole layout is thrown away and
    generation starts again from an empty grid. More than ``max_restarts``
    restarts means the configuration cannot be satisfied and raises
    :class:`FleetGenerationError`.
    """
    rng = rng or random.Random()
    with tracer.start_as_current_span("fleet.generate_random_board") as span:
        for attempt in range(max_restarts + 1):
            board = _try_layout(rng, max_attempts_per_ship)
            if board is not None:
                span.set_attribute("fleet.restarts", attempt)
                logger.debug("random_board_generated", extra={"restarts": attempt})
                return board
        logger.error(
            "random_board_generation_failed",
            extra={"restarts": max_restarts, "attempts_per_ship": max_attempts_per_ship},
        )
        raise FleetGenerationError(
            f"Could not place the fleet after {max_restarts} restarts."
        )
