"""Shot resolution for the defending board and for the attacker's replay of it."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, NamedTuple, Sequence

from seabattle.telemetry import get_meter, get_tracer

from .board import Board, Grid, update_grid
from .ship import CellStatus, Coordinate

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.engine.shots")
meter = get_meter("seabattle.engine.shots")

SHOT_COUNTER = meter.create_counter(
    "seabattle_engine_shots",
    unit="1",
    description="Shots resolved against a board",
)


class ShotOutcome(Enum):
    """Result of firing at a cell."""

    HIT = "hit"
    MISS = "miss"
    SUNK = "sunk"
    ALREADY_SHOT = "already_shot"

    @property
    def keeps_turn(self) -> bool:
        """A hit or a kill earns the shooter another shot."""
        return self in (ShotOutcome.HIT, ShotOutcome.SUNK)


class ShotResult(NamedTuple):
    board: Board
    outcome: ShotOutcome
    sunk_ship_coords: tuple[Coordinate, ...] | None = None


def _sunk_changes(grid: Grid, ship_coords: Iterable[Coordinate]) -> dict[Coordinate, CellStatus]:
    """Cells to rewrite when a ship goes down: its decks and its empty surroundings.

    No other ship may touch a sunk one, so every empty neighbour is water.
    """
    coords = list(ship_coords)
    changes = {coord: CellStatus.SUNK for coord in coords}
    for coord in coords:
        for neighbour in coord.neighbours():
            if neighbour in changes:
                continue
            if grid[neighbour.y][neighbour.x] is CellStatus.EMPTY:
                changes[neighbour] = CellStatus.MISS
    return changes


def apply_shot(board: Board, x: int, y: int) -> ShotResult:
    """Resolve a shot at ``(x, y)`` against the board's real fleet.

    Out-of-bounds targets and cells that were already resolved yield
    ``ALREADY_SHOT`` with the board returned untouched. Any other shot appends
    exactly one entry to ``shots_fired``.
    """
    with tracer.start_as_current_span("shots.apply_shot") as span:
        span.set_attribute("shot.x", x)
        span.set_attribute("shot.y", y)
        target = Coordinate(x, y)
        if not target.in_bounds() or board.cell(target).fired or target in board.shots_fired:
            span.set_attribute("shot.outcome", ShotOutcome.ALREADY_SHOT.value)
            logger.debug("shot_ignored", extra={"x": x, "y": y})
            return ShotResult(board, ShotOutcome.ALREADY_SHOT)

        shots_fired = board.shots_fired + (target,)
        status = board.cell(target)
        sunk_coords: tuple[Coordinate, ...] | None = None

        if status is CellStatus.EMPTY:
            outcome = ShotOutcome.MISS
            grid = update_grid(board.grid, {target: CellStatus.MISS})
            ships = board.ships
        else:
            outcome = ShotOutcome.HIT
            changes = {target: CellStatus.HIT}
            ships_list = list(board.ships)
            for index, ship in enumerate(ships_list):
                if not ship.occupies(target):
                    continue
                damaged = ship.with_hit()
                ships_list[index] = damaged
                if damaged.is_sunk():
                    outcome = ShotOutcome.SUNK
                    sunk_coords = damaged.coords
                    changes = _sunk_changes(board.grid, damaged.coords)
                break
            grid = update_grid(board.grid, changes)
            ships = tuple(ships_list)

        span.set_attribute("shot.outcome", outcome.value)
        SHOT_COUNTER.add(1, attributes={"outcome": outcome.value, "source": "local"})
        logger.info("shot_resolved", extra={"x": x, "y": y, "outcome": outcome.value})
        return ShotResult(Board(grid=grid, ships=ships, shots_fired=shots_fired), outcome, sunk_coords)


def apply_remote_outcome(
    board: Board,
    x: int,
    y: int,
    outcome: ShotOutcome,
    sunk_coords: Sequence[Coordinate] | None = None,
) -> Board:
    """Replay an outcome reported by the defender onto the attacker's view of its board.

    The attacker does not know the defender's ships, so a ``SUNK`` report
    relies on ``sunk_coords`` for the deck and perimeter marking; without them
    only the target is marked sunk. Off-board coordinates raise ``ValueError``.
    """
    if outcome is ShotOutcome.ALREADY_SHOT:
        raise ValueError("An already-shot outcome is never reported by the defender.")
    target = Coordinate(x, y)
    if not target.in_bounds():
        raise ValueError(f"Reported shot ({x}, {y}) is off the board.")
    for coord in sunk_coords or ():
        if not coord.in_bounds():
            raise ValueError(f"Reported sunk deck ({coord.x}, {coord.y}) is off the board.")

    with tracer.start_as_current_span("shots.apply_remote_outcome") as span:
        span.set_attribute("shot.x", x)
        span.set_attribute("shot.y", y)
        span.set_attribute("shot.outcome", outcome.value)
        if outcome is ShotOutcome.MISS:
            changes = {target: CellStatus.MISS}
        elif outcome is ShotOutcome.HIT:
            changes = {target: CellStatus.HIT}
        elif sunk_coords:
            changes = _sunk_changes(board.grid, [target, *sunk_coords])
        else:
            # Without the decks the perimeter is unknown.
            changes = {target: CellStatus.SUNK}

        shots_fired = board.shots_fired
        if target not in shots_fired:
            shots_fired = shots_fired + (target,)

        SHOT_COUNTER.add(1, attributes={"outcome": outcome.value, "source": "remote"})
        logger.info("shot_result_applied", extra={"x": x, "y": y, "outcome": outcome.value})
        return Board(grid=update_grid(board.grid, changes), ships=board.ships, shots_fired=shots_fired)
