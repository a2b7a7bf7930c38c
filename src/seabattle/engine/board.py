"""Immutable 10×10 board model and placement rules."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, NamedTuple, Sequence

from seabattle.telemetry import get_meter, get_tracer

from .ship import BOARD_SIZE, CellStatus, Coordinate, Ship, new_ship_id, ship_cells

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.engine.board")
meter = get_meter("seabattle.engine.board")

PLACEMENT_COUNTER = meter.create_counter(
    "seabattle_engine_ship_placements",
    unit="1",
    description="Number of attempted ship placements",
)

Grid = tuple[tuple[CellStatus, ...], ...]


def empty_grid() -> Grid:
    return tuple(tuple(CellStatus.EMPTY for _ in range(BOARD_SIZE)) for _ in range(BOARD_SIZE))


def update_grid(grid: Grid, changes: Mapping[Coordinate, CellStatus]) -> Grid:
    """Return a copy of ``grid`` with the given cells overwritten."""
    if not changes:
        return grid
    rows = [list(row) for row in grid]
    for coord, status in changes.items():
        rows[coord.y][coord.x] = status
    return tuple(tuple(row) for row in rows)


def is_valid_coordinate(x: int, y: int) -> bool:
    """Check whether a coordinate lies inside the board boundaries."""
    return 0 <= x < BOARD_SIZE and 0 <= y < BOARD_SIZE


def is_valid_placement(grid: Grid, x: int, y: int, size: int, vertical: bool) -> bool:
    """Return True if a ship fits at ``(x, y)`` without overlapping or touching another.

    Every cell must be in bounds and empty, and every in-bounds neighbour of
    every cell (diagonals included) must be empty as well.
    """
    if size < 1:
        return False
    cells = ship_cells(x, y, size, vertical)
    if not all(cell.in_bounds() for cell in cells):
        return False
    for cell in cells:
        if grid[cell.y][cell.x] is not CellStatus.EMPTY:
            return False
        for neighbour in cell.neighbours():
            if grid[neighbour.y][neighbour.x] is not CellStatus.EMPTY:
                return False
    return True


class PlacedShip(NamedTuple):
    grid: Grid
    ship: Ship


def place_ship(
    grid: Grid, ships: Sequence[Ship], x: int, y: int, size: int, vertical: bool
) -> PlacedShip | None:
    """Place a ship and return the new grid and ship, or None if the spot is illegal.

    ``ships`` is accepted for symmetry with the board state; the grid alone
    carries everything needed to validate the placement.
    """
    with tracer.start_as_current_span("board.place_ship") as span:
        span.set_attribute("ship.size", size)
        span.set_attribute("ship.x", x)
        span.set_attribute("ship.y", y)
        span.set_attribute("ship.vertical", vertical)
        span.set_attribute("board.ships", len(ships))
        if not is_valid_placement(grid, x, y, size, vertical):
            PLACEMENT_COUNTER.add(1, attributes={"result": "failed"})
            logger.debug(
                "ship_placement_rejected",
                extra={"size": size, "x": x, "y": y, "vertical": vertical},
            )
            return None

        coords = tuple(ship_cells(x, y, size, vertical))
        new_grid = update_grid(grid, {coord: CellStatus.SHIP for coord in coords})
        ship = Ship(ship_id=new_ship_id(), size=size, coords=coords)
        PLACEMENT_COUNTER.add(1, attributes={"result": "success"})
        logger.debug(
            "ship_placed",
            extra={"ship_id": ship.ship_id, "size": size, "x": x, "y": y, "vertical": vertical},
        )
        return PlacedShip(new_grid, ship)


def placement_preview(
    grid: Grid, x: int, y: int, size: int, vertical: bool
) -> tuple[list[Coordinate], bool]:
    """Return the cells to highlight for a hovered placement and whether it is legal.

    Cells running off the board are cut from the preview.
    """
    coords: list[Coordinate] = []
    for cell in ship_cells(x, y, size, vertical):
        if not cell.in_bounds():
            return coords, False
        coords.append(cell)
    return coords, is_valid_placement(grid, x, y, size, vertical)


@dataclass(frozen=True)
class Board:
    """A player's grid, fleet and the list of shots fired against it."""

    grid: Grid = field(default_factory=empty_grid)
    ships: tuple[Ship, ...] = ()
    shots_fired: tuple[Coordinate, ...] = ()

    @classmethod
    def empty(cls) -> Board:
        return cls()

    def cell(self, coord: Coordinate) -> CellStatus:
        return self.grid[coord.y][coord.x]

    def with_ship(self, x: int, y: int, size: int, vertical: bool) -> Board | None:
        """Return a new board with the ship added, or None if it cannot go there."""
        placed = place_ship(self.grid, self.ships, x, y, size, vertical)
        if placed is None:
            return None
        return Board(grid=placed.grid, ships=self.ships + (placed.ship,), shots_fired=self.shots_fired)

    def ship_at(self, coord: Coordinate) -> Ship | None:
        for ship in self.ships:
            if ship.occupies(coord):
                return ship
        return None

    def cells(self, *statuses: CellStatus) -> list[Coordinate]:
        """Return every coordinate whose status is one of ``statuses``, row by row."""
        wanted = set(statuses)
        return [
            Coordinate(x, y)
            for y, row in enumerate(self.grid)
            for x, status in enumerate(row)
            if status in wanted
        ]

    def count(self, *statuses: CellStatus) -> int:
        wanted = set(statuses)
        return sum(1 for row in self.grid for status in row if status in wanted)

    def damaged_cells(self) -> int:
        """Number of ship cells that have been hit, sunk ships included."""
        return self.count(CellStatus.HIT, CellStatus.SUNK)

    def unfired_cells(self) -> list[Coordinate]:
        return self.cells(CellStatus.EMPTY, CellStatus.SHIP)

    def all_ships_sunk(self) -> bool:
        """Check whether the owner has any surviving ships."""
        return bool(self.ships) and all(ship.is_sunk() for ship in self.ships)

    def ship_sizes(self) -> list[int]:
        return sorted((ship.size for ship in self.ships), reverse=True)
