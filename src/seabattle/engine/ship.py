"""Ship and cell domain model for the Sea Battle engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from enum import Enum

BOARD_SIZE = 10

# Russian rules: one 4-decker, two 3-deckers, three 2-deckers, four 1-deckers.
FLEET: tuple[tuple[int, int], ...] = ((4, 1), (3, 2), (2, 3), (1, 4))


def fleet_sizes() -> list[int]:
    """Return every ship size of the fleet, largest first."""
    sizes = [size for size, count in FLEET for _ in range(count)]
    return sorted(sizes, reverse=True)


TOTAL_SHIP_CELLS = sum(fleet_sizes())


class CellStatus(Enum):
    """State of a single grid square."""

    EMPTY = "empty"
    SHIP = "ship"
    HIT = "hit"
    MISS = "miss"
    SUNK = "sunk"

    @property
    def fired(self) -> bool:
        """Return True once a shot (or a perimeter reveal) has resolved the cell."""
        return self in (CellStatus.HIT, CellStatus.MISS, CellStatus.SUNK)


@dataclass(frozen=True, order=True)
class Coordinate:
    """Immutable board coordinate; ``x`` is the column and ``y`` the row."""

    x: int
    y: int

    def in_bounds(self) -> bool:
        return 0 <= self.x < BOARD_SIZE and 0 <= self.y < BOARD_SIZE

    def neighbours(self) -> list[Coordinate]:
        """Return the in-bounds 8-neighbourhood of this coordinate."""
        cells: list[Coordinate] = []
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if dx == 0 and dy == 0:
                    continue
                candidate = Coordinate(self.x + dx, self.y + dy)
                if candidate.in_bounds():
                    cells.append(candidate)
        return cells

    def orthogonal_neighbours(self) -> list[Coordinate]:
        """Return the in-bounds up/down/left/right neighbours."""
        candidates = (
            Coordinate(self.x, self.y - 1),
            Coordinate(self.x, self.y + 1),
            Coordinate(self.x - 1, self.y),
            Coordinate(self.x + 1, self.y),
        )
        return [coord for coord in candidates if coord.in_bounds()]


def ship_cells(x: int, y: int, size: int, vertical: bool) -> list[Coordinate]:
    """Return the cells a ship anchored at ``(x, y)`` would cover, anchor first."""
    if vertical:
        return [Coordinate(x, y + offset) for offset in range(size)]
    return [Coordinate(x + offset, y) for offset in range(size)]


def new_ship_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class Ship:
    """A placed ship and the damage it has taken."""

    ship_id: str
    size: int
    coords: tuple[Coordinate, ...]
    hits: int = 0

    def __post_init__(self) -> None:
        if len(self.coords) != self.size:
            raise ValueError("Ship coordinates must match its size.")
        if not 0 <= self.hits <= self.size:
            raise ValueError("Ship hits must be between 0 and its size.")

    def occupies(self, coord: Coordinate) -> bool:
        return coord in self.coords

    def is_sunk(self) -> bool:
        """Determine whether every deck of the ship has been hit."""
        return self.hits >= self.size

    def with_hit(self) -> Ship:
        """Return a copy of the ship carrying one more hit."""
        return replace(self, hits=min(self.hits + 1, self.size))
