"""Tests for random fleet generation."""

import itertools
import random

import pytest

from seabattle.engine import fleet as fleet_module
from seabattle.engine.fleet import FleetGenerationError, generate_random_board
from seabattle.engine.ship import CellStatus


@pytest.mark.parametrize("seed", [0, 1, 7, 42, 123, 2024])
def test_random_board_holds_full_fleet_without_contact(seed: int) -> None:
    board = generate_random_board(random.Random(seed))

    assert sorted((ship.size for ship in board.ships), reverse=True) == [4, 3, 3, 2, 2, 2, 1, 1, 1, 1]
    assert board.count(CellStatus.SHIP) == 20
    assert board.shots_fired == ()
    for first, second in itertools.combinations(board.ships, 2):
        for a in first.coords:
            for b in second.coords:
                assert max(abs(a.x - b.x), abs(a.y - b.y)) > 1


def test_random_board_is_reproducible_with_seed() -> None:
    first = generate_random_board(random.Random(99))
    second = generate_random_board(random.Random(99))
    assert first.grid == second.grid


def test_failed_layout_restarts_from_scratch(monkeypatch: pytest.MonkeyPatch) -> None:
    real_try = fleet_module._try_layout
    calls = {"count": 0}

    def flaky(rng, attempts):
        calls["count"] += 1
        if calls["count"] < 3:
            return None
        return real_try(rng, attempts)

    monkeypatch.setattr(fleet_module, "_try_layout", flaky)
    board = generate_random_board(random.Random(5))
    assert calls["count"] == 3
    assert len(board.ships) == 10


def test_exhausted_restarts_raise() -> None:
    # Zero attempts per ship means every layout fails.
    with pytest.raises(FleetGenerationError):
        generate_random_board(random.Random(1), max_attempts_per_ship=0, max_restarts=3)
