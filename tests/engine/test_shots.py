"""Tests for shot resolution and the attacker-side replay."""

import random

import pytest

from seabattle.engine.board import Board
from seabattle.engine.fleet import generate_random_board
from seabattle.engine.ship import CellStatus, Coordinate
from seabattle.engine.shots import ShotOutcome, apply_remote_outcome, apply_shot


def test_single_deck_sink_reveals_perimeter() -> None:
    board = Board.empty().with_ship(5, 5, 1, vertical=False)

    result = apply_shot(board, 5, 5)

    assert result.outcome is ShotOutcome.SUNK
    assert result.sunk_ship_coords == (Coordinate(5, 5),)
    assert result.board.cell(Coordinate(5, 5)) is CellStatus.SUNK
    for neighbour in Coordinate(5, 5).neighbours():
        assert result.board.cell(neighbour) is CellStatus.MISS
    assert result.board.shots_fired == (Coordinate(5, 5),)
    assert result.board.ships[0].hits == 1


def test_miss_then_duplicate_is_ignored() -> None:
    board = Board.empty()
    first = apply_shot(board, 0, 0)
    assert first.outcome is ShotOutcome.MISS
    assert first.board.cell(Coordinate(0, 0)) is CellStatus.MISS

    second = apply_shot(first.board, 0, 0)
    assert second.outcome is ShotOutcome.ALREADY_SHOT
    assert second.board is first.board
    assert len(second.board.shots_fired) == 1


@pytest.mark.parametrize("x, y", [(-1, 0), (0, -1), (10, 3), (3, 10)])
def test_out_of_bounds_is_already_shot(x: int, y: int) -> None:
    board = Board.empty()
    result = apply_shot(board, x, y)
    assert result.outcome is ShotOutcome.ALREADY_SHOT
    assert result.board is board


def test_hit_then_sink_multi_deck_ship() -> None:
    board = Board.empty().with_ship(2, 2, 3, vertical=True)
    original = board

    board, outcome, coords = apply_shot(board, 2, 3)
    assert outcome is ShotOutcome.HIT
    assert coords is None
    assert board.cell(Coordinate(2, 3)) is CellStatus.HIT
    assert board.cell(Coordinate(1, 3)) is CellStatus.EMPTY
    assert board.ships[0].hits == 1
    assert original.ships[0].hits == 0

    board, outcome, _ = apply_shot(board, 2, 2)
    assert outcome is ShotOutcome.HIT
    board, outcome, coords = apply_shot(board, 2, 4)
    assert outcome is ShotOutcome.SUNK
    assert coords == (Coordinate(2, 2), Coordinate(2, 3), Coordinate(2, 4))
    assert all(board.cell(coord) is CellStatus.SUNK for coord in coords)
    for y in range(1, 6):
        for x in (1, 3):
            assert board.cell(Coordinate(x, y)) is CellStatus.MISS
    assert board.cell(Coordinate(2, 1)) is CellStatus.MISS
    assert board.cell(Coordinate(2, 5)) is CellStatus.MISS
    assert len(board.shots_fired) == 3


def test_perimeter_reveal_keeps_existing_marks() -> None:
    board = Board.empty().with_ship(0, 0, 2, vertical=False)
    board = apply_shot(board, 2, 0).board  # water next to the stern
    board = apply_shot(board, 0, 0).board
    board = apply_shot(board, 1, 0).board
    assert board.cell(Coordinate(2, 0)) is CellStatus.MISS
    assert board.cell(Coordinate(2, 1)) is CellStatus.MISS
    assert board.cell(Coordinate(0, 1)) is CellStatus.MISS
    assert board.shots_fired == (Coordinate(2, 0), Coordinate(0, 0), Coordinate(1, 0))


@pytest.mark.parametrize("seed", [3, 11, 29])
def test_random_volleys_keep_board_consistent(seed: int) -> None:
    rng = random.Random(seed)
    board = generate_random_board(rng)

    for _ in range(300):
        x, y = rng.randrange(-1, 11), rng.randrange(-1, 11)
        before = board
        board, outcome, sunk = apply_shot(board, x, y)

        if outcome is ShotOutcome.ALREADY_SHOT:
            assert board is before
            continue
        assert len(board.shots_fired) == len(before.shots_fired) + 1
        assert board.shots_fired[-1] == Coordinate(x, y)

        repeat = apply_shot(board, x, y)
        assert repeat.outcome is ShotOutcome.ALREADY_SHOT
        assert repeat.board is board

        if outcome is ShotOutcome.SUNK:
            for coord in sunk:
                assert board.cell(coord) is CellStatus.SUNK
                for neighbour in coord.neighbours():
                    if neighbour not in sunk:
                        assert board.cell(neighbour) is CellStatus.MISS

    fired = set(board.shots_fired)
    assert len(fired) == len(board.shots_fired)
    for coord in fired:
        assert board.cell(coord).fired
    for coord in board.cells(CellStatus.HIT, CellStatus.SUNK):
        assert coord in fired
    assert board.damaged_cells() == sum(ship.hits for ship in board.ships)


def test_remote_replay_matches_defender_grid() -> None:
    rng = random.Random(17)
    defender = generate_random_board(rng)
    view = Board.empty()

    targets = [Coordinate(x, y) for y in range(10) for x in range(10)]
    rng.shuffle(targets)
    for target in targets:
        defender, outcome, sunk = apply_shot(defender, target.x, target.y)
        if outcome is ShotOutcome.ALREADY_SHOT:
            continue
        view = apply_remote_outcome(view, target.x, target.y, outcome, sunk)

    fired_statuses = (CellStatus.HIT, CellStatus.MISS, CellStatus.SUNK)
    assert view.cells(*fired_statuses) == defender.cells(*fired_statuses)
    assert view.damaged_cells() == 20
    assert view.shots_fired == defender.shots_fired


def test_remote_outcome_rejects_already_shot() -> None:
    with pytest.raises(ValueError):
        apply_remote_outcome(Board.empty(), 1, 1, ShotOutcome.ALREADY_SHOT)


def test_remote_sunk_marks_deck_and_perimeter() -> None:
    view = apply_remote_outcome(Board.empty(), 4, 4, ShotOutcome.HIT)
    view = apply_remote_outcome(
        view, 5, 4, ShotOutcome.SUNK, [Coordinate(4, 4), Coordinate(5, 4)]
    )
    assert view.cell(Coordinate(4, 4)) is CellStatus.SUNK
    assert view.cell(Coordinate(5, 4)) is CellStatus.SUNK
    assert view.cell(Coordinate(3, 3)) is CellStatus.MISS
    assert view.cell(Coordinate(6, 5)) is CellStatus.MISS
    assert view.shots_fired == (Coordinate(4, 4), Coordinate(5, 4))


@pytest.mark.parametrize("bad", [Coordinate(0, 10), Coordinate(-1, 0)])
def test_remote_sunk_rejects_off_board_decks(bad: Coordinate) -> None:
    view = Board.empty()
    with pytest.raises(ValueError):
        apply_remote_outcome(view, 0, 0, ShotOutcome.SUNK, [Coordinate(0, 0), bad])
    assert view.cells(CellStatus.SUNK, CellStatus.MISS) == []


def test_remote_sunk_without_decks_marks_target_only() -> None:
    view = apply_remote_outcome(Board.empty(), 4, 4, ShotOutcome.SUNK)
    assert view.cell(Coordinate(4, 4)) is CellStatus.SUNK
    assert view.cells(CellStatus.MISS) == []
    assert view.shots_fired == (Coordinate(4, 4),)
