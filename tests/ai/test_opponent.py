"""Tests for the scripted opponent's hunt/target heuristic."""

import random

import pytest

from seabattle.ai.opponent import choose_move, target_candidates
from seabattle.engine.board import Board, empty_grid, update_grid
from seabattle.engine.fleet import generate_random_board
from seabattle.engine.ship import CellStatus, Coordinate
from seabattle.engine.shots import ShotOutcome, apply_shot


def _board_with(status: CellStatus, *, except_for: Coordinate | None = None) -> Board:
    changes = {
        Coordinate(x, y): status
        for y in range(10)
        for x in range(10)
        if Coordinate(x, y) != except_for
    }
    return Board(grid=update_grid(empty_grid(), changes))


def test_hunt_returns_only_unfired_cell() -> None:
    last = Coordinate(7, 2)
    board = _board_with(CellStatus.MISS, except_for=last)
    rng = random.Random(0)
    for _ in range(5):
        assert choose_move(board, rng) == last


def test_fully_fired_board_raises() -> None:
    with pytest.raises(ValueError):
        choose_move(_board_with(CellStatus.MISS), random.Random(0))


def test_targets_orthogonal_neighbours_of_a_hit() -> None:
    board = Board.empty().with_ship(4, 4, 3, vertical=False)
    board = apply_shot(board, 5, 4).board

    expected = {Coordinate(5, 3), Coordinate(5, 5), Coordinate(4, 4), Coordinate(6, 4)}
    assert set(target_candidates(board)) == expected

    rng = random.Random(1)
    for _ in range(20):
        assert choose_move(board, rng) in expected


def test_sunk_ship_does_not_attract_fire() -> None:
    board = Board.empty().with_ship(0, 0, 1, vertical=False)
    board = apply_shot(board, 0, 0).board
    assert target_candidates(board) == []


def test_candidates_repeat_for_cells_next_to_two_hits() -> None:
    board = Board.empty().with_ship(2, 2, 4, vertical=False)
    board = apply_shot(board, 2, 2).board
    board = apply_shot(board, 4, 2).board

    candidates = target_candidates(board)
    assert candidates.count(Coordinate(3, 2)) == 2
    assert Coordinate(3, 1) not in candidates


def test_opponent_never_repeats_and_eventually_sinks_everything() -> None:
    rng = random.Random(21)
    board = generate_random_board(rng)
    fired: set[Coordinate] = set()

    for _ in range(100):
        if board.damaged_cells() == 20:
            break
        move = choose_move(board, rng)
        assert move not in fired
        assert not board.cell(move).fired
        fired.add(move)
        board, outcome, _ = apply_shot(board, move.x, move.y)
        assert outcome is not ShotOutcome.ALREADY_SHOT

    assert board.damaged_cells() == 20
    assert board.all_ships_sunk()
