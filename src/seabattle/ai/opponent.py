"""Hunt/target heuristic for the scripted opponent."""

from __future__ import annotations

import logging
import random

from seabattle.engine.board import Board
from seabattle.engine.ship import BOARD_SIZE, CellStatus, Coordinate
from seabattle.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.ai.opponent")

_UNFIRED = (CellStatus.EMPTY, CellStatus.SHIP)


def target_candidates(board: Board) -> list[Coordinate]:
    """Unfired orthogonal neighbours of every damaged, not yet sunk deck.

    A cell next to several hits appears once per hit, which weights the
    random pick toward it.
    """
    candidates: list[Coordinate] = []
    for damaged in board.cells(CellStatus.HIT):
        for neighbour in damaged.orthogonal_neighbours():
            if board.cell(neighbour) in _UNFIRED:
                candidates.append(neighbour)
    return candidates


def choose_move(board: Board, rng: random.Random | None = None) -> Coordinate:
    """Pick the scripted opponent's next target on ``board``.

    Follows up around damaged ships when possible, otherwise samples random
    cells until an unfired one turns up.
    """
    rng = rng or random.Random()
    with tracer.start_as_current_span("opponent.choose_move") as span:
        candidates = target_candidates(board)
        if candidates:
            move = rng.choice(candidates)
            span.set_attribute("opponent.mode", "target")
            logger.debug("opponent_target", extra={"x": move.x, "y": move.y, "candidates": len(candidates)})
            return move

        if not board.unfired_cells():
            raise ValueError("No unfired cells left on the board.")

        span.set_attribute("opponent.mode", "hunt")
        while True:
            move = Coordinate(rng.randrange(BOARD_SIZE), rng.randrange(BOARD_SIZE))
            if board.cell(move) in _UNFIRED:
                logger.debug("opponent_hunt", extra={"x": move.x, "y": move.y})
                return move
