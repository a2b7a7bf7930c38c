"""Match controller: placement, readiness, turn order and win conditions."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from seabattle.ai.opponent import choose_move
from seabattle.telemetry import get_meter, get_tracer

from .board import Board, placement_preview
from .fleet import MAX_ATTEMPTS_PER_SHIP, MAX_RESTARTS, generate_random_board
from .ship import TOTAL_SHIP_CELLS, Coordinate, fleet_sizes
from .shots import ShotOutcome, ShotResult, apply_remote_outcome, apply_shot

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.engine.game")
meter = get_meter("seabattle.engine.game")

MOVE_COUNTER = meter.create_counter(
    "seabattle_engine_moves",
    unit="1",
    description="Number of shots resolved by a Match",
)


class MatchPhase(Enum):
    """High-level lifecycle of a match."""

    PLACEMENT = "placement"
    PLAYING = "playing"
    GAME_OVER = "game_over"


class MatchMode(Enum):
    SINGLE = "single"
    PEER = "peer"


class Side(Enum):
    """The local player and whoever sits across the table."""

    PLAYER = "player"
    OPPONENT = "opponent"

    def opponent(self) -> Side:
        """Return the opposing side."""
        return Side.OPPONENT if self is Side.PLAYER else Side.PLAYER


class MatchStateError(RuntimeError):
    """Raised when a match operation is called in the wrong phase or out of turn."""


def has_lost(board: Board) -> bool:
    """A fleet is gone once all of its cells are hit or sunk.

    Only the grid is consulted, so the check works the same on the real
    board and on a view rebuilt from reported outcomes.
    """
    return board.damaged_cells() >= TOTAL_SHIP_CELLS


@dataclass(frozen=True)
class MatchState:
    """Immutable snapshot of the current match for renderers."""

    mode: MatchMode
    phase: MatchPhase
    turn: Side
    winner: Side | None
    aborted: bool
    boards: dict[Side, Board]
    ready: dict[Side, bool]
    next_ship_size: int | None


class Match:
    """Coordinates a match between the local board and the opponent's board.

    ``boards[Side.OPPONENT]`` is the real opponent board in single mode and
    the local view rebuilt from ``SHOT_RESULT`` reports in peer mode.
    """

    def __init__(
        self,
        mode: MatchMode = MatchMode.SINGLE,
        *,
        is_host: bool = True,
        rng: random.Random | None = None,
        max_attempts_per_ship: int = MAX_ATTEMPTS_PER_SHIP,
        max_restarts: int = MAX_RESTARTS,
    ) -> None:
        self.mode = mode
        self.is_host = is_host
        self._rng = rng or random.Random()
        self._max_attempts_per_ship = max_attempts_per_ship
        self._max_restarts = max_restarts
        self._ships_to_place = fleet_sizes()
        self.reset()

    def reset(self) -> None:
        """Return to a fresh placement phase with empty boards."""
        self.boards: dict[Side, Board] = {Side.PLAYER: Board.empty(), Side.OPPONENT: Board.empty()}
        self.phase = MatchPhase.PLACEMENT
        self.turn = self._first_turn()
        self.winner: Side | None = None
        self.aborted = False
        self.ready: dict[Side, bool] = {Side.PLAYER: False, Side.OPPONENT: False}
        logger.info("match_reset", extra={"mode": self.mode.value, "is_host": self.is_host})

    def _first_turn(self) -> Side:
        if self.mode is MatchMode.PEER and not self.is_host:
            return Side.OPPONENT
        return Side.PLAYER

    # -- placement ---------------------------------------------------------

    @property
    def ships_placed(self) -> int:
        return len(self.boards[Side.PLAYER].ships)

    @property
    def ships_remaining(self) -> int:
        return len(self._ships_to_place) - self.ships_placed

    @property
    def fleet_complete(self) -> bool:
        return self.ships_remaining <= 0

    def next_ship_size(self) -> int | None:
        if self.phase is not MatchPhase.PLACEMENT or self.fleet_complete:
            return None
        return self._ships_to_place[self.ships_placed]

    def preview(self, x: int, y: int, vertical: bool) -> tuple[list[Coordinate], bool]:
        """Return the cells covered by the next ship at ``(x, y)`` and whether it fits."""
        size = self.next_ship_size()
        if size is None:
            return [], False
        return placement_preview(self.boards[Side.PLAYER].grid, x, y, size, vertical)

    def place_next_ship(self, x: int, y: int, vertical: bool) -> bool:
        """Place the next ship of the fleet; an illegal spot leaves everything unchanged."""
        size = self.next_ship_size()
        if size is None or self.ready[Side.PLAYER]:
            return False
        board = self.boards[Side.PLAYER].with_ship(x, y, size, vertical)
        if board is None:
            return False
        self.boards[Side.PLAYER] = board
        logger.info(
            "fleet_ship_placed",
            extra={"size": size, "x": x, "y": y, "vertical": vertical, "remaining": self.ships_remaining},
        )
        return True

    def randomize_fleet(self) -> None:
        """Replace the local fleet with a random legal layout."""
        if self.phase is not MatchPhase.PLACEMENT or self.ready[Side.PLAYER]:
            raise MatchStateError("The fleet can only be rearranged during placement.")
        self.boards[Side.PLAYER] = self._generate_board()
        logger.info("fleet_randomized", extra={"ships": self.ships_placed})

    def _generate_board(self) -> Board:
        return generate_random_board(
            self._rng,
            max_attempts_per_ship=self._max_attempts_per_ship,
            max_restarts=self._max_restarts,
        )

    # -- readiness ---------------------------------------------------------

    def mark_ready(self) -> bool:
        """Declare the local fleet ready. Returns True if that started the match."""
        if self.phase is not MatchPhase.PLACEMENT or not self.fleet_complete:
            logger.warning("ready_rejected", extra={"phase": self.phase.value, "remaining": self.ships_remaining})
            return False
        self.ready[Side.PLAYER] = True
        if self.mode is MatchMode.SINGLE:
            self.boards[Side.OPPONENT] = self._generate_board()
            self.ready[Side.OPPONENT] = True
        return self._maybe_start()

    def opponent_ready(self) -> bool:
        """Record that the remote side finished placement. Returns True if the match started."""
        if self.phase is not MatchPhase.PLACEMENT:
            logger.warning("opponent_ready_ignored", extra={"phase": self.phase.value})
            return False
        self.ready[Side.OPPONENT] = True
        return self._maybe_start()

    def _maybe_start(self) -> bool:
        if not all(self.ready.values()):
            return False
        with tracer.start_as_current_span("match.start") as span:
            self.phase = MatchPhase.PLAYING
            self.turn = self._first_turn()
            span.set_attribute("match.first_turn", self.turn.value)
            logger.info("match_started", extra={"mode": self.mode.value, "turn": self.turn.value})
        return True

    # -- shots -------------------------------------------------------------

    def _require_turn(self, side: Side) -> None:
        if self.phase is not MatchPhase.PLAYING:
            logger.error("shot_rejected_not_playing", extra={"side": side.value, "phase": self.phase.value})
            raise MatchStateError("Match is not in progress.")
        if self.turn is not side:
            logger.error("shot_rejected_wrong_turn", extra={"side": side.value, "turn": self.turn.value})
            raise MatchStateError("It is not this side's turn.")

    def can_fire(self, x: int, y: int) -> bool:
        """Whether the local player may shoot at ``(x, y)`` on the opponent's board right now."""
        if self.phase is not MatchPhase.PLAYING or self.turn is not Side.PLAYER:
            return False
        target = Coordinate(x, y)
        return target.in_bounds() and not self.boards[Side.OPPONENT].cell(target).fired

    def fire(self, x: int, y: int) -> ShotResult:
        """Local player shoots the scripted opponent's board (single mode)."""
        if self.mode is not MatchMode.SINGLE:
            raise MatchStateError("In peer mode shots are resolved by the defender.")
        self._require_turn(Side.PLAYER)
        with tracer.start_as_current_span("match.fire") as span:
            span.set_attribute("shot.x", x)
            span.set_attribute("shot.y", y)
            result = apply_shot(self.boards[Side.OPPONENT], x, y)
            if result.outcome is not ShotOutcome.ALREADY_SHOT:
                self.boards[Side.OPPONENT] = result.board
                self._after_shot(Side.PLAYER, result.outcome)
            span.set_attribute("shot.outcome", result.outcome.value)
            return result

    def receive_shot(self, x: int, y: int) -> ShotResult:
        """The opponent shoots the local board; this side is the authoritative defender."""
        self._require_turn(Side.OPPONENT)
        with tracer.start_as_current_span("match.receive_shot") as span:
            span.set_attribute("shot.x", x)
            span.set_attribute("shot.y", y)
            result = apply_shot(self.boards[Side.PLAYER], x, y)
            if result.outcome is not ShotOutcome.ALREADY_SHOT:
                self.boards[Side.PLAYER] = result.board
                self._after_shot(Side.OPPONENT, result.outcome)
            span.set_attribute("shot.outcome", result.outcome.value)
            return result

    def record_shot_result(
        self,
        x: int,
        y: int,
        outcome: ShotOutcome,
        sunk_coords: Sequence[Coordinate] | None = None,
    ) -> None:
        """Apply the defender's report of the local player's last shot (peer mode)."""
        self._require_turn(Side.PLAYER)
        with tracer.start_as_current_span("match.record_shot_result") as span:
            span.set_attribute("shot.x", x)
            span.set_attribute("shot.y", y)
            span.set_attribute("shot.outcome", outcome.value)
            self.boards[Side.OPPONENT] = apply_remote_outcome(
                self.boards[Side.OPPONENT], x, y, outcome, sunk_coords
            )
            self._after_shot(Side.PLAYER, outcome)

    def opponent_turn(self, rng: random.Random | None = None) -> tuple[Coordinate, ShotResult]:
        """Let the scripted opponent pick a target and shoot it (single mode)."""
        if self.mode is not MatchMode.SINGLE:
            raise MatchStateError("Only the scripted opponent moves on its own.")
        self._require_turn(Side.OPPONENT)
        move = choose_move(self.boards[Side.PLAYER], rng or self._rng)
        return move, self.receive_shot(move.x, move.y)

    def _after_shot(self, shooter: Side, outcome: ShotOutcome) -> None:
        MOVE_COUNTER.add(1, attributes={"result": outcome.value, "side": shooter.value})
        target = shooter.opponent()
        if has_lost(self.boards[target]):
            self.phase = MatchPhase.GAME_OVER
            self.winner = shooter
            logger.info("match_finished", extra={"winner": shooter.value})
            return
        if not outcome.keeps_turn:
            self.turn = target

    # -- termination -------------------------------------------------------

    def abort(self, reason: str = "aborted") -> None:
        """End the match without a winner, e.g. when the peer connection drops."""
        if self.phase is MatchPhase.GAME_OVER:
            return
        self.phase = MatchPhase.GAME_OVER
        self.winner = None
        self.aborted = True
        logger.warning("match_aborted", extra={"reason": reason})

    def snapshot(self) -> MatchState:
        """Return an immutable view of the current match."""
        return MatchState(
            mode=self.mode,
            phase=self.phase,
            turn=self.turn,
            winner=self.winner,
            aborted=self.aborted,
            boards=dict(self.boards),
            ready=dict(self.ready),
            next_ship_size=self.next_ship_size(),
        )

    def valid_targets(self) -> list[Coordinate]:
        """Return all cells the local player can still shoot at."""
        if self.phase is not MatchPhase.PLAYING:
            return []
        return self.boards[Side.OPPONENT].unfired_cells()
