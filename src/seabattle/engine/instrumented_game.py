"""Match controller with match-level telemetry hooks."""

from __future__ import annotations

import time
from typing import Sequence

from seabattle.engine.game import Match, MatchPhase, Side
from seabattle.engine.ship import Coordinate
from seabattle.engine.shots import ShotOutcome, ShotResult
from seabattle.telemetry import get_logger, get_tracer, record_duration, record_game_metric


class InstrumentedMatch(Match):
    """Wraps Match with tracing, metrics, and logging."""

    def __init__(self, *args, **kwargs) -> None:
        self._logger = get_logger("seabattle.engine")
        self._tracer = get_tracer("seabattle.engine")
        self._match_span_cm = None
        self._match_span = None
        self._match_start_time: float | None = None
        self._match_id_counter = 0
        self._shots: dict[Side, int] = {Side.PLAYER: 0, Side.OPPONENT: 0}
        super().__init__(*args, **kwargs)

    def reset(self) -> None:
        self._close_match_span()
        self._shots = {Side.PLAYER: 0, Side.OPPONENT: 0}
        super().reset()

    def _maybe_start(self) -> bool:
        started = super()._maybe_start()
        if started:
            self._start_match_span()
            record_game_metric("seabattle_match_started_total", 1, {"mode": self.mode.value})
            self._logger.info("Match %d started, %s moves first", self._match_id_counter, self.turn.value)
        return started

    def fire(self, x: int, y: int) -> ShotResult:
        return self._instrument_shot(Side.PLAYER, x, y, lambda: super(InstrumentedMatch, self).fire(x, y))

    def receive_shot(self, x: int, y: int) -> ShotResult:
        return self._instrument_shot(
            Side.OPPONENT, x, y, lambda: super(InstrumentedMatch, self).receive_shot(x, y)
        )

    def record_shot_result(
        self,
        x: int,
        y: int,
        outcome: ShotOutcome,
        sunk_coords: Sequence[Coordinate] | None = None,
    ) -> None:
        def _apply() -> ShotResult:
            super(InstrumentedMatch, self).record_shot_result(x, y, outcome, sunk_coords)
            return ShotResult(self.boards[Side.OPPONENT], outcome)

        self._instrument_shot(Side.PLAYER, x, y, _apply)

    def abort(self, reason: str = "aborted") -> None:
        was_over = self.phase is MatchPhase.GAME_OVER
        super().abort(reason)
        if not was_over:
            record_game_metric("seabattle_match_aborted_total", 1, {"reason": reason})
            self._logger.warning("Match %d aborted: %s", self._match_id_counter, reason)
            self._close_match_span()

    def _instrument_shot(self, shooter: Side, x: int, y: int, apply) -> ShotResult:
        with self._tracer.start_as_current_span("seabattle.engine.shot") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("shooter", shooter.value)
            span.set_attribute("coord.x", x)
            span.set_attribute("coord.y", y)
            result = apply()

            span.set_attribute("shot_outcome", result.outcome.value)
            if result.outcome is not ShotOutcome.ALREADY_SHOT:
                self._shots[shooter] += 1
                record_game_metric("seabattle_shots_total", 1, {"shooter": shooter.value})
            record_game_metric(
                "seabattle_shots_by_result_total",
                1,
                {"shooter": shooter.value, "result": result.outcome.value},
            )
            self._logger.info(
                "shot shooter=%s coord=(%d,%d) outcome=%s",
                shooter.value,
                x,
                y,
                result.outcome.value,
            )

            if self.phase is MatchPhase.GAME_OVER and self.winner is not None:
                span.set_attribute("winner", self.winner.value)
                self._finish_match()
            return result

    def _start_match_span(self) -> None:
        self._close_match_span()
        self._match_start_time = time.perf_counter()
        self._match_id_counter += 1
        self._match_span_cm = self._tracer.start_as_current_span("seabattle.engine.match")
        self._match_span = self._match_span_cm.__enter__()
        self._match_span.set_attribute("match.id", self._match_id_counter)
        self._match_span.set_attribute("match.mode", self.mode.value)

    def _finish_match(self) -> None:
        duration = (time.perf_counter() - self._match_start_time) if self._match_start_time else 0.0
        total_shots = sum(self._shots.values())
        winner = self.winner.value if self.winner else "none"

        record_game_metric("seabattle_match_completed_total", 1, {"winner": winner})
        record_duration("seabattle_match_duration_seconds", duration, {"winner": winner})

        with self._tracer.start_as_current_span("seabattle.engine.match_complete") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("winner", winner)
            span.set_attribute("shots", total_shots)
            span.set_attribute("duration_ms", duration * 1000)

        if self._match_span is not None:
            self._match_span.set_attribute("winner", winner)
            self._match_span.set_attribute("shots", total_shots)

        self._logger.info("Match finished. Winner=%s shots=%d duration_s=%.3f", winner, total_shots, duration)
        self._close_match_span()

    def _close_match_span(self) -> None:
        if self._match_span_cm is not None:
            self._match_span_cm.__exit__(None, None, None)
            self._match_span_cm = None
            self._match_span = None
