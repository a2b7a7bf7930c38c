"""Event-driven session that owns a :class:`Match` and, in peer mode, its transport.

Transport callbacks and local commands only enqueue events. :meth:`MatchSession.run`
is the single control loop that drains the queue and mutates the match, so
every board update happens on the event loop, one event at a time.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from seabattle.config import GameConfig
from seabattle.engine.game import Match, MatchMode, MatchPhase, MatchState, Side
from seabattle.engine.ship import Coordinate
from seabattle.engine.shots import ShotOutcome
from seabattle.telemetry import get_tracer

from .protocol import (
    HelloMessage,
    PlayAgainMessage,
    ProtocolError,
    ReadyMessage,
    ShotMessage,
    ShotResultMessage,
    decode_message,
    to_payload,
)
from .transport import PeerTransport

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.net.session")


class EventKind(Enum):
    """Everything the control loop reacts to."""

    OPEN = "open"
    DATA = "data"
    CLOSE = "close"
    ERROR = "error"
    CONNECT_TIMEOUT = "connect_timeout"
    FIRE = "fire"
    READY = "ready"
    PLAY_AGAIN = "play_again"
    OPPONENT_MOVE = "opponent_move"
    STOP = "stop"


@dataclass(frozen=True)
class SessionEvent:
    kind: EventKind
    payload: Any = None


Listener = Callable[[MatchState, str], None]


class MatchSession:
    """Drives one match against the scripted opponent or a remote peer."""

    def __init__(
        self,
        match: Match,
        transport: PeerTransport | None = None,
        *,
        config: GameConfig | None = None,
        rng: random.Random | None = None,
        listener: Listener | None = None,
    ) -> None:
        if match.mode is MatchMode.PEER and transport is None:
            raise ValueError("Peer mode needs a transport.")
        self.match = match
        self.transport = transport
        self.config = config or GameConfig()
        self._rng = rng or random.Random(self.config.seed)
        self._listener = listener
        self._queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._running = False
        self.connected = transport is None
        self._pending_shot: Coordinate | None = None
        self._opponent_timer: asyncio.TimerHandle | None = None
        self._connect_timer: asyncio.TimerHandle | None = None
        self._generation = 0

        if transport is not None:
            transport.on_open = lambda: self.post(SessionEvent(EventKind.OPEN))
            transport.on_data = lambda raw: self.post(SessionEvent(EventKind.DATA, raw))
            transport.on_close = lambda: self.post(SessionEvent(EventKind.CLOSE))
            transport.on_error = lambda exc: self.post(SessionEvent(EventKind.ERROR, exc))

    # -- commands (safe to call from any callback on the loop) -------------

    def post(self, event: SessionEvent) -> None:
        self._queue.put_nowait(event)

    def fire(self, x: int, y: int) -> None:
        self.post(SessionEvent(EventKind.FIRE, Coordinate(x, y)))

    def ready(self) -> None:
        self.post(SessionEvent(EventKind.READY))

    def play_again(self) -> None:
        self.post(SessionEvent(EventKind.PLAY_AGAIN))

    def stop(self) -> None:
        self.post(SessionEvent(EventKind.STOP))

    @property
    def pending_shot(self) -> Coordinate | None:
        return self._pending_shot

    # -- control loop -----------------------------------------------------

    async def run(self, remote_id: str | None = None) -> MatchState:
        """Process events until the session is stopped or the connection ends.

        ``remote_id`` is passed to ``transport.connect``; leave it out on the
        side that waits for the peer to call in.
        """
        loop = asyncio.get_running_loop()
        self._running = True
        if self.transport is not None and not self.connected:
            self._connect_timer = loop.call_later(
                self.config.connect_timeout, self.post, SessionEvent(EventKind.CONNECT_TIMEOUT)
            )
            if remote_id is not None:
                self.transport.connect(remote_id)

        while self._running:
            event = await self._queue.get()
            self._handle(event)
            self._schedule_opponent()

        self._cancel_timers()
        return self.match.snapshot()

    def _handle(self, event: SessionEvent) -> None:
        with tracer.start_as_current_span(f"session.{event.kind.value}"):
            handler = getattr(self, f"_on_{event.kind.value}")
            handler(event.payload)

    def _notify(self, note: str) -> None:
        logger.debug("session_notice", extra={"note": note, "phase": self.match.phase.value})
        if self._listener is not None:
            self._listener(self.match.snapshot(), note)

    def _send(self, message: Any) -> None:
        if self.transport is not None:
            self.transport.send(to_payload(message))

    # -- transport events --------------------------------------------------

    def _on_open(self, _: Any) -> None:
        self.connected = True
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None
        self._send(HelloMessage())
        logger.info("peer_connected")
        self._notify("connected")

    def _on_close(self, _: Any) -> None:
        logger.warning("peer_disconnected")
        self.match.abort("peer_closed")
        self._running = False
        self._notify("disconnected")

    def _on_error(self, exc: BaseException) -> None:
        logger.error("transport_error", extra={"error": str(exc)})
        self.match.abort("transport_error")
        self._running = False
        if self.transport is not None:
            self.transport.close()
        self._notify("transport_error")

    def _on_connect_timeout(self, _: Any) -> None:
        self._connect_timer = None
        if self.connected:
            return
        logger.error("peer_connect_timeout", extra={"timeout": self.config.connect_timeout})
        self.match.abort("connect_timeout")
        self._running = False
        if self.transport is not None:
            self.transport.close()
        self._notify("connect_timeout")

    def _on_data(self, raw: Any) -> None:
        try:
            message = decode_message(raw)
        except ProtocolError as exc:
            logger.warning("message_dropped", extra={"error": str(exc)})
            return

        if isinstance(message, HelloMessage):
            logger.info("peer_hello")
        elif isinstance(message, ReadyMessage):
            started = self.match.opponent_ready()
            self._notify("match_started" if started else "opponent_ready")
        elif isinstance(message, ShotMessage):
            self._on_incoming_shot(message)
        elif isinstance(message, ShotResultMessage):
            self._on_shot_result(message)
        elif isinstance(message, PlayAgainMessage):
            self._reset()
            self._notify("play_again")

    def _on_incoming_shot(self, message: ShotMessage) -> None:
        if self.match.phase is not MatchPhase.PLAYING or self.match.turn is not Side.OPPONENT:
            logger.warning("shot_out_of_turn", extra={"x": message.x, "y": message.y})
            return
        result = self.match.receive_shot(message.x, message.y)
        if result.outcome is ShotOutcome.ALREADY_SHOT:
            logger.warning("shot_duplicate_dropped", extra={"x": message.x, "y": message.y})
            return
        self._send(
            ShotResultMessage.from_outcome(message.x, message.y, result.outcome, result.sunk_ship_coords)
        )
        self._notify(f"opponent_{result.outcome.value}")

    def _on_shot_result(self, message: ShotResultMessage) -> None:
        target = Coordinate(message.x, message.y)
        if self._pending_shot != target:
            logger.warning("unexpected_shot_result", extra={"x": message.x, "y": message.y})
            return
        self._pending_shot = None
        if self.match.phase is not MatchPhase.PLAYING or self.match.turn is not Side.PLAYER:
            logger.warning("shot_result_out_of_turn", extra={"x": message.x, "y": message.y})
            return
        try:
            self.match.record_shot_result(
                message.x, message.y, message.outcome, message.sunk_coordinates()
            )
        except ValueError as exc:
            logger.warning("shot_result_rejected", extra={"error": str(exc)})
            return
        self._notify(f"player_{message.result}")

    # -- local commands ----------------------------------------------------

    def _on_fire(self, target: Coordinate) -> None:
        if not self.match.can_fire(target.x, target.y):
            logger.debug("fire_ignored", extra={"x": target.x, "y": target.y})
            return
        if self.match.mode is MatchMode.SINGLE:
            result = self.match.fire(target.x, target.y)
            self._notify(f"player_{result.outcome.value}")
            return
        if self._pending_shot is not None:
            logger.debug("fire_ignored_awaiting_result", extra={"x": target.x, "y": target.y})
            return
        self._pending_shot = target
        self._send(ShotMessage(x=target.x, y=target.y))
        self._notify("shot_sent")

    def _on_ready(self, _: Any) -> None:
        if self.match.ready[Side.PLAYER]:
            return
        started = self.match.mark_ready()
        if not self.match.ready[Side.PLAYER]:
            self._notify("fleet_incomplete")
            return
        if self.match.mode is MatchMode.PEER:
            self._send(ReadyMessage())
        self._notify("match_started" if started else "waiting_for_opponent")

    def _on_play_again(self, _: Any) -> None:
        if self.match.mode is MatchMode.PEER:
            if not self.connected:
                return
            self._send(PlayAgainMessage())
        self._reset()
        self._notify("play_again")

    def _on_stop(self, _: Any) -> None:
        self._running = False
        if self.transport is not None:
            self.transport.close()

    # -- scripted opponent -------------------------------------------------

    def _on_opponent_move(self, generation: int) -> None:
        self._opponent_timer = None
        if generation != self._generation or not self._opponent_due():
            return
        move, result = self.match.opponent_turn(self._rng)
        logger.info("opponent_moved", extra={"x": move.x, "y": move.y, "outcome": result.outcome.value})
        self._notify(f"opponent_{result.outcome.value}")

    def _opponent_due(self) -> bool:
        return (
            self.match.mode is MatchMode.SINGLE
            and self.match.phase is MatchPhase.PLAYING
            and self.match.turn is Side.OPPONENT
        )

    def _schedule_opponent(self) -> None:
        if not self._running or self._opponent_timer is not None or not self._opponent_due():
            return
        loop = asyncio.get_running_loop()
        event = SessionEvent(EventKind.OPPONENT_MOVE, self._generation)
        self._opponent_timer = loop.call_later(self.config.ai_delay, self.post, event)

    def _reset(self) -> None:
        self._cancel_opponent()
        self._pending_shot = None
        self.match.reset()

    def _cancel_opponent(self) -> None:
        self._generation += 1
        if self._opponent_timer is not None:
            self._opponent_timer.cancel()
            self._opponent_timer = None

    def _cancel_timers(self) -> None:
        self._cancel_opponent()
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None
