"""Command-line driver for playing Sea Battle against the scripted opponent or a peer."""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import time
from typing import Callable, Sequence

from seabattle.config import GameConfig
from seabattle.engine.board import Board
from seabattle.engine.game import Match, MatchMode, MatchPhase, MatchState, Side
from seabattle.engine.instrumented_game import InstrumentedMatch
from seabattle.engine.ship import BOARD_SIZE, CellStatus, Coordinate
from seabattle.engine.shots import ShotOutcome
from seabattle.net.session import MatchSession
from seabattle.net.transport import TcpPeerTransport
from seabattle.telemetry import (
    TelemetryConfig,
    configure_console,
    init_telemetry,
    shutdown_metrics,
    shutdown_tracing,
)

ROW_LABELS = "ABCDEFGHIJ"

logger = logging.getLogger(__name__)

_SYMBOLS = {
    CellStatus.EMPTY: ".",
    CellStatus.SHIP: "S",
    CellStatus.HIT: "X",
    CellStatus.MISS: "o",
    CellStatus.SUNK: "#",
}

_OUTCOME_TEXT = {
    ShotOutcome.MISS: "miss",
    ShotOutcome.HIT: "hit! Fire again",
    ShotOutcome.SUNK: "ship sunk! Fire again",
}


def coordinate_from_input(text: str) -> Coordinate:
    """Parse ``A5`` (row letter, column number) or ``"3 7"`` (row, column from zero)."""
    cleaned = text.strip().upper()
    if not cleaned:
        raise ValueError("Empty coordinate.")
    if cleaned[0].isalpha():
        if cleaned[0] not in ROW_LABELS:
            raise ValueError("Row must be between A and J.")
        row = ROW_LABELS.index(cleaned[0])
        try:
            col = int(cleaned[1:]) - 1
        except ValueError as exc:
            raise ValueError("Column must be a number between 1 and 10.") from exc
    else:
        parts = cleaned.split()
        if len(parts) != 2:
            raise ValueError("Use formats like A5 or '3 7'.")
        try:
            row, col = map(int, parts)
        except ValueError as exc:
            raise ValueError("Use formats like A5 or '3 7'.") from exc
    if row not in range(BOARD_SIZE) or col not in range(BOARD_SIZE):
        raise ValueError("Coordinates must be within the 10x10 board.")
    return Coordinate(col, row)


def label(coord: Coordinate) -> str:
    return f"{ROW_LABELS[coord.y]}{coord.x + 1}"


def format_board(board: Board, show_ships: bool, preview: Sequence[Coordinate] = ()) -> str:
    highlighted = set(preview)
    header = "   " + " ".join(f"{col + 1:>2}" for col in range(BOARD_SIZE))
    rows = [header]
    for y in range(BOARD_SIZE):
        symbols = []
        for x in range(BOARD_SIZE):
            coord = Coordinate(x, y)
            status = board.cell(coord)
            if coord in highlighted:
                symbol = "+"
            elif status is CellStatus.SHIP and not show_ships:
                symbol = _SYMBOLS[CellStatus.EMPTY]
            else:
                symbol = _SYMBOLS[status]
            symbols.append(f"{symbol:>2}")
        rows.append(f"{ROW_LABELS[y]} |" + " ".join(symbols))
    return "\n".join(rows)


def format_state(state: MatchState) -> str:
    return "\n".join(
        [
            "Your fleet:",
            format_board(state.boards[Side.PLAYER], show_ships=True),
            "",
            "Enemy waters:",
            format_board(state.boards[Side.OPPONENT], show_ships=False),
        ]
    )


def _prompt_yes_no(question: str, ask: Callable[[str], str] = input) -> bool:
    while True:
        raw = ask(f"{question} [Y/n]: ").strip().lower()
        if raw in {"", "y", "yes"}:
            return True
        if raw in {"n", "no"}:
            return False
        print("Please answer with 'y' or 'n'.")


def _parse_placement(raw: str) -> tuple[Coordinate, bool]:
    """``A1 H`` or ``A1 V``; orientation defaults to horizontal."""
    parts = raw.split()
    if not parts:
        raise ValueError("Empty placement.")
    vertical = False
    if len(parts) > 1 and parts[-1].upper() in {"H", "V"}:
        vertical = parts[-1].upper() == "V"
        parts = parts[:-1]
    return coordinate_from_input(" ".join(parts)), vertical


def _placement_prompt(match: Match) -> str:
    print("\nCurrent layout:")
    print(format_board(match.boards[Side.PLAYER], show_ships=True))
    return f"Place a {match.next_ship_size()}-deck ship ({match.ships_remaining} left), e.g. A1 H or C4 V: "


def _place_from_input(match: Match, raw: str) -> None:
    try:
        anchor, vertical = _parse_placement(raw)
    except ValueError as exc:
        print(f"Invalid placement: {exc}")
        return
    if not match.place_next_ship(anchor.x, anchor.y, vertical):
        cells, _ = match.preview(anchor.x, anchor.y, vertical)
        print(format_board(match.boards[Side.PLAYER], show_ships=True, preview=cells))
        print("Ship cannot go there (off the board, overlapping or touching another ship).")


def manual_placement(match: Match, ask: Callable[[str], str] = input) -> None:
    """Place the fleet one ship at a time, largest first."""
    while not match.fleet_complete:
        _place_from_input(match, ask(_placement_prompt(match)))


def setup_fleet(match: Match, ask: Callable[[str], str] = input) -> None:
    if _prompt_yes_no("Would you like to place your ships manually?", ask):
        manual_placement(match, ask)
    else:
        match.randomize_fleet()
        print("\nYour ships have been positioned automatically.")


def _prompt_for_target(match: Match, ask: Callable[[str], str] = input) -> Coordinate:
    while True:
        raw = ask("Enter target coordinate (e.g., A5) or 'q' to quit: ").strip()
        if raw.lower() == "q":
            raise SystemExit("Goodbye!")
        try:
            coord = coordinate_from_input(raw)
        except ValueError as exc:
            print(f"Invalid input: {exc}")
            continue
        if not match.can_fire(coord.x, coord.y):
            print("That cell has already been targeted. Choose another.")
            continue
        return coord


def play_single(config: GameConfig, ask: Callable[[str], str] = input) -> Match:
    """Play one or more matches against the scripted opponent."""
    rng = random.Random(config.seed)
    match = InstrumentedMatch(
        MatchMode.SINGLE,
        rng=rng,
        max_attempts_per_ship=config.max_placement_attempts,
        max_restarts=config.max_board_restarts,
    )
    while True:
        setup_fleet(match, ask)
        match.mark_ready()
        print("\nBattle begins! You fire first.")

        while match.phase is MatchPhase.PLAYING:
            if match.turn is Side.PLAYER:
                print()
                print(format_state(match.snapshot()))
                coord = _prompt_for_target(match, ask)
                result = match.fire(coord.x, coord.y)
                print(f"You fired at {label(coord)}: {_OUTCOME_TEXT[result.outcome]}")
            else:
                time.sleep(config.ai_delay)
                coord, result = match.opponent_turn(rng)
                print(f"Enemy fired at {label(coord)}: {result.outcome.value}")

        print()
        print(format_state(match.snapshot()))
        if match.winner is Side.PLAYER:
            print("\nVictory! The enemy fleet is destroyed.")
        else:
            print("\nDefeat. Your fleet went down.")
        if not _prompt_yes_no("Play again?", ask):
            return match
        match.reset()


class _PeerConsole:
    """Bridges the session's notifications to a blocking terminal."""

    def __init__(self) -> None:
        self.changed = asyncio.Event()
        self.state: MatchState | None = None
        self.runner: asyncio.Task[MatchState] | None = None

    def __call__(self, state: MatchState, note: str) -> None:
        self.state = state
        print(f"\n[{note.replace('_', ' ')}]")
        self.changed.set()

    async def wait(self) -> None:
        if self.runner is not None and self.runner.done():
            return
        await self.changed.wait()
        self.changed.clear()


async def _ask(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def play_peer(config: GameConfig, join: str | None) -> MatchState:
    """Host a match (``join`` is None) or join ``host:port``."""
    transport = TcpPeerTransport()
    match = InstrumentedMatch(
        MatchMode.PEER,
        is_host=join is None,
        rng=random.Random(config.seed),
        max_attempts_per_ship=config.max_placement_attempts,
        max_restarts=config.max_board_restarts,
    )
    console = _PeerConsole()
    session = MatchSession(match, transport, config=config, listener=console)

    if join is None:
        port = await transport.listen(config.host, config.port)
        print(f"Waiting for an opponent on {config.host}:{port} ...")
    runner = asyncio.create_task(session.run(join))
    console.runner = runner
    runner.add_done_callback(lambda _: console.changed.set())

    while not session.connected and not runner.done():
        await console.wait()

    while not runner.done():
        if match.phase is MatchPhase.PLACEMENT and not match.ready[Side.PLAYER]:
            if (await _ask("Place ships manually? [y/N]: ")).strip().lower() in {"y", "yes"}:
                while not match.fleet_complete and match.phase is MatchPhase.PLACEMENT:
                    _place_from_input(match, await _ask(_placement_prompt(match)))
            else:
                match.randomize_fleet()
            print(format_board(match.boards[Side.PLAYER], show_ships=True))
            session.ready()
            await console.wait()
        elif match.phase is MatchPhase.PLAYING and match.turn is Side.PLAYER and session.pending_shot is None:
            print(format_state(match.snapshot()))
            raw = await _ask("Enter target coordinate (e.g., A5): ")
            try:
                coord = coordinate_from_input(raw)
            except ValueError as exc:
                print(f"Invalid input: {exc}")
                continue
            session.fire(coord.x, coord.y)
            await console.wait()
        elif match.phase is MatchPhase.GAME_OVER:
            if match.aborted:
                print("The match was aborted.")
            else:
                print("Victory!" if match.winner is Side.PLAYER else "Defeat.")
            if runner.done():
                break
            if (await _ask("Play again? [y/N]: ")).strip().lower() in {"y", "yes"}:
                session.play_again()
            else:
                session.stop()
            await console.wait()
        else:
            await console.wait()

    return await runner


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Play Sea Battle (Russian-rules Battleship) via the CLI.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--host", action="store_true", help="Wait for a peer to join over TCP.")
    group.add_argument("--join", metavar="HOST:PORT", help="Join a peer hosting a match.")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on when hosting.")
    parser.add_argument("--seed", type=int, default=None, help="Optional RNG seed for reproducibility.")
    parser.add_argument("--ai-delay", type=float, default=None, help="Seconds the scripted opponent waits.")
    parser.add_argument("--log-level", default=None, help="Console log level (default WARNING).")
    args = parser.parse_args(argv)

    telemetry = init_telemetry(TelemetryConfig.from_env())
    configure_console((args.log_level or "WARNING").upper())
    config = GameConfig.from_env(seed=args.seed, ai_delay=args.ai_delay, port=args.port)
    logger.debug("cli_config", extra={"config": config.model_dump(), "tracing": telemetry.enable_tracing})

    print("Welcome to Sea Battle!\n")
    try:
        if args.host or args.join:
            final = asyncio.run(play_peer(config, args.join))
            if final.aborted:
                print("Connection to the opponent was lost.")
        else:
            play_single(config)
    except (KeyboardInterrupt, EOFError):
        print("\nGoodbye!")
    finally:
        shutdown_tracing()
        shutdown_metrics()


if __name__ == "__main__":
    main()
