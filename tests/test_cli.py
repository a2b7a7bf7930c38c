"""Tests for the terminal front end."""

import pytest

from seabattle import cli
from seabattle.config import GameConfig
from seabattle.engine.board import Board
from seabattle.engine.game import Match, MatchPhase, Side
from seabattle.engine.ship import Coordinate


@pytest.mark.parametrize(
    "raw, expected",
    [("A5", Coordinate(4, 0)), ("j10", Coordinate(9, 9)), (" c1 ", Coordinate(0, 2)), ("3 7", Coordinate(7, 3))],
)
def test_coordinate_from_input(raw: str, expected: Coordinate) -> None:
    assert cli.coordinate_from_input(raw) == expected


@pytest.mark.parametrize("raw", ["", "K1", "A0", "A11", "Ax", "1", "a b", "10 0"])
def test_coordinate_from_input_rejects_garbage(raw: str) -> None:
    with pytest.raises(ValueError):
        cli.coordinate_from_input(raw)


def test_label_is_inverse_of_parsing() -> None:
    assert cli.label(Coordinate(4, 0)) == "A5"
    assert cli.coordinate_from_input(cli.label(Coordinate(9, 6))) == Coordinate(9, 6)


def test_format_board_hides_ships_unless_asked() -> None:
    board = Board.empty().with_ship(0, 0, 2, vertical=False)

    own = cli.format_board(board, show_ships=True).splitlines()
    enemy = cli.format_board(board, show_ships=False).splitlines()
    preview = cli.format_board(board, show_ships=True, preview=[Coordinate(5, 1)]).splitlines()

    assert len(own) == 11
    assert own[1].split("|")[1].split()[:3] == ["S", "S", "."]
    assert enemy[1].split("|")[1].split()[:3] == [".", ".", "."]
    assert preview[2].split("|")[1].split()[5] == "+"


def test_manual_placement_reprompts_on_bad_input(capsys: pytest.CaptureFixture[str]) -> None:
    answers = iter(["A1 H", "zz", "B1 H", "C1", "C5", "E1", "E4", "E7", "G1", "G3", "G5", "G7 V"])
    match = Match()

    cli.manual_placement(match, lambda prompt: next(answers))

    assert match.fleet_complete
    assert match.boards[Side.PLAYER].ship_sizes() == [4, 3, 3, 2, 2, 2, 1, 1, 1, 1]
    out = capsys.readouterr().out
    assert "Invalid placement" in out
    assert "Ship cannot go there" in out


def test_play_single_runs_to_the_end() -> None:
    targets = iter(f"{row}{col}" for row in cli.ROW_LABELS for col in range(1, 11))

    def ask(prompt: str) -> str:
        if "manually" in prompt or "Play again" in prompt:
            return "n"
        return next(targets)

    match = cli.play_single(GameConfig(ai_delay=0, seed=5), ask=ask)
    assert match.phase is MatchPhase.GAME_OVER
    assert match.winner in {Side.PLAYER, Side.OPPONENT}


def test_play_single_quits_on_q() -> None:
    answers = iter(["n", "q"])
    with pytest.raises(SystemExit):
        cli.play_single(GameConfig(ai_delay=0, seed=1), ask=lambda prompt: next(answers))


def test_main_builds_config_from_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[GameConfig] = []
    monkeypatch.setattr(cli, "init_telemetry", lambda config: config)
    monkeypatch.setattr(cli, "play_single", lambda config: seen.append(config))
    monkeypatch.delenv("SEABATTLE_SEED", raising=False)

    cli.main(["--seed", "11", "--ai-delay", "0.1"])

    assert len(seen) == 1
    assert seen[0].seed == 11
    assert seen[0].ai_delay == 0.1
