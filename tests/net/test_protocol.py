"""Tests for the peer JSON protocol."""

import json

import pytest

from seabattle.engine.ship import Coordinate
from seabattle.engine.shots import ShotOutcome
from seabattle.net.protocol import (
    HelloMessage,
    PlayAgainMessage,
    ProtocolError,
    ReadyMessage,
    ShotMessage,
    ShotResultMessage,
    decode_message,
    encode_message,
    to_payload,
)


@pytest.mark.parametrize(
    "message, wire",
    [
        (HelloMessage(), {"type": "HELLO"}),
        (ReadyMessage(), {"type": "READY"}),
        (PlayAgainMessage(), {"type": "PLAY_AGAIN"}),
        (ShotMessage(x=3, y=7), {"type": "SHOT", "x": 3, "y": 7}),
    ],
)
def test_simple_messages_use_wire_shape(message, wire) -> None:
    assert json.loads(encode_message(message)) == wire
    assert decode_message(wire) == message


def test_sunk_result_carries_coordinates() -> None:
    coords = (Coordinate(3, 6), Coordinate(3, 7))
    message = ShotResultMessage.from_outcome(3, 7, ShotOutcome.SUNK, coords)

    payload = to_payload(message)
    assert payload == {
        "type": "SHOT_RESULT",
        "x": 3,
        "y": 7,
        "result": "sunk",
        "sunkShipCoords": [{"x": 3, "y": 6}, {"x": 3, "y": 7}],
    }

    decoded = decode_message(encode_message(message))
    assert isinstance(decoded, ShotResultMessage)
    assert decoded.outcome is ShotOutcome.SUNK
    assert decoded.sunk_coordinates() == list(coords)


def test_hit_and_miss_omit_coordinates() -> None:
    for outcome in (ShotOutcome.HIT, ShotOutcome.MISS):
        message = ShotResultMessage.from_outcome(1, 2, outcome)
        assert "sunkShipCoords" not in to_payload(message)
        assert message.sunk_coordinates() is None


def test_already_shot_is_never_encoded() -> None:
    with pytest.raises(ProtocolError):
        ShotResultMessage.from_outcome(0, 0, ShotOutcome.ALREADY_SHOT)


@pytest.mark.parametrize(
    "raw",
    [
        {"type": "SHOT_RESULT", "x": 1, "y": 1, "result": "sunk"},
        {"type": "SHOT_RESULT", "x": 1, "y": 1, "result": "hit", "sunkShipCoords": [{"x": 1, "y": 1}]},
        {"type": "SHOT_RESULT", "x": 1, "y": 1, "result": "already_shot"},
        {"type": "SHOT", "x": "a", "y": 1},
        {"type": "SHOT"},
        {"type": "LOBBY"},
        {"x": 1, "y": 1},
        '{"type": "READY"',
        "[]",
    ],
)
def test_invalid_payloads_raise_protocol_error(raw) -> None:
    with pytest.raises(ProtocolError):
        decode_message(raw)


def test_decode_accepts_bytes_and_ignores_unknown_fields() -> None:
    message = decode_message(b'{"type": "SHOT", "x": 0, "y": 9, "nonce": 5}')
    assert message == ShotMessage(x=0, y=9)
