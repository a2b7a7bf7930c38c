"""JSON wire protocol exchanged between two peers.

Every message is a JSON object tagged by ``type``::

    {"type": "HELLO"}
    {"type": "READY"}
    {"type": "SHOT", "x": 3, "y": 7}
    {"type": "SHOT_RESULT", "x": 3, "y": 7, "result": "sunk",
     "sunkShipCoords": [{"x": 3, "y": 6}, {"x": 3, "y": 7}]}
    {"type": "PLAY_AGAIN"}

The receiver of ``SHOT`` is authoritative and answers with ``SHOT_RESULT``;
``sunkShipCoords`` is present exactly when ``result`` is ``"sunk"``.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from seabattle.engine.ship import Coordinate
from seabattle.engine.shots import ShotOutcome


class ProtocolError(ValueError):
    """Raised for payloads that are not a valid protocol message."""


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class CoordPayload(_Message):
    x: int
    y: int

    @classmethod
    def from_coordinate(cls, coord: Coordinate) -> CoordPayload:
        return cls(x=coord.x, y=coord.y)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(self.x, self.y)


class HelloMessage(_Message):
    type: Literal["HELLO"] = "HELLO"


class ReadyMessage(_Message):
    type: Literal["READY"] = "READY"


class ShotMessage(_Message):
    type: Literal["SHOT"] = "SHOT"
    x: int
    y: int


class ShotResultMessage(_Message):
    type: Literal["SHOT_RESULT"] = "SHOT_RESULT"
    x: int
    y: int
    result: Literal["hit", "miss", "sunk"]
    sunk_ship_coords: list[CoordPayload] | None = Field(default=None, alias="sunkShipCoords")

    @model_validator(mode="after")
    def _coords_only_when_sunk(self) -> ShotResultMessage:
        if self.result == "sunk" and not self.sunk_ship_coords:
            raise ValueError("sunkShipCoords is required when result is 'sunk'")
        if self.result != "sunk" and self.sunk_ship_coords is not None:
            raise ValueError("sunkShipCoords is only allowed when result is 'sunk'")
        return self

    @classmethod
    def from_outcome(
        cls,
        x: int,
        y: int,
        outcome: ShotOutcome,
        sunk_coords: tuple[Coordinate, ...] | list[Coordinate] | None = None,
    ) -> ShotResultMessage:
        if outcome is ShotOutcome.ALREADY_SHOT:
            raise ProtocolError("An already-shot outcome is never sent to the peer.")
        coords = None
        if outcome is ShotOutcome.SUNK:
            coords = [CoordPayload.from_coordinate(coord) for coord in sunk_coords or ()]
        return cls(x=x, y=y, result=outcome.value, sunk_ship_coords=coords)

    @property
    def outcome(self) -> ShotOutcome:
        return ShotOutcome(self.result)

    def sunk_coordinates(self) -> list[Coordinate] | None:
        if self.sunk_ship_coords is None:
            return None
        return [payload.to_coordinate() for payload in self.sunk_ship_coords]


class PlayAgainMessage(_Message):
    type: Literal["PLAY_AGAIN"] = "PLAY_AGAIN"


Message = Annotated[
    Union[HelloMessage, ReadyMessage, ShotMessage, ShotResultMessage, PlayAgainMessage],
    Field(discriminator="type"),
]

_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)


def to_payload(message: _Message) -> dict[str, Any]:
    """Return the JSON-ready dict for ``message`` with wire field names."""
    return message.model_dump(by_alias=True, exclude_none=True)


def encode_message(message: _Message) -> str:
    return json.dumps(to_payload(message), separators=(",", ":"))


def decode_message(raw: str | bytes | dict[str, Any]) -> Message:
    """Parse a wire payload into one of the message models."""
    try:
        if isinstance(raw, dict):
            return _MESSAGE_ADAPTER.validate_python(raw)
        return _MESSAGE_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise ProtocolError(f"Invalid message: {exc.error_count()} error(s)") from exc
