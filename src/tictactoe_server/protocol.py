"""Wire format: inbound command envelopes and outbound game events."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .board import SIZE

NOTIFICATION = "notification"
GAME_STARTED = "gameStarted"
PLAYER_TURN = "playerTurn"
GAME_ENDED = "gameEnded"


class ProtocolError(ValueError):
    """Inbound message that cannot be turned into a command."""


class UnknownCommandError(ProtocolError):
    def __init__(self, command_type: str) -> None:
        super().__init__(f"Unknown message type: {command_type!r}")
        self.command_type = command_type


class Envelope(BaseModel):
    """Outer ``{"type": ..., "data": ...}`` shape shared by every command."""

    type: str
    data: Optional[Dict[str, Any]] = None


class JoinRequest(BaseModel):
    """Ask for the current game state; seating happens on connect."""


class MoveRequest(BaseModel):
    """Place the sender's mark on a cell."""

    # Coordinates must be JSON integers: no "1", true or 1.0.
    model_config = ConfigDict(frozen=True, strict=True, extra="forbid")

    row: int = Field(ge=0, le=SIZE - 1)
    col: int = Field(ge=0, le=SIZE - 1)


class PlayAgainRequest(BaseModel):
    """Start a new round once the current one has ended."""


InboundCommand = Union[JoinRequest, MoveRequest, PlayAgainRequest]

COMMAND_MODELS: Dict[str, Type[BaseModel]] = {
    "join": JoinRequest,
    "move": MoveRequest,
    "playAgain": PlayAgainRequest,
}


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ())) or "message"
        parts.append(f"{loc}: {error.get('msg')}")
    return "; ".join(parts)


def decode_command(raw: Union[str, bytes]) -> InboundCommand:
    """Parse one inbound frame into a typed command.

    Raises ``UnknownCommandError`` for an unrecognised ``type`` and
    ``ProtocolError`` for anything else that does not fit the envelope or
    the command's payload.
    """
    try:
        envelope = Envelope.model_validate_json(raw)
    except ValidationError as exc:
        raise ProtocolError(f"Malformed envelope: {_describe(exc)}") from exc

    model = COMMAND_MODELS.get(envelope.type)
    if model is None:
        raise UnknownCommandError(envelope.type)

    try:
        return model.model_validate(envelope.data or {})
    except ValidationError as exc:
        raise ProtocolError(
            f"Invalid {envelope.type!r} payload: {_describe(exc)}"
        ) from exc


@dataclass(frozen=True)
class OutboundEvent:
    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_envelope(self) -> Dict[str, Any]:
        return {"type": self.type, "data": self.data}


def encode_event(event: OutboundEvent) -> str:
    return json.dumps(event.to_envelope(), separators=(",", ":"))


# Every payload embeds the game state (board, status, turn, winner) so a
# client that missed an update can resync from the next one it receives.


def notification(message: str, state: Mapping[str, Any]) -> OutboundEvent:
    return OutboundEvent(NOTIFICATION, {**state, "message": message})


def game_started(state: Mapping[str, Any], mark: str) -> OutboundEvent:
    return OutboundEvent(GAME_STARTED, {**state, "mark": mark})


def player_turn(state: Mapping[str, Any]) -> OutboundEvent:
    return OutboundEvent(PLAYER_TURN, dict(state))


def game_ended(state: Mapping[str, Any]) -> OutboundEvent:
    return OutboundEvent(GAME_ENDED, dict(state))
