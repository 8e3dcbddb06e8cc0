"""Seated players and the outbound sinks they write to."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from .board import Mark, O, X
from .protocol import OutboundEvent

logger = logging.getLogger(__name__)

SEAT_MARKS = {1: X, 2: O}


class SinkClosedError(RuntimeError):
    """Raised by a sink that can no longer deliver events."""


class MessageSink(Protocol):
    def send(self, event: OutboundEvent) -> None: ...


def assign_seat(seat: int) -> Mark:
    """Return the mark owned by ``seat``: seat 1 plays X, seat 2 plays O."""
    try:
        return SEAT_MARKS[seat]
    except KeyError as exc:
        raise ValueError(f"Unknown seat {seat}") from exc


@dataclass(eq=False)
class Player:
    """A connection occupying one of the two seats.

    Players compare by identity: a reconnecting client is a new Player even
    when it lands in the same seat.
    """

    seat: int
    mark: Mark
    sink: MessageSink = field(repr=False)

    @classmethod
    def seated(cls, seat: int, sink: MessageSink) -> "Player":
        return cls(seat=seat, mark=assign_seat(seat), sink=sink)

    def send(self, event: OutboundEvent) -> bool:
        """Deliver ``event`` to this player; failures are logged, not raised."""
        try:
            self.sink.send(event)
        except (RuntimeError, OSError) as exc:
            logger.warning(
                "Error sending %s to player %s (seat %d): %s",
                event.type,
                self.mark,
                self.seat,
                exc,
            )
            return False
        return True
