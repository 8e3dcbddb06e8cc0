"""The single match state machine: seating, turns, results and disconnects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .board import Board, Mark, PlaceResult
from .player import MessageSink, Player, assign_seat
from .protocol import (
    OutboundEvent,
    game_ended,
    game_started,
    notification,
    player_turn,
)

logger = logging.getLogger(__name__)

DRAW = "draw"

WAITING_MESSAGE = "Waiting for opponent to join"
STARTING_MESSAGE = "Opponent found, starting game"
OPPONENT_LEFT_MESSAGE = "Your opponent has disconnected"
SESSION_FULL_MESSAGE = "Game is full"


class SessionStatus(str, Enum):
    WAITING = "waiting"
    IN_PROGRESS = "started"
    ENDED = "ended"


class MoveResult(Enum):
    ACCEPTED = "accepted"
    NOT_SEATED = "not-seated"
    NOT_IN_PROGRESS = "not-in-progress"
    NOT_YOUR_TURN = "not-your-turn"
    OCCUPIED = "already-occupied"
    OUT_OF_BOUNDS = "out-of-bounds"


REJECTION_MESSAGES: Dict[MoveResult, str] = {
    MoveResult.NOT_SEATED: "You are not seated in this game",
    MoveResult.NOT_IN_PROGRESS: "The game is not in progress",
    MoveResult.NOT_YOUR_TURN: "It's not your turn",
    MoveResult.OCCUPIED: "Cell already taken",
    MoveResult.OUT_OF_BOUNDS: "Cell is outside the board",
}

_PLACE_RESULTS = {
    PlaceResult.SUCCESS: MoveResult.ACCEPTED,
    PlaceResult.OCCUPIED: MoveResult.OCCUPIED,
    PlaceResult.OUT_OF_BOUNDS: MoveResult.OUT_OF_BOUNDS,
}


class SessionFullError(RuntimeError):
    """Both seats are taken."""


@dataclass
class GameSession:
    """Two seats around one board.

    ``status`` is ``WAITING`` while a seat is empty, ``IN_PROGRESS`` while
    both seats are filled and nobody has won, and ``ENDED`` once ``winner``
    is set. Transitions are synchronous; every event they emit has been
    handed to the players' sinks by the time the call returns. Callers must
    not run two transitions concurrently (see ``SessionActor``).
    """

    board: Board = field(default_factory=Board)
    seats: List[Optional[Player]] = field(default_factory=lambda: [None, None])
    current: Optional[Player] = None
    status: SessionStatus = SessionStatus.WAITING
    winner: Optional[str] = None
    echo_rejections: bool = False

    # ---- queries ----

    @property
    def players(self) -> List[Player]:
        """Seated players, seat 1 first."""
        return [p for p in self.seats if p is not None]

    def is_seated(self, player: Optional[Player]) -> bool:
        return player is not None and any(p is player for p in self.seats)

    def opponent_of(self, player: Player) -> Optional[Player]:
        for p in self.seats:
            if p is not None and p is not player:
                return p
        return None

    def state(self) -> Dict[str, Any]:
        """Game state embedded in every outbound event."""
        return {
            "board": self.board.rows(),
            "status": self.status.value,
            "turn": self.current.mark if self.current else None,
            "winner": self.winner,
        }

    def snapshot(self) -> Dict[str, Any]:
        state = self.state()
        state["seats"] = [
            {"seat": seat, "mark": assign_seat(seat), "occupied": p is not None}
            for seat, p in enumerate(self.seats, start=1)
        ]
        return state

    # ---- transitions ----

    def join(self, sink: MessageSink) -> Player:
        """Seat a new connection, seat 1 first; starts the game on the second seat."""
        try:
            index = next(i for i, p in enumerate(self.seats) if p is None)
        except StopIteration:
            raise SessionFullError(SESSION_FULL_MESSAGE) from None

        player = Player.seated(index + 1, sink)
        self.seats[index] = player
        logger.info("Player %s joined seat %d", player.mark, player.seat)

        if all(p is not None for p in self.seats):
            self._start_round()
            player.send(notification(STARTING_MESSAGE, self.state()))
            self._broadcast_started()
        else:
            player.send(notification(WAITING_MESSAGE, self.state()))
        return player

    def apply_move(self, player: Player, row: int, col: int) -> MoveResult:
        result = self._precheck_move(player)
        if result is None:
            result = _PLACE_RESULTS[self.board.place_mark(row, col, player.mark)]

        if result is not MoveResult.ACCEPTED:
            logger.info(
                "Rejected move (%d, %d) from %s: %s",
                row,
                col,
                player.mark,
                result.value,
            )
            if self.echo_rejections and self.is_seated(player):
                player.send(notification(REJECTION_MESSAGES[result], self.state()))
            return result

        logger.info("Player %s made a move: row %d, col %d", player.mark, row, col)

        winner = self.board.evaluate_winner()
        if winner is not None:
            self._end_round(winner)
        elif self.board.is_full():
            self._end_round(DRAW)
        else:
            self.current = self.opponent_of(player)
            self._broadcast(player_turn(self.state()))
        return result

    def disconnect(self, player: Player) -> None:
        """Free ``player``'s seat and put the session back to waiting.

        The board and result are cleared too, so whoever takes the free
        seat starts a fresh game against the remaining player.
        """
        if not self.is_seated(player):
            logger.info("Ignoring disconnect from unseated player %s", player.mark)
            return

        self.seats[player.seat - 1] = None
        self.board.reset()
        self.winner = None
        self.current = None
        self.status = SessionStatus.WAITING
        logger.info("Player %s disconnected from seat %d", player.mark, player.seat)

        for remaining in self.players:
            remaining.send(notification(OPPONENT_LEFT_MESSAGE, self.state()))

    def play_again(self, player: Optional[Player] = None) -> bool:
        """Reset a finished game. Returns False when there is nothing to reset."""
        if player is not None and not self.is_seated(player):
            logger.info("Ignoring play again from unseated player %s", player.mark)
            return False
        if self.status is not SessionStatus.ENDED:
            logger.info("Ignoring play again while game is %s", self.status.value)
            return False

        self.board.reset()
        self.winner = None
        if all(p is not None for p in self.seats):
            self._start_round()
            self._broadcast_started()
        else:
            self.current = None
            self.status = SessionStatus.WAITING
        logger.info("Game reset, status %s", self.status.value)
        return True

    def resync(self, player: Player) -> None:
        if not self.is_seated(player):
            return
        if self.status is SessionStatus.WAITING:
            message = WAITING_MESSAGE
        elif self.status is SessionStatus.IN_PROGRESS:
            message = f"You are playing {player.mark}"
        else:
            message = "Game over"
        player.send(notification(message, self.state()))

    # ---- helpers ----

    def _precheck_move(self, player: Player) -> Optional[MoveResult]:
        if not self.is_seated(player):
            return MoveResult.NOT_SEATED
        if self.status is not SessionStatus.IN_PROGRESS:
            return MoveResult.NOT_IN_PROGRESS
        if player is not self.current:
            return MoveResult.NOT_YOUR_TURN
        return None

    def _start_round(self) -> None:
        self.current = self.seats[0]
        self.status = SessionStatus.IN_PROGRESS

    def _end_round(self, winner: Mark) -> None:
        self.status = SessionStatus.ENDED
        self.winner = winner
        self.current = None
        logger.info("Game ended, winner: %s", winner)
        self._broadcast(game_ended(self.state()))

    def _broadcast_started(self) -> None:
        state = self.state()
        for p in self.players:
            p.send(game_started(state, p.mark))

    def _broadcast(self, event: OutboundEvent) -> None:
        for p in self.players:
            p.send(event)
