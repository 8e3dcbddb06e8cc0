"""Single-writer command loop in front of the game session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from .player import MessageSink, Player
from .session import GameSession

logger = logging.getLogger(__name__)


@dataclass
class Joined:
    sink: MessageSink
    reply: asyncio.Future = field(repr=False)


@dataclass
class Move:
    player: Player
    row: int
    col: int


@dataclass
class PlayAgain:
    player: Player


@dataclass
class Resync:
    player: Player


@dataclass
class Disconnected:
    player: Player


Command = Union[Joined, Move, PlayAgain, Resync, Disconnected]


class SessionActor:
    """Owns a ``GameSession`` and applies commands to it one at a time.

    Every connection funnels its commands, disconnects included, through
    ``post``. The run loop handles them in arrival order, so session
    transitions never interleave and their broadcasts are queued before the
    next command is looked at.
    """

    def __init__(self, session: GameSession) -> None:
        self.session = session
        self._queue: "asyncio.Queue[Command]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run(), name="session-actor")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def post(self, command: Command) -> None:
        self._queue.put_nowait(command)

    async def join(self, sink: MessageSink) -> Player:
        """Queue a join and wait for the seat; raises ``SessionFullError``."""
        reply: asyncio.Future = asyncio.get_running_loop().create_future()
        self.post(Joined(sink=sink, reply=reply))
        try:
            return await reply
        except asyncio.CancelledError:
            # Seated, but the caller is gone before it could see the player.
            if reply.done() and not reply.cancelled() and reply.exception() is None:
                self.post(Disconnected(reply.result()))
            raise

    async def run(self) -> None:
        while True:
            command = await self._queue.get()
            try:
                self.handle(command)
            except Exception:
                logger.exception("Unhandled error processing %r", command)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every command posted so far has been handled."""
        await self._queue.join()

    def handle(self, command: Command) -> None:
        session = self.session
        if isinstance(command, Joined):
            if command.reply.done():
                # The connection went away while waiting in the queue.
                return
            try:
                player = session.join(command.sink)
            except Exception as exc:
                command.reply.set_exception(exc)
            else:
                command.reply.set_result(player)
        elif isinstance(command, Move):
            session.apply_move(command.player, command.row, command.col)
        elif isinstance(command, PlayAgain):
            session.play_again(command.player)
        elif isinstance(command, Resync):
            session.resync(command.player)
        elif isinstance(command, Disconnected):
            session.disconnect(command.player)
        else:
            raise TypeError(f"Unknown command {command!r}")
