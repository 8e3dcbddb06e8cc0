"""FastAPI application serving the match over a WebSocket."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Union

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect

from .actor import Disconnected, Move, PlayAgain, Resync, SessionActor
from .config import Settings
from .player import Player, SinkClosedError
from .protocol import (
    MoveRequest,
    OutboundEvent,
    PlayAgainRequest,
    ProtocolError,
    decode_command,
    encode_event,
    notification,
)
from .session import GameSession, SessionFullError

logger = logging.getLogger(__name__)

# "Try again later": both seats are taken.
CLOSE_SESSION_FULL = 1013

router = APIRouter()


class ConnectionOutbox:
    """Per-connection event queue drained to the socket by ``pump``.

    ``send`` never blocks, so a slow client only holds up its own outbox.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self._queue: "asyncio.Queue[Optional[OutboundEvent]]" = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: OutboundEvent) -> None:
        if self._closed:
            raise SinkClosedError("connection closed")
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Stop accepting events; ``pump`` returns once the backlog is written."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def pump(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            try:
                await self.websocket.send_text(encode_event(event))
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.warning("Error writing %s to client: %s", event.type, exc)
                self._closed = True
                return


async def refuse(outbox: ConnectionOutbox, writer: asyncio.Task) -> None:
    """Flush what is queued for a refused connection, then close it."""
    outbox.close()
    await writer
    try:
        await outbox.websocket.close(code=CLOSE_SESSION_FULL)
    except RuntimeError as exc:
        logger.info("Refused client already gone: %s", exc)


@router.websocket("/ws")
async def play_game(websocket: WebSocket) -> None:
    actor: SessionActor = websocket.app.state.actor
    settings: Settings = websocket.app.state.settings

    await websocket.accept()
    outbox = ConnectionOutbox(websocket)
    writer = asyncio.create_task(outbox.pump())

    try:
        player = await actor.join(outbox)
    except SessionFullError as exc:
        logger.info("Refusing connection: %s", exc)
        outbox.send(notification(str(exc), actor.session.state()))
        await refuse(outbox, writer)
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw: Union[str, bytes, None] = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            _dispatch(actor, settings, player, raw)
    except WebSocketDisconnect as exc:
        logger.info("Player %s disconnected (code %s)", player.mark, exc.code)
    finally:
        actor.post(Disconnected(player))
        outbox.close()
        await writer


def _dispatch(
    actor: SessionActor, settings: Settings, player: Player, raw: Union[str, bytes]
) -> None:
    try:
        command = decode_command(raw)
    except ProtocolError as exc:
        logger.warning("Ignoring message from player %s: %s", player.mark, exc)
        if settings.echo_rejections:
            player.send(notification(str(exc), actor.session.state()))
        return

    if isinstance(command, MoveRequest):
        actor.post(Move(player, command.row, command.col))
    elif isinstance(command, PlayAgainRequest):
        actor.post(PlayAgain(player))
    else:
        actor.post(Resync(player))


@router.get("/api/session")
async def inspect_session(request: Request) -> Dict[str, object]:
    session: GameSession = request.app.state.session
    snapshot: Dict[str, object] = session.snapshot()
    snapshot["availableSeats"] = [
        seat for seat, p in enumerate(session.seats, start=1) if p is None
    ]
    return snapshot


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one explicitly owned ``GameSession``."""

    settings = settings or Settings.from_env()
    session = GameSession(echo_rejections=settings.echo_rejections)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        actor = SessionActor(session)
        actor.start()
        app.state.actor = actor
        try:
            yield
        finally:
            await actor.stop()

    app = FastAPI(
        title="Tic-tac-toe server",
        description="Two-player tic-tac-toe over WebSockets",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session = session
    app.include_router(router)
    return app


app = create_app()
