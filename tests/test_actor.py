"""Tests for the single-writer command loop."""

from __future__ import annotations

import asyncio

import pytest

from tictactoe_server.actor import Disconnected, Joined, Move, SessionActor
from tictactoe_server.session import GameSession, SessionFullError


class ListSink:
    def __init__(self):
        self.events = []

    def send(self, event):
        self.events.append(event)


def test_commands_are_applied_in_order():
    async def scenario():
        session = GameSession()
        actor = SessionActor(session)
        actor.start()
        p1 = await actor.join(ListSink())
        p2 = await actor.join(ListSink())
        actor.post(Move(p1, 0, 0))
        actor.post(Move(p2, 1, 1))
        actor.post(Disconnected(p2))
        await actor.drain()
        await actor.stop()
        return session, p1

    session, p1 = asyncio.run(scenario())
    assert session.seats == [p1, None]
    assert session.status.value == "waiting"


def test_join_on_full_session_raises():
    async def scenario():
        actor = SessionActor(GameSession())
        actor.start()
        await actor.join(ListSink())
        await actor.join(ListSink())
        try:
            with pytest.raises(SessionFullError):
                await actor.join(ListSink())
        finally:
            await actor.stop()

    asyncio.run(scenario())


def test_cancelled_join_releases_seat():
    async def scenario():
        session = GameSession()
        actor = SessionActor(session)
        waiter = asyncio.create_task(actor.join(ListSink()))
        await asyncio.sleep(0)

        joined = actor._queue.get_nowait()
        assert isinstance(joined, Joined)
        actor.handle(joined)
        assert session.seats[0] is not None

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        left = actor._queue.get_nowait()
        assert isinstance(left, Disconnected)
        actor.handle(left)
        return session

    session = asyncio.run(scenario())
    assert session.seats == [None, None]
