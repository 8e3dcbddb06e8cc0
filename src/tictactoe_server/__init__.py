"""Two-player tic-tac-toe served over WebSockets: board rules, session state machine and web app."""

from .app import app, create_app
from .board import Board
from .session import GameSession

__all__ = ["Board", "GameSession", "app", "create_app"]
