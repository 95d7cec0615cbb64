"""TicTacMoji match server: room codes, countdowns, move relay and rematches."""

from .lifecycle import MatchLifecycle
from .rooms import Room, RoomStore
from .server import app, create_app

__all__ = ["MatchLifecycle", "Room", "RoomStore", "app", "create_app"]
