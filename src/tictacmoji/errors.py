"""Exception hierarchy for the TicTacMoji match server."""

from __future__ import annotations


class TicTacMojiError(Exception):
    """Base class for every error raised by the server."""


class ProtocolError(TicTacMojiError):
    """An inbound frame could not be parsed into a known client message."""


class RoomError(TicTacMojiError):
    """A room operation failed in a way the requesting client should hear about."""

    message = "Room error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class RoomNotFound(RoomError):
    message = "Room not found"


class RoomFull(RoomError):
    message = "Room is full"


class AlreadyInRoom(RoomError):
    message = "Already in a room"


class IllegalMove(TicTacMojiError):
    """A move was rejected by the room; never reported to the client."""


class RoomCodeExhausted(TicTacMojiError):
    """No free room code could be found within the retry budget."""
