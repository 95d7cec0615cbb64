"""Shared fixtures: fake websockets that record what the server sends."""

from __future__ import annotations

import pytest
from starlette.websockets import WebSocketState

from tictacmoji.connections import Connection


class RecordingSocket:
    """Stands in for a Starlette websocket; keeps every JSON frame sent to it."""

    def __init__(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent = []
        self.close_code = None
        # Simulates a half-open peer: the socket looks connected but writes fail.
        self.broken = False

    async def send_json(self, data):
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError("socket closed")
        if self.broken:
            raise OSError("connection reset by peer")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def types(self):
        return [frame["type"] for frame in self.sent]


@pytest.fixture()
def make_connection():
    def _make() -> Connection:
        return Connection(websocket=RecordingSocket())

    return _make
