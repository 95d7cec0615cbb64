"""Live socket bookkeeping: connection records, the registry and its heartbeat."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
)

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from .protocol import Ping, PlayerProfile, ServerMessage, encode

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Connection:
    """One client socket plus the per-player state the server keeps for it."""

    websocket: Optional[WebSocket] = field(default=None, repr=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    room_id: Optional[str] = None
    user_data: Optional[PlayerProfile] = None
    wants_rematch: bool = False
    is_alive: bool = True

    @property
    def is_open(self) -> bool:
        ws = self.websocket
        return (
            ws is not None
            and ws.client_state == WebSocketState.CONNECTED
            and ws.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: ServerMessage) -> bool:
        """Fire-and-forget send; failures are logged and reported as False."""
        if not self.is_open:
            logger.debug("skip %s to closed connection %s", message.type, self.id)
            return False
        try:
            await self.websocket.send_json(encode(message))
            return True
        except (RuntimeError, OSError, WebSocketDisconnect) as exc:
            logger.warning("send %s to %s failed: %s", message.type, self.id, exc)
            return False

    async def terminate(self, code: int = 1001) -> None:
        if not self.is_open:
            return
        try:
            await self.websocket.close(code=code)
        except (RuntimeError, OSError) as exc:
            logger.warning("close of %s failed: %s", self.id, exc)


Delivery = Tuple[Connection, ServerMessage]


async def deliver(deliveries: Iterable[Delivery]) -> None:
    """Send each queued frame in order. Must be called without the store lock held."""
    for connection, message in deliveries:
        await connection.send(message)


class ConnectionRegistry:
    """Every live connection, keyed by id, with a mark-then-terminate liveness sweep."""

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        return iter(list(self._connections.values()))

    def __contains__(self, connection: object) -> bool:
        return (
            isinstance(connection, Connection)
            and self._connections.get(connection.id) is connection
        )

    def register(self, connection: Connection) -> None:
        connection.is_alive = True
        self._connections[connection.id] = connection

    def unregister(self, connection: Connection) -> bool:
        """Forget ``connection``; False if it was already gone."""
        if self._connections.get(connection.id) is not connection:
            return False
        del self._connections[connection.id]
        return True

    @staticmethod
    def mark_alive(connection: Connection) -> None:
        connection.is_alive = True

    async def sweep(
        self, on_lost: Callable[[Connection], Awaitable[Any]]
    ) -> List[Connection]:
        """Terminate connections that failed the last ping and ping the rest.

        A ping is answered when the frame reaches a socket that is still
        connected; protocol-level pings (answered by the client's websocket
        library) are left to uvicorn, which reports dead peers as a normal
        disconnect. Silent but connected clients are never evicted. Inbound
        frames also count as an answer.

        ``on_lost`` is the normal close path; it is awaited once for every
        connection terminated here.
        """

        lost: List[Connection] = []
        pinged: List[Connection] = []
        for connection in self:
            if not connection.is_alive:
                lost.append(connection)
            else:
                connection.is_alive = False
                pinged.append(connection)

        for connection in lost:
            logger.info("heartbeat timeout, terminating %s", connection.id)
            await connection.terminate()
            await on_lost(connection)

        for connection in pinged:
            if await connection.send(Ping()):
                connection.is_alive = True
            else:
                logger.info("ping to %s undeliverable", connection.id)
        return lost

    async def run_heartbeat(
        self,
        interval: float,
        on_lost: Callable[[Connection], Awaitable[Any]],
    ) -> None:
        """Sweep forever every ``interval`` seconds until cancelled."""
        logger.info("heartbeat running every %ss", interval)
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep(on_lost)
            except Exception:
                logger.exception("heartbeat sweep failed")
