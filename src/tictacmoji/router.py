"""Dispatch of inbound client frames to the room store and lifecycle."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Type, Union

from .connections import Connection, ConnectionRegistry, deliver
from .errors import ProtocolError, RoomCodeExhausted, RoomError
from .lifecycle import MatchLifecycle
from .protocol import (
    ClientMessage,
    CreateRoom,
    ErrorFrame,
    GameOver,
    JoinRoom,
    Move,
    Pong,
    RequestRematch,
    parse_client_message,
)
from .rooms import MatchState, Outcome, RoomStore

logger = logging.getLogger(__name__)


class MessageRouter:
    """Turns frames from one connection into store operations and replies."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        store: RoomStore,
        lifecycle: MatchLifecycle,
    ) -> None:
        self.registry = registry
        self.store = store
        self.lifecycle = lifecycle
        self._handlers: Dict[
            Type[ClientMessage], Callable[[Connection, ClientMessage], Awaitable[None]]
        ] = {
            CreateRoom: self._on_create_room,
            JoinRoom: self._on_join_room,
            Move: self._on_move,
            RequestRematch: self._on_request_rematch,
            Pong: self._on_pong,
            GameOver: self._on_game_over,
        }

    def connect(self, connection: Connection) -> None:
        self.registry.register(connection)
        logger.info("client %s connected (%d live)", connection.id, len(self.registry))

    async def disconnect(self, connection: Connection) -> None:
        """Close path shared by socket close and heartbeat termination; runs once."""
        if not self.registry.unregister(connection):
            return
        async with self.store.lock:
            outcome = self.store.remove_connection(connection)
        await deliver(outcome.deliveries)
        logger.info(
            "client %s disconnected (%d live)", connection.id, len(self.registry)
        )

    async def handle_frame(
        self, connection: Connection, raw: Union[str, bytes]
    ) -> None:
        self.registry.mark_alive(connection)
        try:
            message = parse_client_message(raw)
        except ProtocolError as exc:
            logger.warning("dropped frame from %s: %s", connection.id, exc)
            return

        handler = self._handlers[type(message)]
        try:
            await handler(connection, message)
        except RoomError as exc:
            logger.info("%s from %s refused: %s", message.type, connection.id, exc)
            await connection.send(ErrorFrame(message=exc.message))
        except RoomCodeExhausted:
            logger.exception("could not allocate a room for %s", connection.id)
        except Exception:
            logger.exception("error handling %s from %s", message.type, connection.id)

    async def _commit(self, outcome: Outcome) -> None:
        await deliver(outcome.deliveries)
        room = outcome.start_countdown
        if room is None:
            return
        async with self.store.lock:
            if (
                self.store.get(room.room_id) is room
                and room.state is MatchState.COUNTING_DOWN
                and room.countdown is None
            ):
                self.lifecycle.start_countdown(room)

    async def _on_create_room(
        self, connection: Connection, message: CreateRoom
    ) -> None:
        async with self.store.lock:
            outcome = self.store.create_room(connection, message.user_data)
        await self._commit(outcome)

    async def _on_join_room(self, connection: Connection, message: JoinRoom) -> None:
        async with self.store.lock:
            outcome = self.store.join_room(
                message.room_id, connection, message.user_data
            )
        await self._commit(outcome)

    async def _on_move(self, connection: Connection, message: Move) -> None:
        async with self.store.lock:
            outcome = self.store.apply_move(connection, message.index)
        await self._commit(outcome)

    async def _on_request_rematch(
        self, connection: Connection, message: RequestRematch
    ) -> None:
        async with self.store.lock:
            outcome = self.store.request_rematch(connection)
        await self._commit(outcome)

    async def _on_pong(self, connection: Connection, message: Pong) -> None:
        """Nothing to do; handle_frame already recorded the connection as alive."""

    async def _on_game_over(self, connection: Connection, message: GameOver) -> None:
        logger.info(
            "client %s reported game over in room %s", connection.id, connection.room_id
        )
