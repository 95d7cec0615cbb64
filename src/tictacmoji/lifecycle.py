"""Countdown-gated match start for rooms that have both players present."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from .connections import Connection, deliver
from .protocol import Countdown, GameStart, ServerMessage
from .rooms import MatchState, Room, RoomStore

logger = logging.getLogger(__name__)


class MatchLifecycle:
    """Runs one countdown task per room and flips it to active when it ends.

    Every step re-enters the store lock and bails out if the room was closed
    or a newer countdown replaced this one, so a stale timer never touches a
    deleted room.
    """

    def __init__(
        self,
        store: RoomStore,
        tick_seconds: float = 1.0,
        count_from: int = 3,
    ) -> None:
        self.store = store
        self.tick_seconds = tick_seconds
        self.count_from = count_from

    def start_countdown(self, room: Room) -> "asyncio.Task[None]":
        """Schedule a fresh countdown for ``room``, replacing any pending one.

        Must be called from the event loop while holding ``store.lock``.
        """
        room.cancel_countdown()
        room.state = MatchState.COUNTING_DOWN
        task = asyncio.create_task(
            self._run(room), name=f"countdown-{room.room_id}"
        )
        room.countdown = task
        logger.info("countdown started in room %s", room.room_id)
        return task

    def _is_current(self, room: Room) -> bool:
        return (
            self.store.get(room.room_id) is room
            and room.state is MatchState.COUNTING_DOWN
            and room.countdown is asyncio.current_task()
        )

    async def _broadcast(self, room: Room, message: ServerMessage) -> bool:
        async with self.store.lock:
            if not self._is_current(room):
                return False
            targets: List[Connection] = list(room.players)
            if isinstance(message, GameStart):
                room.activate()
        await deliver((player, message) for player in targets)
        return True

    async def _run(self, room: Room) -> None:
        try:
            for count in range(self.count_from, 0, -1):
                if not await self._broadcast(room, Countdown(count=count)):
                    return
                await asyncio.sleep(self.tick_seconds)
            if await self._broadcast(room, GameStart()):
                logger.info("game started in room %s", room.room_id)
        except asyncio.CancelledError:
            logger.debug("countdown in room %s cancelled", room.room_id)
            raise
