"""In-memory rooms: membership, turn order, rematch flags and the code allocator."""

from __future__ import annotations

import asyncio
import enum
import logging
import random
import string
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from .connections import Connection, Delivery
from .errors import (
    AlreadyInRoom,
    IllegalMove,
    RoomCodeExhausted,
    RoomFull,
    RoomNotFound,
)
from .game import Board, Slot
from .protocol import (
    GUEST_DEFAULT_PROFILE,
    HOST_DEFAULT_PROFILE,
    JoinedRoom,
    OpponentLeft,
    OpponentMove,
    PlayerJoined,
    PlayerProfile,
    RematchRequested,
    RoomCreated,
    ServerMessage,
)

logger = logging.getLogger(__name__)

ROOM_CODE_LENGTH = 4
ROOM_CODE_ALPHABET = string.digits + string.ascii_uppercase
ROOM_CODE_ATTEMPTS = 10
MAX_PLAYERS = 2

_rng = random.SystemRandom()


def generate_room_code() -> str:
    return "".join(_rng.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))


def normalize_room_code(code: str) -> str:
    return code.strip().upper()


class MatchState(enum.Enum):
    FORMING = "forming"
    COUNTING_DOWN = "counting_down"
    ACTIVE = "active"
    AWAITING_REMATCH = "awaiting_rematch"
    CLOSED = "closed"


@dataclass
class Room:
    """Two-player match session keyed by its short code."""

    room_id: str
    players: List[Connection] = field(default_factory=list, repr=False)
    turn: Slot = 0
    board: Board = field(default_factory=Board)
    game_active: bool = False
    state: MatchState = MatchState.FORMING
    countdown: Optional["asyncio.Task[None]"] = field(default=None, repr=False)

    @property
    def is_full(self) -> bool:
        return len(self.players) >= MAX_PLAYERS

    def slot_of(self, connection: Connection) -> Optional[Slot]:
        for slot, player in enumerate(self.players):
            if player is connection:
                return slot
        return None

    def other(self, connection: Connection) -> Optional[Connection]:
        for player in self.players:
            if player is not connection:
                return player
        return None

    def play(self, connection: Connection, index: int) -> Slot:
        """Record a move for ``connection``; raises IllegalMove if it is refused."""
        if not self.game_active:
            raise IllegalMove("Room is not active")
        slot = self.slot_of(connection)
        if slot is None or slot != self.turn:
            raise IllegalMove("Not this player's turn")
        self.board.place(slot, index)
        self.turn = 1 - self.turn
        return slot

    def begin_countdown(self) -> None:
        self.board.reset()
        self.turn = 0
        self.game_active = False
        self.state = MatchState.COUNTING_DOWN
        for player in self.players:
            player.wants_rematch = False

    def activate(self) -> None:
        self.turn = 0
        self.game_active = True
        self.state = MatchState.ACTIVE
        self.countdown = None

    def cancel_countdown(self) -> None:
        task, self.countdown = self.countdown, None
        if task is not None and not task.done():
            task.cancel()


# ---------- Membership ----------


@dataclass(frozen=True)
class Unassigned:
    pass


@dataclass(frozen=True)
class AwaitingOpponent:
    room: Room


@dataclass(frozen=True)
class InMatch:
    room: Room
    peer: Connection


Membership = Union[Unassigned, AwaitingOpponent, InMatch]


@dataclass
class Outcome:
    """Frames to send once the store lock is released, and any countdown to start."""

    deliveries: List[Delivery] = field(default_factory=list)
    start_countdown: Optional[Room] = None

    def send(self, connection: Connection, message: ServerMessage) -> None:
        self.deliveries.append((connection, message))


class RoomStore:
    """Owns every room. Methods never perform I/O; callers hold ``lock``."""

    def __init__(self, code_generator: Optional[Callable[[], str]] = None) -> None:
        self._rooms: Dict[str, Room] = {}
        self._generate = code_generator or generate_room_code
        self.lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return isinstance(room_id, str) and normalize_room_code(room_id) in self._rooms

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(normalize_room_code(room_id))

    def membership(self, connection: Connection) -> Membership:
        room = self._rooms.get(connection.room_id) if connection.room_id else None
        if room is None or room.slot_of(connection) is None:
            return Unassigned()
        peer = room.other(connection)
        if peer is None:
            return AwaitingOpponent(room)
        return InMatch(room, peer)

    def _allocate_code(self) -> str:
        for _ in range(ROOM_CODE_ATTEMPTS):
            room_id = normalize_room_code(self._generate())
            if room_id not in self._rooms:
                return room_id
            logger.debug("room code %s already in use, regenerating", room_id)
        raise RoomCodeExhausted(
            f"No free room code after {ROOM_CODE_ATTEMPTS} attempts"
        )

    def create_room(
        self, host: Connection, user_data: Optional[PlayerProfile] = None
    ) -> Outcome:
        if not isinstance(self.membership(host), Unassigned):
            raise AlreadyInRoom()
        room_id = self._allocate_code()
        host.room_id = room_id
        host.user_data = user_data or HOST_DEFAULT_PROFILE
        host.wants_rematch = False
        self._rooms[room_id] = Room(room_id=room_id, players=[host])
        logger.info("room %s created by %s", room_id, host.id)

        outcome = Outcome()
        outcome.send(host, RoomCreated(room_id=room_id))
        return outcome

    def join_room(
        self,
        room_id: str,
        guest: Connection,
        user_data: Optional[PlayerProfile] = None,
    ) -> Outcome:
        if not isinstance(self.membership(guest), Unassigned):
            raise AlreadyInRoom()
        room = self.get(room_id)
        if room is None:
            raise RoomNotFound()
        if room.is_full:
            raise RoomFull()

        host = room.players[0]
        guest.room_id = room.room_id
        guest.user_data = user_data or GUEST_DEFAULT_PROFILE
        guest.wants_rematch = False
        room.players.append(guest)
        room.begin_countdown()
        logger.info("player %s joined room %s", guest.id, room.room_id)

        outcome = Outcome(start_countdown=room)
        outcome.send(host, PlayerJoined(opponent=guest.user_data))
        outcome.send(
            guest, JoinedRoom(room_id=room.room_id, opponent=host.user_data)
        )
        return outcome

    def apply_move(self, connection: Connection, index: int) -> Outcome:
        outcome = Outcome()
        membership = self.membership(connection)
        if not isinstance(membership, InMatch):
            logger.debug("move from %s ignored: no opponent", connection.id)
            return outcome
        try:
            slot = membership.room.play(connection, index)
        except IllegalMove as exc:
            logger.debug(
                "move %r in room %s ignored: %s",
                index,
                membership.room.room_id,
                exc,
            )
            return outcome
        outcome.send(membership.peer, OpponentMove(index=index, player=slot))
        return outcome

    def request_rematch(self, connection: Connection) -> Outcome:
        outcome = Outcome()
        membership = self.membership(connection)
        if not isinstance(membership, InMatch):
            return outcome
        room, peer = membership.room, membership.peer
        if room.state is MatchState.COUNTING_DOWN:
            logger.debug("rematch in room %s ignored during countdown", room.room_id)
            return outcome

        connection.wants_rematch = True
        if peer.wants_rematch:
            logger.info("rematch started in room %s", room.room_id)
            room.cancel_countdown()
            room.begin_countdown()
            outcome.start_countdown = room
        else:
            room.state = MatchState.AWAITING_REMATCH
            outcome.send(peer, RematchRequested())
        return outcome

    def remove_connection(self, connection: Connection) -> Outcome:
        outcome = Outcome()
        membership = self.membership(connection)
        connection.room_id = None
        connection.wants_rematch = False
        if isinstance(membership, Unassigned):
            return outcome

        room = membership.room
        room.cancel_countdown()
        room.state = MatchState.CLOSED
        room.game_active = False
        room.players = [p for p in room.players if p is not connection]
        self._rooms.pop(room.room_id, None)

        if isinstance(membership, InMatch):
            peer = membership.peer
            peer.room_id = None
            peer.wants_rematch = False
            room.players.clear()
            outcome.send(peer, OpponentLeft())
            logger.info(
                "player %s left room %s, closing it", connection.id, room.room_id
            )
        else:
            logger.info(
                "host %s left room %s before it filled", connection.id, room.room_id
            )
        return outcome
