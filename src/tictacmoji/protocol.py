"""Wire messages exchanged with clients, one tagged union per direction."""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from .errors import ProtocolError


NAME_MAX_LENGTH = 64
AVATAR_MAX_LENGTH = 32


class PlayerProfile(BaseModel):
    """Display data a player shares with their opponent.

    Over-long strings are clipped rather than rejected.
    """

    name: str
    avatar: str

    @field_validator("name", "avatar", mode="before")
    @classmethod
    def _clip(cls, value: Any, info: ValidationInfo) -> Any:
        limit = NAME_MAX_LENGTH if info.field_name == "name" else AVATAR_MAX_LENGTH
        if isinstance(value, str):
            return value[:limit]
        return value


HOST_DEFAULT_PROFILE = PlayerProfile(name="Player 1", avatar="😎")
GUEST_DEFAULT_PROFILE = PlayerProfile(name="Player 2", avatar="🤠")


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class _ProfileMessage(_Message):
    user_data: Optional[PlayerProfile] = Field(default=None, alias="userData")

    @field_validator("user_data", mode="wrap")
    @classmethod
    def _default_on_bad_profile(
        cls, value: Any, handler: ValidatorFunctionWrapHandler
    ) -> Optional[PlayerProfile]:
        # An unusable profile falls back to the room's default one.
        try:
            return handler(value)
        except ValidationError:
            return None


# ---------- Client -> server ----------


class CreateRoom(_ProfileMessage):
    type: Literal["create_room"]


class JoinRoom(_ProfileMessage):
    type: Literal["join_room"]
    room_id: str = Field(alias="roomId", min_length=1, max_length=16)


class Move(_Message):
    type: Literal["move"]
    # Range is enforced by the room so bad indices are ignored, not rejected.
    index: int


class RequestRematch(_Message):
    type: Literal["request_rematch"]


class Pong(_Message):
    type: Literal["pong"]


class GameOver(_Message):
    type: Literal["game_over"]


ClientMessage = Annotated[
    Union[CreateRoom, JoinRoom, Move, RequestRematch, Pong, GameOver],
    Field(discriminator="type"),
]

_CLIENT_MESSAGE = TypeAdapter(ClientMessage)


def parse_client_message(raw: Union[str, bytes]) -> ClientMessage:
    """Decode one inbound text frame, raising ProtocolError when it is unusable."""

    try:
        return _CLIENT_MESSAGE.validate_json(raw)
    except ValidationError as exc:
        errors = exc.errors(include_url=False)
        summary = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<frame>'}: {err['msg']}"
            for err in errors[:3]
        )
        raise ProtocolError(summary or str(exc)) from exc


# ---------- Server -> client ----------


class RoomCreated(_Message):
    type: Literal["room_created"] = "room_created"
    room_id: str = Field(alias="roomId")


class JoinedRoom(_Message):
    type: Literal["joined_room"] = "joined_room"
    room_id: str = Field(alias="roomId")
    opponent: PlayerProfile


class PlayerJoined(_Message):
    type: Literal["player_joined"] = "player_joined"
    opponent: PlayerProfile


class Countdown(_Message):
    type: Literal["countdown"] = "countdown"
    count: int


class GameStart(_Message):
    type: Literal["game_start"] = "game_start"


class OpponentMove(_Message):
    type: Literal["opponent_move"] = "opponent_move"
    index: int
    player: int


class RematchRequested(_Message):
    type: Literal["rematch_requested"] = "rematch_requested"


class OpponentLeft(_Message):
    type: Literal["opponent_left"] = "opponent_left"


class ErrorFrame(_Message):
    type: Literal["error"] = "error"
    message: str


class Ping(_Message):
    type: Literal["ping"] = "ping"


ServerMessage = Union[
    RoomCreated,
    JoinedRoom,
    PlayerJoined,
    Countdown,
    GameStart,
    OpponentMove,
    RematchRequested,
    OpponentLeft,
    ErrorFrame,
    Ping,
]


def encode(message: ServerMessage) -> Dict[str, Any]:
    """Render an outbound message as the JSON object clients expect."""

    return message.model_dump(by_alias=True, mode="json")
