from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator


# --- enriched records (rows joined with the sender) ---

class PrivateMessageOut(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    message: str
    room_id: str
    timestamp: datetime
    sender_name: str
    sender_role: str


class GroupMessageOut(BaseModel):
    id: int
    group_id: int
    sender_id: int
    message: str
    timestamp: datetime
    sender_name: str
    sender_role: str


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    role: str
    created_at: Optional[datetime] = None


class GroupOut(BaseModel):
    id: int
    name: str
    created_by: Optional[int] = None
    created_at: datetime
    creator_name: Optional[str] = None
    member_count: int


class GroupMemberOut(BaseModel):
    id: int
    username: str
    email: str
    role: str
    joined_at: datetime


# --- client -> server event payloads ---

# ids must fit a signed 64-bit INTEGER column
RowId = Annotated[int, Field(ge=0, le=2**63 - 1)]


class UserConnectedIn(BaseModel):
    userId: RowId


class JoinRoomIn(BaseModel):
    roomId: str = Field(min_length=1)
    userId: Optional[RowId] = None


class JoinGroupIn(BaseModel):
    groupId: RowId
    userId: Optional[RowId] = None


class LeaveRoomIn(BaseModel):
    roomId: str = Field(min_length=1)


class LeaveGroupIn(BaseModel):
    groupId: RowId


class SendMessageIn(BaseModel):
    senderId: RowId
    receiverId: RowId
    message: str = Field(min_length=1)
    roomId: Optional[str] = None
    senderName: Optional[str] = None


class SendGroupMessageIn(BaseModel):
    groupId: RowId
    senderId: RowId
    message: str = Field(min_length=1)
    senderName: Optional[str] = None


class TypingIn(BaseModel):
    roomId: str = Field(min_length=1)
    userId: Optional[RowId] = None
    userName: Optional[str] = None


class GroupTypingIn(BaseModel):
    groupId: RowId
    userId: Optional[RowId] = None
    userName: Optional[str] = None


# --- tagged client events ---

class UserConnectedEvent(BaseModel):
    event: Literal["user_connected"]
    data: UserConnectedIn

    @field_validator("data", mode="before")
    @classmethod
    def _accept_bare_id(cls, v):
        # clients usually send the id itself, not an object
        if isinstance(v, (int, str)):
            return {"userId": v}
        return v


class JoinRoomEvent(BaseModel):
    event: Literal["join_room"]
    data: JoinRoomIn


class JoinGroupEvent(BaseModel):
    event: Literal["join_group"]
    data: JoinGroupIn


class LeaveRoomEvent(BaseModel):
    event: Literal["leave_room"]
    data: LeaveRoomIn


class LeaveGroupEvent(BaseModel):
    event: Literal["leave_group"]
    data: LeaveGroupIn


class SendMessageEvent(BaseModel):
    event: Literal["send_message"]
    data: SendMessageIn


class SendGroupMessageEvent(BaseModel):
    event: Literal["send_group_message"]
    data: SendGroupMessageIn


class TypingEvent(BaseModel):
    event: Literal["typing", "stop_typing"]
    data: TypingIn


class GroupTypingEvent(BaseModel):
    event: Literal["group_typing", "group_stop_typing"]
    data: GroupTypingIn


ClientEvent = Annotated[
    Union[
        UserConnectedEvent,
        JoinRoomEvent,
        JoinGroupEvent,
        LeaveRoomEvent,
        LeaveGroupEvent,
        SendMessageEvent,
        SendGroupMessageEvent,
        TypingEvent,
        GroupTypingEvent,
    ],
    Field(discriminator="event"),
]

client_event_adapter = TypeAdapter(ClientEvent)

TYPING_EVENTS = {"typing", "stop_typing", "group_typing", "group_stop_typing"}
