from sqlmodel import SQLModel, Field, UniqueConstraint
from typing import Optional
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str
    email: str = Field(index=True, unique=True)
    role: str = "student"
    verified: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class PrivateMessage(SQLModel, table=True):
    __tablename__ = "messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    sender_id: int = Field(foreign_key="users.id", index=True)
    receiver_id: int = Field(foreign_key="users.id", index=True)
    message: str
    room_id: str = Field(index=True)
    timestamp: datetime = Field(default_factory=utcnow, index=True)


class GroupChat(SQLModel, table=True):
    __tablename__ = "group_chats"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    created_by: Optional[int] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=utcnow)


class GroupChatUser(SQLModel, table=True):
    __tablename__ = "group_chat_users"
    __table_args__ = (UniqueConstraint("group_id", "user_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="group_chats.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    joined_at: datetime = Field(default_factory=utcnow)


class GroupMessage(SQLModel, table=True):
    __tablename__ = "group_messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="group_chats.id", index=True)
    sender_id: int = Field(foreign_key="users.id")
    message: str
    timestamp: datetime = Field(default_factory=utcnow, index=True)
