"""Durable storage of private and group messages.

Each persist call is two sequential round trips: insert, then re-read the
new row joined with its sender. The returned record is therefore exactly
what was stored, server-assigned id and timestamp included.
"""
import logging
from typing import List

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, or_, select

from .errors import PersistenceError
from .models import GroupMessage, PrivateMessage, User
from .rooms import private_room_id
from .schemas import GroupMessageOut, PrivateMessageOut

logger = logging.getLogger(__name__)

# the driver raises plain Python errors for values it cannot bind, e.g. ints
# beyond 64 bits
STORAGE_ERRORS = (SQLAlchemyError, OverflowError, TypeError, ValueError)


def _private_query():
    return select(PrivateMessage, User.username, User.role).join(
        User, PrivateMessage.sender_id == User.id
    )


def _group_query():
    return select(GroupMessage, User.username, User.role).join(
        User, GroupMessage.sender_id == User.id
    )


def _enrich_private(row) -> PrivateMessageOut:
    m, username, role = row
    return PrivateMessageOut(
        id=m.id,
        sender_id=m.sender_id,
        receiver_id=m.receiver_id,
        message=m.message,
        room_id=m.room_id,
        timestamp=m.timestamp,
        sender_name=username,
        sender_role=role,
    )


def _enrich_group(row) -> GroupMessageOut:
    m, username, role = row
    return GroupMessageOut(
        id=m.id,
        group_id=m.group_id,
        sender_id=m.sender_id,
        message=m.message,
        timestamp=m.timestamp,
        sender_name=username,
        sender_role=role,
    )


class MessageStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    def persist_private_message(self, sender_id: int, receiver_id: int, body: str) -> PrivateMessageOut:
        room_id = private_room_id(sender_id, receiver_id)
        try:
            with Session(self.engine) as s:
                msg = PrivateMessage(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    message=body,
                    room_id=room_id,
                )
                s.add(msg)
                s.commit()
                row = s.exec(_private_query().where(PrivateMessage.id == msg.id)).first()
        except STORAGE_ERRORS as e:
            logger.error("Error saving private message %s -> %s", sender_id, receiver_id, exc_info=True)
            raise PersistenceError(f"could not store private message: {e.__class__.__name__}") from e

        if row is None:
            raise PersistenceError(f"sender {sender_id} not found")
        return _enrich_private(row)

    def persist_group_message(self, group_id: int, sender_id: int, body: str) -> GroupMessageOut:
        try:
            with Session(self.engine) as s:
                msg = GroupMessage(group_id=group_id, sender_id=sender_id, message=body)
                s.add(msg)
                s.commit()
                row = s.exec(_group_query().where(GroupMessage.id == msg.id)).first()
        except STORAGE_ERRORS as e:
            logger.error("Error saving group message %s -> group %s", sender_id, group_id, exc_info=True)
            raise PersistenceError(f"could not store group message: {e.__class__.__name__}") from e

        if row is None:
            raise PersistenceError(f"sender {sender_id} not found")
        return _enrich_group(row)

    def fetch_private_history(self, user_id: int) -> List[PrivateMessageOut]:
        """Every private message the user sent or received, oldest first.

        Not filtered by counterpart: callers group by ``room_id`` themselves.
        """
        stmt = (
            _private_query()
            .where(or_(PrivateMessage.sender_id == user_id, PrivateMessage.receiver_id == user_id))
            .order_by(PrivateMessage.timestamp, PrivateMessage.id)
        )
        with Session(self.engine) as s:
            return [_enrich_private(r) for r in s.exec(stmt).all()]

    def fetch_group_history(self, group_id: int) -> List[GroupMessageOut]:
        stmt = (
            _group_query()
            .where(GroupMessage.group_id == group_id)
            .order_by(GroupMessage.timestamp, GroupMessage.id)
        )
        with Session(self.engine) as s:
            return [_enrich_group(r) for r in s.exec(stmt).all()]
