import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from . import config
from .auth import auth_required
from .db import get_session
from .models import GroupChat, GroupChatUser, User
from .schemas import GroupMemberOut, GroupMessageOut, GroupOut

logger = logging.getLogger(__name__)

router = APIRouter()


def add_member(s: Session, group_id: int, user_id: int) -> bool:
    """Insert the membership row unless it exists. Returns True when added."""
    existing = s.exec(select(GroupChatUser).where(
        GroupChatUser.group_id == group_id,
        GroupChatUser.user_id == user_id
    )).first()
    if existing:
        return False
    s.add(GroupChatUser(group_id=group_id, user_id=user_id))
    try:
        s.commit()
    except IntegrityError:
        # lost a race with a concurrent join, or the user does not exist
        s.rollback()
        if s.get(User, user_id) is None:
            raise
        return False
    return True


def enroll_in_general_chat(s: Session, user_id: int) -> bool:
    added = add_member(s, config.GENERAL_CHAT_ID, user_id)
    if added:
        logger.info("User %s auto-joined %s", user_id, config.GENERAL_CHAT_NAME)
    return added


@router.get("/api/group-chats", response_model=List[GroupOut])
def list_groups(s: Session = Depends(get_session)):
    member_count = (
        select(func.count(GroupChatUser.id))
        .where(GroupChatUser.group_id == GroupChat.id)
        .correlate(GroupChat)
        .scalar_subquery()
    )
    rows = s.exec(
        select(GroupChat, User.username, member_count)
        .join(User, GroupChat.created_by == User.id, isouter=True)
        .order_by(GroupChat.created_at.desc(), GroupChat.id.desc())
    ).all()
    return [
        GroupOut(
            id=g.id,
            name=g.name,
            created_by=g.created_by,
            created_at=g.created_at,
            creator_name=creator,
            member_count=count or 0,
        )
        for g, creator, count in rows
    ]


@router.get("/api/group-chat/{group_id}/messages", response_model=List[GroupMessageOut])
def group_history(group_id: int, request: Request, s: Session = Depends(get_session)):
    if s.get(GroupChat, group_id) is None:
        raise HTTPException(404, "group not found")
    return request.app.state.store.fetch_group_history(group_id)


@router.get("/api/group-chat/{group_id}/members", response_model=List[GroupMemberOut])
def group_members(group_id: int, s: Session = Depends(get_session)):
    if s.get(GroupChat, group_id) is None:
        raise HTTPException(404, "group not found")
    rows = s.exec(
        select(User, GroupChatUser.joined_at)
        .join(GroupChatUser, GroupChatUser.user_id == User.id)
        .where(GroupChatUser.group_id == group_id)
        .order_by(User.role.desc(), User.username)
    ).all()
    return [
        GroupMemberOut(id=u.id, username=u.username, email=u.email, role=u.role, joined_at=joined_at)
        for u, joined_at in rows
    ]


@router.post("/api/group-chat/{group_id}/join")
def join_group(group_id: int, me: dict = Depends(auth_required), s: Session = Depends(get_session)):
    if s.get(GroupChat, group_id) is None:
        raise HTTPException(404, "group not found")
    try:
        joined = add_member(s, group_id, int(me["id"]))
    except IntegrityError:
        raise HTTPException(404, "user not found")
    return {"ok": True, "joined": joined}
