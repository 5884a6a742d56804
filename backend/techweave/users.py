import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from .db import get_session
from .groups import enroll_in_general_chat
from .models import User
from .schemas import UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


def mark_verified(engine: Engine, user_id: int) -> User:
    """Post-verification hook for the auth service.

    Flags the user as verified and makes them a member of General Chat,
    which ``init_db`` guarantees exists.
    """
    with Session(engine) as s:
        user = s.get(User, user_id)
        if user is None:
            raise LookupError(f"user {user_id} not found")
        if not user.verified:
            user.verified = True
            s.add(user)
            s.commit()
        enroll_in_general_chat(s, user_id)
        s.refresh(user)
        return user


def _out(u: User) -> UserOut:
    return UserOut(id=u.id, username=u.username, email=u.email, role=u.role, created_at=u.created_at)


@router.get("/api/user/{user_id}", response_model=UserOut)
def get_user(user_id: int, s: Session = Depends(get_session)):
    user = s.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return _out(user)


@router.get("/api/all-users", response_model=List[UserOut])
def list_users(s: Session = Depends(get_session)):
    users = s.exec(
        select(User).where(User.verified == True).order_by(User.role.desc(), User.username)  # noqa: E712
    ).all()
    return [_out(u) for u in users]


@router.get("/api/mentors", response_model=List[UserOut])
def list_mentors(s: Session = Depends(get_session)):
    users = s.exec(
        select(User).where(User.role == "mentor", User.verified == True).order_by(User.username)  # noqa: E712
    ).all()
    return [_out(u) for u in users]
