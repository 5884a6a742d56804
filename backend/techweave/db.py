import logging
from typing import Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from . import config
from .models import GroupChat

logger = logging.getLogger(__name__)


def create_db_engine(url: Optional[str] = None) -> Engine:
    url = url or config.DATABASE_URL
    kwargs = {"echo": config.SQL_ECHO}
    if url.startswith("sqlite"):
        # sessions are used from the thread pool
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return engine


def ensure_general_chat(engine: Engine) -> GroupChat:
    with Session(engine) as s:
        group = s.get(GroupChat, config.GENERAL_CHAT_ID)
        if group:
            return group
        group = GroupChat(id=config.GENERAL_CHAT_ID, name=config.GENERAL_CHAT_NAME)
        s.add(group)
        s.commit()
        s.refresh(group)
        logger.info("Provisioned group %s (%s)", group.id, group.name)
        return group


def init_db(engine: Engine):
    SQLModel.metadata.create_all(engine)
    ensure_general_chat(engine)
    logger.info("Database tables verified/created")


def get_session(request: Request):
    with Session(request.app.state.engine) as s:
        yield s
