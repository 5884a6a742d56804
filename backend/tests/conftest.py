"""
TechWeave chat - test configuration and fixtures
"""
import os

os.environ["JWT_SECRET"] = "test-jwt-secret-for-testing-only"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from techweave.auth import create_token
from techweave.db import create_db_engine, init_db
from techweave.gateway import ChatGateway
from techweave.main import create_app
from techweave.message_store import MessageStore
from techweave.models import User
from techweave.presence import PresenceRegistry
from techweave.realtime import Connection, ConnectionManager
from techweave.rooms import RoomManager

SEED_USERS = [
    # id, username, role, verified
    (2, "ravi", "student", True),
    (3, "meera", "student", True),
    (5, "asha", "student", True),
    (9, "vikram", "mentor", True),
    (10, "dev", "admin", True),
    (11, "neha", "student", False),
]


def seed_users(engine):
    with Session(engine) as s:
        for uid, name, role, verified in SEED_USERS:
            s.add(User(id=uid, username=name, email=f"{name}@techweave.test", role=role, verified=verified))
        s.commit()


def drain(conn: Connection) -> list:
    """Everything queued for a connection so far."""
    frames = []
    while not conn.outbox.empty():
        frame = conn.outbox.get_nowait()
        if frame is not None:
            frames.append(frame)
    return frames


def events(frames, name):
    return [f["data"] for f in frames if f["event"] == name]


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    seed_users(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> MessageStore:
    return MessageStore(engine)


@pytest.fixture
def rooms() -> RoomManager:
    return RoomManager()


@pytest.fixture
def presence() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture
def connections(rooms) -> ConnectionManager:
    return ConnectionManager(rooms)


@pytest.fixture
def gateway(store, presence, rooms, connections) -> ChatGateway:
    return ChatGateway(store, presence, rooms, connections)


@pytest.fixture
def connect(gateway):
    """Open a socket-less connection on the gateway."""
    def _connect(connection_id=None) -> Connection:
        conn = Connection(connection_id=connection_id)
        gateway.connect(conn)
        return conn
    return _connect


@pytest.fixture
def client():
    app = create_app("sqlite://")
    with TestClient(app) as c:
        seed_users(app.state.engine)
        yield c


def auth_headers(user_id: int, role: str = "student") -> dict:
    token = create_token(user_id, f"user{user_id}@techweave.test", role)
    return {"Authorization": f"Bearer {token}"}
