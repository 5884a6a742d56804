import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .auth import auth_required
from .db import create_db_engine, init_db
from .gateway import ChatGateway
from .groups import router as groups_router
from .message_store import MessageStore
from .messages import router as messages_router
from .presence import PresenceRegistry
from .realtime import ConnectionManager
from .realtime import router as ws_router
from .rooms import RoomManager
from .users import router as users_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(database_url: Optional[str] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_db_engine(database_url)
        init_db(engine)

        rooms = RoomManager()
        presence = PresenceRegistry()
        connections = ConnectionManager(rooms)
        store = MessageStore(engine)

        app.state.engine = engine
        app.state.store = store
        app.state.presence = presence
        app.state.rooms = rooms
        app.state.connections = connections
        app.state.gateway = ChatGateway(store, presence, rooms, connections)
        logger.info("TechWeave chat started (%s)", engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            connections.close_all()
            presence.clear()
            rooms.clear()
            engine.dispose()
            logger.info("TechWeave chat stopped")

    app = FastAPI(title="TechWeave Chat Backend", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.get("/health")
    def health():
        return {"ok": True}

    app.include_router(messages_router, dependencies=[Depends(auth_required)])
    app.include_router(groups_router, dependencies=[Depends(auth_required)])
    app.include_router(users_router, dependencies=[Depends(auth_required)])
    app.include_router(ws_router)
    return app


app = create_app()
