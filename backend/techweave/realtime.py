import asyncio
import contextlib
import json
import logging
import threading
import uuid
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from .rooms import RoomManager

logger = logging.getLogger(__name__)

router = APIRouter()


class Connection:
    """One live client socket.

    Outbound frames go through a queue drained by ``pump`` so that fan-out
    never awaits: frames reach each socket in the order they were pushed.
    """

    def __init__(self, websocket: Optional[WebSocket] = None, connection_id: Optional[str] = None):
        self.id = connection_id or uuid.uuid4().hex
        self.websocket = websocket
        self.user_id: Optional[int] = None
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, event: str, data: Any = None):
        if self.closed:
            return
        self.outbox.put_nowait({"event": event, "data": data})

    async def pump(self):
        while True:
            frame = await self.outbox.get()
            if frame is None:
                return
            try:
                await self.websocket.send_text(json.dumps(frame))
            except Exception:
                logger.debug("Dropping connection %s after failed send", self.id, exc_info=True)
                self.closed = True
                return

    def close(self):
        if not self.closed:
            self.closed = True
            self.outbox.put_nowait(None)


class ConnectionManager:
    def __init__(self, rooms: RoomManager):
        self.connections: Dict[str, Connection] = {}
        self.rooms = rooms
        self.lock = threading.Lock()

    def add(self, connection: Connection):
        with self.lock:
            self.connections[connection.id] = connection

    def remove(self, connection_id: str) -> Set[str]:
        with self.lock:
            self.connections.pop(connection_id, None)
        return self.rooms.leave_all(connection_id)

    def get(self, connection_id: str) -> Optional[Connection]:
        with self.lock:
            return self.connections.get(connection_id)

    def __len__(self):
        with self.lock:
            return len(self.connections)

    def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        conn = self.get(connection_id)
        if conn is None:
            return False
        conn.push(event, data)
        return True

    def emit_to_room(self, room_id: str, event: str, data: Any = None, exclude: Optional[str] = None) -> int:
        sent = 0
        for cid in self.rooms.members(room_id):
            if cid == exclude:
                continue
            if self.send(cid, event, data):
                sent += 1
        return sent

    def broadcast(self, event: str, data: Any = None, exclude: Optional[str] = None) -> int:
        with self.lock:
            targets = [c for cid, c in self.connections.items() if cid != exclude]
        for conn in targets:
            conn.push(event, data)
        return len(targets)

    def close_all(self):
        with self.lock:
            conns = list(self.connections.values())
            self.connections.clear()
        for conn in conns:
            conn.close()


@router.websocket("/ws")
async def ws_endpoint(websocket: WebSocket):
    gateway = websocket.app.state.gateway
    await websocket.accept()
    conn = Connection(websocket)
    gateway.connect(conn)
    writer = asyncio.create_task(conn.pump())
    try:
        while True:
            text = await websocket.receive_text()
            await gateway.handle_text(conn, text)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS handler failed for connection %s", conn.id)
    finally:
        gateway.disconnect(conn)
        conn.close()
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer
        if websocket.client_state == WebSocketState.CONNECTED:
            with contextlib.suppress(RuntimeError, WebSocketDisconnect):
                await websocket.close(code=1011)
