"""Connection-scoped event handling for the chat socket.

A connection goes ``anonymous -> identified (user_connected) -> in rooms
(join_*) -> disconnected``. Every inbound frame is validated into a tagged
event before dispatch; anything that goes wrong while handling it is turned
into a ``message_error`` for that connection alone.

Sends persist first and broadcast second. The persist runs in the thread
pool, and is the only point where a handler yields to other connections.
"""
import json
import logging

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from .errors import ChatError, EventValidationError, PersistenceError
from .message_store import MessageStore
from .presence import PresenceRegistry
from .realtime import Connection, ConnectionManager
from .rooms import RoomManager, group_room_id
from .schemas import TYPING_EVENTS, client_event_adapter

logger = logging.getLogger(__name__)


def _failure_text(name: str) -> str:
    if name == "send_group_message":
        return "Failed to send group message"
    if name == "send_message":
        return "Failed to send message"
    return f"Failed to handle '{name}'"


def _or_self(user_id, conn: Connection):
    return user_id if user_id is not None else conn.user_id


def parse_event(frame):
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        raise EventValidationError("frame must be an object with an 'event' name")
    try:
        return client_event_adapter.validate_python(frame)
    except ValidationError as e:
        errors = e.errors()
        if errors and errors[0]["type"] == "union_tag_invalid":
            raise EventValidationError(f"unknown event '{frame['event']}'") from e
        fields = sorted({str(err["loc"][-1]) for err in errors if err["loc"]})
        raise EventValidationError(
            f"invalid '{frame['event']}' payload: {', '.join(fields) or 'data'}"
        ) from e


class ChatGateway:
    def __init__(
        self,
        store: MessageStore,
        presence: PresenceRegistry,
        rooms: RoomManager,
        connections: ConnectionManager,
    ):
        self.store = store
        self.presence = presence
        self.rooms = rooms
        self.connections = connections
        self.handlers = {
            "user_connected": self.on_user_connected,
            "join_room": self.on_join_room,
            "join_group": self.on_join_group,
            "leave_room": self.on_leave_room,
            "leave_group": self.on_leave_group,
            "send_message": self.on_send_message,
            "send_group_message": self.on_send_group_message,
            "typing": self.on_typing,
            "stop_typing": self.on_typing,
            "group_typing": self.on_group_typing,
            "group_stop_typing": self.on_group_typing,
        }

    # --- lifecycle ---

    def connect(self, conn: Connection):
        self.connections.add(conn)
        logger.info("Connection opened: %s", conn.id)

    def disconnect(self, conn: Connection):
        user_id = self.presence.unregister(conn.id)
        left = self.connections.remove(conn.id)
        if user_id is not None:
            self.connections.broadcast("user_offline", user_id, exclude=conn.id)
            logger.info("User %s disconnected (%s, %d rooms)", user_id, conn.id, len(left))
        else:
            logger.info("Connection closed: %s", conn.id)

    # --- inbound ---

    async def handle_text(self, conn: Connection, text: str):
        try:
            frame = json.loads(text)
        except ValueError:
            conn.push("message_error", {"error": "invalid json"})
            return
        await self.dispatch(conn, frame)

    async def dispatch(self, conn: Connection, frame):
        try:
            event = parse_event(frame)
        except EventValidationError as e:
            name = frame.get("event") if isinstance(frame, dict) else None
            if isinstance(name, str) and name in TYPING_EVENTS:
                logger.debug("Dropped malformed %s from %s: %s", name, conn.id, e)
                return
            conn.push("message_error", {"error": str(e)})
            return

        try:
            await self.handlers[event.event](conn, event)
        except PersistenceError:
            # details are logged by the store; the client only learns it failed
            conn.push("message_error", {"error": _failure_text(event.event)})
        except ChatError as e:
            conn.push("message_error", {"error": str(e)})
        except Exception:
            logger.exception("Unhandled error in %s from %s", event.event, conn.id)
            conn.push("message_error", {"error": _failure_text(event.event)})

    # --- handlers ---

    async def on_user_connected(self, conn: Connection, event):
        user_id = event.data.userId
        old = conn.user_id
        if old is not None and old != user_id and self.presence.connection_for(old) == conn.id:
            self.connections.broadcast("user_offline", old, exclude=conn.id)
        previous = self.presence.register(user_id, conn.id)
        conn.user_id = user_id
        if previous == conn.id:
            logger.debug("User %s re-identified on %s", user_id, conn.id)
            return
        self.connections.broadcast("user_online", user_id, exclude=conn.id)
        logger.info("User %s connected with socket %s", user_id, conn.id)

    async def on_join_room(self, conn: Connection, event):
        if self.rooms.join(conn.id, event.data.roomId):
            logger.info("User %s joined room %s", _or_self(event.data.userId, conn), event.data.roomId)

    async def on_join_group(self, conn: Connection, event):
        room_id = group_room_id(event.data.groupId)
        if self.rooms.join(conn.id, room_id):
            logger.info("User %s joined group %s", _or_self(event.data.userId, conn), event.data.groupId)

    async def on_leave_room(self, conn: Connection, event):
        self.rooms.leave(conn.id, event.data.roomId)

    async def on_leave_group(self, conn: Connection, event):
        self.rooms.leave(conn.id, group_room_id(event.data.groupId))

    def _check_sender(self, conn: Connection, sender_id: int):
        if conn.user_id is not None and conn.user_id != sender_id:
            raise EventValidationError("senderId does not match the connected user")

    async def on_send_message(self, conn: Connection, event):
        data = event.data
        self._check_sender(conn, data.senderId)
        saved = await run_in_threadpool(
            self.store.persist_private_message, data.senderId, data.receiverId, data.message
        )
        if data.roomId and data.roomId != saved.room_id:
            logger.warning("Client room %s differs from derived room %s", data.roomId, saved.room_id)

        payload = saved.model_dump(mode="json")
        if data.senderName:
            payload["sender_name"] = data.senderName
        self.connections.emit_to_room(saved.room_id, "receive_message", payload)
        logger.debug("Private message: %s -> %s", data.senderId, data.receiverId)

    async def on_send_group_message(self, conn: Connection, event):
        data = event.data
        self._check_sender(conn, data.senderId)
        saved = await run_in_threadpool(
            self.store.persist_group_message, data.groupId, data.senderId, data.message
        )
        payload = saved.model_dump(mode="json")
        if data.senderName:
            payload["sender_name"] = data.senderName
        self.connections.emit_to_room(group_room_id(data.groupId), "receive_group_message", payload)
        logger.debug("Group message: user %s -> group %s", data.senderId, data.groupId)

    async def on_typing(self, conn: Connection, event):
        data = event.data
        name = "user_typing" if event.event == "typing" else "user_stop_typing"
        payload = {"userId": _or_self(data.userId, conn), "userName": data.userName}
        self.connections.emit_to_room(data.roomId, name, payload, exclude=conn.id)

    async def on_group_typing(self, conn: Connection, event):
        data = event.data
        name = "group_user_typing" if event.event == "group_typing" else "group_user_stop_typing"
        payload = {"userId": _or_self(data.userId, conn), "userName": data.userName, "groupId": data.groupId}
        self.connections.emit_to_room(group_room_id(data.groupId), name, payload, exclude=conn.id)
