import threading
from typing import Dict, Set

GROUP_ROOM_PREFIX = "group_"


def private_room_id(user_a, user_b) -> str:
    # numeric order, so 2 and 10 give "2_10" from either side
    low, high = sorted((int(user_a), int(user_b)))
    return f"{low}_{high}"


def group_room_id(group_id) -> str:
    return f"{GROUP_ROOM_PREFIX}{int(group_id)}"


class RoomManager:
    """Which live connections belong to which broadcast room."""

    def __init__(self):
        self.rooms: Dict[str, Set[str]] = {}
        self.lock = threading.Lock()

    def join(self, connection_id: str, room_id: str) -> bool:
        with self.lock:
            members = self.rooms.setdefault(room_id, set())
            if connection_id in members:
                return False
            members.add(connection_id)
            return True

    def leave(self, connection_id: str, room_id: str) -> bool:
        with self.lock:
            members = self.rooms.get(room_id)
            if not members or connection_id not in members:
                return False
            members.discard(connection_id)
            if not members:
                del self.rooms[room_id]
            return True

    def leave_all(self, connection_id: str) -> Set[str]:
        left = set()
        with self.lock:
            for room_id in list(self.rooms):
                members = self.rooms[room_id]
                if connection_id in members:
                    members.discard(connection_id)
                    left.add(room_id)
                    if not members:
                        del self.rooms[room_id]
        return left

    def members(self, room_id: str) -> Set[str]:
        with self.lock:
            return set(self.rooms.get(room_id, ()))

    def rooms_of(self, connection_id: str) -> Set[str]:
        with self.lock:
            return {r for r, members in self.rooms.items() if connection_id in members}

    def clear(self):
        with self.lock:
            self.rooms.clear()
