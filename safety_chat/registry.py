"""Connection registry: who is connected, and which user each connection speaks for."""
import time
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PresenceRecord:
    user_id: str
    socket_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    last_active: int = 0

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "socketId": self.socket_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "lastActive": self.last_active,
        }


class ConnectionRegistry:
    """Live connections and the presence records of registered users.

    Only the owning hub mutates this, under its own lock.
    """

    def __init__(self, clock=now_ms):
        self._clock = clock
        # connection id -> user id (None until the connection registers)
        self._connections: Dict[str, Optional[str]] = {}
        # user id -> presence record
        self._users: Dict[str, PresenceRecord] = {}

    def connect(self, connection_id: str) -> None:
        self._connections.setdefault(connection_id, None)

    def register(self, connection_id, user_id, name=None, email=None, phone=None) -> Optional[PresenceRecord]:
        if not user_id:
            return None

        previous = self._users.get(user_id)
        if previous is not None and previous.socket_id != connection_id:
            # the older connection stays open but no longer speaks for this user
            if self._connections.get(previous.socket_id) == user_id:
                self._connections[previous.socket_id] = None
            logger.info(f"User {user_id} re-registered, replacing connection {previous.socket_id}")

        record = PresenceRecord(
            user_id=user_id,
            socket_id=connection_id,
            name=name,
            email=email,
            phone=phone,
            last_active=self._clock(),
        )
        self._users[user_id] = record
        self._connections[connection_id] = user_id
        return record

    def touch(self, user_id) -> bool:
        record = self._users.get(user_id) if user_id else None
        if record is None:
            return False
        record.last_active = self._clock()
        return True

    def user_for(self, connection_id) -> Optional[str]:
        return self._connections.get(connection_id)

    def remove(self, connection_id) -> Optional[PresenceRecord]:
        """Forget a connection; returns the presence record it owned, if any."""
        user_id = self._connections.pop(connection_id, None)
        if not user_id:
            return None
        record = self._users.get(user_id)
        if record is None or record.socket_id != connection_id:
            return None
        del self._users[user_id]
        return record

    def sweep_stale(self, max_idle_ms) -> int:
        cutoff = self._clock() - max_idle_ms
        stale = [uid for uid, rec in self._users.items() if rec.last_active < cutoff]
        for uid in stale:
            record = self._users.pop(uid)
            if self._connections.get(record.socket_id) == uid:
                self._connections[record.socket_id] = None
        return len(stale)

    def snapshot(self) -> List[PresenceRecord]:
        return list(self._users.values())

    def connection_ids(self) -> List[str]:
        return list(self._connections.keys())

    def __len__(self):
        return len(self._users)
