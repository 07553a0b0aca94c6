"""Presence and broadcast hub.

Every Socket.IO event ends up here. The hub owns the connection registry and
the message store, applies each event to them under a single lock, and fans
the results out to all live connections through the `emit` callable it was
given (``emit(event, data, to=sid)``).

Two background threads keep the in-memory state fresh:

* presence sweep: drops users that stopped sending heartbeats
* message expiry: drops messages older than the retention window
"""
import logging
import threading

from .registry import ConnectionRegistry
from .store import Message, MessageStore

logger = logging.getLogger(__name__)

PRESENCE_SWEEP_INTERVAL = 60.0
PRESENCE_MAX_IDLE_MS = 2 * 60 * 1000
MESSAGE_EXPIRE_INTERVAL = 60.0 * 60
MESSAGE_MAX_AGE_MS = 24 * 60 * 60 * 1000


class RelayHub:
    def __init__(
        self,
        emit,
        notifier=None,
        registry=None,
        store=None,
        sweep_interval=PRESENCE_SWEEP_INTERVAL,
        max_idle_ms=PRESENCE_MAX_IDLE_MS,
        expire_interval=MESSAGE_EXPIRE_INTERVAL,
        max_age_ms=MESSAGE_MAX_AGE_MS,
    ):
        self.emit = emit
        self.notifier = notifier
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.store = store if store is not None else MessageStore()
        self.sweep_interval = sweep_interval
        self.max_idle_ms = max_idle_ms
        self.expire_interval = expire_interval
        self.max_age_ms = max_age_ms

        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._threads = []

    @classmethod
    def from_config(cls, emit, config, notifier=None):
        return cls(
            emit,
            notifier=notifier,
            sweep_interval=config["PRESENCE_SWEEP_INTERVAL"],
            max_idle_ms=config["PRESENCE_MAX_IDLE_MS"],
            expire_interval=config["MESSAGE_EXPIRE_INTERVAL"],
            max_age_ms=config["MESSAGE_MAX_AGE_MS"],
        )

    # BROADCAST----------------------------------
    def _send(self, event, data, sid):
        try:
            self.emit(event, data, to=sid)
        except Exception as e:
            # a dead peer is reaped by its disconnect or the next sweep
            logger.warning(f"Failed to send {event} to {sid}: {e}")

    def broadcast(self, event, data):
        with self._lock:
            for sid in self.registry.connection_ids():
                self._send(event, data, sid)

    def active_users(self) -> list:
        with self._lock:
            return [record.to_dict() for record in self.registry.snapshot()]

    def _broadcast_active_users(self):
        self.broadcast("activeUsers", self.active_users())

    # EVENTS----------------------------------
    def connect(self, sid):
        with self._lock:
            self.registry.connect(sid)
        logger.info(f"User connected: {sid}")

    def register(self, sid, data):
        if not isinstance(data, dict) or not isinstance(data.get("userId"), str) or not data["userId"]:
            logger.warning(f"Ignoring register from {sid}: userId missing")
            return None

        with self._lock:
            record = self.registry.register(
                sid,
                data["userId"],
                name=data.get("name"),
                email=data.get("email"),
                phone=data.get("phone"),
            )
            self._send(
                "initialize",
                {
                    "messages": [m.to_dict() for m in self.store.all()],
                    "activeUsers": self.active_users(),
                },
                sid,
            )
            self._broadcast_active_users()

        logger.info(f"User registered: {record.name} ({record.user_id})")
        return record

    def send_message(self, sid, data):
        try:
            message = Message.from_payload(data)
        except ValueError as e:
            logger.warning(f"Ignoring sendMessage from {sid}: {e}")
            return None

        with self._lock:
            self.store.append(message)
            payload = message.to_dict()
            self.broadcast("newMessage", payload)
            if message.is_emergency:
                self.broadcast("emergency", payload)

        logger.info(f"Message from {message.name}: {message.preview()}")

        if message.is_emergency and self.notifier is not None:
            try:
                self.notifier.notify(message)
            except Exception as e:
                logger.error(f"Emergency notification error: {e}")
        return message

    def update_presence(self, sid):
        with self._lock:
            user_id = self.registry.user_for(sid)
            if not self.registry.touch(user_id):
                logger.debug(f"Presence update from unregistered connection {sid}")

    def disconnect(self, sid):
        with self._lock:
            record = self.registry.remove(sid)
            if record is not None:
                self._broadcast_active_users()

        if record is not None:
            logger.info(f"User disconnected: {record.name} ({record.user_id})")
        else:
            logger.info("Unknown user disconnected")
        return record

    # MAINTENANCE----------------------------------
    def sweep(self) -> int:
        with self._lock:
            removed = self.registry.sweep_stale(self.max_idle_ms)
            if removed:
                self._broadcast_active_users()
        if removed:
            logger.info(f"Removed {removed} inactive users")
        return removed

    def expire(self) -> int:
        """Prune old messages. Clients filter by age themselves, so nothing is broadcast."""
        with self._lock:
            removed = self.store.prune_older_than(self.max_age_ms)
        if removed:
            logger.info(f"Cleaned up {removed} expired messages")
        return removed

    def stats(self) -> dict:
        with self._lock:
            return {
                "connections": len(self.registry.connection_ids()),
                "activeUsers": len(self.registry),
                "messages": len(self.store),
            }

    # LIFECYCLE----------------------------------
    def _run_every(self, interval, task, label):
        while not self._stop.wait(interval):
            try:
                task()
            except Exception as e:
                logger.error(f"{label} thread error: {e}")

    def start(self):
        if self._threads:
            return
        self._stop.clear()
        for interval, task, label in (
            (self.sweep_interval, self.sweep, "Presence sweep"),
            (self.expire_interval, self.expire, "Message expiry"),
        ):
            thread = threading.Thread(
                target=self._run_every, args=(interval, task, label), daemon=True
            )
            thread.start()
            self._threads.append(thread)
        logger.info(
            f"Background tasks started (sweep every {self.sweep_interval}s, "
            f"expiry every {self.expire_interval}s)"
        )

    def stop(self, timeout=5.0):
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("Background tasks stopped")

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)
