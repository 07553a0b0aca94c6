from .app import create_app, get_hub, main
from .hub import RelayHub
from .registry import ConnectionRegistry, PresenceRecord
from .store import Location, Message, MessageStore
from .notifier import EmergencyNotifier

__all__ = [
    "create_app",
    "get_hub",
    "main",
    "RelayHub",
    "ConnectionRegistry",
    "PresenceRecord",
    "Location",
    "Message",
    "MessageStore",
    "EmergencyNotifier",
]
