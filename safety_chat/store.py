"""In-memory message buffer, pruned by age."""
import math
from dataclasses import dataclass
from typing import List, Optional

from .registry import now_ms


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # json decodes Infinity and NaN, which browsers cannot parse back
    return math.isfinite(value)


def _optional_str(payload, key):
    value = payload.get(key)
    if value is None or isinstance(value, str):
        return value
    raise ValueError(f"{key} must be a string")


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None

    @classmethod
    def from_payload(cls, data):
        if not isinstance(data, dict):
            raise ValueError("location must be an object")
        lat = data.get("latitude")
        lon = data.get("longitude")
        acc = data.get("accuracy")
        if not (_is_number(lat) and _is_number(lon)):
            raise ValueError("location needs numeric latitude and longitude")
        if acc is not None and not _is_number(acc):
            raise ValueError("location accuracy must be numeric")
        return cls(float(lat), float(lon), float(acc) if acc is not None else None)

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
        }

    def maps_link(self) -> str:
        return f"https://maps.google.com/?q={self.latitude},{self.longitude}"


@dataclass(frozen=True)
class Message:
    text: str
    timestamp: float
    type: str = "message"
    name: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[Location] = None

    @classmethod
    def from_payload(cls, payload):
        """Validate a client `sendMessage` payload. Raises ValueError if malformed."""
        if not isinstance(payload, dict):
            raise ValueError("message payload must be an object")

        text = payload.get("text")
        if not isinstance(text, str):
            raise ValueError("text is required")

        timestamp = payload.get("timestamp")
        if not _is_number(timestamp):
            raise ValueError("timestamp must be a number (ms since epoch)")

        msg_type = payload.get("type") or "message"
        if not isinstance(msg_type, str):
            raise ValueError("type must be a string")

        location = payload.get("location")
        return cls(
            text=text,
            timestamp=timestamp,
            type=msg_type,
            name=_optional_str(payload, "name"),
            user_id=_optional_str(payload, "userId"),
            email=_optional_str(payload, "email"),
            phone=_optional_str(payload, "phone"),
            location=Location.from_payload(location) if location is not None else None,
        )

    @property
    def is_emergency(self) -> bool:
        return self.type == "emergency"

    def preview(self, limit=30) -> str:
        return self.text[:limit] + ("..." if len(self.text) > limit else "")

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "text": self.text,
            "userId": self.user_id,
            "email": self.email,
            "phone": self.phone,
            "timestamp": self.timestamp,
            "type": self.type,
        }
        if self.location is not None:
            data["location"] = self.location.to_dict()
        return data


class MessageStore:
    def __init__(self, clock=now_ms):
        self._clock = clock
        self._messages: List[Message] = []

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def prune_older_than(self, max_age_ms) -> int:
        """Drop every message whose timestamp is before now - max_age_ms."""
        cutoff = self._clock() - max_age_ms
        before = len(self._messages)
        self._messages = [m for m in self._messages if m.timestamp >= cutoff]
        return before - len(self._messages)

    def all(self) -> tuple:
        return tuple(self._messages)

    def __len__(self):
        return len(self._messages)
