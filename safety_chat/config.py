import os
import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# DEFAULTS----------------------------------
DEFAULTS = {
    "HOST": "0.0.0.0",
    "PORT": 3001,
    "CLIENT_URL": "*",
    "LOG_LEVEL": "INFO",
    "FAST2SMS_API_KEY": "",
    "EMERGENCY_CONTACTS": [],
    # presence: sweep every minute, drop users silent for 2 minutes
    "PRESENCE_SWEEP_INTERVAL": 60.0,
    "PRESENCE_MAX_IDLE_MS": 2 * 60 * 1000,
    # messages: prune every hour, keep 24 hours
    "MESSAGE_EXPIRE_INTERVAL": 60.0 * 60,
    "MESSAGE_MAX_AGE_MS": 24 * 60 * 60 * 1000,
}

INT_KEYS = ("PORT", "PRESENCE_MAX_IDLE_MS", "MESSAGE_MAX_AGE_MS")
FLOAT_KEYS = ("PRESENCE_SWEEP_INTERVAL", "MESSAGE_EXPIRE_INTERVAL")


def parse_contacts(raw) -> list:
    """Split a comma separated list of phone numbers."""
    if not raw:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(n).strip() for n in raw if str(n).strip()]
    return [n.strip() for n in str(raw).split(",") if n.strip()]


def _number(key, raw, cast):
    try:
        return cast(raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid value for {key}: {raw!r}, using {DEFAULTS[key]}")
        return DEFAULTS[key]


def load_config(**overrides) -> dict:
    """Build the server settings from the environment (and a .env file).

    Keyword overrides win over environment variables, which win over DEFAULTS.
    """
    load_dotenv()

    config = {}
    for key, default in DEFAULTS.items():
        if key in overrides:
            value = overrides[key]
        else:
            value = os.getenv(key)
            if value is None or value == "":
                value = default

        if key in INT_KEYS:
            value = _number(key, value, int)
        elif key in FLOAT_KEYS:
            value = _number(key, value, float)
        elif key == "EMERGENCY_CONTACTS":
            value = parse_contacts(value)
        config[key] = value

    return config
