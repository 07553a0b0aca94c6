import logging

import requests

logger = logging.getLogger(__name__)

FAST2SMS_URL = "https://www.fast2sms.com/dev/bulkV2"


def send_sms(api_key, numbers, message) -> bool:
    """Send SMS via Fast2SMS."""
    if not api_key:
        logger.warning("FAST2SMS_API_KEY not configured")
        return False
    if not numbers:
        logger.warning("No emergency contacts configured")
        return False

    headers = {
        "authorization": api_key,
        "Content-Type": "application/json",
    }
    payload = {
        "route": "q",
        "message": message,
        "language": "english",
        "numbers": ",".join(numbers),
    }
    try:
        resp = requests.post(FAST2SMS_URL, json=payload, headers=headers, timeout=8)
        if not resp.ok:
            logger.error(f"Fast2SMS rejected emergency SMS: HTTP {resp.status_code}")
        return resp.ok
    except requests.RequestException as e:
        logger.error(f"SMS sending error: {e}")
        return False


def build_alert_text(message) -> str:
    if message.location is not None:
        map_link = message.location.maps_link()
    else:
        map_link = "Not available"

    return f"""Safety Chat EMERGENCY Alert

{message.name or 'Someone'} raised an emergency.

Message:
{message.text}

Location:
{map_link}
"""


class EmergencyNotifier:
    """Tells the outside world about `emergency` messages (log + optional SMS)."""

    def __init__(self, api_key="", contacts=None):
        self.api_key = api_key
        self.contacts = list(contacts or [])

    @classmethod
    def from_config(cls, config):
        return cls(config.get("FAST2SMS_API_KEY", ""), config.get("EMERGENCY_CONTACTS", []))

    def notify(self, message) -> bool:
        logger.warning("EMERGENCY ALERT")
        logger.warning(
            f"From: {message.name} ({message.email or 'No email'}, {message.phone or 'No phone'})"
        )
        logger.warning(f"Message: {message.text}")
        if message.location is not None:
            logger.warning(f"Location: {message.location.maps_link()}")
        else:
            logger.warning("Location: Not available")

        return send_sms(self.api_key, self.contacts, build_alert_text(message))
