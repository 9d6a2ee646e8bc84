"""
Push notifications through an ntfy topic
"""

import logging
from typing import Optional

import requests

from availability_client import program_url
from errors import NotifyError
from models import TransitionEvent

logger = logging.getLogger(__name__)


def format_message(event: TransitionEvent) -> str:
    """Build the notification body for a newly opened program"""
    snapshot = event.snapshot
    if snapshot is None:
        return f"{event.display_name} has open spots."

    open_sessions = snapshot.open_sessions()
    if not open_sessions:
        return f"{event.display_name}: {snapshot.open_slot_count} open spots"

    lines = []
    for session in open_sessions:
        when = f"{session.date} @ {session.time}" if session.time else session.date
        lines.append(f"{session.product_name or event.display_name} on {when}: {session.open_spots} spots")
    return "\n".join(lines)


class NotificationDispatcher:
    def __init__(self, endpoint: str, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def notify(self, event: TransitionEvent):
        """Send one alert for a transition; raises NotifyError, never retries"""
        self.send_text(
            f"Spots open: {event.display_name}",
            format_message(event),
            click=program_url(event.program_id),
        )

    def send_text(self, title: str, message: str, click: Optional[str] = None):
        """Publish a message to the ntfy endpoint"""
        headers = {
            'Title': title,
            'Priority': 'high',
            'Tags': 'tada',
        }
        if click:
            headers['Click'] = click

        try:
            resp = self.session.post(
                self.endpoint,
                data=message.encode('utf-8'),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NotifyError(f"Error sending notification: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise NotifyError(
                f"Failed to send notification: {resp.status_code} - {resp.text}",
                status_code=resp.status_code,
            )
        logger.debug(f"Notification '{title}' accepted by {self.endpoint}")

    def close(self):
        self.session.close()
