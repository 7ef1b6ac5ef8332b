"""
Notification delivery protocols.

The engines never talk to a database table or mail provider directly:
they hand NotificationRequests to a NotificationSink and payloads to an
EmailSender. Production adapters live in the backend app.
"""

import logging
import threading
from typing import Any, List, Optional, Protocol, Tuple

from dealdesk.commerce.notifications.models import EmailScenario, NotificationRequest, Recipient

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Persists in-app notifications."""

    def create_notification(self, request: NotificationRequest) -> Optional[str]:
        """Store a notification. Returns its ID if the backend assigns one."""
        ...


class EmailSender(Protocol):
    """Sends transactional email."""

    def send(self, scenario: EmailScenario, recipient: Recipient, payload: Any) -> bool:
        """Send one email. Returns True if the provider accepted it."""
        ...


class InMemoryNotificationSink:
    """Collects notifications in a list (tests and local development)."""

    def __init__(self):
        self._lock = threading.Lock()
        self.notifications: List[NotificationRequest] = []

    def create_notification(self, request: NotificationRequest) -> Optional[str]:
        with self._lock:
            self.notifications.append(request)
            return str(len(self.notifications))

    def for_user(self, user_id: str) -> List[NotificationRequest]:
        with self._lock:
            return [n for n in self.notifications if n.user_id == user_id]

    def of_type(self, notification_type: str) -> List[NotificationRequest]:
        with self._lock:
            return [n for n in self.notifications if n.type == notification_type]


class RecordingEmailSender:
    """Records emails instead of sending them."""

    def __init__(self):
        self._lock = threading.Lock()
        self.sent: List[Tuple[EmailScenario, Recipient, Any]] = []

    def send(self, scenario: EmailScenario, recipient: Recipient, payload: Any) -> bool:
        with self._lock:
            self.sent.append((scenario, recipient, payload))
        return True

    def to(self, email: str) -> List[Tuple[EmailScenario, Recipient, Any]]:
        with self._lock:
            return [entry for entry in self.sent if entry[1].email == email]


class LoggingEmailSender:
    """Dev fallback when no mail provider is configured: log and drop."""

    def send(self, scenario: EmailScenario, recipient: Recipient, payload: Any) -> bool:
        logger.info(
            "Email not sent (no provider configured): %s -> %s",
            scenario.value if isinstance(scenario, EmailScenario) else scenario,
            recipient.email,
        )
        return False
