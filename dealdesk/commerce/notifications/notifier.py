"""Notifier: the one object engines use to tell users about things.

Bundles the notification sink, the email sender, the user directory and
the dispatcher. Engines call ``submit`` with a task; tasks call
``deliver`` for one recipient or ``deliver_each`` for several.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional, Tuple

from dealdesk.commerce.notifications.dispatcher import InlineDispatcher, NotificationDispatcher
from dealdesk.commerce.notifications.models import EmailScenario, NotificationRequest, Recipient
from dealdesk.commerce.notifications.sink import EmailSender, LoggingEmailSender, NotificationSink
from dealdesk.commerce.projects.storage import UserDirectory

logger = logging.getLogger(__name__)


class DeliveryError(RuntimeError):
    """Some recipients of a multi-recipient notification were not reached."""


class Notifier:
    def __init__(
        self,
        sink: NotificationSink,
        email_sender: Optional[EmailSender] = None,
        users: Optional[UserDirectory] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.sink = sink
        self.email_sender = email_sender or LoggingEmailSender()
        self.users = users
        self.dispatcher = dispatcher or InlineDispatcher()

    def submit(self, label: str, fn: Callable[..., Any], *args: Any) -> None:
        """Run a notification task in the background."""
        self.dispatcher.dispatch(label, fn, *args)

    def display_name(self, user_id: str, fallback: str) -> str:
        if self.users is None:
            return fallback
        contact = self.users.get_contact(user_id)
        return contact.display_name(fallback) if contact else fallback

    def deliver(
        self,
        request: NotificationRequest,
        scenario: Optional[EmailScenario] = None,
        payload: Any = None,
    ) -> None:
        """Store the in-app notification, then try the email.

        Sink errors propagate (the dispatcher logs them). Email is best
        effort: a missing address or a provider error is logged only.
        """
        self.sink.create_notification(request)
        if scenario is None or self.users is None:
            return

        contact = self.users.get_contact(request.user_id)
        if contact is None or not contact.email:
            logger.debug("No email on file for user %s, skipping %s", request.user_id, scenario.value)
            return
        recipient = Recipient(email=contact.email, name=contact.display_name("there"))
        try:
            self.email_sender.send(scenario, recipient, payload)
        except Exception as e:
            logger.error("Failed to send %s email to user %s: %s", scenario.value, request.user_id, e)

    def deliver_each(
        self,
        deliveries: Iterable[Tuple[NotificationRequest, Optional[EmailScenario], Any]],
    ) -> None:
        """Deliver to several recipients; one failing does not skip the rest.

        Raises DeliveryError once every recipient has been tried, so the
        dispatcher still counts the task as failed.
        """
        failed: List[str] = []
        for request, scenario, payload in deliveries:
            try:
                self.deliver(request, scenario, payload)
            except Exception as e:
                logger.error("Failed to notify user %s (%s): %s", request.user_id, request.type, e)
                failed.append(request.user_id)
        if failed:
            raise DeliveryError(f"Notification failed for {', '.join(failed)}")

    def send_email(self, user_id: str, scenario: EmailScenario, payload: Any) -> bool:
        """Email a user directly, without an in-app notification.

        Returns False when the user has no address on file or the provider
        refused the message. Sender exceptions propagate.
        """
        contact = self.users.get_contact(user_id) if self.users is not None else None
        if contact is None or not contact.email:
            logger.warning("No email on file for user %s, skipping %s", user_id, scenario.value)
            return False
        recipient = Recipient(email=contact.email, name=contact.display_name("there"))
        return bool(self.email_sender.send(scenario, recipient, payload))
