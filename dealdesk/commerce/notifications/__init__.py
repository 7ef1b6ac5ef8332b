"""Notification subsystem.

Models:
- NotificationRequest / NotificationType: in-app notifications
- EmailScenario, Recipient, OfferEmailData, EscrowReleaseEmailData,
  FeaturedExpiryEmailData: email payloads

Delivery:
- NotificationSink / EmailSender protocols and in-memory implementations
- NotificationDispatcher: background thread pool for fire-and-forget tasks
- Notifier: what the engines actually hold
"""

from dealdesk.commerce.notifications.dispatcher import InlineDispatcher, NotificationDispatcher
from dealdesk.commerce.notifications.models import (
    EmailScenario,
    EscrowReleaseEmailData,
    FeaturedExpiryEmailData,
    NotificationRequest,
    NotificationType,
    OfferEmailData,
    Recipient,
)
from dealdesk.commerce.notifications.notifier import DeliveryError, Notifier
from dealdesk.commerce.notifications.sink import (
    EmailSender,
    InMemoryNotificationSink,
    LoggingEmailSender,
    NotificationSink,
    RecordingEmailSender,
)

__all__ = [
    "NotificationRequest",
    "NotificationType",
    "EmailScenario",
    "Recipient",
    "OfferEmailData",
    "EscrowReleaseEmailData",
    "FeaturedExpiryEmailData",
    "NotificationSink",
    "EmailSender",
    "InMemoryNotificationSink",
    "RecordingEmailSender",
    "LoggingEmailSender",
    "NotificationDispatcher",
    "InlineDispatcher",
    "Notifier",
    "DeliveryError",
]
