"""Notification and email payload models."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from dealdesk.types import format_cents, isoformat


class NotificationType(str, Enum):
    """In-app notification categories."""

    NEW_OFFER = "new_offer"
    OFFER_COUNTERED = "offer_countered"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_REJECTED = "offer_rejected"
    OFFER_WITHDRAWN = "offer_withdrawn"
    OFFER_EXPIRED = "offer_expired"
    ESCROW_RELEASED = "escrow_released"
    CODE_ACCESSED = "code_accessed"
    TRANSACTION_DISPUTED = "transaction_disputed"
    TRANSACTION_REFUNDED = "transaction_refunded"
    PROJECT_FEATURED = "project_featured"


class EmailScenario(str, Enum):
    """Email templates the sender knows how to render."""

    OFFER_RECEIVED = "offer_received"
    OFFER_COUNTERED = "offer_countered"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_REJECTED = "offer_rejected"
    OFFER_EXPIRED = "offer_expired"
    ESCROW_RELEASED = "escrow_released"
    FEATURED_EXPIRING = "featured_expiring"


@dataclass
class NotificationRequest:
    """A single in-app notification for one user."""

    user_id: str
    type: str
    title: str
    message: str
    action_url: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.type, NotificationType):
            self.type = self.type.value
        if not self.title:
            raise ValueError("Notification title cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Recipient:
    email: str
    name: str


@dataclass
class OfferEmailData:
    """Fields shared by all offer emails.

    checkout_url is only set when the recipient has to pay next.
    """

    offer_id: str
    project_id: str
    project_title: str
    offered_price_cents: int
    original_price_cents: int
    counterparty_name: str
    message: Optional[str] = None
    expires_at: Optional[datetime] = None
    checkout_url: Optional[str] = None
    action_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["expires_at"] = isoformat(self.expires_at)
        data["offered_price"] = format_cents(self.offered_price_cents)
        data["original_price"] = format_cents(self.original_price_cents)
        return data


@dataclass
class EscrowReleaseEmailData:
    transaction_id: str
    project_title: str
    amount_cents: int
    seller_receives_cents: int
    released_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["released_at"] = isoformat(self.released_at)
        data["amount"] = format_cents(self.amount_cents)
        data["seller_receives"] = format_cents(self.seller_receives_cents)
        return data


@dataclass
class FeaturedExpiryEmailData:
    project_id: str
    project_title: str
    featured_until: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["featured_until"] = isoformat(self.featured_until)
        data["featured_until_display"] = f"{self.featured_until:%B %d, %Y}"
        data["project_url"] = f"/projects/{self.project_id}"
        return data
