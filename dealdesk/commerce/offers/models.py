"""
Offer data models.

An offer is a price proposal on a listing. A buyer's proposal is a ROOT
offer; a seller's reply to it is a COUNTER offer pointing at its parent.
Together they form one negotiation thread.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from dealdesk.types import isoformat, parse_datetime

MAX_MESSAGE_LENGTH = 1000


class OfferStatus(str, Enum):
    """Offer lifecycle status."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    COUNTERED = "countered"
    EXPIRED = "expired"


class OfferKind(str, Enum):
    """Whether an offer opens a thread or answers one."""

    ROOT = "root"
    COUNTER = "counter"


class Party(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


# Nothing ever goes back to pending
VALID_OFFER_TRANSITIONS: Dict[OfferStatus, set] = {
    OfferStatus.PENDING: {
        OfferStatus.ACCEPTED,
        OfferStatus.REJECTED,
        OfferStatus.WITHDRAWN,
        OfferStatus.COUNTERED,
        OfferStatus.EXPIRED,
    },
    OfferStatus.COUNTERED: {OfferStatus.EXPIRED},
    OfferStatus.ACCEPTED: set(),
    OfferStatus.REJECTED: set(),
    OfferStatus.WITHDRAWN: set(),
    OfferStatus.EXPIRED: set(),
}

# Statuses that keep a buyer's thread on a project open
ACTIVE_OFFER_STATUSES = frozenset({OfferStatus.PENDING.value, OfferStatus.COUNTERED.value})

# Who may accept or reject an offer of each kind
RESPONDER_BY_KIND: Dict[OfferKind, Party] = {
    OfferKind.ROOT: Party.SELLER,
    OfferKind.COUNTER: Party.BUYER,
}

# Who wrote (and may withdraw) an offer of each kind
AUTHOR_BY_KIND: Dict[OfferKind, Party] = {
    OfferKind.ROOT: Party.BUYER,
    OfferKind.COUNTER: Party.SELLER,
}


@dataclass
class Offer:
    """A price proposal within a negotiation thread.

    Attributes:
        id: Offer ID
        project_id: Listing being negotiated
        buyer_id: Buyer in this thread (same on root and counters)
        seller_id: Listing owner
        offered_price_cents: Proposed price
        original_price_cents: Listing price when the thread started (frozen)
        expires_at: When the offer lapses without a response
        status: Lifecycle status (see OfferStatus)
        message: Optional note from the author
        parent_offer_id: Set on counter-offers
        created_at: Creation timestamp
        responded_at: When the offer left pending through a party's action
    """

    id: str
    project_id: str
    buyer_id: str
    seller_id: str
    offered_price_cents: int
    original_price_cents: int
    expires_at: datetime
    status: str = OfferStatus.PENDING.value
    message: Optional[str] = None
    parent_offer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, OfferStatus):
            self.status = self.status.value
        valid = {s.value for s in OfferStatus}
        if self.status not in valid:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {valid}")
        if self.offered_price_cents <= 0:
            raise ValueError("Offered price must be positive")
        if self.offered_price_cents >= self.original_price_cents:
            raise ValueError("Offered price must be below the original price")
        if self.message is not None and len(self.message) > MAX_MESSAGE_LENGTH:
            raise ValueError(f"Message too long (max {MAX_MESSAGE_LENGTH} chars)")
        if self.parent_offer_id == self.id:
            raise ValueError("An offer cannot be its own parent")

    @property
    def kind(self) -> OfferKind:
        return OfferKind.COUNTER if self.parent_offer_id else OfferKind.ROOT

    @property
    def is_counter(self) -> bool:
        return self.kind is OfferKind.COUNTER

    def party_id(self, party: Party) -> str:
        return self.buyer_id if party is Party.BUYER else self.seller_id

    @property
    def responder_id(self) -> str:
        """User who may accept or reject this offer."""
        return self.party_id(RESPONDER_BY_KIND[self.kind])

    @property
    def author_id(self) -> str:
        """User who made this offer (and may withdraw it)."""
        return self.party_id(AUTHOR_BY_KIND[self.kind])

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.seller_id)

    def can_transition_to(self, new_status: OfferStatus) -> bool:
        current = OfferStatus(self.status)
        return new_status in VALID_OFFER_TRANSITIONS.get(current, set())

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_OFFER_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not VALID_OFFER_TRANSITIONS[OfferStatus(self.status)]

    def is_expired_at(self, now: datetime) -> bool:
        return self.is_active and self.expires_at < now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "offered_price_cents": self.offered_price_cents,
            "original_price_cents": self.original_price_cents,
            "message": self.message,
            "status": self.status,
            "parent_offer_id": self.parent_offer_id,
            "expires_at": isoformat(self.expires_at),
            "created_at": isoformat(self.created_at),
            "responded_at": isoformat(self.responded_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Offer":
        return cls(
            id=data["id"],
            project_id=data["project_id"],
            buyer_id=data["buyer_id"],
            seller_id=data["seller_id"],
            offered_price_cents=int(data["offered_price_cents"]),
            original_price_cents=int(data["original_price_cents"]),
            message=data.get("message"),
            status=data.get("status", OfferStatus.PENDING.value),
            parent_offer_id=data.get("parent_offer_id"),
            expires_at=parse_datetime(data["expires_at"]),
            created_at=parse_datetime(data.get("created_at")),
            responded_at=parse_datetime(data.get("responded_at")),
        )


@dataclass
class OfferPage:
    """One page of an offer listing."""

    offers: List[Offer] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offers": [o.to_dict() for o in self.offers],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }
