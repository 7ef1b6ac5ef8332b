"""Project and user reference data consumed by the commerce engines."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from dealdesk.types import isoformat, parse_datetime


class ProjectStatus(str, Enum):
    """Listing lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    SOLD = "sold"
    INACTIVE = "inactive"


@dataclass
class Project:
    """A marketplace listing, as far as negotiation and settlement care.

    Attributes:
        id: Project ID
        seller_id: Owner of the listing
        title: Display title
        price_cents: Listing ("Buy Now") price
        minimum_offer_cents: Optional seller-defined floor for offers
        status: Listing status (see ProjectStatus)
        is_featured: Featured flag (may be stale, see is_featured_at)
        featured_until: When the featured placement lapses
    """

    id: str
    seller_id: str
    title: str
    price_cents: int
    status: str = ProjectStatus.ACTIVE.value
    minimum_offer_cents: Optional[int] = None
    is_featured: bool = False
    featured_until: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, ProjectStatus):
            self.status = self.status.value
        valid = {s.value for s in ProjectStatus}
        if self.status not in valid:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {valid}")
        if self.price_cents <= 0:
            raise ValueError("Price must be positive")

    @property
    def is_active(self) -> bool:
        return self.status == ProjectStatus.ACTIVE.value

    def is_featured_at(self, now: datetime) -> bool:
        """Featured only while the flag is set and the timestamp has not passed."""
        return bool(self.is_featured and self.featured_until is not None and self.featured_until > now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "title": self.title,
            "price_cents": self.price_cents,
            "minimum_offer_cents": self.minimum_offer_cents,
            "status": self.status,
            "is_featured": self.is_featured,
            "featured_until": isoformat(self.featured_until),
            "created_at": isoformat(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            seller_id=data["seller_id"],
            title=data.get("title", ""),
            price_cents=int(data["price_cents"]),
            minimum_offer_cents=data.get("minimum_offer_cents"),
            status=data.get("status", ProjectStatus.ACTIVE.value),
            is_featured=bool(data.get("is_featured", False)),
            featured_until=parse_datetime(data.get("featured_until")),
            created_at=parse_datetime(data.get("created_at")),
        )


@dataclass
class UserContact:
    """Contact identity used in notification payloads."""

    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    username: Optional[str] = None

    def display_name(self, fallback: str) -> str:
        return self.full_name or self.username or fallback

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserContact":
        return cls(
            id=data["id"],
            email=data.get("email"),
            full_name=data.get("full_name"),
            username=data.get("username"),
        )
