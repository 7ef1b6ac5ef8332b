"""Featured placement models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from dealdesk.commerce.projects.models import Project
from dealdesk.types import format_cents, isoformat


@dataclass(frozen=True)
class FeaturedTier:
    """A purchasable placement duration."""

    duration_days: int
    price_cents: int

    @property
    def cost_formatted(self) -> str:
        return format_cents(self.price_cents)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration_days": self.duration_days,
            "price_cents": self.price_cents,
            "cost_formatted": self.cost_formatted,
        }


@dataclass
class FeaturedPurchase:
    """Result of buying or extending a placement."""

    project_id: str
    featured_until: datetime
    duration_days: int
    cost_cents: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "featured_until": isoformat(self.featured_until),
            "duration_days": self.duration_days,
            "cost_cents": self.cost_cents,
            "cost_formatted": format_cents(self.cost_cents),
            "message": self.message,
        }


@dataclass
class FeaturedPage:
    projects: List[Project] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projects": [p.to_dict() for p in self.projects],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
        }


@dataclass
class ExpiryWarningResult:
    """Outcome of one expiring-placement warning sweep."""

    project_ids: List[str] = field(default_factory=list)
    emails_sent: int = 0
    emails_failed: int = 0

    @property
    def projects_expiring(self) -> int:
        return len(self.project_ids)
