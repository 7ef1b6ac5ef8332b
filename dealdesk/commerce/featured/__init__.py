"""Featured placement subsystem.

- FeaturedTier / FeaturedPurchase / FeaturedPage / ExpiryWarningResult: models
- FeaturedListingService: purchase, extend, query, cleanup, expiry warnings
"""

from dealdesk.commerce.featured.models import (
    ExpiryWarningResult,
    FeaturedPage,
    FeaturedPurchase,
    FeaturedTier,
)
from dealdesk.commerce.featured.service import (
    FeaturedListingConflictError,
    FeaturedListingNotFoundError,
    FeaturedListingPermissionError,
    FeaturedListingService,
    FeaturedListingValidationError,
)

__all__ = [
    "FeaturedTier",
    "FeaturedPurchase",
    "FeaturedPage",
    "ExpiryWarningResult",
    "FeaturedListingService",
    "FeaturedListingValidationError",
    "FeaturedListingPermissionError",
    "FeaturedListingNotFoundError",
    "FeaturedListingConflictError",
]
