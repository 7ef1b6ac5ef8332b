"""Offer negotiation subsystem.

Models:
- Offer: a price proposal (ROOT from a buyer, COUNTER from the seller)
- OfferStatus / OfferKind: lifecycle status and thread position
- OfferPage: paginated listing result

Service:
- OfferService: create, counter, accept, reject, withdraw, expire
"""

from dealdesk.commerce.offers.models import (
    VALID_OFFER_TRANSITIONS,
    Offer,
    OfferKind,
    OfferPage,
    OfferStatus,
    Party,
)
from dealdesk.commerce.offers.service import (
    OfferConflictError,
    OfferNotFoundError,
    OfferPermissionError,
    OfferService,
    OfferValidationError,
    checkout_url,
)
from dealdesk.commerce.offers.storage import InMemoryOfferStorage, OfferStorage

__all__ = [
    # Models
    "Offer",
    "OfferStatus",
    "OfferKind",
    "OfferPage",
    "Party",
    "VALID_OFFER_TRANSITIONS",
    # Storage
    "OfferStorage",
    "InMemoryOfferStorage",
    # Service
    "OfferService",
    "OfferValidationError",
    "OfferPermissionError",
    "OfferNotFoundError",
    "OfferConflictError",
    "checkout_url",
]
