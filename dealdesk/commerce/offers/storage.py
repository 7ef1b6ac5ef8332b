"""
Offer storage layer.

Status changes go through ``update_status``, a compare-and-set on the
current status. Two concurrent responders to the same offer cannot both
win: the loser gets ``"conflict"`` back.
"""

import copy
import logging
import threading
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Tuple

from dealdesk.commerce.offers.models import ACTIVE_OFFER_STATUSES, Offer, OfferStatus

logger = logging.getLogger(__name__)

# update_status outcomes
NOT_FOUND = "not_found"
CONFLICT = "conflict"


def _status_value(status) -> str:
    return status.value if isinstance(status, OfferStatus) else status


class OfferStorage(Protocol):
    """Protocol for offer persistence backends."""

    def save_offer(self, offer: Offer) -> str:
        """Insert a new offer. Returns the offer ID."""
        ...

    def get_offer(self, offer_id: str) -> Optional[Offer]:
        """Get an offer by ID."""
        ...

    def list_offers(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        project_id: Optional[str] = None,
        statuses: Optional[Iterable[OfferStatus]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Offer], int]:
        """List offers newest first. Returns (page, total matching)."""
        ...

    def find_active_for_buyer(self, buyer_id: str, project_id: str) -> Optional[Offer]:
        """Any pending or countered offer by this buyer on this project."""
        ...

    def find_expired(self, now: datetime) -> List[Offer]:
        """Pending or countered offers whose expires_at is before now."""
        ...

    def update_status(
        self,
        offer_id: str,
        expected_status: OfferStatus,
        new_status: OfferStatus,
        responded_at: Optional[datetime] = None,
    ) -> Tuple[Optional[Offer], Optional[str]]:
        """Set status only if it currently equals expected_status.

        Returns (offer, None) on success, (None, "not_found") or
        (None, "conflict") otherwise.
        """
        ...


class InMemoryOfferStorage:
    """In-memory offer storage for testing and local development."""

    def __init__(self):
        self._offers: dict[str, Offer] = {}
        self._lock = threading.Lock()

    def save_offer(self, offer: Offer) -> str:
        with self._lock:
            if offer.id in self._offers:
                raise ValueError(f"Offer {offer.id} already exists")
            self._offers[offer.id] = copy.deepcopy(offer)
        return offer.id

    def get_offer(self, offer_id: str) -> Optional[Offer]:
        offer = self._offers.get(offer_id)
        return copy.deepcopy(offer) if offer else None

    def list_offers(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        project_id: Optional[str] = None,
        statuses: Optional[Iterable[OfferStatus]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Offer], int]:
        offers = list(self._offers.values())

        if buyer_id is not None:
            offers = [o for o in offers if o.buyer_id == buyer_id]
        if seller_id is not None:
            offers = [o for o in offers if o.seller_id == seller_id]
        if project_id is not None:
            offers = [o for o in offers if o.project_id == project_id]
        if statuses:
            wanted = {_status_value(s) for s in statuses}
            offers = [o for o in offers if o.status in wanted]

        # Sort by created_at desc
        offers.sort(key=lambda o: o.created_at or o.expires_at, reverse=True)

        page = offers[offset : offset + limit]
        return [copy.deepcopy(o) for o in page], len(offers)

    def find_active_for_buyer(self, buyer_id: str, project_id: str) -> Optional[Offer]:
        for offer in self._offers.values():
            if (
                offer.buyer_id == buyer_id
                and offer.project_id == project_id
                and offer.status in ACTIVE_OFFER_STATUSES
            ):
                return copy.deepcopy(offer)
        return None

    def find_expired(self, now: datetime) -> List[Offer]:
        return [copy.deepcopy(o) for o in self._offers.values() if o.is_expired_at(now)]

    def update_status(
        self,
        offer_id: str,
        expected_status: OfferStatus,
        new_status: OfferStatus,
        responded_at: Optional[datetime] = None,
    ) -> Tuple[Optional[Offer], Optional[str]]:
        with self._lock:
            offer = self._offers.get(offer_id)
            if offer is None:
                return None, NOT_FOUND
            if offer.status != _status_value(expected_status):
                logger.warning(
                    "Offer %s status conflict: expected %s, found %s",
                    offer_id,
                    _status_value(expected_status),
                    offer.status,
                )
                return None, CONFLICT
            offer.status = _status_value(new_status)
            if responded_at is not None:
                offer.responded_at = responded_at
            return copy.deepcopy(offer), None
