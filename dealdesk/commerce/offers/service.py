"""
Offer negotiation service.

Business logic for the offer / counter-offer workflow: validation,
actor checks, conditional status transitions, the expiry sweep, and
notification fan-out to the other party.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from dealdesk.commerce.config import CommerceConfig
from dealdesk.commerce.errors import (
    CommerceNotFoundError,
    CommercePermissionError,
    CommerceValidationError,
    StaleStateError,
)
from dealdesk.commerce.notifications import (
    EmailScenario,
    NotificationRequest,
    NotificationType,
    Notifier,
    OfferEmailData,
)
from dealdesk.commerce.offers.models import Offer, OfferPage, OfferStatus
from dealdesk.commerce.offers.storage import CONFLICT, NOT_FOUND, OfferStorage
from dealdesk.commerce.projects.storage import ProjectStorage
from dealdesk.logging_config import log_offer_transition, log_sweep
from dealdesk.types import Clock, format_cents, utc_now

logger = logging.getLogger(__name__)

SELLER_OFFERS_URL = "/seller/offers"
BUYER_OFFERS_URL = "/dashboard/offers"
MAX_PAGE_SIZE = 100


def checkout_url(project_id: str, offer_id: str) -> str:
    """Where a buyer completes payment for an accepted offer."""
    return f"/checkout/{project_id}?offerId={offer_id}"


class OfferValidationError(CommerceValidationError):
    """Offer request breaks a business rule."""


class OfferPermissionError(CommercePermissionError):
    """Caller is not the party allowed to act on this offer."""


class OfferNotFoundError(CommerceNotFoundError):
    """Offer does not exist or is not visible to the caller."""


class OfferConflictError(OfferValidationError, StaleStateError):
    """Offer changed status between read and write."""


class OfferService:
    """Service for offer negotiation.

    Args:
        storage: Offer persistence
        projects: Listing lookups (price, owner, status)
        notifier: Optional notification fan-out; without it nothing is sent
        config: Business constants
        now: Clock, injectable for tests
    """

    def __init__(
        self,
        storage: OfferStorage,
        projects: ProjectStorage,
        notifier: Optional[Notifier] = None,
        config: Optional[CommerceConfig] = None,
        now: Clock = utc_now,
    ):
        self.storage = storage
        self.projects = projects
        self.notifier = notifier
        self.config = config or CommerceConfig()
        self._now = now

    # =========================================================================
    # Negotiation
    # =========================================================================

    def create_offer(
        self,
        buyer_id: str,
        project_id: str,
        offered_price_cents: int,
        message: Optional[str] = None,
    ) -> Offer:
        """Open a negotiation thread with a price below the listing price.

        Raises:
            OfferValidationError: Project missing or inactive, price out of
                range, or the buyer already has an active offer here
            OfferPermissionError: Buyer owns the project
        """
        project = self.projects.get_project(project_id)
        if project is None:
            raise OfferValidationError("Project not found", field="project_id")
        if not project.is_active:
            raise OfferValidationError("Project is not available for offers", field="project_id")
        if project.seller_id == buyer_id:
            raise OfferPermissionError("You cannot make an offer on your own project")

        self._validate_price(offered_price_cents, "offered_price_cents")
        if project.minimum_offer_cents and offered_price_cents < project.minimum_offer_cents:
            raise OfferValidationError(
                f"Offer must be at least {format_cents(project.minimum_offer_cents)} "
                "(seller's minimum)",
                field="offered_price_cents",
            )
        if offered_price_cents >= project.price_cents:
            raise OfferValidationError(
                "Offer must be less than the listing price. Use Buy Now instead.",
                field="offered_price_cents",
            )
        message = self._validate_message(message)

        if self.storage.find_active_for_buyer(buyer_id, project_id) is not None:
            raise OfferValidationError(
                "You already have an active offer on this project", field="project_id"
            )

        now = self._now()
        offer = Offer(
            id=str(uuid.uuid4()),
            project_id=project_id,
            buyer_id=buyer_id,
            seller_id=project.seller_id,
            offered_price_cents=offered_price_cents,
            original_price_cents=project.price_cents,
            message=message,
            expires_at=now + timedelta(days=self.config.offer_expiry_days),
            created_at=now,
        )
        self.storage.save_offer(offer)
        log_offer_transition(buyer_id, offer.id, None, offer.status)
        logger.info(
            "Offer %s created: buyer=%s project=%s price=%d",
            offer.id,
            buyer_id,
            project_id,
            offered_price_cents,
        )

        self._submit("new_offer", self._notify_new_offer, offer)
        return offer

    def counter_offer(
        self,
        seller_id: str,
        offer_id: str,
        counter_price_cents: int,
        message: Optional[str] = None,
    ) -> Offer:
        """Answer a buyer's offer with a different price.

        The buyer's offer moves to countered and a new pending offer is
        created as its child. Only ROOT offers can be countered.

        Returns:
            The new counter-offer
        """
        offer = self._require_offer(offer_id)
        if offer.seller_id != seller_id:
            raise OfferPermissionError("Only the seller can counter this offer")
        self._require_pending(offer, "counter")
        if offer.is_counter:
            raise OfferValidationError("A counter-offer cannot be countered")

        self._validate_price(counter_price_cents, "counter_price_cents")
        if counter_price_cents >= offer.original_price_cents:
            raise OfferValidationError(
                "Counter-offer must be less than the original price",
                field="counter_price_cents",
            )
        message = self._validate_message(message)

        now = self._now()
        self._transition(offer, OfferStatus.COUNTERED, seller_id, now)

        counter = Offer(
            id=str(uuid.uuid4()),
            project_id=offer.project_id,
            buyer_id=offer.buyer_id,
            seller_id=offer.seller_id,
            offered_price_cents=counter_price_cents,
            original_price_cents=offer.original_price_cents,
            message=message,
            parent_offer_id=offer.id,
            expires_at=now + timedelta(days=self.config.offer_expiry_days),
            created_at=now,
        )
        self.storage.save_offer(counter)
        log_offer_transition(seller_id, counter.id, None, counter.status)
        logger.info(
            "Offer %s countered by %s at %d (counter %s)",
            offer.id,
            seller_id,
            counter_price_cents,
            counter.id,
        )

        self._submit("offer_countered", self._notify_countered, counter)
        return counter

    def accept_offer(self, user_id: str, offer_id: str) -> Offer:
        """Accept a pending offer. Seller accepts roots, buyer accepts counters."""
        offer = self._require_offer(offer_id)
        if user_id != offer.responder_id:
            raise OfferPermissionError("You are not allowed to accept this offer")
        self._require_pending(offer, "accept")

        accepted = self._transition(offer, OfferStatus.ACCEPTED, user_id, self._now())
        logger.info("Offer %s accepted by %s", offer_id, user_id)

        self._submit("offer_accepted", self._notify_accepted, accepted)
        return accepted

    def reject_offer(self, user_id: str, offer_id: str, reason: Optional[str] = None) -> Offer:
        """Reject a pending offer. Same actor rule as accept."""
        offer = self._require_offer(offer_id)
        if user_id != offer.responder_id:
            raise OfferPermissionError("You are not allowed to reject this offer")
        self._require_pending(offer, "reject")

        rejected = self._transition(offer, OfferStatus.REJECTED, user_id, self._now())
        logger.info("Offer %s rejected by %s", offer_id, user_id)

        self._submit("offer_rejected", self._notify_rejected, rejected, reason)
        return rejected

    def withdraw_offer(self, user_id: str, offer_id: str) -> Offer:
        """Withdraw one's own pending offer (buyer for roots, seller for counters)."""
        offer = self._require_offer(offer_id)
        if user_id != offer.author_id:
            raise OfferPermissionError("Only the author of an offer can withdraw it")
        self._require_pending(offer, "withdraw")

        withdrawn = self._transition(offer, OfferStatus.WITHDRAWN, user_id, self._now())
        logger.info("Offer %s withdrawn by %s", offer_id, user_id)

        self._submit("offer_withdrawn", self._notify_withdrawn, withdrawn)
        return withdrawn

    def expire_offers(self) -> int:
        """Expire every pending or countered offer past its expires_at.

        Each offer is handled on its own: a failure is logged and the
        sweep moves on. Returns the number of offers expired by this call.
        """
        now = self._now()
        expired = 0
        errors = 0

        for offer in self.storage.find_expired(now):
            try:
                updated, error = self.storage.update_status(
                    offer.id, OfferStatus(offer.status), OfferStatus.EXPIRED
                )
                if error:
                    # Someone else moved it first; not ours to expire
                    logger.info("Skipped expiring offer %s: %s", offer.id, error)
                    continue
                expired += 1
                log_offer_transition("system", offer.id, offer.status, updated.status)
                self._submit("offer_expired", self._notify_expired, updated)
            except Exception as e:
                errors += 1
                logger.error("Failed to expire offer %s: %s", offer.id, e)

        logger.info("Expired %d offers (%d errors)", expired, errors)
        log_sweep("expire_offers", expired, errors)
        return expired

    def count_expired_pending(self) -> int:
        """Offers the next expiry sweep would pick up."""
        return len(self.storage.find_expired(self._now()))

    # =========================================================================
    # Queries
    # =========================================================================

    def get_offer(self, offer_id: str, user_id: str) -> Offer:
        """Get an offer visible to its buyer or seller."""
        offer = self.storage.get_offer(offer_id)
        if offer is None or not offer.is_participant(user_id):
            raise OfferNotFoundError("Offer not found")
        return offer

    def get_buyer_offers(
        self,
        buyer_id: str,
        status: Optional[OfferStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> OfferPage:
        return self._page(page, limit, status, buyer_id=buyer_id)

    def get_seller_offers(
        self,
        seller_id: str,
        status: Optional[OfferStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> OfferPage:
        return self._page(page, limit, status, seller_id=seller_id)

    def get_project_offers(
        self,
        project_id: str,
        user_id: str,
        status: Optional[OfferStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> OfferPage:
        """All offers on a project. Seller only."""
        project = self.projects.get_project(project_id)
        if project is None:
            raise OfferNotFoundError("Project not found")
        if project.seller_id != user_id:
            raise OfferPermissionError("Only the seller can view offers on this project")
        return self._page(page, limit, status, project_id=project_id)

    def get_offer_thread(self, offer_id: str, user_id: str) -> List[Offer]:
        """The negotiation thread containing an offer, root first."""
        offer = self.get_offer(offer_id, user_id)

        related, _ = self.storage.list_offers(
            buyer_id=offer.buyer_id, project_id=offer.project_id, limit=MAX_PAGE_SIZE
        )
        by_id = {o.id: o for o in related}
        by_id[offer.id] = offer

        root = offer
        while root.parent_offer_id and root.parent_offer_id in by_id:
            root = by_id[root.parent_offer_id]

        children = {o.parent_offer_id: o for o in by_id.values() if o.parent_offer_id}
        thread = [root]
        while thread[-1].id in children:
            thread.append(children[thread[-1].id])
        return thread

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_offer(self, offer_id: str) -> Offer:
        offer = self.storage.get_offer(offer_id)
        if offer is None:
            raise OfferNotFoundError("Offer not found")
        return offer

    def _require_pending(self, offer: Offer, action: str) -> None:
        if offer.status != OfferStatus.PENDING.value:
            raise OfferValidationError(f"Cannot {action} an offer that is {offer.status}")

    def _validate_price(self, price_cents: int, field: str) -> None:
        if not isinstance(price_cents, int) or isinstance(price_cents, bool):
            raise OfferValidationError("Price must be a whole number of cents", field=field)
        if price_cents < self.config.minimum_offer_cents:
            raise OfferValidationError(
                f"Minimum offer is {format_cents(self.config.minimum_offer_cents)}",
                field=field,
            )

    def _validate_message(self, message: Optional[str]) -> Optional[str]:
        if message is None:
            return None
        message = message.strip()
        if len(message) > self.config.max_offer_message_length:
            raise OfferValidationError(
                f"Message too long (max {self.config.max_offer_message_length} chars)",
                field="message",
            )
        return message or None

    def _transition(
        self,
        offer: Offer,
        new_status: OfferStatus,
        actor_id: str,
        responded_at: Optional[datetime],
    ) -> Offer:
        if not offer.can_transition_to(new_status):
            raise OfferValidationError(f"Cannot move offer from {offer.status} to {new_status.value}")

        updated, error = self.storage.update_status(
            offer.id, OfferStatus(offer.status), new_status, responded_at
        )
        if error == NOT_FOUND:
            raise OfferNotFoundError("Offer not found")
        if error == CONFLICT:
            raise OfferConflictError("Offer was updated by another request. Please refresh.")

        log_offer_transition(actor_id, offer.id, offer.status, updated.status)
        return updated

    def _page(self, page: int, limit: int, status: Optional[OfferStatus], **filters) -> OfferPage:
        if page < 1:
            raise OfferValidationError("Page must be at least 1", field="page")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise OfferValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")
        statuses = [status] if status else None
        offers, total = self.storage.list_offers(
            statuses=statuses, limit=limit, offset=(page - 1) * limit, **filters
        )
        return OfferPage(offers=offers, total=total, page=page, limit=limit)

    # =========================================================================
    # Notifications (run on the dispatcher)
    # =========================================================================

    def _submit(self, label: str, task, *args) -> None:
        if self.notifier is None:
            return
        self.notifier.submit(label, task, *args)

    def _offers_url(self, offer: Offer, user_id: str) -> str:
        return SELLER_OFFERS_URL if user_id == offer.seller_id else BUYER_OFFERS_URL

    def _project_title(self, offer: Offer) -> str:
        project = self.projects.get_project(offer.project_id)
        return project.title if project else "a project"

    def _email_data(self, offer: Offer, counterparty_id: str, **extra) -> OfferEmailData:
        fallback = "The seller" if counterparty_id == offer.seller_id else "A buyer"
        return OfferEmailData(
            offer_id=offer.id,
            project_id=offer.project_id,
            project_title=self._project_title(offer),
            offered_price_cents=offer.offered_price_cents,
            original_price_cents=offer.original_price_cents,
            counterparty_name=self.notifier.display_name(counterparty_id, fallback),
            message=offer.message,
            expires_at=offer.expires_at,
            **extra,
        )

    def _request(
        self,
        offer: Offer,
        user_id: str,
        type_: NotificationType,
        title: str,
        message: str,
        action_url: Optional[str] = None,
    ) -> NotificationRequest:
        return NotificationRequest(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            action_url=action_url or self._offers_url(offer, user_id),
            related_entity_type="offer",
            related_entity_id=offer.id,
        )

    def _notify_new_offer(self, offer: Offer) -> None:
        data = self._email_data(offer, offer.buyer_id, action_url=SELLER_OFFERS_URL)
        self.notifier.deliver(
            self._request(
                offer,
                offer.seller_id,
                NotificationType.NEW_OFFER,
                "New offer received",
                f"{data.counterparty_name} offered {format_cents(offer.offered_price_cents)} "
                f"for {data.project_title}",
            ),
            EmailScenario.OFFER_RECEIVED,
            data,
        )

    def _notify_countered(self, counter: Offer) -> None:
        data = self._email_data(counter, counter.seller_id, action_url=BUYER_OFFERS_URL)
        self.notifier.deliver(
            self._request(
                counter,
                counter.buyer_id,
                NotificationType.OFFER_COUNTERED,
                "Counter-offer received",
                f"The seller countered with {format_cents(counter.offered_price_cents)} "
                f"for {data.project_title}",
            ),
            EmailScenario.OFFER_COUNTERED,
            data,
        )

    def _notify_accepted(self, offer: Offer) -> None:
        checkout = checkout_url(offer.project_id, offer.id)
        price = format_cents(offer.offered_price_cents)

        if not offer.is_counter:
            # Seller accepted the buyer's offer: buyer goes to checkout
            data = self._email_data(offer, offer.seller_id, checkout_url=checkout)
            self.notifier.deliver(
                self._request(
                    offer,
                    offer.buyer_id,
                    NotificationType.OFFER_ACCEPTED,
                    "Offer accepted!",
                    f"Your offer of {price} for {data.project_title} was accepted. "
                    "Complete your purchase now.",
                    action_url=checkout,
                ),
                EmailScenario.OFFER_ACCEPTED,
                data,
            )
            return

        # Buyer accepted the seller's counter: tell the seller, and give the
        # buyer the checkout link since payment is their next step
        data = self._email_data(offer, offer.buyer_id)
        seller_request = self._request(
            offer,
            offer.seller_id,
            NotificationType.OFFER_ACCEPTED,
            "Counter-offer accepted",
            f"{data.counterparty_name} accepted your counter-offer of {price} "
            f"for {data.project_title}",
        )
        buyer_request = self._request(
            offer,
            offer.buyer_id,
            NotificationType.OFFER_ACCEPTED,
            "Counter-offer accepted",
            f"You accepted the counter-offer of {price} for {data.project_title}. "
            "Complete your purchase now.",
            action_url=checkout,
        )
        self.notifier.deliver_each(
            [
                (seller_request, EmailScenario.OFFER_ACCEPTED, data),
                (buyer_request, None, None),
            ]
        )

    def _notify_rejected(self, offer: Offer, reason: Optional[str]) -> None:
        author_id = offer.author_id
        data = self._email_data(offer, offer.responder_id)
        text = f"Your offer of {format_cents(offer.offered_price_cents)} for {data.project_title} was declined"
        if reason:
            text = f"{text}: {reason}"
        self.notifier.deliver(
            self._request(offer, author_id, NotificationType.OFFER_REJECTED, "Offer declined", text),
            EmailScenario.OFFER_REJECTED,
            data,
        )

    def _notify_withdrawn(self, offer: Offer) -> None:
        responder_id = offer.responder_id
        name = self.notifier.display_name(offer.author_id, "The other party")
        self.notifier.deliver(
            self._request(
                offer,
                responder_id,
                NotificationType.OFFER_WITHDRAWN,
                "Offer withdrawn",
                f"{name} withdrew their offer of {format_cents(offer.offered_price_cents)} "
                f"for {self._project_title(offer)}",
            )
        )

    def _notify_expired(self, offer: Offer) -> None:
        price = format_cents(offer.offered_price_cents)
        deliveries = []
        for user_id, other_id in ((offer.buyer_id, offer.seller_id), (offer.seller_id, offer.buyer_id)):
            data = self._email_data(offer, other_id)
            request = self._request(
                offer,
                user_id,
                NotificationType.OFFER_EXPIRED,
                "Offer expired",
                f"The offer of {price} for {data.project_title} expired without a response",
            )
            deliveries.append((request, EmailScenario.OFFER_EXPIRED, data))
        self.notifier.deliver_each(deliveries)
