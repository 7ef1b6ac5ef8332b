"""
Transaction service.

Escrow-backed purchase lifecycle: creation with frozen commission,
payment results, code access, disputes, refunds, and escrow release
(scheduled sweep and admin override share one guarded path).
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional, Union

from dealdesk.commerce.config import CommerceConfig
from dealdesk.commerce.errors import (
    CommerceNotFoundError,
    CommercePermissionError,
    CommerceValidationError,
    StaleStateError,
)
from dealdesk.commerce.notifications import (
    EmailScenario,
    EscrowReleaseEmailData,
    NotificationRequest,
    NotificationType,
    Notifier,
)
from dealdesk.commerce.offers.models import OfferStatus
from dealdesk.commerce.offers.storage import OfferStorage
from dealdesk.commerce.projects.storage import ProjectStorage
from dealdesk.commerce.transactions.models import (
    RELEASABLE_ESCROW_STATUSES,
    VALID_PAYMENT_TRANSITIONS,
    CodeDeliveryStatus,
    EscrowStatus,
    PaymentStatus,
    RefundResult,
    Transaction,
    TransactionPage,
    compute_commission,
)
from dealdesk.commerce.transactions.storage import CONFLICT, NOT_FOUND, TransactionStorage
from dealdesk.logging_config import log_escrow_event, log_sweep
from dealdesk.types import Clock, format_cents, utc_now

logger = logging.getLogger(__name__)

BUYER_PURCHASES_URL = "/dashboard/purchases"
SELLER_SALES_URL = "/seller/sales"
MAX_PAGE_SIZE = 100


class TransactionValidationError(CommerceValidationError):
    """Transaction request breaks a business rule."""


class TransactionPermissionError(CommercePermissionError):
    """Caller may not act on this transaction."""


class TransactionNotFoundError(CommerceNotFoundError):
    """Transaction does not exist or is not visible to the caller."""


class TransactionConflictError(TransactionValidationError, StaleStateError):
    """Transaction changed between read and write."""


class TransactionService:
    """Service for purchases and escrow.

    Args:
        storage: Transaction persistence
        projects: Listing lookups
        offers: Offer lookups, needed to buy at an accepted offer's price
        notifier: Optional notification fan-out
        config: Business constants
        now: Clock
    """

    def __init__(
        self,
        storage: TransactionStorage,
        projects: ProjectStorage,
        offers: Optional[OfferStorage] = None,
        notifier: Optional[Notifier] = None,
        config: Optional[CommerceConfig] = None,
        now: Clock = utc_now,
    ):
        self.storage = storage
        self.projects = projects
        self.offers = offers
        self.notifier = notifier
        self.config = config or CommerceConfig()
        self._now = now

    # =========================================================================
    # Creation and payment
    # =========================================================================

    def create_transaction(
        self,
        buyer_id: str,
        project_id: str,
        payment_intent_id: Optional[str] = None,
        notes: Optional[str] = None,
        offer_id: Optional[str] = None,
    ) -> Transaction:
        """Start a purchase at the listing price, or at an accepted offer's price.

        Commission, payout and escrow release date are fixed here.
        """
        project = self.projects.get_project(project_id)
        if project is None:
            raise TransactionValidationError("Project not found", field="project_id")
        if not project.is_active:
            raise TransactionValidationError("Project is not available for purchase", field="project_id")
        if project.seller_id == buyer_id:
            raise TransactionPermissionError("You cannot purchase your own project")

        _, paid_count = self.storage.list_transactions(
            buyer_id=buyer_id,
            project_id=project_id,
            payment_status=PaymentStatus.SUCCEEDED,
            limit=1,
        )
        if paid_count:
            raise TransactionValidationError("You have already purchased this project", field="project_id")

        if payment_intent_id and self.storage.get_by_payment_intent(payment_intent_id):
            raise TransactionValidationError(
                "Payment intent is already attached to a transaction", field="payment_intent_id"
            )

        amount_cents = project.price_cents
        if offer_id is not None:
            amount_cents = self._accepted_offer_price(offer_id, buyer_id, project_id)

        commission_cents, seller_receives_cents = compute_commission(
            amount_cents, self.config.commission_rate
        )
        now = self._now()
        transaction = Transaction(
            id=str(uuid.uuid4()),
            project_id=project_id,
            buyer_id=buyer_id,
            seller_id=project.seller_id,
            offer_id=offer_id,
            amount_cents=amount_cents,
            commission_cents=commission_cents,
            seller_receives_cents=seller_receives_cents,
            escrow_release_date=now + timedelta(days=self.config.escrow_hold_days),
            payment_intent_id=payment_intent_id,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        self.storage.save_transaction(transaction)
        log_escrow_event(buyer_id, transaction.id, "created", amount_cents)
        logger.info(
            "Transaction %s created: buyer=%s project=%s amount=%d commission=%d",
            transaction.id,
            buyer_id,
            project_id,
            amount_cents,
            commission_cents,
        )
        return transaction

    def record_payment_result(self, payment_intent_id: str, succeeded: bool) -> Transaction:
        """Apply a payment provider outcome, looked up by payment intent."""
        transaction = self.storage.get_by_payment_intent(payment_intent_id)
        if transaction is None:
            raise TransactionNotFoundError("No transaction for this payment intent")
        status = PaymentStatus.SUCCEEDED if succeeded else PaymentStatus.FAILED
        return self.update_payment_status(transaction.id, status)

    def update_payment_status(
        self,
        transaction_id: str,
        status: Union[PaymentStatus, str],
    ) -> Transaction:
        """Move payment forward. Success also puts the funds in escrow.

        Re-applying the current status is a no-op. Refunds go through
        refund_transaction.
        """
        status = PaymentStatus(status)
        transaction = self._require(transaction_id)
        current = PaymentStatus(transaction.payment_status)

        if current is status:
            return transaction
        if status is PaymentStatus.REFUNDED or status not in VALID_PAYMENT_TRANSITIONS[current]:
            raise TransactionValidationError(
                f"Cannot change payment status from {current.value} to {status.value}"
            )

        now = self._now()
        expected = {"payment_status": current}
        changes = {"payment_status": status, "updated_at": now}
        if status is PaymentStatus.SUCCEEDED:
            expected["escrow_status"] = EscrowStatus.PENDING
            changes["escrow_status"] = EscrowStatus.HELD

        updated = self._update(transaction_id, expected, changes)
        if status is PaymentStatus.SUCCEEDED:
            log_escrow_event("system", transaction_id, "held", updated.amount_cents)
        logger.info("Transaction %s payment %s", transaction_id, status.value)
        return updated

    # =========================================================================
    # Queries
    # =========================================================================

    def get_transaction(self, transaction_id: str, user_id: str) -> Transaction:
        """Get a transaction visible to its buyer or seller."""
        transaction = self.storage.get_transaction(transaction_id)
        if transaction is None or user_id not in (transaction.buyer_id, transaction.seller_id):
            raise TransactionNotFoundError("Transaction not found")
        return transaction

    def get_buyer_transactions(self, buyer_id: str, page: int = 1, limit: int = 20) -> TransactionPage:
        return self._page(page, limit, buyer_id=buyer_id)

    def get_seller_transactions(self, seller_id: str, page: int = 1, limit: int = 20) -> TransactionPage:
        return self._page(page, limit, seller_id=seller_id)

    # =========================================================================
    # Escrow release
    # =========================================================================

    def release_escrow(self, transaction_id: str, actor_id: str = "system") -> Transaction:
        """Pay out escrowed funds to the seller.

        No-op if already released. Fails unless payment succeeded.
        """
        transaction = self._require(transaction_id)
        if transaction.is_released:
            logger.info("Escrow for %s already released", transaction_id)
            return transaction
        if not transaction.is_paid:
            raise TransactionValidationError("Cannot release escrow: payment has not succeeded")
        if EscrowStatus(transaction.escrow_status) not in RELEASABLE_ESCROW_STATUSES:
            raise TransactionValidationError(
                f"Cannot release escrow from status {transaction.escrow_status}"
            )

        now = self._now()
        updated, error = self.storage.update_transaction(
            transaction_id,
            expected={
                "payment_status": PaymentStatus.SUCCEEDED,
                "escrow_status": RELEASABLE_ESCROW_STATUSES,
            },
            changes={
                "escrow_status": EscrowStatus.RELEASED,
                "released_to_seller_at": now,
                "updated_at": now,
            },
        )
        if error == NOT_FOUND:
            raise TransactionNotFoundError("Transaction not found")
        if error == CONFLICT:
            current = self._require(transaction_id)
            if current.is_released:
                # A concurrent release got there first
                return current
            raise TransactionConflictError("Transaction was updated by another request")

        log_escrow_event(actor_id, transaction_id, "released", updated.seller_receives_cents)
        logger.info(
            "Escrow released for %s: %d to seller %s",
            transaction_id,
            updated.seller_receives_cents,
            updated.seller_id,
        )
        self._submit("escrow_released", self._notify_released, updated)
        return updated

    def release_escrow_manually(self, admin_id: str, transaction_id: str, reason: str) -> Transaction:
        """Admin override of the hold period. Same guards as release_escrow."""
        self._require_reason(reason)
        logger.warning(
            "Admin %s releasing escrow for %s early: %s", admin_id, transaction_id, reason.strip()
        )
        return self.release_escrow(transaction_id, actor_id=admin_id)

    def release_due_escrows(self, limit: Optional[int] = None) -> int:
        """Release every held, paid transaction past its release date.

        Continue-on-error. Returns the number released by this call.
        """
        limit = limit or self.config.escrow_release_batch_size
        released = 0
        errors = 0

        for transaction in self.storage.find_due_for_release(self._now(), limit):
            try:
                result = self.release_escrow(transaction.id)
                if result.is_released:
                    released += 1
            except Exception as e:
                errors += 1
                logger.error("Failed to release escrow for %s: %s", transaction.id, e)

        logger.info("Released %d escrows (%d errors)", released, errors)
        log_sweep("release_escrow", released, errors)
        return released

    def count_due_for_release(self, limit: int) -> int:
        """Escrows the next release sweep would pay out, capped at ``limit``."""
        return len(self.storage.find_due_for_release(self._now(), limit))

    # =========================================================================
    # Buyer actions
    # =========================================================================

    def mark_code_accessed(self, transaction_id: str, user_id: str) -> Transaction:
        """Record the buyer's first look at the code. Later calls change nothing."""
        transaction = self._require(transaction_id)
        if transaction.buyer_id != user_id:
            raise TransactionPermissionError("Only the buyer can access the code")
        if not transaction.is_paid:
            raise TransactionValidationError("Payment has not been completed")
        if transaction.code_accessed:
            return transaction

        now = self._now()
        updated, error = self.storage.update_transaction(
            transaction_id,
            expected={"code_delivery_status": CodeDeliveryStatus.NOT_ACCESSED},
            changes={
                "code_delivery_status": CodeDeliveryStatus.ACCESSED,
                "code_accessed_at": now,
                "updated_at": now,
            },
        )
        if error == CONFLICT:
            # Another request recorded the access first
            return self._require(transaction_id)
        if error == NOT_FOUND:
            raise TransactionNotFoundError("Transaction not found")

        logger.info("Code accessed for transaction %s", transaction_id)
        self._submit("code_accessed", self._notify_code_accessed, updated)
        return updated

    def open_dispute(self, transaction_id: str, user_id: str, reason: str) -> Transaction:
        """Buyer freezes escrow pending admin review."""
        transaction = self._require(transaction_id)
        if transaction.buyer_id != user_id:
            raise TransactionPermissionError("Only the buyer can open a dispute")
        self._require_reason(reason)
        if transaction.escrow_status != EscrowStatus.HELD.value:
            raise TransactionValidationError(
                f"Cannot dispute a transaction with escrow {transaction.escrow_status}"
            )

        updated = self._update(
            transaction_id,
            expected={"escrow_status": EscrowStatus.HELD},
            changes={
                "escrow_status": EscrowStatus.DISPUTED,
                "dispute_reason": reason.strip(),
                "updated_at": self._now(),
            },
        )
        log_escrow_event(user_id, transaction_id, "disputed", updated.amount_cents)
        logger.warning("Dispute opened on %s by %s", transaction_id, user_id)
        self._submit("transaction_disputed", self._notify_disputed, updated)
        return updated

    # =========================================================================
    # Admin
    # =========================================================================

    def refund_transaction(self, admin_id: str, transaction_id: str, reason: str) -> RefundResult:
        """Return the buyer's money. Not possible once escrow was released.

        The result carries a warning when the buyer already opened the code.
        """
        self._require_reason(reason)
        transaction = self._require(transaction_id)
        if not transaction.is_paid:
            raise TransactionValidationError("Can only refund transactions with successful payment")
        if transaction.is_released:
            raise TransactionValidationError("Cannot refund: escrow already released to seller")

        warning = None
        if transaction.code_accessed:
            warning = "Buyer has already accessed the code"
            logger.warning("Refunding %s after code access", transaction_id)

        updated = self._update(
            transaction_id,
            expected={
                "payment_status": PaymentStatus.SUCCEEDED,
                "escrow_status": RELEASABLE_ESCROW_STATUSES,
            },
            changes={
                "payment_status": PaymentStatus.REFUNDED,
                "escrow_status": EscrowStatus.REFUNDED,
                "refund_reason": reason.strip(),
                "updated_at": self._now(),
            },
        )
        log_escrow_event(admin_id, transaction_id, "refunded", updated.amount_cents)
        logger.warning("Admin %s refunded %s: %s", admin_id, transaction_id, reason.strip())
        self._submit("transaction_refunded", self._notify_refunded, updated)
        return RefundResult(transaction=updated, warning=warning)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require(self, transaction_id: str) -> Transaction:
        transaction = self.storage.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError("Transaction not found")
        return transaction

    def _require_reason(self, reason: Optional[str]) -> None:
        minimum = self.config.min_admin_reason_length
        if not reason or len(reason.strip()) < minimum:
            raise TransactionValidationError(
                f"Reason must be at least {minimum} characters", field="reason"
            )

    def _accepted_offer_price(self, offer_id: str, buyer_id: str, project_id: str) -> int:
        if self.offers is None:
            raise TransactionValidationError("Offers are not available", field="offer_id")
        offer = self.offers.get_offer(offer_id)
        if offer is None or offer.buyer_id != buyer_id or offer.project_id != project_id:
            raise TransactionValidationError("Offer does not apply to this purchase", field="offer_id")
        if offer.status != OfferStatus.ACCEPTED.value:
            raise TransactionValidationError("Offer has not been accepted", field="offer_id")
        return offer.offered_price_cents

    def _update(self, transaction_id: str, expected: dict, changes: dict) -> Transaction:
        updated, error = self.storage.update_transaction(transaction_id, expected, changes)
        if error == NOT_FOUND:
            raise TransactionNotFoundError("Transaction not found")
        if error == CONFLICT:
            raise TransactionConflictError("Transaction was updated by another request")
        return updated

    def _page(self, page: int, limit: int, **filters) -> TransactionPage:
        if page < 1:
            raise TransactionValidationError("Page must be at least 1", field="page")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise TransactionValidationError(
                f"Limit must be between 1 and {MAX_PAGE_SIZE}", field="limit"
            )
        transactions, total = self.storage.list_transactions(
            limit=limit, offset=(page - 1) * limit, **filters
        )
        return TransactionPage(transactions=transactions, total=total, page=page, limit=limit)

    # =========================================================================
    # Notifications (run on the dispatcher)
    # =========================================================================

    def _submit(self, label: str, task, *args) -> None:
        if self.notifier is None:
            return
        self.notifier.submit(label, task, *args)

    def _project_title(self, transaction: Transaction) -> str:
        project = self.projects.get_project(transaction.project_id)
        return project.title if project else "your project"

    def _request(
        self,
        transaction: Transaction,
        user_id: str,
        type_: NotificationType,
        title: str,
        message: str,
    ) -> NotificationRequest:
        url = SELLER_SALES_URL if user_id == transaction.seller_id else BUYER_PURCHASES_URL
        return NotificationRequest(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            action_url=url,
            related_entity_type="transaction",
            related_entity_id=transaction.id,
        )

    def _notify_released(self, transaction: Transaction) -> None:
        title = self._project_title(transaction)
        payout = format_cents(transaction.seller_receives_cents)
        email = EscrowReleaseEmailData(
            transaction_id=transaction.id,
            project_title=title,
            amount_cents=transaction.amount_cents,
            seller_receives_cents=transaction.seller_receives_cents,
            released_at=transaction.released_to_seller_at,
        )
        seller_request = self._request(
            transaction,
            transaction.seller_id,
            NotificationType.ESCROW_RELEASED,
            "Funds released",
            f"{payout} from the sale of {title} has been released to you",
        )
        buyer_request = self._request(
            transaction,
            transaction.buyer_id,
            NotificationType.ESCROW_RELEASED,
            "Purchase completed",
            f"Your purchase of {title} is complete",
        )
        self.notifier.deliver_each(
            [
                (seller_request, EmailScenario.ESCROW_RELEASED, email),
                (buyer_request, None, None),
            ]
        )

    def _notify_code_accessed(self, transaction: Transaction) -> None:
        buyer = self.notifier.display_name(transaction.buyer_id, "The buyer")
        self.notifier.deliver(
            self._request(
                transaction,
                transaction.seller_id,
                NotificationType.CODE_ACCESSED,
                "Code accessed",
                f"{buyer} has accessed the code for {self._project_title(transaction)}",
            )
        )

    def _notify_disputed(self, transaction: Transaction) -> None:
        self.notifier.deliver(
            self._request(
                transaction,
                transaction.seller_id,
                NotificationType.TRANSACTION_DISPUTED,
                "Purchase disputed",
                f"The buyer opened a dispute on {self._project_title(transaction)}. "
                "Funds stay in escrow until it is resolved.",
            )
        )

    def _notify_refunded(self, transaction: Transaction) -> None:
        title = self._project_title(transaction)
        amount = format_cents(transaction.amount_cents)
        self.notifier.deliver_each(
            (
                self._request(
                    transaction, user_id, NotificationType.TRANSACTION_REFUNDED, "Refund issued", text
                ),
                None,
                None,
            )
            for user_id, text in (
                (transaction.buyer_id, f"Your payment of {amount} for {title} was refunded"),
                (transaction.seller_id, f"The sale of {title} was refunded to the buyer"),
            )
        )
