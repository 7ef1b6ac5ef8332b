"""Supabase-backed storage for the commerce engines.

Each class implements one of the dealdesk storage protocols on top of the
Supabase query builder. Status changes are expressed as
``UPDATE ... WHERE id = ? AND <column> = <expected>``; an empty result
means either the row is gone or somebody else changed it first, and a
follow-up read tells the two apart.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from supabase import Client

from dealdesk.commerce.notifications import NotificationRequest
from dealdesk.commerce.offers import Offer, OfferStatus
from dealdesk.commerce.offers.models import ACTIVE_OFFER_STATUSES
from dealdesk.commerce.offers.storage import CONFLICT, NOT_FOUND
from dealdesk.commerce.projects import Project, ProjectStatus, UserContact
from dealdesk.commerce.projects.storage import ANY
from dealdesk.commerce.transactions import EscrowStatus, PaymentStatus, Transaction

from .database import (
    NOTIFICATIONS_TABLE,
    OFFERS_TABLE,
    PROJECTS_TABLE,
    TRANSACTIONS_TABLE,
    USERS_TABLE,
)
from .logging_config import get_logger

logger = get_logger("dealdesk.stores")


def _db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _serialize(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _db_value(value) for key, value in data.items()}


# =============================================================================
# Offers
# =============================================================================


class SupabaseOfferStorage:
    def __init__(self, db: Client):
        self.db = db

    def save_offer(self, offer: Offer) -> str:
        self.db.table(OFFERS_TABLE).insert(offer.to_dict()).execute()
        return offer.id

    def get_offer(self, offer_id: str) -> Optional[Offer]:
        result = self.db.table(OFFERS_TABLE).select("*").eq("id", offer_id).execute()
        return Offer.from_dict(result.data[0]) if result.data else None

    def list_offers(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        project_id: Optional[str] = None,
        statuses: Optional[Iterable[OfferStatus]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Offer], int]:
        query = self.db.table(OFFERS_TABLE).select("*", count="exact")
        if buyer_id is not None:
            query = query.eq("buyer_id", buyer_id)
        if seller_id is not None:
            query = query.eq("seller_id", seller_id)
        if project_id is not None:
            query = query.eq("project_id", project_id)
        if statuses:
            query = query.in_("status", [_db_value(s) for s in statuses])
        result = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        offers = [Offer.from_dict(row) for row in result.data or []]
        return offers, result.count if result.count is not None else len(offers)

    def find_active_for_buyer(self, buyer_id: str, project_id: str) -> Optional[Offer]:
        result = (
            self.db.table(OFFERS_TABLE)
            .select("*")
            .eq("buyer_id", buyer_id)
            .eq("project_id", project_id)
            .in_("status", sorted(ACTIVE_OFFER_STATUSES))
            .limit(1)
            .execute()
        )
        return Offer.from_dict(result.data[0]) if result.data else None

    def find_expired(self, now: datetime) -> List[Offer]:
        result = (
            self.db.table(OFFERS_TABLE)
            .select("*")
            .in_("status", sorted(ACTIVE_OFFER_STATUSES))
            .lt("expires_at", now.isoformat())
            .execute()
        )
        return [Offer.from_dict(row) for row in result.data or []]

    def update_status(
        self,
        offer_id: str,
        expected_status: OfferStatus,
        new_status: OfferStatus,
        responded_at: Optional[datetime] = None,
    ) -> Tuple[Optional[Offer], Optional[str]]:
        update_data = {"status": _db_value(new_status)}
        if responded_at is not None:
            update_data["responded_at"] = responded_at.isoformat()

        # Atomic update: only succeeds if status matches expected
        result = (
            self.db.table(OFFERS_TABLE)
            .update(update_data)
            .eq("id", offer_id)
            .eq("status", _db_value(expected_status))
            .execute()
        )
        if result.data:
            return Offer.from_dict(result.data[0]), None

        current = self.get_offer(offer_id)
        if current is None:
            return None, NOT_FOUND
        logger.warning(
            f"Race condition detected on offer {offer_id}: "
            f"expected status '{_db_value(expected_status)}', found '{current.status}'"
        )
        return None, CONFLICT


# =============================================================================
# Transactions
# =============================================================================


class SupabaseTransactionStorage:
    def __init__(self, db: Client):
        self.db = db

    def save_transaction(self, transaction: Transaction) -> str:
        self.db.table(TRANSACTIONS_TABLE).insert(transaction.to_dict()).execute()
        return transaction.id

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        result = self.db.table(TRANSACTIONS_TABLE).select("*").eq("id", transaction_id).execute()
        return Transaction.from_dict(result.data[0]) if result.data else None

    def get_by_payment_intent(self, payment_intent_id: str) -> Optional[Transaction]:
        result = (
            self.db.table(TRANSACTIONS_TABLE)
            .select("*")
            .eq("payment_intent_id", payment_intent_id)
            .limit(1)
            .execute()
        )
        return Transaction.from_dict(result.data[0]) if result.data else None

    def list_transactions(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        project_id: Optional[str] = None,
        payment_status: Optional[PaymentStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Transaction], int]:
        query = self.db.table(TRANSACTIONS_TABLE).select("*", count="exact")
        if buyer_id is not None:
            query = query.eq("buyer_id", buyer_id)
        if seller_id is not None:
            query = query.eq("seller_id", seller_id)
        if project_id is not None:
            query = query.eq("project_id", project_id)
        if payment_status is not None:
            query = query.eq("payment_status", _db_value(payment_status))
        result = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        transactions = [Transaction.from_dict(row) for row in result.data or []]
        return transactions, result.count if result.count is not None else len(transactions)

    def find_due_for_release(self, now: datetime, limit: int) -> List[Transaction]:
        result = (
            self.db.table(TRANSACTIONS_TABLE)
            .select("*")
            .eq("escrow_status", EscrowStatus.HELD.value)
            .eq("payment_status", PaymentStatus.SUCCEEDED.value)
            .lte("escrow_release_date", now.isoformat())
            .order("escrow_release_date")
            .limit(limit)
            .execute()
        )
        return [Transaction.from_dict(row) for row in result.data or []]

    def update_transaction(
        self,
        transaction_id: str,
        expected: Dict[str, Any],
        changes: Dict[str, Any],
    ) -> Tuple[Optional[Transaction], Optional[str]]:
        query = self.db.table(TRANSACTIONS_TABLE).update(_serialize(changes)).eq("id", transaction_id)
        for column, value in expected.items():
            if isinstance(value, (tuple, list, set, frozenset)):
                query = query.in_(column, [_db_value(v) for v in value])
            else:
                query = query.eq(column, _db_value(value))
        result = query.execute()
        if result.data:
            return Transaction.from_dict(result.data[0]), None

        if self.get_transaction(transaction_id) is None:
            return None, NOT_FOUND
        logger.warning(f"Race condition detected on transaction {transaction_id}: expected {expected}")
        return None, CONFLICT


# =============================================================================
# Projects and users
# =============================================================================


class SupabaseProjectStorage:
    def __init__(self, db: Client):
        self.db = db

    def get_project(self, project_id: str) -> Optional[Project]:
        result = self.db.table(PROJECTS_TABLE).select("*").eq("id", project_id).execute()
        return Project.from_dict(result.data[0]) if result.data else None

    def list_featured(self, now: datetime, limit: int = 10, offset: int = 0) -> Tuple[List[Project], int]:
        result = (
            self.db.table(PROJECTS_TABLE)
            .select("*", count="exact")
            .eq("is_featured", True)
            .gt("featured_until", now.isoformat())
            .order("featured_until", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        projects = [Project.from_dict(row) for row in result.data or []]
        return projects, result.count if result.count is not None else len(projects)

    def count_featured_by_seller(self, seller_id: str, now: datetime) -> int:
        result = (
            self.db.table(PROJECTS_TABLE)
            .select("id", count="exact")
            .eq("seller_id", seller_id)
            .eq("is_featured", True)
            .gt("featured_until", now.isoformat())
            .execute()
        )
        return result.count if result.count is not None else len(result.data or [])

    def set_featured(
        self,
        project_id: str,
        featured_until: datetime,
        expected_until: object = ANY,
    ) -> Optional[Project]:
        query = (
            self.db.table(PROJECTS_TABLE)
            .update({"is_featured": True, "featured_until": featured_until.isoformat()})
            .eq("id", project_id)
        )
        if expected_until is None:
            query = query.is_("featured_until", "null")
        elif expected_until is not ANY:
            query = query.eq("featured_until", _db_value(expected_until))
        result = query.execute()
        return Project.from_dict(result.data[0]) if result.data else None

    def clear_featured(self, project_id: str) -> Optional[Project]:
        result = (
            self.db.table(PROJECTS_TABLE)
            .update({"is_featured": False, "featured_until": None})
            .eq("id", project_id)
            .execute()
        )
        return Project.from_dict(result.data[0]) if result.data else None

    def clear_expired_featured(self, now: datetime) -> int:
        result = (
            self.db.table(PROJECTS_TABLE)
            .update({"is_featured": False, "featured_until": None})
            .lte("featured_until", now.isoformat())
            .execute()
        )
        return len(result.data or [])

    def find_featured_expiring(self, start: datetime, end: datetime) -> List[Project]:
        result = (
            self.db.table(PROJECTS_TABLE)
            .select("*")
            .eq("is_featured", True)
            .eq("status", ProjectStatus.ACTIVE.value)
            .gte("featured_until", start.isoformat())
            .lte("featured_until", end.isoformat())
            .order("featured_until")
            .execute()
        )
        return [Project.from_dict(row) for row in result.data or []]


class SupabaseUserDirectory:
    def __init__(self, db: Client):
        self.db = db

    def get_contact(self, user_id: str) -> Optional[UserContact]:
        result = (
            self.db.table(USERS_TABLE)
            .select("id, email, full_name, username")
            .eq("id", user_id)
            .execute()
        )
        return UserContact.from_dict(result.data[0]) if result.data else None


class SupabaseNotificationSink:
    def __init__(self, db: Client):
        self.db = db

    def create_notification(self, request: NotificationRequest) -> Optional[str]:
        data = request.to_dict()
        data["is_read"] = False
        result = self.db.table(NOTIFICATIONS_TABLE).insert(data).execute()
        return result.data[0].get("id") if result.data else None
