"""
Transaction storage layer.

``update_transaction`` is a guarded write: ``expected`` maps column names
to the value (or tuple of acceptable values) the row must still have.
"""

import copy
import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple

from dealdesk.commerce.transactions.models import PaymentStatus, Transaction

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
CONFLICT = "conflict"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list, set, frozenset)):
        return tuple(_plain(v) for v in value)
    return value


def matches_expected(row: Dict[str, Any], expected: Dict[str, Any]) -> bool:
    """True if every expected column holds its value (or one of a tuple of values)."""
    for column, wanted in expected.items():
        wanted = _plain(wanted)
        actual = row.get(column)
        if isinstance(wanted, tuple):
            if actual not in wanted:
                return False
        elif actual != wanted:
            return False
    return True


class TransactionStorage(Protocol):
    """Protocol for transaction persistence backends."""

    def save_transaction(self, transaction: Transaction) -> str:
        """Insert a transaction. Returns its ID."""
        ...

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        ...

    def get_by_payment_intent(self, payment_intent_id: str) -> Optional[Transaction]:
        ...

    def list_transactions(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        project_id: Optional[str] = None,
        payment_status: Optional[PaymentStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Transaction], int]:
        """List transactions newest first. Returns (page, total matching)."""
        ...

    def find_due_for_release(self, now: datetime, limit: int) -> List[Transaction]:
        """Held, paid transactions whose escrow_release_date has passed."""
        ...

    def update_transaction(
        self,
        transaction_id: str,
        expected: Dict[str, Any],
        changes: Dict[str, Any],
    ) -> Tuple[Optional[Transaction], Optional[str]]:
        """Apply changes only if the row still matches expected.

        Returns (transaction, None), (None, "not_found") or (None, "conflict").
        """
        ...


class InMemoryTransactionStorage:
    """In-memory transaction storage for testing and local development."""

    def __init__(self):
        self._rows: dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def save_transaction(self, transaction: Transaction) -> str:
        with self._lock:
            if transaction.id in self._rows:
                raise ValueError(f"Transaction {transaction.id} already exists")
            self._rows[transaction.id] = copy.deepcopy(transaction.to_dict())
        return transaction.id

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        row = self._rows.get(transaction_id)
        return Transaction.from_dict(row) if row else None

    def get_by_payment_intent(self, payment_intent_id: str) -> Optional[Transaction]:
        for row in self._rows.values():
            if row.get("payment_intent_id") == payment_intent_id:
                return Transaction.from_dict(row)
        return None

    def list_transactions(
        self,
        buyer_id: Optional[str] = None,
        seller_id: Optional[str] = None,
        project_id: Optional[str] = None,
        payment_status: Optional[PaymentStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Transaction], int]:
        txns = [Transaction.from_dict(r) for r in self._rows.values()]

        if buyer_id is not None:
            txns = [t for t in txns if t.buyer_id == buyer_id]
        if seller_id is not None:
            txns = [t for t in txns if t.seller_id == seller_id]
        if project_id is not None:
            txns = [t for t in txns if t.project_id == project_id]
        if payment_status is not None:
            txns = [t for t in txns if t.payment_status == _plain(payment_status)]

        txns.sort(key=lambda t: t.created_at or t.escrow_release_date, reverse=True)
        return txns[offset : offset + limit], len(txns)

    def find_due_for_release(self, now: datetime, limit: int) -> List[Transaction]:
        txns = [Transaction.from_dict(r) for r in self._rows.values()]
        due = [t for t in txns if t.is_due_for_release(now)]
        due.sort(key=lambda t: t.escrow_release_date)
        return due[:limit]

    def update_transaction(
        self,
        transaction_id: str,
        expected: Dict[str, Any],
        changes: Dict[str, Any],
    ) -> Tuple[Optional[Transaction], Optional[str]]:
        with self._lock:
            row = self._rows.get(transaction_id)
            if row is None:
                return None, NOT_FOUND
            if not matches_expected(row, expected):
                logger.warning(
                    "Transaction %s changed concurrently (expected %s)", transaction_id, expected
                )
                return None, CONFLICT
            updated = dict(row)
            for column, value in changes.items():
                if isinstance(value, datetime):
                    value = value.isoformat()
                updated[column] = _plain(value)
            # Validate before committing
            transaction = Transaction.from_dict(updated)
            self._rows[transaction_id] = updated
            return transaction, None
