"""
Transaction data models.

A transaction is one purchase of a project. Money moves through two
independent status fields: payment (did the charge go through) and
escrow (where the funds sit). Both only move forward.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from dealdesk.types import isoformat, parse_datetime


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class EscrowStatus(str, Enum):
    """Where the buyer's funds are.

    pending: payment not confirmed yet
    held: platform holds funds until escrow_release_date
    disputed: buyer raised a dispute; only an admin release or refund leaves it
    released: paid out to the seller
    refunded: returned to the buyer
    """

    PENDING = "pending"
    HELD = "held"
    DISPUTED = "disputed"
    RELEASED = "released"
    REFUNDED = "refunded"


class CodeDeliveryStatus(str, Enum):
    NOT_ACCESSED = "not_accessed"
    ACCESSED = "accessed"


VALID_PAYMENT_TRANSITIONS: Dict[PaymentStatus, set] = {
    PaymentStatus.PENDING: {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED},
    PaymentStatus.SUCCEEDED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}

VALID_ESCROW_TRANSITIONS: Dict[EscrowStatus, set] = {
    EscrowStatus.PENDING: {EscrowStatus.HELD},
    EscrowStatus.HELD: {EscrowStatus.RELEASED, EscrowStatus.DISPUTED, EscrowStatus.REFUNDED},
    EscrowStatus.DISPUTED: {EscrowStatus.RELEASED, EscrowStatus.REFUNDED},
    EscrowStatus.RELEASED: set(),
    EscrowStatus.REFUNDED: set(),
}

# Escrow states a release may start from
RELEASABLE_ESCROW_STATUSES = (EscrowStatus.HELD, EscrowStatus.DISPUTED)


def compute_commission(amount_cents: int, rate: Decimal) -> Tuple[int, int]:
    """Split a gross amount into (commission_cents, seller_receives_cents).

    Commission is rounded half-up to a whole cent; the seller gets the
    remainder so the two parts always add back up to the gross.
    """
    commission = (Decimal(amount_cents) * Decimal(str(rate))).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    commission_cents = int(commission)
    return commission_cents, amount_cents - commission_cents


def _enum_value(value, enum_cls) -> str:
    if isinstance(value, enum_cls):
        return value.value
    valid = {s.value for s in enum_cls}
    if value not in valid:
        raise ValueError(f"Invalid {enum_cls.__name__}: {value}. Must be one of {valid}")
    return value


@dataclass
class Transaction:
    """A purchase of a project, with escrow.

    Attributes:
        id: Transaction ID
        project_id: Project being bought
        buyer_id / seller_id: Parties
        offer_id: Accepted offer that priced this purchase, if any
        amount_cents: Gross amount charged
        commission_cents: Platform cut (frozen at creation)
        seller_receives_cents: Seller's payout (frozen at creation)
        payment_status: See PaymentStatus
        escrow_status: See EscrowStatus
        escrow_release_date: When the funds become releasable
        released_to_seller_at: When escrow was released
        code_delivery_status: Whether the buyer opened the code
        code_accessed_at: First code access (starts the review clock)
        payment_intent_id: Payment-provider reference
    """

    id: str
    project_id: str
    buyer_id: str
    seller_id: str
    amount_cents: int
    commission_cents: int
    seller_receives_cents: int
    escrow_release_date: datetime
    payment_status: str = PaymentStatus.PENDING.value
    escrow_status: str = EscrowStatus.PENDING.value
    code_delivery_status: str = CodeDeliveryStatus.NOT_ACCESSED.value
    offer_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    notes: Optional[str] = None
    released_to_seller_at: Optional[datetime] = None
    code_accessed_at: Optional[datetime] = None
    dispute_reason: Optional[str] = None
    refund_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.payment_status = _enum_value(self.payment_status, PaymentStatus)
        self.escrow_status = _enum_value(self.escrow_status, EscrowStatus)
        self.code_delivery_status = _enum_value(self.code_delivery_status, CodeDeliveryStatus)
        if self.amount_cents <= 0:
            raise ValueError("Amount must be positive")
        if self.commission_cents < 0 or self.seller_receives_cents < 0:
            raise ValueError("Commission and payout cannot be negative")
        if self.commission_cents + self.seller_receives_cents != self.amount_cents:
            raise ValueError("Commission and payout must add up to the amount")
        if self.buyer_id == self.seller_id:
            raise ValueError("Buyer and seller must differ")

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.SUCCEEDED.value

    @property
    def is_released(self) -> bool:
        return self.escrow_status == EscrowStatus.RELEASED.value

    @property
    def code_accessed(self) -> bool:
        return self.code_delivery_status == CodeDeliveryStatus.ACCESSED.value

    def is_due_for_release(self, now: datetime) -> bool:
        return (
            self.is_paid
            and self.escrow_status == EscrowStatus.HELD.value
            and self.escrow_release_date <= now
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "offer_id": self.offer_id,
            "amount_cents": self.amount_cents,
            "commission_cents": self.commission_cents,
            "seller_receives_cents": self.seller_receives_cents,
            "payment_status": self.payment_status,
            "escrow_status": self.escrow_status,
            "escrow_release_date": isoformat(self.escrow_release_date),
            "released_to_seller_at": isoformat(self.released_to_seller_at),
            "code_delivery_status": self.code_delivery_status,
            "code_accessed_at": isoformat(self.code_accessed_at),
            "payment_intent_id": self.payment_intent_id,
            "notes": self.notes,
            "dispute_reason": self.dispute_reason,
            "refund_reason": self.refund_reason,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        return cls(
            id=data["id"],
            project_id=data["project_id"],
            buyer_id=data["buyer_id"],
            seller_id=data["seller_id"],
            offer_id=data.get("offer_id"),
            amount_cents=int(data["amount_cents"]),
            commission_cents=int(data["commission_cents"]),
            seller_receives_cents=int(data["seller_receives_cents"]),
            payment_status=data.get("payment_status", PaymentStatus.PENDING.value),
            escrow_status=data.get("escrow_status", EscrowStatus.PENDING.value),
            escrow_release_date=parse_datetime(data["escrow_release_date"]),
            released_to_seller_at=parse_datetime(data.get("released_to_seller_at")),
            code_delivery_status=data.get(
                "code_delivery_status", CodeDeliveryStatus.NOT_ACCESSED.value
            ),
            code_accessed_at=parse_datetime(data.get("code_accessed_at")),
            payment_intent_id=data.get("payment_intent_id"),
            notes=data.get("notes"),
            dispute_reason=data.get("dispute_reason"),
            refund_reason=data.get("refund_reason"),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )


@dataclass
class RefundResult:
    """Outcome of an admin refund."""

    transaction: Transaction
    warning: Optional[str] = None


@dataclass
class TransactionPage:
    transactions: List[Transaction] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactions": [t.to_dict() for t in self.transactions],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
        }
