"""Transaction (escrow) subsystem.

Models:
- Transaction: one purchase with frozen commission and escrow state
- PaymentStatus / EscrowStatus / CodeDeliveryStatus
- compute_commission: half-up commission split

Service:
- TransactionService: create, payment results, code access, disputes,
  refunds, escrow release (sweep and manual)
"""

from dealdesk.commerce.transactions.models import (
    VALID_ESCROW_TRANSITIONS,
    VALID_PAYMENT_TRANSITIONS,
    CodeDeliveryStatus,
    EscrowStatus,
    PaymentStatus,
    RefundResult,
    Transaction,
    TransactionPage,
    compute_commission,
)
from dealdesk.commerce.transactions.service import (
    TransactionConflictError,
    TransactionNotFoundError,
    TransactionPermissionError,
    TransactionService,
    TransactionValidationError,
)
from dealdesk.commerce.transactions.storage import InMemoryTransactionStorage, TransactionStorage

__all__ = [
    # Models
    "Transaction",
    "TransactionPage",
    "RefundResult",
    "PaymentStatus",
    "EscrowStatus",
    "CodeDeliveryStatus",
    "VALID_PAYMENT_TRANSITIONS",
    "VALID_ESCROW_TRANSITIONS",
    "compute_commission",
    # Storage
    "TransactionStorage",
    "InMemoryTransactionStorage",
    # Service
    "TransactionService",
    "TransactionValidationError",
    "TransactionPermissionError",
    "TransactionNotFoundError",
    "TransactionConflictError",
]
