"""Admin routes for settling transactions by hand.

These routes require a token carrying ``is_admin``.
"""

import asyncio

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..auth import AdminUser
from ..logging_config import get_logger
from ..rate_limit import limiter
from ..services import Services
from .transactions import TransactionResponse, to_transaction_response

logger = get_logger("dealdesk.routes.admin")

router = APIRouter(prefix="/admin", tags=["admin"])


class AdminReasonRequest(BaseModel):
    """Every manual money movement is recorded with a reason."""

    reason: str = Field(..., min_length=1, max_length=2000)


class RefundResponse(BaseModel):
    transaction: TransactionResponse
    warning: str | None = None


@router.post("/transactions/{transaction_id}/release-escrow", response_model=TransactionResponse)
@limiter.limit("10/minute")
async def release_escrow(
    request: Request,
    transaction_id: str,
    body: AdminReasonRequest,
    admin: AdminUser,
    services: Services,
):
    """Release escrow ahead of schedule or to resolve a dispute."""
    logger.info(f"POST /admin/transactions/{transaction_id}/release-escrow | admin={admin.user_id}")
    transaction = await asyncio.to_thread(
        services.transactions.release_escrow_manually,
        admin.user_id,
        transaction_id,
        body.reason,
    )
    return to_transaction_response(transaction)


@router.post("/transactions/{transaction_id}/refund", response_model=RefundResponse)
@limiter.limit("10/minute")
async def refund_transaction(
    request: Request,
    transaction_id: str,
    body: AdminReasonRequest,
    admin: AdminUser,
    services: Services,
):
    logger.info(f"POST /admin/transactions/{transaction_id}/refund | admin={admin.user_id}")
    result = await asyncio.to_thread(
        services.transactions.refund_transaction,
        admin.user_id,
        transaction_id,
        body.reason,
    )
    if result.warning:
        logger.warning(f"Refund issued with warning | transaction={transaction_id} | {result.warning}")
    return RefundResponse(
        transaction=to_transaction_response(result.transaction),
        warning=result.warning,
    )
