"""Transaction routes.

Purchases, code access and disputes. Payment outcomes arrive through
the maintenance router; releases and refunds are admin-only.
"""

import asyncio
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, Field

from dealdesk.commerce.transactions import Transaction, TransactionPage

from ..auth import CurrentUser
from ..logging_config import get_logger
from ..rate_limit import limiter
from ..services import Services

logger = get_logger("dealdesk.routes.transactions")
router = APIRouter(prefix="/transactions", tags=["transactions"])


class TransactionCreate(BaseModel):
    project_id: str = Field(..., min_length=1)
    offer_id: str | None = None
    payment_intent_id: str | None = None
    notes: str | None = Field(None, max_length=1000)


class DisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class TransactionResponse(BaseModel):
    """Transaction details response."""

    id: str
    project_id: str
    buyer_id: str
    seller_id: str
    offer_id: str | None = None
    amount_cents: int
    commission_cents: int
    seller_receives_cents: int
    payment_status: Literal["pending", "succeeded", "failed", "refunded"]
    escrow_status: Literal["pending", "held", "disputed", "released", "refunded"]
    escrow_release_date: datetime
    released_to_seller_at: datetime | None = None
    code_delivery_status: Literal["not_accessed", "accessed"]
    code_accessed_at: datetime | None = None
    payment_intent_id: str | None = None
    notes: str | None = None
    dispute_reason: str | None = None
    refund_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    page: int
    limit: int


def to_transaction_response(transaction: Transaction) -> TransactionResponse:
    return TransactionResponse(**transaction.to_dict())


def to_transaction_list(page: TransactionPage) -> TransactionListResponse:
    return TransactionListResponse(
        transactions=[to_transaction_response(t) for t in page.transactions],
        total=page.total,
        page=page.page,
        limit=page.limit,
    )


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_transaction(
    request: Request,
    body: TransactionCreate,
    auth: CurrentUser,
    services: Services,
):
    """Start a purchase. With ``offer_id`` the accepted offer's price applies."""
    logger.info(
        f"POST /transactions | user={auth.user_id} | project={body.project_id} | "
        f"offer={body.offer_id}"
    )
    transaction = await asyncio.to_thread(
        services.transactions.create_transaction,
        auth.user_id,
        body.project_id,
        body.payment_intent_id,
        body.notes,
        body.offer_id,
    )
    return to_transaction_response(transaction)


@router.get("", response_model=TransactionListResponse)
@limiter.limit("60/minute")
async def list_my_transactions(
    request: Request,
    auth: CurrentUser,
    services: Services,
    role: Literal["buyer", "seller"] = Query("buyer"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Purchases (role=buyer) or sales (role=seller)."""
    logger.info(f"GET /transactions | user={auth.user_id} | role={role}")
    fetch = (
        services.transactions.get_buyer_transactions
        if role == "buyer"
        else services.transactions.get_seller_transactions
    )
    result = await asyncio.to_thread(fetch, auth.user_id, page, limit)
    return to_transaction_list(result)


@router.get("/{transaction_id}", response_model=TransactionResponse)
@limiter.limit("60/minute")
async def get_transaction(
    request: Request,
    transaction_id: str,
    auth: CurrentUser,
    services: Services,
):
    logger.info(f"GET /transactions/{transaction_id} | user={auth.user_id}")
    transaction = await asyncio.to_thread(
        services.transactions.get_transaction, transaction_id, auth.user_id
    )
    return to_transaction_response(transaction)


@router.post("/{transaction_id}/code-access", response_model=TransactionResponse)
@limiter.limit("30/minute")
async def access_code(
    request: Request,
    transaction_id: str,
    auth: CurrentUser,
    services: Services,
):
    """Record that the buyer opened the code. Repeat calls are harmless."""
    logger.info(f"POST /transactions/{transaction_id}/code-access | user={auth.user_id}")
    transaction = await asyncio.to_thread(
        services.transactions.mark_code_accessed, transaction_id, auth.user_id
    )
    return to_transaction_response(transaction)


@router.post("/{transaction_id}/dispute", response_model=TransactionResponse)
@limiter.limit("5/minute")
async def open_dispute(
    request: Request,
    transaction_id: str,
    body: DisputeRequest,
    auth: CurrentUser,
    services: Services,
):
    logger.info(f"POST /transactions/{transaction_id}/dispute | user={auth.user_id}")
    transaction = await asyncio.to_thread(
        services.transactions.open_dispute, transaction_id, auth.user_id, body.reason
    )
    logger.warning(f"Dispute opened | transaction={transaction_id} | user={auth.user_id}")
    return to_transaction_response(transaction)
