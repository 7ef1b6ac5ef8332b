"""Maintenance routes.

Sweeps meant to be called periodically by a scheduler:
- expire offers past their expires_at
- release escrow whose hold period has ended
- clear lapsed featured placements
- warn sellers whose featured placement ends soon

The first three are idempotent; running one twice does no extra work.
The warning sweep emails again if called twice for the same window. The
payment provider's outcome callback also lands here, behind the same
shared secret.
"""

import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from ..auth import CronCaller
from ..logging_config import get_logger
from ..rate_limit import limiter
from ..services import Services
from .transactions import TransactionResponse, to_transaction_response

logger = get_logger("dealdesk.routes.maintenance")
router = APIRouter(prefix="/maintenance", tags=["maintenance"])

# Upper bound on rows counted by the health check
HEALTH_SCAN_LIMIT = 1000


class SweepResponse(BaseModel):
    """Result of one sweep."""

    sweep: str
    processed: int
    checked_at: datetime


class ExpiryWarningResponse(BaseModel):
    projects_expiring: int
    emails_sent: int
    emails_failed: int
    project_ids: list[str]
    checked_at: datetime


class PaymentResultRequest(BaseModel):
    payment_intent_id: str = Field(..., min_length=1)
    succeeded: bool


class HealthResponse(BaseModel):
    """Backlog seen by the sweeps."""

    status: str
    offers_past_expiry: int
    escrows_due_for_release: int
    checked_at: datetime


@router.post("/expire-offers", response_model=SweepResponse)
@limiter.limit("10/minute")
async def expire_offers(request: Request, caller: CronCaller, services: Services):
    logger.info("POST /maintenance/expire-offers")
    expired = await asyncio.to_thread(services.offers.expire_offers)
    return SweepResponse(
        sweep="expire_offers", processed=expired, checked_at=datetime.now(timezone.utc)
    )


@router.post("/release-escrow", response_model=SweepResponse)
@limiter.limit("10/minute")
async def release_escrow(
    request: Request,
    caller: CronCaller,
    services: Services,
    limit: int | None = Query(None, ge=1, le=1000),
):
    """Release every held escrow past its release date (up to ``limit``)."""
    logger.info(f"POST /maintenance/release-escrow | limit={limit}")
    released = await asyncio.to_thread(services.transactions.release_due_escrows, limit)
    return SweepResponse(
        sweep="release_escrow", processed=released, checked_at=datetime.now(timezone.utc)
    )


@router.post("/cleanup-featured", response_model=SweepResponse)
@limiter.limit("10/minute")
async def cleanup_featured(request: Request, caller: CronCaller, services: Services):
    logger.info("POST /maintenance/cleanup-featured")
    cleared = await asyncio.to_thread(services.featured.cleanup_expired_featured)
    return SweepResponse(
        sweep="cleanup_featured", processed=cleared, checked_at=datetime.now(timezone.utc)
    )


@router.post("/featured-expiration-warning", response_model=ExpiryWarningResponse)
@limiter.limit("10/minute")
async def featured_expiration_warning(
    request: Request,
    caller: CronCaller,
    services: Services,
    within_days: int = Query(3, ge=1, le=30),
):
    """Email sellers whose placement ends about ``within_days`` from now."""
    logger.info(f"POST /maintenance/featured-expiration-warning | within_days={within_days}")
    result = await asyncio.to_thread(services.featured.warn_expiring_placements, within_days)
    return ExpiryWarningResponse(
        projects_expiring=result.projects_expiring,
        emails_sent=result.emails_sent,
        emails_failed=result.emails_failed,
        project_ids=result.project_ids,
        checked_at=datetime.now(timezone.utc),
    )


@router.post("/payment-result", response_model=TransactionResponse)
@limiter.limit("60/minute")
async def payment_result(
    request: Request,
    body: PaymentResultRequest,
    caller: CronCaller,
    services: Services,
):
    """Apply the payment provider's outcome for a payment intent."""
    logger.info(
        f"POST /maintenance/payment-result | intent={body.payment_intent_id} | "
        f"succeeded={body.succeeded}"
    )
    transaction = await asyncio.to_thread(
        services.transactions.record_payment_result, body.payment_intent_id, body.succeeded
    )
    return to_transaction_response(transaction)


@router.get("/health", response_model=HealthResponse)
@limiter.limit("30/minute")
async def maintenance_health(request: Request, caller: CronCaller, services: Services):
    """How much work the next sweeps would find."""
    expired = await asyncio.to_thread(services.offers.count_expired_pending)
    due = await asyncio.to_thread(services.transactions.count_due_for_release, HEALTH_SCAN_LIMIT)
    return HealthResponse(
        status="ok" if expired + due == 0 else "backlog",
        offers_past_expiry=expired,
        escrows_due_for_release=due,
        checked_at=datetime.now(timezone.utc),
    )
