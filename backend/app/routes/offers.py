"""Offer routes.

Endpoints for the offer / counter-offer negotiation.
"""

import asyncio
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, Field

from dealdesk.commerce.offers import Offer, OfferPage, OfferStatus

from ..auth import CurrentUser
from ..logging_config import get_logger
from ..rate_limit import limiter
from ..services import Services

logger = get_logger("dealdesk.routes.offers")
router = APIRouter(prefix="/offers", tags=["offers"])
project_offers_router = APIRouter(prefix="/projects", tags=["offers"])


# =============================================================================
# Request/Response Models
# =============================================================================

OfferStatusLiteral = Literal["pending", "accepted", "rejected", "withdrawn", "countered", "expired"]


class OfferCreate(BaseModel):
    """Request to make an offer on a project."""

    project_id: str = Field(..., min_length=1)
    offered_price_cents: int = Field(..., gt=0)
    message: str | None = Field(None, max_length=1000)


class CounterOfferRequest(BaseModel):
    counter_price_cents: int = Field(..., gt=0)
    message: str | None = Field(None, max_length=1000)


class RejectOfferRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class OfferResponse(BaseModel):
    """Offer details response."""

    id: str
    project_id: str
    buyer_id: str
    seller_id: str
    offered_price_cents: int
    original_price_cents: int
    message: str | None = None
    status: OfferStatusLiteral
    parent_offer_id: str | None = None
    is_counter_offer: bool
    expires_at: datetime
    created_at: datetime | None = None
    responded_at: datetime | None = None


class OfferListResponse(BaseModel):
    offers: list[OfferResponse]
    total: int
    page: int
    limit: int


def to_offer_response(offer: Offer) -> OfferResponse:
    return OfferResponse(**offer.to_dict(), is_counter_offer=offer.is_counter)


def to_offer_list(page: OfferPage) -> OfferListResponse:
    return OfferListResponse(
        offers=[to_offer_response(o) for o in page.offers],
        total=page.total,
        page=page.page,
        limit=page.limit,
    )


# =============================================================================
# Routes
# =============================================================================


@router.post("", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_offer(
    request: Request,
    body: OfferCreate,
    auth: CurrentUser,
    services: Services,
):
    """Make an offer below the listing price. The caller is the buyer."""
    logger.info(
        f"POST /offers | user={auth.user_id} | project={body.project_id} | "
        f"price={body.offered_price_cents}"
    )
    offer = await asyncio.to_thread(
        services.offers.create_offer,
        auth.user_id,
        body.project_id,
        body.offered_price_cents,
        body.message,
    )
    return to_offer_response(offer)


@router.get("", response_model=OfferListResponse)
@limiter.limit("60/minute")
async def list_my_offers(
    request: Request,
    auth: CurrentUser,
    services: Services,
    role: Literal["buyer", "seller"] = Query("buyer"),
    status_filter: OfferStatusLiteral | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Offers I made (role=buyer) or received (role=seller)."""
    logger.info(f"GET /offers | user={auth.user_id} | role={role} | status={status_filter}")
    offer_status = OfferStatus(status_filter) if status_filter else None
    fetch = services.offers.get_buyer_offers if role == "buyer" else services.offers.get_seller_offers
    result = await asyncio.to_thread(fetch, auth.user_id, offer_status, page, limit)
    return to_offer_list(result)


@router.get("/{offer_id}", response_model=OfferResponse)
@limiter.limit("60/minute")
async def get_offer(request: Request, offer_id: str, auth: CurrentUser, services: Services):
    logger.info(f"GET /offers/{offer_id} | user={auth.user_id}")
    offer = await asyncio.to_thread(services.offers.get_offer, offer_id, auth.user_id)
    return to_offer_response(offer)


@router.get("/{offer_id}/thread", response_model=list[OfferResponse])
@limiter.limit("60/minute")
async def get_offer_thread(request: Request, offer_id: str, auth: CurrentUser, services: Services):
    """The negotiation thread containing this offer, oldest first."""
    logger.info(f"GET /offers/{offer_id}/thread | user={auth.user_id}")
    thread = await asyncio.to_thread(services.offers.get_offer_thread, offer_id, auth.user_id)
    return [to_offer_response(o) for o in thread]


@router.post("/{offer_id}/counter", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def counter_offer(
    request: Request,
    offer_id: str,
    body: CounterOfferRequest,
    auth: CurrentUser,
    services: Services,
):
    """Seller answers a buyer's offer with a new price."""
    logger.info(
        f"POST /offers/{offer_id}/counter | user={auth.user_id} | price={body.counter_price_cents}"
    )
    counter = await asyncio.to_thread(
        services.offers.counter_offer,
        auth.user_id,
        offer_id,
        body.counter_price_cents,
        body.message,
    )
    return to_offer_response(counter)


@router.post("/{offer_id}/accept", response_model=OfferResponse)
@limiter.limit("20/minute")
async def accept_offer(request: Request, offer_id: str, auth: CurrentUser, services: Services):
    logger.info(f"POST /offers/{offer_id}/accept | user={auth.user_id}")
    offer = await asyncio.to_thread(services.offers.accept_offer, auth.user_id, offer_id)
    logger.info(f"Offer accepted | id={offer_id} | user={auth.user_id}")
    return to_offer_response(offer)


@router.post("/{offer_id}/reject", response_model=OfferResponse)
@limiter.limit("20/minute")
async def reject_offer(
    request: Request,
    offer_id: str,
    auth: CurrentUser,
    services: Services,
    body: RejectOfferRequest | None = None,
):
    logger.info(f"POST /offers/{offer_id}/reject | user={auth.user_id}")
    reason = body.reason if body else None
    offer = await asyncio.to_thread(services.offers.reject_offer, auth.user_id, offer_id, reason)
    return to_offer_response(offer)


@router.post("/{offer_id}/withdraw", response_model=OfferResponse)
@limiter.limit("20/minute")
async def withdraw_offer(request: Request, offer_id: str, auth: CurrentUser, services: Services):
    logger.info(f"POST /offers/{offer_id}/withdraw | user={auth.user_id}")
    offer = await asyncio.to_thread(services.offers.withdraw_offer, auth.user_id, offer_id)
    return to_offer_response(offer)


@project_offers_router.get("/{project_id}/offers", response_model=OfferListResponse)
@limiter.limit("60/minute")
async def list_project_offers(
    request: Request,
    project_id: str,
    auth: CurrentUser,
    services: Services,
    status_filter: OfferStatusLiteral | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """All offers on one of my projects."""
    logger.info(f"GET /projects/{project_id}/offers | user={auth.user_id}")
    offer_status = OfferStatus(status_filter) if status_filter else None
    result = await asyncio.to_thread(
        services.offers.get_project_offers, project_id, auth.user_id, offer_status, page, limit
    )
    return to_offer_list(result)
