"""Featured placement routes.

Listing and pricing are public. Buying a placement records it; the
charge itself is taken by the checkout flow before this call.
"""

import asyncio
from datetime import datetime

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from dealdesk.commerce.featured import FeaturedPurchase
from dealdesk.commerce.projects import Project

from ..auth import CurrentUser
from ..logging_config import get_logger
from ..rate_limit import limiter
from ..services import Services

logger = get_logger("dealdesk.routes.featured")
router = APIRouter(prefix="/featured", tags=["featured"])


class FeaturedPurchaseRequest(BaseModel):
    project_id: str = Field(..., min_length=1)
    duration_days: int


class FeaturedExtendRequest(BaseModel):
    additional_days: int


class FeaturedTierResponse(BaseModel):
    duration_days: int
    price_cents: int
    cost_formatted: str


class FeaturedPurchaseResponse(BaseModel):
    project_id: str
    featured_until: datetime
    duration_days: int
    cost_cents: int
    cost_formatted: str
    message: str


class FeaturedProjectResponse(BaseModel):
    id: str
    seller_id: str
    title: str
    price_cents: int
    status: str
    is_featured: bool
    featured_until: datetime | None = None


class FeaturedListResponse(BaseModel):
    projects: list[FeaturedProjectResponse]
    total: int
    page: int
    limit: int


class FeaturedStatusResponse(BaseModel):
    project_id: str
    is_featured: bool


class FeaturedCountResponse(BaseModel):
    seller_id: str
    featured_count: int


def to_project_response(project: Project) -> FeaturedProjectResponse:
    return FeaturedProjectResponse(
        id=project.id,
        seller_id=project.seller_id,
        title=project.title,
        price_cents=project.price_cents,
        status=project.status,
        is_featured=project.is_featured,
        featured_until=project.featured_until,
    )


def to_purchase_response(purchase: FeaturedPurchase) -> FeaturedPurchaseResponse:
    return FeaturedPurchaseResponse(**purchase.to_dict())


@router.get("", response_model=FeaturedListResponse)
@limiter.limit("120/minute")
async def list_featured(
    request: Request,
    services: Services,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
):
    """Live placements, latest-expiring first. Public."""
    result = await asyncio.to_thread(services.featured.get_featured_projects, page, limit)
    return FeaturedListResponse(
        projects=[to_project_response(p) for p in result.projects],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.get("/pricing", response_model=list[FeaturedTierResponse])
@limiter.limit("120/minute")
async def get_pricing(request: Request, services: Services):
    tiers = services.featured.get_featured_pricing()
    return [FeaturedTierResponse(**tier.to_dict()) for tier in tiers]


@router.get("/mine/count", response_model=FeaturedCountResponse)
@limiter.limit("60/minute")
async def count_my_featured(request: Request, auth: CurrentUser, services: Services):
    count = await asyncio.to_thread(services.featured.get_seller_featured_count, auth.user_id)
    return FeaturedCountResponse(seller_id=auth.user_id, featured_count=count)


@router.get("/{project_id}", response_model=FeaturedStatusResponse)
@limiter.limit("120/minute")
async def get_featured_status(request: Request, project_id: str, services: Services):
    featured = await asyncio.to_thread(services.featured.is_featured, project_id)
    return FeaturedStatusResponse(project_id=project_id, is_featured=featured)


@router.post("/purchase", response_model=FeaturedPurchaseResponse)
@limiter.limit("10/minute")
async def purchase_placement(
    request: Request,
    body: FeaturedPurchaseRequest,
    auth: CurrentUser,
    services: Services,
):
    logger.info(
        f"POST /featured/purchase | user={auth.user_id} | project={body.project_id} | "
        f"days={body.duration_days}"
    )
    purchase = await asyncio.to_thread(
        services.featured.purchase_featured_placement,
        auth.user_id,
        body.project_id,
        body.duration_days,
    )
    return to_purchase_response(purchase)


@router.post("/{project_id}/extend", response_model=FeaturedPurchaseResponse)
@limiter.limit("10/minute")
async def extend_placement(
    request: Request,
    project_id: str,
    body: FeaturedExtendRequest,
    auth: CurrentUser,
    services: Services,
):
    logger.info(
        f"POST /featured/{project_id}/extend | user={auth.user_id} | days={body.additional_days}"
    )
    purchase = await asyncio.to_thread(
        services.featured.extend_featured_period,
        auth.user_id,
        project_id,
        body.additional_days,
    )
    return to_purchase_response(purchase)


@router.delete("/{project_id}", response_model=FeaturedProjectResponse)
@limiter.limit("10/minute")
async def remove_placement(request: Request, project_id: str, auth: CurrentUser, services: Services):
    logger.info(f"DELETE /featured/{project_id} | user={auth.user_id}")
    project = await asyncio.to_thread(
        services.featured.remove_featured_status, auth.user_id, project_id
    )
    return to_project_response(project)
