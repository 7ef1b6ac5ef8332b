"""
Featured listing service.

Paid, time-boxed promotion of a listing. A placement is live while
``is_featured`` is set and ``featured_until`` is in the future; past
that it reads as not featured even before the cleanup sweep clears it.
"""

import logging
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, Optional

from dealdesk.commerce.config import CommerceConfig
from dealdesk.commerce.errors import (
    CommerceNotFoundError,
    CommercePermissionError,
    CommerceValidationError,
    StaleStateError,
)
from dealdesk.commerce.featured.models import (
    ExpiryWarningResult,
    FeaturedPage,
    FeaturedPurchase,
    FeaturedTier,
)
from dealdesk.commerce.notifications import (
    EmailScenario,
    FeaturedExpiryEmailData,
    NotificationRequest,
    NotificationType,
    Notifier,
)
from dealdesk.commerce.projects.models import Project
from dealdesk.commerce.projects.storage import ProjectStorage
from dealdesk.logging_config import log_commerce_event, log_sweep
from dealdesk.types import Clock, format_cents, utc_now

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50

# Slice of featured_until values one warning sweep covers
WARNING_WINDOW = timedelta(hours=12)


class FeaturedListingValidationError(CommerceValidationError):
    pass


class FeaturedListingPermissionError(CommercePermissionError):
    pass


class FeaturedListingNotFoundError(CommerceNotFoundError):
    pass


class FeaturedListingConflictError(FeaturedListingValidationError, StaleStateError):
    pass


def _no_discount(seller_id: str) -> int:
    return 0


class FeaturedListingService:
    """Service for featured placements.

    Args:
        projects: Project persistence (featured columns live on the project)
        notifier: Optional notification fan-out
        config: Tier prices
        now: Clock
        discount_percent: Per-seller discount hook (e.g. subscription perks)
    """

    def __init__(
        self,
        projects: ProjectStorage,
        notifier: Optional[Notifier] = None,
        config: Optional[CommerceConfig] = None,
        now: Clock = utc_now,
        discount_percent: Callable[[str], int] = _no_discount,
    ):
        self.projects = projects
        self.notifier = notifier
        self.config = config or CommerceConfig()
        self._now = now
        self._discount_percent = discount_percent

    def get_featured_pricing(self) -> List[FeaturedTier]:
        return [
            FeaturedTier(duration_days=days, price_cents=self.config.featured_price_cents(days))
            for days in self.config.featured_durations
        ]

    def purchase_featured_placement(
        self,
        user_id: str,
        project_id: str,
        duration_days: int,
    ) -> FeaturedPurchase:
        """Feature a project for one tier's duration, starting now.

        Charging the returned cost is the caller's job.
        """
        self._validate_duration(duration_days)
        project = self._require_owned(user_id, project_id)
        if not project.is_active:
            raise FeaturedListingValidationError("Only active projects can be featured", field="project_id")

        featured_until = self._now() + timedelta(days=duration_days)
        self._set_until(project, featured_until)

        cost_cents = self._cost(user_id, duration_days)
        log_commerce_event(
            "featured",
            f"project={project_id} | action=purchase | days={duration_days} | cost_cents={cost_cents}",
            actor_id=user_id,
        )
        logger.info("Project %s featured until %s", project_id, featured_until.isoformat())
        self._submit(self._notify_featured, project, featured_until)

        return FeaturedPurchase(
            project_id=project_id,
            featured_until=featured_until,
            duration_days=duration_days,
            cost_cents=cost_cents,
            message=f"Project featured for {duration_days} days",
        )

    def extend_featured_period(
        self,
        user_id: str,
        project_id: str,
        additional_days: int,
    ) -> FeaturedPurchase:
        """Add a tier's duration on top of the current placement.

        Extends from the existing featured_until even if it already passed,
        so back-to-back extensions compound. From now only when there is none.
        """
        self._validate_duration(additional_days)
        project = self._require_owned(user_id, project_id)

        base = project.featured_until or self._now()
        featured_until = base + timedelta(days=additional_days)
        self._set_until(project, featured_until)

        cost_cents = self._cost(user_id, additional_days)
        log_commerce_event(
            "featured",
            f"project={project_id} | action=extend | days={additional_days} | cost_cents={cost_cents}",
            actor_id=user_id,
        )
        logger.info("Project %s placement extended to %s", project_id, featured_until.isoformat())

        return FeaturedPurchase(
            project_id=project_id,
            featured_until=featured_until,
            duration_days=additional_days,
            cost_cents=cost_cents,
            message=f"Featured period extended by {additional_days} days",
        )

    def is_featured(self, project_id: str) -> bool:
        project = self.projects.get_project(project_id)
        return project is not None and project.is_featured_at(self._now())

    def get_featured_projects(self, page: int = 1, limit: int = 10) -> FeaturedPage:
        if page < 1:
            raise FeaturedListingValidationError("Page must be at least 1", field="page")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise FeaturedListingValidationError(
                f"Limit must be between 1 and {MAX_PAGE_SIZE}", field="limit"
            )
        projects, total = self.projects.list_featured(
            self._now(), limit=limit, offset=(page - 1) * limit
        )
        return FeaturedPage(projects=projects, total=total, page=page, limit=limit)

    def get_seller_featured_count(self, seller_id: str) -> int:
        return self.projects.count_featured_by_seller(seller_id, self._now())

    def remove_featured_status(self, user_id: str, project_id: str) -> Project:
        self._require_owned(user_id, project_id)
        project = self.projects.clear_featured(project_id)
        if project is None:
            raise FeaturedListingNotFoundError("Project not found")
        log_commerce_event("featured", f"project={project_id} | action=remove", actor_id=user_id)
        return project

    def cleanup_expired_featured(self) -> int:
        """Clear flag and timestamp on lapsed placements. Safe to re-run."""
        cleared = self.projects.clear_expired_featured(self._now())
        logger.info("Cleared %d expired featured placements", cleared)
        log_sweep("cleanup_featured", cleared)
        return cleared

    def warn_expiring_placements(self, within_days: int = 3) -> ExpiryWarningResult:
        """Email sellers whose placement ends about ``within_days`` from now.

        Covers the WARNING_WINDOW that ends ``within_days`` ahead, so a
        scheduler running every 12 hours warns about each placement once.
        Each project is handled on its own: a seller without an address or
        a send error counts as failed and the sweep moves on.
        """
        if within_days < 1:
            raise FeaturedListingValidationError("within_days must be at least 1", field="within_days")

        end = self._now() + timedelta(days=within_days)
        expiring = self.projects.find_featured_expiring(end - WARNING_WINDOW, end)
        result = ExpiryWarningResult(project_ids=[p.id for p in expiring])

        for project in expiring:
            try:
                sent = self._send_expiry_warning(project)
            except Exception as e:
                logger.error("Failed to warn seller of project %s: %s", project.id, e)
                sent = False
            if sent:
                result.emails_sent += 1
            else:
                result.emails_failed += 1

        logger.info(
            "Expiry warnings for %d placements: %d sent, %d failed",
            result.projects_expiring,
            result.emails_sent,
            result.emails_failed,
        )
        log_sweep("featured_expiration_warning", result.emails_sent, result.emails_failed)
        return result

    # -------------------------------------------------------------------------

    def _validate_duration(self, duration_days: int) -> None:
        if duration_days not in self.config.featured_tiers:
            allowed = ", ".join(str(d) for d in self.config.featured_durations)
            raise FeaturedListingValidationError(
                f"Invalid duration. Choose {allowed} days", field="duration_days"
            )

    def _require_owned(self, user_id: str, project_id: str) -> Project:
        project = self.projects.get_project(project_id)
        if project is None:
            raise FeaturedListingNotFoundError("Project not found")
        if project.seller_id != user_id:
            raise FeaturedListingPermissionError("You can only feature your own projects")
        return project

    def _set_until(self, project: Project, featured_until) -> None:
        updated = self.projects.set_featured(
            project.id, featured_until, expected_until=project.featured_until
        )
        if updated is None:
            raise FeaturedListingConflictError("Featured status changed concurrently. Please retry.")

    def _cost(self, seller_id: str, duration_days: int) -> int:
        price = self.config.featured_price_cents(duration_days)
        discount = self._discount_percent(seller_id) or 0
        if discount <= 0:
            return price
        discount = min(discount, 100)
        cost = Decimal(price) * (Decimal(100 - discount) / Decimal(100))
        return int(cost.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def _submit(self, task, *args) -> None:
        if self.notifier is None:
            return
        self.notifier.submit("project_featured", task, *args)

    def _send_expiry_warning(self, project: Project) -> bool:
        if self.notifier is None:
            return False
        return self.notifier.send_email(
            project.seller_id,
            EmailScenario.FEATURED_EXPIRING,
            FeaturedExpiryEmailData(
                project_id=project.id,
                project_title=project.title,
                featured_until=project.featured_until,
            ),
        )

    def _notify_featured(self, project: Project, featured_until) -> None:
        self.notifier.deliver(
            NotificationRequest(
                user_id=project.seller_id,
                type=NotificationType.PROJECT_FEATURED,
                title="Project featured",
                message=f"{project.title} is featured until {featured_until:%B %d, %Y}",
                action_url=f"/projects/{project.id}",
                related_entity_type="project",
                related_entity_id=project.id,
            )
        )
