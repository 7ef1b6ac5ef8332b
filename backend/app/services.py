"""Wiring of the commerce engines for request handlers.

One set of services (and one notification thread pool) per process,
built on first use. Tests replace ``get_services`` through
``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends

from dealdesk.commerce.featured import FeaturedListingService
from dealdesk.commerce.notifications import NotificationDispatcher, Notifier
from dealdesk.commerce.offers import OfferService
from dealdesk.commerce.transactions import TransactionService

from .config import Settings, get_settings
from .database import get_supabase_client
from .email import build_email_sender
from .logging_config import get_logger
from .stores import (
    SupabaseNotificationSink,
    SupabaseOfferStorage,
    SupabaseProjectStorage,
    SupabaseTransactionStorage,
    SupabaseUserDirectory,
)

logger = get_logger("dealdesk.services")


class CommerceServices:
    """The three engines plus the dispatcher they share."""

    def __init__(
        self,
        offers: OfferService,
        transactions: TransactionService,
        featured: FeaturedListingService,
        dispatcher=None,
    ):
        self.offers = offers
        self.transactions = transactions
        self.featured = featured
        self.dispatcher = dispatcher

    def shutdown(self) -> None:
        if self.dispatcher is not None:
            self.dispatcher.shutdown(wait=True)


def build_services(settings: Settings) -> CommerceServices:
    db = get_supabase_client(settings)
    config = settings.commerce_config()

    projects = SupabaseProjectStorage(db)
    offer_storage = SupabaseOfferStorage(db)
    dispatcher = NotificationDispatcher(max_workers=settings.notification_workers)
    notifier = Notifier(
        sink=SupabaseNotificationSink(db),
        email_sender=build_email_sender(settings),
        users=SupabaseUserDirectory(db),
        dispatcher=dispatcher,
    )

    return CommerceServices(
        offers=OfferService(offer_storage, projects, notifier=notifier, config=config),
        transactions=TransactionService(
            SupabaseTransactionStorage(db),
            projects,
            offers=offer_storage,
            notifier=notifier,
            config=config,
        ),
        featured=FeaturedListingService(projects, notifier=notifier, config=config),
        dispatcher=dispatcher,
    )


_services: CommerceServices | None = None


def get_services(settings: Annotated[Settings, Depends(get_settings)]) -> CommerceServices:
    """FastAPI dependency returning the process-wide services."""
    global _services
    if _services is None:
        _services = build_services(settings)
        logger.info("Commerce services initialised")
    return _services


def shutdown_services() -> None:
    """Drain pending notifications. Called on application shutdown."""
    global _services
    if _services is not None:
        _services.shutdown()
        _services = None


Services = Annotated[CommerceServices, Depends(get_services)]
