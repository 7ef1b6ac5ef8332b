"""
Pytest fixtures and test configuration for dealdesk tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from dealdesk.commerce.config import CommerceConfig
from dealdesk.commerce.featured import FeaturedListingService
from dealdesk.commerce.notifications import (
    InlineDispatcher,
    InMemoryNotificationSink,
    Notifier,
    RecordingEmailSender,
)
from dealdesk.commerce.offers import InMemoryOfferStorage, OfferService
from dealdesk.commerce.projects import (
    InMemoryProjectStorage,
    InMemoryUserDirectory,
    Project,
    UserContact,
)
from dealdesk.commerce.transactions import InMemoryTransactionStorage, TransactionService

SELLER_ID = "seller-1"
BUYER_ID = "buyer-1"
OTHER_BUYER_ID = "buyer-2"
OUTSIDER_ID = "outsider-1"
PROJECT_ID = "proj-1"
LISTING_PRICE = 50_000  # $500.00

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for services under test."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep event logs out of the real home directory."""
    monkeypatch.setenv("DEALDESK_DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return CommerceConfig()


@pytest.fixture
def projects():
    storage = InMemoryProjectStorage()
    storage.add_project(
        Project(
            id=PROJECT_ID,
            seller_id=SELLER_ID,
            title="Half-built CRM",
            price_cents=LISTING_PRICE,
            created_at=START,
        )
    )
    return storage


@pytest.fixture
def users():
    directory = InMemoryUserDirectory()
    directory.add_contact(UserContact(id=SELLER_ID, email="seller@example.com", full_name="Sam Seller"))
    directory.add_contact(UserContact(id=BUYER_ID, email="buyer@example.com", username="bob"))
    directory.add_contact(UserContact(id=OTHER_BUYER_ID))
    return directory


@pytest.fixture
def sink():
    return InMemoryNotificationSink()


@pytest.fixture
def emails():
    return RecordingEmailSender()


@pytest.fixture
def dispatcher():
    return InlineDispatcher()


@pytest.fixture
def notifier(sink, emails, users, dispatcher):
    return Notifier(sink=sink, email_sender=emails, users=users, dispatcher=dispatcher)


@pytest.fixture
def offer_storage():
    return InMemoryOfferStorage()


@pytest.fixture
def offer_service(offer_storage, projects, notifier, config, clock):
    return OfferService(offer_storage, projects, notifier=notifier, config=config, now=clock)


@pytest.fixture
def transaction_storage():
    return InMemoryTransactionStorage()


@pytest.fixture
def transaction_service(transaction_storage, projects, offer_storage, notifier, config, clock):
    return TransactionService(
        transaction_storage,
        projects,
        offers=offer_storage,
        notifier=notifier,
        config=config,
        now=clock,
    )


@pytest.fixture
def featured_service(projects, notifier, config, clock):
    return FeaturedListingService(projects, notifier=notifier, config=config, now=clock)
