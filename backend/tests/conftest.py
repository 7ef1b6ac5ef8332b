"""Pytest configuration and fixtures."""

import os
import secrets
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"
_TEST_CRON_SECRET = f"cron-{secrets.token_urlsafe(16)}"

# For unit tests, set mock values ONLY if not running integration tests
if not os.environ.get("RUN_INTEGRATION"):
    os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
    os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
    os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
    os.environ.setdefault("CRON_SECRET", _TEST_CRON_SECRET)
    os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
else:
    # For integration tests, load from .env
    from pathlib import Path

    from dotenv import load_dotenv

    env_path = Path(__file__).parent.parent / ".env"

    # Safety check: require explicit confirmation for integration tests
    if not os.environ.get("CONFIRM_INTEGRATION_CREDENTIALS"):
        print(
            "\nIntegration tests use REAL credentials from .env. "
            "Set CONFIRM_INTEGRATION_CREDENTIALS=yes to proceed.\n",
            file=sys.stderr,
        )
        pytest.exit(
            "Integration tests require CONFIRM_INTEGRATION_CREDENTIALS=yes",
            returncode=1,
        )

    load_dotenv(env_path, override=True)

from app.main import app  # noqa: E402
from app.services import CommerceServices, get_services  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from dealdesk.commerce.featured import FeaturedListingService  # noqa: E402
from dealdesk.commerce.notifications import (  # noqa: E402
    InlineDispatcher,
    InMemoryNotificationSink,
    Notifier,
    RecordingEmailSender,
)
from dealdesk.commerce.offers import InMemoryOfferStorage, OfferService  # noqa: E402
from dealdesk.commerce.projects import (  # noqa: E402
    InMemoryProjectStorage,
    InMemoryUserDirectory,
    Project,
    UserContact,
)
from dealdesk.commerce.transactions import (  # noqa: E402
    InMemoryTransactionStorage,
    TransactionService,
)

# Use clearly invalid test IDs that cannot collide with production IDs
BUYER_ID = "usr_TEST_ONLY_000000"
SELLER_ID = "usr_TEST_ONLY_SELLER"
OUTSIDER_ID = "usr_TEST_ONLY_OUTSIDER"
ADMIN_ID = "usr_TEST_ONLY_ADMIN"
PROJECT_ID = "proj_TEST_ONLY_1"


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("DEALDESK_DATA_DIR", str(tmp_path))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return InMemoryNotificationSink()


@pytest.fixture
def services(clock, sink):
    """In-memory engines wired like production, with one seeded listing."""
    projects = InMemoryProjectStorage()
    projects.add_project(
        Project(
            id=PROJECT_ID,
            seller_id=SELLER_ID,
            title="Half-built invoicing app",
            price_cents=50_000,
            created_at=clock.now,
        )
    )
    users = InMemoryUserDirectory()
    users.add_contact(UserContact(id=BUYER_ID, email="buyer@example.com", full_name="Test Buyer"))
    users.add_contact(UserContact(id=SELLER_ID, email="seller@example.com", full_name="Test Seller"))

    notifier = Notifier(
        sink=sink,
        email_sender=RecordingEmailSender(),
        users=users,
        dispatcher=InlineDispatcher(),
    )
    offer_storage = InMemoryOfferStorage()
    return CommerceServices(
        offers=OfferService(offer_storage, projects, notifier=notifier, now=clock),
        transactions=TransactionService(
            InMemoryTransactionStorage(),
            projects,
            offers=offer_storage,
            notifier=notifier,
            now=clock,
        ),
        featured=FeaturedListingService(projects, notifier=notifier, now=clock),
    )


@pytest.fixture
def client(services):
    """Create a test client backed by in-memory services."""
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers_for(user_id: str, is_admin: bool = False) -> dict:
    from app.auth import create_access_token
    from app.config import get_settings

    token = create_access_token(get_settings(), user_id=user_id, is_admin=is_admin)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Create auth headers with a test token (the buyer)."""
    return _headers_for(BUYER_ID)


@pytest.fixture
def seller_headers():
    return _headers_for(SELLER_ID)


@pytest.fixture
def outsider_headers():
    return _headers_for(OUTSIDER_ID)


@pytest.fixture
def admin_headers():
    return _headers_for(ADMIN_ID, is_admin=True)


@pytest.fixture
def cron_headers():
    from app.config import get_settings

    return {"Authorization": f"Bearer {get_settings().cron_secret}"}
