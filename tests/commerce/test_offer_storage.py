"""Tests for in-memory offer storage."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from dealdesk.commerce.offers import InMemoryOfferStorage, Offer, OfferStatus
from dealdesk.commerce.offers.storage import CONFLICT, NOT_FOUND

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_offer(offer_id: str, **overrides) -> Offer:
    data = dict(
        id=offer_id,
        project_id="proj-1",
        buyer_id="buyer-1",
        seller_id="seller-1",
        offered_price_cents=40_000,
        original_price_cents=50_000,
        expires_at=NOW + timedelta(days=7),
        created_at=NOW,
    )
    data.update(overrides)
    return Offer(**data)


@pytest.fixture
def storage():
    return InMemoryOfferStorage()


class TestSaveAndGet:
    def test_round_trip_returns_copies(self, storage):
        storage.save_offer(make_offer("o1"))
        fetched = storage.get_offer("o1")
        fetched.status = "accepted"
        assert storage.get_offer("o1").status == "pending"

    def test_duplicate_id_rejected(self, storage):
        storage.save_offer(make_offer("o1"))
        with pytest.raises(ValueError, match="already exists"):
            storage.save_offer(make_offer("o1"))

    def test_missing(self, storage):
        assert storage.get_offer("nope") is None


class TestUpdateStatus:
    def test_conditional_update(self, storage):
        storage.save_offer(make_offer("o1"))
        updated, error = storage.update_status(
            "o1", OfferStatus.PENDING, OfferStatus.ACCEPTED, responded_at=NOW
        )
        assert error is None
        assert updated.status == "accepted"
        assert updated.responded_at == NOW

    def test_not_found(self, storage):
        assert storage.update_status("nope", OfferStatus.PENDING, OfferStatus.ACCEPTED) == (
            None,
            NOT_FOUND,
        )

    def test_conflict_when_status_moved(self, storage):
        storage.save_offer(make_offer("o1", status="rejected"))
        updated, error = storage.update_status("o1", OfferStatus.PENDING, OfferStatus.ACCEPTED)
        assert updated is None
        assert error == CONFLICT
        assert storage.get_offer("o1").status == "rejected"

    def test_only_one_concurrent_writer_wins(self, storage):
        storage.save_offer(make_offer("o1"))
        results = []
        barrier = threading.Barrier(8)

        def attempt(new_status):
            barrier.wait()
            results.append(storage.update_status("o1", OfferStatus.PENDING, new_status))

        targets = [OfferStatus.ACCEPTED, OfferStatus.REJECTED] * 4
        threads = [threading.Thread(target=attempt, args=(t,)) for t in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [r for r in results if r[1] is None]
        assert len(winners) == 1
        assert storage.get_offer("o1").status == winners[0][0].status


class TestQueries:
    def test_list_filters_and_orders(self, storage):
        storage.save_offer(make_offer("old", created_at=NOW))
        storage.save_offer(make_offer("new", created_at=NOW + timedelta(hours=1), buyer_id="buyer-2"))
        storage.save_offer(make_offer("other", project_id="proj-2", status="accepted"))

        offers, total = storage.list_offers(project_id="proj-1")
        assert total == 2
        assert [o.id for o in offers] == ["new", "old"]

        offers, total = storage.list_offers(statuses=[OfferStatus.ACCEPTED])
        assert [o.id for o in offers] == ["other"]

        offers, total = storage.list_offers(buyer_id="buyer-2")
        assert [o.id for o in offers] == ["new"]

    def test_find_active_for_buyer(self, storage):
        storage.save_offer(make_offer("done", status="withdrawn"))
        assert storage.find_active_for_buyer("buyer-1", "proj-1") is None
        storage.save_offer(make_offer("live", status="countered"))
        assert storage.find_active_for_buyer("buyer-1", "proj-1").id == "live"

    def test_find_expired(self, storage):
        storage.save_offer(make_offer("late", expires_at=NOW - timedelta(seconds=1)))
        storage.save_offer(make_offer("fresh", buyer_id="buyer-2"))
        storage.save_offer(
            make_offer("closed", buyer_id="buyer-3", status="accepted", expires_at=NOW - timedelta(days=1))
        )
        assert [o.id for o in storage.find_expired(NOW)] == ["late"]
