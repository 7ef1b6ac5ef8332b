"""Tests for transaction API routes."""

import pytest

BUYER_ID = "usr_TEST_ONLY_000000"
SELLER_ID = "usr_TEST_ONLY_SELLER"
PROJECT_ID = "proj_TEST_ONLY_1"


@pytest.fixture
def transaction(client, auth_headers):
    response = client.post(
        "/api/v1/transactions",
        json={"project_id": PROJECT_ID, "payment_intent_id": "pi_routes"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def paid_transaction(transaction, services):
    services.transactions.record_payment_result("pi_routes", succeeded=True)
    return transaction


class TestCreateTransaction:
    def test_create_at_listing_price(self, transaction):
        assert transaction["buyer_id"] == BUYER_ID
        assert transaction["seller_id"] == SELLER_ID
        assert transaction["amount_cents"] == 50_000
        assert transaction["commission_cents"] == 9_000
        assert transaction["seller_receives_cents"] == 41_000
        assert transaction["payment_status"] == "pending"
        assert transaction["escrow_status"] == "pending"
        assert transaction["code_delivery_status"] == "not_accessed"

    def test_create_from_accepted_offer(self, client, auth_headers, services):
        offer = services.offers.create_offer(BUYER_ID, PROJECT_ID, 40_000)
        services.offers.accept_offer(SELLER_ID, offer.id)

        response = client.post(
            "/api/v1/transactions",
            json={"project_id": PROJECT_ID, "offer_id": offer.id},
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert response.json()["amount_cents"] == 40_000
        assert response.json()["offer_id"] == offer.id

    def test_pending_offer_rejected(self, client, auth_headers, services):
        offer = services.offers.create_offer(BUYER_ID, PROJECT_ID, 40_000)
        response = client.post(
            "/api/v1/transactions",
            json={"project_id": PROJECT_ID, "offer_id": offer.id},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["field"] == "offer_id"

    def test_seller_cannot_buy_own_project(self, client, seller_headers):
        response = client.post(
            "/api/v1/transactions", json={"project_id": PROJECT_ID}, headers=seller_headers
        )
        assert response.status_code == 403

    def test_already_purchased(self, client, auth_headers, paid_transaction):
        response = client.post(
            "/api/v1/transactions", json={"project_id": PROJECT_ID}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "You have already purchased this project"

    def test_requires_auth(self, client):
        response = client.post("/api/v1/transactions", json={"project_id": PROJECT_ID})
        assert response.status_code == 401


class TestQueries:
    def test_get_visible_to_both_parties(
        self, client, auth_headers, seller_headers, outsider_headers, transaction
    ):
        url = f"/api/v1/transactions/{transaction['id']}"
        assert client.get(url, headers=auth_headers).status_code == 200
        assert client.get(url, headers=seller_headers).status_code == 200
        assert client.get(url, headers=outsider_headers).status_code == 404

    def test_list_by_role(self, client, auth_headers, seller_headers, transaction):
        purchases = client.get("/api/v1/transactions", headers=auth_headers).json()
        assert purchases["total"] == 1
        assert purchases["transactions"][0]["id"] == transaction["id"]

        sales = client.get("/api/v1/transactions?role=seller", headers=seller_headers).json()
        assert sales["total"] == 1

        none = client.get("/api/v1/transactions?role=seller", headers=auth_headers).json()
        assert none["total"] == 0


class TestCodeAccess:
    def test_requires_payment(self, client, auth_headers, transaction):
        response = client.post(
            f"/api/v1/transactions/{transaction['id']}/code-access", headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Payment has not been completed"

    def test_first_access_recorded_once(self, client, auth_headers, paid_transaction, clock, sink):
        url = f"/api/v1/transactions/{paid_transaction['id']}/code-access"
        first = client.post(url, headers=auth_headers).json()
        assert first["code_delivery_status"] == "accessed"

        clock.advance(hours=2)
        second = client.post(url, headers=auth_headers).json()
        assert second["code_accessed_at"] == first["code_accessed_at"]
        assert len(sink.of_type("code_accessed")) == 1

    def test_seller_cannot_access(self, client, seller_headers, paid_transaction):
        response = client.post(
            f"/api/v1/transactions/{paid_transaction['id']}/code-access", headers=seller_headers
        )
        assert response.status_code == 403


class TestDispute:
    def test_dispute_freezes_escrow(self, client, auth_headers, paid_transaction):
        response = client.post(
            f"/api/v1/transactions/{paid_transaction['id']}/dispute",
            json={"reason": "Repository does not build"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["escrow_status"] == "disputed"
        assert data["dispute_reason"] == "Repository does not build"

    def test_short_reason(self, client, auth_headers, paid_transaction):
        response = client.post(
            f"/api/v1/transactions/{paid_transaction['id']}/dispute",
            json={"reason": "bad"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["field"] == "reason"

    def test_unpaid_cannot_be_disputed(self, client, auth_headers, transaction):
        response = client.post(
            f"/api/v1/transactions/{transaction['id']}/dispute",
            json={"reason": "Repository does not build"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_only_buyer_disputes(self, client, seller_headers, paid_transaction):
        response = client.post(
            f"/api/v1/transactions/{paid_transaction['id']}/dispute",
            json={"reason": "Repository does not build"},
            headers=seller_headers,
        )
        assert response.status_code == 403
