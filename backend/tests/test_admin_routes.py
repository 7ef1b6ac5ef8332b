"""Tests for admin settlement routes."""

import pytest

BUYER_ID = "usr_TEST_ONLY_000000"
PROJECT_ID = "proj_TEST_ONLY_1"


@pytest.fixture
def paid(services):
    txn = services.transactions.create_transaction(BUYER_ID, PROJECT_ID, payment_intent_id="pi_admin")
    services.transactions.record_payment_result("pi_admin", succeeded=True)
    return txn


def release(client, headers, transaction_id, reason="Buyer confirmed delivery early"):
    return client.post(
        f"/api/v1/admin/transactions/{transaction_id}/release-escrow",
        json={"reason": reason},
        headers=headers,
    )


def refund(client, headers, transaction_id, reason="Seller never delivered access"):
    return client.post(
        f"/api/v1/admin/transactions/{transaction_id}/refund",
        json={"reason": reason},
        headers=headers,
    )


class TestAccess:
    def test_non_admin_forbidden(self, client, auth_headers, paid):
        response = release(client, auth_headers, paid.id)
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    def test_anonymous_unauthorized(self, client, paid):
        response = client.post(
            f"/api/v1/admin/transactions/{paid.id}/refund", json={"reason": "x" * 20}
        )
        assert response.status_code == 401


class TestRelease:
    def test_early_release(self, client, admin_headers, paid, sink):
        response = release(client, admin_headers, paid.id)

        assert response.status_code == 200
        data = response.json()
        assert data["escrow_status"] == "released"
        assert data["released_to_seller_at"] is not None
        assert len(sink.of_type("escrow_released")) == 1

    def test_release_is_idempotent(self, client, admin_headers, paid):
        first = release(client, admin_headers, paid.id).json()
        second = release(client, admin_headers, paid.id).json()
        assert second["released_to_seller_at"] == first["released_to_seller_at"]

    def test_release_resolves_dispute(self, client, admin_headers, paid, services):
        services.transactions.open_dispute(paid.id, BUYER_ID, "Repository does not build")
        response = release(client, admin_headers, paid.id, reason="Seller fixed the build")
        assert response.status_code == 200
        assert response.json()["escrow_status"] == "released"

    def test_short_reason(self, client, admin_headers, paid):
        response = release(client, admin_headers, paid.id, reason="ok")
        assert response.status_code == 400
        assert response.json()["field"] == "reason"

    def test_unpaid(self, client, admin_headers, services):
        txn = services.transactions.create_transaction(BUYER_ID, PROJECT_ID)
        response = release(client, admin_headers, txn.id)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot release escrow: payment has not succeeded"

    def test_unknown_transaction(self, client, admin_headers):
        assert release(client, admin_headers, "missing").status_code == 404


class TestRefund:
    def test_refund(self, client, admin_headers, paid):
        response = refund(client, admin_headers, paid.id)

        assert response.status_code == 200
        data = response.json()
        assert data["warning"] is None
        assert data["transaction"]["payment_status"] == "refunded"
        assert data["transaction"]["escrow_status"] == "refunded"
        assert data["transaction"]["refund_reason"] == "Seller never delivered access"

    def test_refund_after_code_access_warns(self, client, admin_headers, paid, services):
        services.transactions.mark_code_accessed(paid.id, BUYER_ID)

        response = refund(client, admin_headers, paid.id)
        assert response.status_code == 200
        assert response.json()["warning"] == "Buyer has already accessed the code"

    def test_refund_after_release(self, client, admin_headers, paid):
        release(client, admin_headers, paid.id)

        response = refund(client, admin_headers, paid.id)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot refund: escrow already released to seller"

    def test_short_reason(self, client, admin_headers, paid):
        response = refund(client, admin_headers, paid.id, reason="no")
        assert response.status_code == 400
