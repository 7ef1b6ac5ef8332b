"""Tests for featured placement API routes."""

SELLER_ID = "usr_TEST_ONLY_SELLER"
PROJECT_ID = "proj_TEST_ONLY_1"


def purchase(client, headers, days=7):
    return client.post(
        "/api/v1/featured/purchase",
        json={"project_id": PROJECT_ID, "duration_days": days},
        headers=headers,
    )


class TestPublicRoutes:
    def test_pricing_is_public(self, client):
        response = client.get("/api/v1/featured/pricing")
        assert response.status_code == 200
        assert response.json() == [
            {"duration_days": 7, "price_cents": 2999, "cost_formatted": "$29.99"},
            {"duration_days": 14, "price_cents": 4999, "cost_formatted": "$49.99"},
            {"duration_days": 30, "price_cents": 7999, "cost_formatted": "$79.99"},
        ]

    def test_list_empty(self, client):
        response = client.get("/api/v1/featured")
        assert response.status_code == 200
        assert response.json()["total"] == 0

    def test_list_limit_capped(self, client):
        response = client.get("/api/v1/featured?limit=51")
        assert response.status_code == 422

    def test_status_of_unknown_project(self, client):
        response = client.get("/api/v1/featured/missing")
        assert response.status_code == 200
        assert response.json() == {"project_id": "missing", "is_featured": False}


class TestPurchase:
    def test_purchase(self, client, seller_headers, sink):
        response = purchase(client, seller_headers, days=14)

        assert response.status_code == 200
        data = response.json()
        assert data["project_id"] == PROJECT_ID
        assert data["duration_days"] == 14
        assert data["cost_cents"] == 4999
        assert data["cost_formatted"] == "$49.99"
        assert data["featured_until"].startswith("2026-03-15T12:00:00")
        assert data["message"] == "Project featured for 14 days"

        [note] = sink.of_type("project_featured")
        assert note.user_id == SELLER_ID

    def test_purchase_shows_in_public_list(self, client, seller_headers):
        purchase(client, seller_headers)

        listing = client.get("/api/v1/featured").json()
        assert listing["total"] == 1
        assert listing["projects"][0]["id"] == PROJECT_ID
        assert listing["projects"][0]["is_featured"] is True
        assert client.get(f"/api/v1/featured/{PROJECT_ID}").json()["is_featured"] is True

    def test_invalid_duration(self, client, seller_headers):
        response = purchase(client, seller_headers, days=10)
        assert response.status_code == 400
        assert response.json() == {
            "detail": "Invalid duration. Choose 7, 14, 30 days",
            "field": "duration_days",
        }

    def test_non_owner(self, client, auth_headers):
        response = purchase(client, auth_headers)
        assert response.status_code == 403

    def test_unknown_project(self, client, seller_headers):
        response = client.post(
            "/api/v1/featured/purchase",
            json={"project_id": "missing", "duration_days": 7},
            headers=seller_headers,
        )
        assert response.status_code == 404

    def test_requires_auth(self, client):
        response = client.post(
            "/api/v1/featured/purchase", json={"project_id": PROJECT_ID, "duration_days": 7}
        )
        assert response.status_code == 401


class TestExtendAndRemove:
    def test_extend_live_placement(self, client, seller_headers, clock):
        purchase(client, seller_headers)
        clock.advance(days=2)

        response = client.post(
            f"/api/v1/featured/{PROJECT_ID}/extend",
            json={"additional_days": 7},
            headers=seller_headers,
        )
        assert response.status_code == 200
        data = response.json()
        # Extends from the current end (March 8), not from now
        assert data["featured_until"].startswith("2026-03-15T12:00:00")
        assert data["message"] == "Featured period extended by 7 days"

    def test_extend_non_owner(self, client, auth_headers):
        response = client.post(
            f"/api/v1/featured/{PROJECT_ID}/extend",
            json={"additional_days": 7},
            headers=auth_headers,
        )
        assert response.status_code == 403

    def test_remove(self, client, seller_headers):
        purchase(client, seller_headers)

        response = client.delete(f"/api/v1/featured/{PROJECT_ID}", headers=seller_headers)
        assert response.status_code == 200
        assert response.json()["is_featured"] is False
        assert response.json()["featured_until"] is None

    def test_remove_non_owner(self, client, auth_headers):
        response = client.delete(f"/api/v1/featured/{PROJECT_ID}", headers=auth_headers)
        assert response.status_code == 403

    def test_my_count(self, client, seller_headers, auth_headers):
        purchase(client, seller_headers)

        mine = client.get("/api/v1/featured/mine/count", headers=seller_headers).json()
        assert mine == {"seller_id": SELLER_ID, "featured_count": 1}
        theirs = client.get("/api/v1/featured/mine/count", headers=auth_headers).json()
        assert theirs["featured_count"] == 0

    def test_my_count_requires_auth(self, client):
        assert client.get("/api/v1/featured/mine/count").status_code == 401
