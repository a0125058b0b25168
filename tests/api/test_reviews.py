"""End-to-end tests for the review routes."""

from __future__ import annotations

from fastapi.testclient import TestClient

SELLER = "seller"
BUYER = "buyer"
STRANGER = "stranger"


class TestReviewRoutes:
    def test_create_then_update(self, client: TestClient, auth) -> None:
        body = {"reviewee_id": SELLER, "rating": 3, "comment": "Slow to reply"}
        created = client.post("/api/reviews", json=body, headers=auth(BUYER))
        updated = client.post("/api/reviews", json={**body, "rating": 5}, headers=auth(BUYER))

        assert created.status_code == 201, created.text
        assert created.json()["is_update"] is False
        assert updated.status_code == 200
        assert updated.json()["is_update"] is True
        assert updated.json()["review"]["id"] == created.json()["review"]["id"]
        assert updated.json()["review"]["rating"] == 5

    def test_requires_authentication(self, client: TestClient) -> None:
        resp = client.post("/api/reviews", json={"reviewee_id": SELLER, "rating": 5})
        assert resp.status_code == 401

    def test_self_review_rejected(self, client: TestClient, auth) -> None:
        resp = client.post("/api/reviews", json={"reviewee_id": BUYER, "rating": 5}, headers=auth(BUYER))
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_failed"

    def test_public_listing_and_rating(self, client: TestClient, auth) -> None:
        client.post("/api/reviews", json={"reviewee_id": SELLER, "rating": 4}, headers=auth(BUYER))
        client.post("/api/reviews", json={"reviewee_id": SELLER, "rating": 5}, headers=auth(STRANGER))

        reviews = client.get(f"/api/reviews/user/{SELLER}")
        rating = client.get(f"/api/reviews/user/{SELLER}/rating")

        assert reviews.status_code == 200
        assert {r["reviewer_id"] for r in reviews.json()} == {BUYER, STRANGER}
        assert rating.json() == {"user_id": SELLER, "average": 4.5, "count": 2}

    def test_between(self, client: TestClient, auth) -> None:
        client.post("/api/reviews", json={"reviewee_id": SELLER, "rating": 4}, headers=auth(BUYER))

        found = client.get(f"/api/reviews/between/{SELLER}", headers=auth(BUYER))
        missing = client.get(f"/api/reviews/between/{BUYER}", headers=auth(SELLER))

        assert found.status_code == 200
        assert found.json()["reviewee_id"] == SELLER
        assert missing.status_code == 404

    def test_delete(self, client: TestClient, auth) -> None:
        created = client.post("/api/reviews", json={"reviewee_id": SELLER, "rating": 4}, headers=auth(BUYER))
        review_id = created.json()["review"]["id"]

        assert client.delete(f"/api/reviews/{review_id}", headers=auth(SELLER)).status_code == 403
        assert client.delete(f"/api/reviews/{review_id}", headers=auth(BUYER)).status_code == 204
        assert client.get(f"/api/reviews/user/{SELLER}").json() == []
