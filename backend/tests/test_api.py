"""
HTTP tests: routing, authorization and error rendering.
"""

import pytest

from shared.config.constants import Roles


@pytest.fixture
def order_body(seed_menu):
    return {
        "items": [
            {"menu_item_id": seed_menu["burger"].id, "quantity": 2},
            {"menu_item_id": seed_menu["fries"].id, "quantity": 1},
        ],
        "order_type": "dine_in",
        "customer_name": "Walk-in",
        "customer_email": "walkin@test.com",
    }


@pytest.fixture
def placed_order(client, order_body, auth_headers):
    """An order placed by the test customer."""
    response = client.post("/api/orders", json=order_body, headers=auth_headers[Roles.CUSTOMER])
    assert response.status_code == 201
    return response.json()


class TestHealth:
    def test_health_check(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "rest-api"

    def test_readiness(self, client):
        response = client.get("/api/health/ready")

        assert response.status_code == 200
        assert response.json()["database"] == "ok"

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_security_headers(self, client):
        response = client.get("/api/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "server" not in response.headers


class TestOrdersApi:
    def test_guest_can_order(self, client, order_body, email_sender):
        response = client.post("/api/orders", json=order_body)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["total_cents"] == 3570
        assert data["customer_id"] is None
        assert email_sender.sent[0]["to"] == "walkin@test.com"

    def test_guest_cannot_claim_customer(self, client, order_body, seed_users, dispatcher):
        order_body["customer_id"] = seed_users[Roles.CUSTOMER].id

        response = client.post("/api/orders", json=order_body)

        assert response.status_code == 201
        assert response.json()["customer_id"] is None
        assert f"user:{seed_users[Roles.CUSTOMER].id}" not in [channel for channel, _, _ in dispatcher.events]

    def test_signed_in_customer_owns_order(self, placed_order, seed_users):
        assert placed_order["customer_id"] == seed_users[Roles.CUSTOMER].id

    def test_business_error_renders_code(self, client, order_body, seed_menu):
        order_body["items"] = [{"menu_item_id": seed_menu["soup"].id, "quantity": 1}]

        response = client.post("/api/orders", json=order_body)

        assert response.status_code == 400
        assert response.json()["code"] == "ITEM_UNAVAILABLE"

    def test_non_json_body_rejected(self, client):
        response = client.post("/api/orders", content="items=1", headers={"Content-Type": "text/plain"})

        assert response.status_code == 415

    def test_invalid_token_rejected(self, client, order_body):
        response = client.post("/api/orders", json=order_body, headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_listing_requires_staff(self, client, placed_order, auth_headers):
        assert client.get("/api/orders").status_code == 401
        assert client.get("/api/orders", headers=auth_headers[Roles.CUSTOMER]).status_code == 403

        response = client.get("/api/orders", params={"status": "pending"}, headers=auth_headers[Roles.STAFF])
        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_listing_unknown_status(self, client, auth_headers):
        response = client.get("/api/orders", params={"status": "lost"}, headers=auth_headers[Roles.STAFF])

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATUS"

    def test_live_orders(self, client, placed_order, auth_headers):
        response = client.get("/api/orders/live", headers=auth_headers[Roles.STAFF])

        assert response.status_code == 200
        assert [o["id"] for o in response.json()] == [placed_order["id"]]

    def test_customer_sees_own_order_only(self, client, placed_order, order_body, auth_headers):
        own = client.get(f"/api/orders/{placed_order['id']}", headers=auth_headers[Roles.CUSTOMER])
        assert own.status_code == 200

        guest_order = client.post("/api/orders", json=order_body).json()
        other = client.get(f"/api/orders/{guest_order['id']}", headers=auth_headers[Roles.CUSTOMER])
        assert other.status_code == 403

    def test_lookup_by_number(self, client, placed_order, auth_headers):
        response = client.get(
            f"/api/orders/number/{placed_order['order_number']}", headers=auth_headers[Roles.STAFF]
        )

        assert response.status_code == 200
        assert response.json()["id"] == placed_order["id"]

    def test_unknown_order(self, client, auth_headers):
        response = client.get(
            "/api/orders/00000000-0000-0000-0000-000000000000", headers=auth_headers[Roles.STAFF]
        )

        assert response.status_code == 404
        assert response.json()["code"] == "ORDER_NOT_FOUND"

    def test_status_update(self, client, placed_order, auth_headers):
        url = f"/api/orders/{placed_order['id']}/status"

        ok = client.patch(url, json={"status": "confirmed"}, headers=auth_headers[Roles.STAFF])
        assert ok.status_code == 200
        assert ok.json()["status"] == "confirmed"

        skipped = client.patch(url, json={"status": "completed"}, headers=auth_headers[Roles.STAFF])
        assert skipped.status_code == 409
        assert skipped.json()["code"] == "INVALID_STATUS_TRANSITION"

    def test_customer_cannot_change_status(self, client, placed_order, auth_headers):
        response = client.patch(
            f"/api/orders/{placed_order['id']}/status",
            json={"status": "confirmed"},
            headers=auth_headers[Roles.CUSTOMER],
        )

        assert response.status_code == 403

    def test_cancel(self, client, placed_order, auth_headers):
        url = f"/api/orders/{placed_order['id']}/cancel"

        response = client.post(url, json={"reason": "Changed mind"}, headers=auth_headers[Roles.STAFF])
        assert response.status_code == 200
        assert response.json()["cancellation_reason"] == "Changed mind"

        again = client.post(url, json={"reason": "Again"}, headers=auth_headers[Roles.STAFF])
        assert again.status_code == 409
        assert again.json()["code"] == "CANNOT_CANCEL"


class TestApprovalsApi:
    @pytest.fixture
    def filed(self, client, placed_order, auth_headers):
        response = client.post(
            "/api/approvals",
            json={
                "type": "void",
                "description": "Customer ordered twice",
                "reference_type": "order",
                "reference_id": placed_order["id"],
            },
            headers=auth_headers[Roles.STAFF],
        )
        assert response.status_code == 201
        return response.json()

    def test_customer_cannot_file(self, client, auth_headers):
        response = client.post(
            "/api/approvals",
            json={"type": "refund", "description": "Free food please"},
            headers=auth_headers[Roles.CUSTOMER],
        )

        assert response.status_code == 403

    def test_invalid_type(self, client, auth_headers):
        response = client.post(
            "/api/approvals",
            json={"type": "bribe", "description": "x"},
            headers=auth_headers[Roles.STAFF],
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_pending_queue_is_for_reviewers(self, client, filed, auth_headers):
        assert client.get("/api/approvals/pending", headers=auth_headers[Roles.STAFF]).status_code == 403

        response = client.get("/api/approvals/pending", headers=auth_headers[Roles.MANAGER])
        assert response.status_code == 200
        assert [a["id"] for a in response.json()["items"]] == [filed["id"]]

    def test_review_once(self, client, filed, placed_order, auth_headers):
        url = f"/api/approvals/{filed['id']}/review"

        first = client.post(url, json={"decision": "approved", "notes": "ok"}, headers=auth_headers[Roles.MANAGER])
        assert first.status_code == 200
        assert first.json()["status"] == "approved"

        order = client.get(f"/api/orders/{placed_order['id']}", headers=auth_headers[Roles.STAFF]).json()
        assert order["status"] == "cancelled"

        second = client.post(url, json={"decision": "rejected"}, headers=auth_headers[Roles.ADMIN])
        assert second.status_code == 409
        assert second.json()["code"] == "ALREADY_REVIEWED"

    def test_history_and_stats(self, client, filed, auth_headers):
        history = client.get("/api/approvals", params={"status": "pending"}, headers=auth_headers[Roles.MANAGER])
        stats = client.get("/api/approvals/stats", headers=auth_headers[Roles.MANAGER])

        assert history.json()["total"] == 1
        assert stats.status_code == 200
        assert stats.json()["pending"] == 1

    def test_stats_accepts_naive_start(self, client, filed, auth_headers):
        response = client.get(
            "/api/approvals/stats", params={"start": "2020-01-01T00:00:00"}, headers=auth_headers[Roles.MANAGER]
        )

        assert response.status_code == 200
        assert response.json()["total"] == 1


class TestAuditApi:
    def test_logs_require_reviewer(self, client, placed_order, auth_headers):
        assert client.get("/api/audit/logs", headers=auth_headers[Roles.STAFF]).status_code == 403

        response = client.get("/api/audit/logs", headers=auth_headers[Roles.MANAGER])
        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["items"][0]["resource_id"] == placed_order["id"]

    def test_invalid_limit_code(self, client, auth_headers):
        response = client.get("/api/audit/logs", params={"limit": 0}, headers=auth_headers[Roles.MANAGER])

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_LIMIT"

    def test_summary(self, client, placed_order, auth_headers):
        response = client.get("/api/audit/summary", headers=auth_headers[Roles.MANAGER])

        assert response.status_code == 200
        assert response.json()["by_action"] == {"create": 1}

    def test_cleanup_is_admin_only(self, client, auth_headers):
        response = client.delete("/api/audit/logs", params={"days": 60}, headers=auth_headers[Roles.MANAGER])

        assert response.status_code == 403

    def test_cleanup_retention_floor(self, client, auth_headers):
        too_short = client.delete("/api/audit/logs", params={"days": 10}, headers=auth_headers[Roles.ADMIN])
        assert too_short.status_code == 400
        assert too_short.json()["code"] == "RETENTION_POLICY"

        ok = client.delete("/api/audit/logs", params={"days": 31}, headers=auth_headers[Roles.ADMIN])
        assert ok.status_code == 200
        assert ok.json() == {"deleted": 0, "days": 31}
