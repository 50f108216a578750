"""
HTTP-level tests: actor attribution, status code mapping, response shapes.
"""

import pytest

from garmentops.extensions import db
from garmentops.models import Notification, ProductionJob

from conftest import actor_headers


class TestActorRequired:
    """Mutating and reading endpoints need X-Actor-Id."""

    @pytest.mark.parametrize("method,url", [
        ("get", "/api/products"),
        ("post", "/api/stock/in"),
        ("get", "/api/production/jobs"),
        ("get", "/api/audit"),
        ("post", "/api/reservations/batch"),
    ])
    def test_missing_actor_is_401(self, client, method, url):
        response = getattr(client, method)(url, json={})
        assert response.status_code == 401
        assert response.json["success"] is False

    def test_non_numeric_actor(self, client):
        response = client.get("/api/products", headers={"X-Actor-Id": "admin"})
        assert response.status_code == 401

    def test_inactive_actor(self, client, staff, db_session):
        staff.is_active = False
        db_session.commit()
        response = client.get("/api/products", headers=actor_headers(staff))
        assert response.status_code == 401

    def test_health_and_calculator_are_open(self, client):
        assert client.get("/health").status_code == 200
        response = client.post("/api/calculator/screen-price", json={"quantity": 1, "ink_cc": 5})
        assert response.status_code == 200


class TestProductRoutes:

    def test_create_and_duplicate_sku(self, client, admin):
        body = {"sku": "TEE-BLK-M", "name": "Black tee M", "stock_qty": 12, "min_stock": 5}
        created = client.post("/api/products", json=body, headers=actor_headers(admin))
        assert created.status_code == 201
        assert created.json["product"]["stock_qty"] == 12

        duplicate = client.post("/api/products", json=body, headers=actor_headers(admin))
        assert duplicate.status_code == 409
        assert "SKU" in duplicate.json["error"]

    def test_unknown_field_is_400(self, client, admin):
        response = client.post(
            "/api/products",
            json={"sku": "X", "name": "Y", "version_id": 9},
            headers=actor_headers(admin),
        )
        assert response.status_code == 400

    def test_missing_product_is_404(self, client, admin):
        assert client.get("/api/products/999", headers=actor_headers(admin)).status_code == 404


class TestStockRoutes:

    def test_stock_out_then_insufficient(self, client, admin, product):
        headers = actor_headers(admin)

        out = client.post("/api/stock/out", json={"product_id": product.id, "quantity": 60}, headers=headers)
        assert out.status_code == 201
        assert out.json["quantity_before"] == 100
        assert out.json["quantity_after"] == 40
        assert out.json["transaction"]["type"] == "OUT"

        too_much = client.post("/api/stock/out", json={"product_id": product.id, "quantity": 41}, headers=headers)
        assert too_much.status_code == 409
        assert too_much.json["success"] is False

    def test_missing_fields_is_400(self, client, admin):
        response = client.post("/api/stock/in", json={"quantity": 5}, headers=actor_headers(admin))
        assert response.status_code == 400
        assert "product_id" in response.json["error"]

    def test_adjust_and_history(self, client, admin, product):
        headers = actor_headers(admin)
        adjust = client.post(
            "/api/stock/adjust",
            json={"product_id": product.id, "new_quantity": 90, "reason": "Count"},
            headers=headers,
        )
        assert adjust.status_code == 201

        history = client.get(f"/api/stock/transactions?product_id={product.id}", headers=headers)
        assert history.json["count"] == 1
        assert history.json["items"][0]["note"] == "Adjusted from 100 to 90"

    def test_actor_is_recorded_from_header(self, client, staff, product):
        response = client.post(
            "/api/stock/in",
            json={"product_id": product.id, "quantity": 1, "user_id": 12345},
            headers=actor_headers(staff),
        )
        assert response.json["transaction"]["user_id"] == staff.id


class TestReservationRoutes:

    def test_reserve_and_availability(self, client, admin, product, job):
        headers = actor_headers(admin)

        created = client.post(
            "/api/reservations",
            json={"job_id": job.id, "product_id": product.id, "quantity": 40},
            headers=headers,
        )
        assert created.status_code == 201

        availability = client.get(f"/api/reservations/availability?product_id={product.id}", headers=headers)
        assert availability.json["available_qty"] == 60
        assert availability.json["reserved_qty"] == 40

        over = client.post(
            "/api/reservations",
            json={"job_id": job.id, "product_id": product.id, "quantity": 70},
            headers=headers,
        )
        assert over.status_code == 409

    def test_release_twice_is_409(self, client, admin, product, job):
        headers = actor_headers(admin)
        created = client.post(
            "/api/reservations",
            json={"job_id": job.id, "product_id": product.id, "quantity": 5},
            headers=headers,
        )
        rid = created.json["reservation"]["id"]

        assert client.post(f"/api/reservations/{rid}/release", headers=headers).status_code == 200
        assert client.post(f"/api/reservations/{rid}/release", headers=headers).status_code == 409

    def test_partial_batch_is_207(self, client, admin, product, job):
        response = client.post(
            "/api/reservations/batch",
            json={
                "job_id": job.id,
                "items": [
                    {"product_id": product.id, "quantity": 10},
                    {"product_id": product.id, "quantity": 500},
                ],
            },
            headers=actor_headers(admin),
        )
        assert response.status_code == 207
        assert response.json["success"] is False
        assert len(response.json["created"]) == 1
        assert response.json["failed"][0]["index"] == 1
        assert response.json["job_status"] == "reserved"


class TestProductionRoutes:

    def test_create_and_walk_status(self, client, admin):
        headers = actor_headers(admin)
        created = client.post("/api/production/jobs", json={"ordered_qty": 24}, headers=headers)
        assert created.status_code == 201
        job = created.json["job"]
        assert job["status"] == "pending"
        assert "printing" in job["allowed_next_statuses"]

        moved = client.post(
            f"/api/production/jobs/{job['id']}/status",
            json={"status": "printing", "note": "Press 1"},
            headers=headers,
        )
        assert moved.status_code == 200
        assert moved.json["job"]["progress"] == 40

        logs = client.get(f"/api/production/jobs/{job['id']}/logs", headers=headers)
        assert [item["to_status"] for item in logs.json["items"]] == ["pending", "printing"]

    def test_illegal_transition_is_400_and_job_unchanged(self, client, admin, job):
        response = client.post(
            f"/api/production/jobs/{job.id}/status",
            json={"status": "completed"},
            headers=actor_headers(admin),
        )
        assert response.status_code == 400
        db.session.expire_all()
        assert db.session.get(ProductionJob, job.id).status == "pending"

    def test_unknown_job_is_404(self, client, admin):
        response = client.post(
            "/api/production/jobs/999/status",
            json={"status": "printing"},
            headers=actor_headers(admin),
        )
        assert response.status_code == 404

    def test_qc_and_rework(self, client, admin, job):
        headers = actor_headers(admin)
        client.post(f"/api/production/jobs/{job.id}/status", json={"status": "printing"}, headers=headers)
        client.post(f"/api/production/jobs/{job.id}/produce", json={"produced_qty": 50}, headers=headers)

        qc = client.post(
            f"/api/production/jobs/{job.id}/qc",
            json={
                "checkpoints": [{"checkpoint_name": "Wash test", "passed": False}],
                "overall_passed": False,
                "qc_notes": "Cracking after wash",
            },
            headers=headers,
        )
        assert qc.status_code == 200
        assert qc.json["job"]["status"] == "qc_failed"
        assert qc.json["job"]["failed_qty"] == 50

        rework = client.post(
            f"/api/production/jobs/{job.id}/rework",
            json={"quantity": 50, "reason": "Cracking after wash"},
            headers=headers,
        )
        assert rework.status_code == 201
        assert rework.json["job"]["original_job_id"] == job.id
        assert rework.json["job"]["priority"] == 1


class TestAuditRoutes:

    def test_cursor_pagination(self, client, admin, product):
        headers = actor_headers(admin)
        for _ in range(3):
            client.post("/api/stock/in", json={"product_id": product.id, "quantity": 1}, headers=headers)

        first = client.get("/api/audit?entity_type=product&limit=2", headers=headers)
        assert len(first.json["items"]) == 2
        assert first.json["next_cursor"]

        second = client.get(
            "/api/audit",
            query_string={"entity_type": "product", "limit": 2, "cursor": first.json["next_cursor"]},
            headers=headers,
        )
        assert len(second.json["items"]) == 1
        assert second.json["next_cursor"] is None

    def test_bad_cursor_is_400(self, client, admin):
        response = client.get("/api/audit?cursor=garbage", headers=actor_headers(admin))
        assert response.status_code == 400


class TestOrderAndCustomerRoutes:

    def test_order_to_jobs(self, client, admin):
        headers = actor_headers(admin)
        customer = client.post("/api/customers", json={"name": "Lanna Cafe"}, headers=headers)
        assert customer.status_code == 201
        customer_id = customer.json["customer"]["id"]

        order = client.post(
            "/api/orders",
            json={
                "customer_id": customer_id,
                "items": [{"description": "Staff aprons", "quantity": 12, "unit_price_cents": 25000}],
            },
            headers=headers,
        )
        assert order.status_code == 201
        assert order.json["order"]["total_cents"] == 300000

        jobs = client.post(f"/api/orders/{order.json['order']['id']}/jobs", headers=headers)
        assert jobs.status_code == 201
        assert jobs.json["count"] == 1

    def test_customer_detail_includes_interactions(self, client, admin):
        headers = actor_headers(admin)
        customer_id = client.post("/api/customers", json={"name": "Lanna Cafe"}, headers=headers).json["customer"]["id"]
        client.post(
            f"/api/customers/{customer_id}/interactions",
            json={"type": "visit", "subject": "Fabric samples"},
            headers=headers,
        )

        detail = client.get(f"/api/customers/{customer_id}", headers=headers)
        assert detail.status_code == 200
        assert detail.json["interactions"][0]["subject"] == "Fabric samples"


class TestNotificationRoutes:

    def test_inbox_is_per_user(self, client, admin, manager, product):
        client.post("/api/stock/out", json={"product_id": product.id, "quantity": 95}, headers=actor_headers(admin))

        inbox = client.get("/api/notifications?unread=1", headers=actor_headers(manager))
        assert inbox.json["count"] == 1
        note_id = inbox.json["items"][0]["id"]

        # Someone else's notification looks missing
        assert client.post(f"/api/notifications/{note_id}/read", headers=actor_headers(admin)).status_code == 404

        read = client.post(f"/api/notifications/{note_id}/read", headers=actor_headers(manager))
        assert read.status_code == 200
        assert read.json["notification"]["is_read"] is True
        assert db.session.get(Notification, note_id).read_at is not None


class TestCalculatorRoute:

    def test_price_and_bad_input(self, client):
        priced = client.post(
            "/api/calculator/screen-price",
            json={"quantity": 50, "ink_cc": 5, "settings": {"PROFIT_MARGIN": 1.3}},
        )
        assert priced.status_code == 200
        assert priced.json["result"]["price_per_item"] == 135.0
        assert priced.json["result"]["total"] == 6750.0

        bad = client.post("/api/calculator/screen-price", json={"quantity": 1, "ink_cc": 5, "color": "neon"})
        assert bad.status_code == 400
