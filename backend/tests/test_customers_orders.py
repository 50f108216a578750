"""
CRM and order intake tests: customer codes, tiers, order totals and workflow.
"""

import pytest

from garmentops.extensions import db
from garmentops.models import AuditLog, Customer, Notification, ProductionJob
from garmentops.services import customer_service, order_service, production_service
from garmentops.services.customer_service import tier_for_spent
from garmentops.services.order_service import OrderStatusError
from garmentops.validation import NotFoundError, ValidationError


@pytest.fixture
def customer(ctx):
    return customer_service.create_customer(ctx, {
        "name": "Chiang Mai Running Club",
        "contact_name": "Nok",
        "phone": "081-000-0000",
        "payment_terms": "credit_30",
    })


class TestCustomers:

    def test_create_assigns_code_and_defaults(self, customer):
        assert customer.code == "C-0001"
        assert customer.type == "company"
        assert customer.status == "active"
        assert customer.tier == "bronze"
        assert customer.total_orders == 0

    def test_create_is_audited(self, customer):
        entry = AuditLog.query.filter_by(entity_type="customer", entity_id=customer.id).one()
        assert entry.action == "create"

    def test_name_required(self, ctx):
        with pytest.raises(ValidationError, match="name"):
            customer_service.create_customer(ctx, {"phone": "02-000-0000"})

    def test_payment_terms_validated(self, ctx, db_session):
        with pytest.raises(ValidationError):
            customer_service.create_customer(ctx, {"name": "X", "payment_terms": "credit_90"})

    def test_tier_is_not_client_writable(self, ctx, customer):
        with pytest.raises(ValidationError, match="tier"):
            customer_service.update_customer(ctx, customer.id, {"tier": "platinum"})

    def test_update_and_search(self, ctx, customer):
        customer_service.update_customer(ctx, customer.id, {"email": "club@example.com"})

        assert [c.id for c in customer_service.list_customers(search="running")] == [customer.id]
        assert [c.id for c in customer_service.list_customers(search="example.com")] == [customer.id]
        assert customer_service.list_customers(search="nobody") == []

    def test_interactions(self, ctx, customer):
        customer_service.add_interaction(ctx, customer.id, type="call", subject="Quote follow-up")
        customer_service.add_interaction(ctx, customer.id, type="line", content="Sent artwork proof")

        rows = customer_service.list_interactions(customer.id)
        assert [r.type for r in rows] == ["line", "call"]

        with pytest.raises(ValidationError):
            customer_service.add_interaction(ctx, customer.id, type="fax")

    @pytest.mark.parametrize("spent,tier", [
        (0, "bronze"),
        (4_999_999, "bronze"),
        (5_000_000, "silver"),
        (20_000_000, "gold"),
        (49_999_999, "gold"),
        (50_000_000, "platinum"),
    ])
    def test_tier_thresholds(self, spent, tier):
        assert tier_for_spent(spent) == tier

    def test_recalculate_tier(self, ctx, customer):
        customer.total_spent_cents = 25_000_000
        db.session.commit()

        assert customer_service.recalculate_tier(ctx, customer.id).tier == "gold"


class TestOrders:

    def test_totals_and_default_unit_price(self, ctx, product, customer):
        order = order_service.create_order(
            ctx,
            customer_id=customer.id,
            items=[
                {"product_id": product.id, "quantity": 10},
                {"description": "Screen setup fee", "quantity": 1, "unit_price_cents": 50000},
            ],
            discount_cents=10000,
        )

        assert order.order_number == "ORD-000001"
        assert order.customer_name == customer.name
        assert order.status == "draft"
        assert [i.unit_price_cents for i in order.items] == [15000, 50000]
        assert order.items[0].description == product.name
        assert order.subtotal_cents == 10 * 15000 + 50000
        assert order.total_cents == order.subtotal_cents - 10000

    def test_discount_never_makes_total_negative(self, ctx):
        order = order_service.create_order(
            ctx,
            customer_name="Walk-in",
            items=[{"description": "Sample print", "quantity": 1, "unit_price_cents": 100}],
            discount_cents=500,
        )
        assert order.total_cents == 0

    def test_new_order_notifies_staff_alert_roles(self, ctx, manager, staff):
        order_service.create_order(
            ctx,
            customer_name="Walk-in",
            items=[{"description": "Sample print", "quantity": 1, "unit_price_cents": 100}],
        )
        recipients = {n.user_id for n in Notification.query.filter_by(type="new_order")}
        assert recipients == {ctx.actor_user_id, manager.id}

    def test_create_audit_counts_items(self, ctx):
        order = order_service.create_order(
            ctx,
            customer_name="Walk-in",
            items=[
                {"description": "A", "quantity": 1, "unit_price_cents": 100},
                {"description": "B", "quantity": 2, "unit_price_cents": 100},
            ],
        )
        entry = AuditLog.query.filter_by(entity_type="order", entity_id=order.id).one()
        assert '"item_count": 2' in entry.new_data

    def test_blocked_customer_cannot_order(self, ctx, customer):
        customer_service.update_customer(ctx, customer.id, {"status": "blocked"})
        with pytest.raises(ValidationError, match="blocked"):
            order_service.create_order(
                ctx,
                customer_id=customer.id,
                items=[{"description": "A", "quantity": 1, "unit_price_cents": 100}],
            )

    def test_items_required(self, ctx):
        with pytest.raises(ValidationError):
            order_service.create_order(ctx, customer_name="Walk-in", items=[])

    def test_unknown_product_line(self, ctx):
        with pytest.raises(NotFoundError):
            order_service.create_order(ctx, customer_name="Walk-in", items=[{"product_id": 77, "quantity": 1}])

    def test_status_workflow(self, ctx):
        order = order_service.create_order(
            ctx,
            customer_name="Walk-in",
            items=[{"description": "A", "quantity": 1, "unit_price_cents": 100}],
        )

        with pytest.raises(OrderStatusError):
            order_service.update_order_status(ctx, order.id, "completed")

        order_service.update_order_status(ctx, order.id, "confirmed")
        order_service.update_order_status(ctx, order.id, "cancelled")
        with pytest.raises(OrderStatusError):
            order_service.update_order_status(ctx, order.id, "confirmed")

    def test_completing_order_updates_customer_tier(self, ctx, customer):
        order = order_service.create_order(
            ctx,
            customer_id=customer.id,
            items=[{"description": "Team jerseys", "quantity": 100, "unit_price_cents": 50000}],
        )
        for status in ("confirmed", "in_production", "completed"):
            order_service.update_order_status(ctx, order.id, status)

        refreshed = db.session.get(Customer, customer.id)
        assert refreshed.total_orders == 1
        assert refreshed.total_spent_cents == 5_000_000
        assert refreshed.tier == "silver"

    def test_jobs_from_order(self, ctx, customer):
        order = order_service.create_order(
            ctx,
            customer_id=customer.id,
            due_date="2026-11-30",
            items=[
                {"description": "Front print", "quantity": 40, "unit_price_cents": 12000},
                {"description": "Back print", "quantity": 40, "unit_price_cents": 9000, "work_type_code": "screen"},
            ],
        )

        jobs = order_service.create_job_from_order(ctx, order.id)

        assert order_service.get_order(order.id).status == "in_production"
        assert len(jobs) == 2
        assert {j.order_id for j in jobs} == {order.id}
        assert [j.order_item_id for j in jobs] == [i.id for i in order.items]
        assert jobs[1].work_type_code == "screen"
        assert jobs[0].total_price_cents == 40 * 12000
        assert jobs[0].due_date.isoformat() == "2026-11-30"
        assert ProductionJob.query.filter_by(order_id=order.id, status="pending").count() == 2

    def test_jobs_from_order_twice_skips_covered_items(self, ctx):
        order = order_service.create_order(
            ctx,
            customer_name="Walk-in",
            items=[{"description": "Front print", "quantity": 10, "unit_price_cents": 12000}],
        )

        first = order_service.create_job_from_order(ctx, order.id)
        again = order_service.create_job_from_order(ctx, order.id)

        assert len(first) == 1
        assert again == []
        assert ProductionJob.query.filter_by(order_id=order.id).count() == 1
        assert order_service.get_order(order.id).status == "in_production"

    def test_rework_job_does_not_cover_the_order_line(self, ctx):
        order = order_service.create_order(
            ctx,
            customer_name="Walk-in",
            items=[{"description": "Front print", "quantity": 10, "unit_price_cents": 12000}],
        )
        (job,) = order_service.create_job_from_order(ctx, order.id)
        production_service.create_rework_job(ctx, job.id, 2, "Smudge")

        assert order_service.create_job_from_order(ctx, order.id) == []

    def test_no_jobs_for_cancelled_order(self, ctx):
        order = order_service.create_order(
            ctx,
            customer_name="Walk-in",
            items=[{"description": "A", "quantity": 1, "unit_price_cents": 100}],
        )
        order_service.update_order_status(ctx, order.id, "cancelled")
        with pytest.raises(OrderStatusError):
            order_service.create_job_from_order(ctx, order.id)
