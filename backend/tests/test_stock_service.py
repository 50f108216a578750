"""
Stock ledger tests: IN / OUT / ADJUST, history rows and low stock alerts.
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from garmentops.extensions import db
from garmentops.models import AuditLog, Notification, Product, StockTransaction
from garmentops.services import stock_service
from garmentops.validation import InsufficientStockError, NotFoundError, ValidationError


class TestStockIn:
    """Receiving stock."""

    def test_stock_in_adds_and_records_history(self, ctx, product):
        result = stock_service.stock_in(ctx, product.id, 25, note="PO-17 delivery")

        assert result.quantity_before == 100
        assert result.quantity_after == 125
        assert db.session.get(Product, product.id).stock_qty == 125

        tx = StockTransaction.query.filter_by(product_id=product.id).one()
        assert tx.type == "IN"
        assert tx.quantity == 25
        assert tx.quantity_before == 100
        assert tx.quantity_after == 125
        assert tx.user_id == ctx.actor_user_id

    def test_stock_in_writes_audit_entry(self, ctx, product):
        stock_service.stock_in(ctx, product.id, 5)

        entry = AuditLog.query.filter_by(entity_type="product", entity_id=product.id).one()
        assert entry.action == "update"
        assert '"stock_qty": 100' in entry.old_data
        assert '"stock_qty": 105' in entry.new_data
        assert '"transaction_type": "IN"' in entry.new_data

    @pytest.mark.parametrize("quantity", [0, -3, 2.5, "10", True])
    def test_stock_in_rejects_non_positive_or_non_integer(self, ctx, product, quantity):
        with pytest.raises(ValidationError):
            stock_service.stock_in(ctx, product.id, quantity)
        assert StockTransaction.query.count() == 0

    def test_stock_in_unknown_product(self, ctx, db_session):
        with pytest.raises(NotFoundError):
            stock_service.stock_in(ctx, 9999, 1)

    def test_stock_in_unknown_order_reference(self, ctx, product):
        with pytest.raises(NotFoundError):
            stock_service.stock_in(ctx, product.id, 1, ref_order_id=4242)


class TestStockOut:
    """Withdrawing stock."""

    def test_stock_out_subtracts(self, ctx, product, job):
        result = stock_service.stock_out(ctx, product.id, 30, ref_job_id=job.id, reason="Printing run")

        assert result.quantity_after == 70
        tx = result.transaction
        assert tx.type == "OUT"
        assert tx.quantity == 30
        assert tx.ref_job_id == job.id
        assert tx.reason_category == "normal"

    def test_stock_out_to_exactly_zero(self, ctx, product):
        result = stock_service.stock_out(ctx, product.id, 100)
        assert result.quantity_after == 0

    def test_insufficient_stock_writes_nothing(self, ctx, product):
        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.stock_out(ctx, product.id, 101)

        assert exc_info.value.requested == 101
        assert exc_info.value.available == 100
        db.session.rollback()
        assert db.session.get(Product, product.id).stock_qty == 100
        assert StockTransaction.query.count() == 0
        assert AuditLog.query.filter_by(entity_type="product").count() == 0

    def test_reason_category_is_validated(self, ctx, product):
        with pytest.raises(ValidationError):
            stock_service.stock_out(ctx, product.id, 1, reason_category="weather")

    def test_defect_reason_category_is_kept(self, ctx, product):
        result = stock_service.stock_out(ctx, product.id, 2, reason="Torn seam", reason_category="factory")
        assert result.transaction.reason_category == "factory"
        assert result.transaction.reason == "Torn seam"

    def test_low_stock_notifies_admins_and_managers(self, ctx, product, manager, staff):
        stock_service.stock_out(ctx, product.id, 92)

        notes = Notification.query.filter_by(type="low_stock").all()
        recipients = {n.user_id for n in notes}
        assert recipients == {ctx.actor_user_id, manager.id}
        assert "SKU-1" in notes[0].message

    def test_no_notification_above_threshold(self, ctx, product, manager):
        stock_service.stock_out(ctx, product.id, 5)
        assert Notification.query.count() == 0

    def test_low_stock_alerts_can_be_disabled(self, app, ctx, product, manager):
        app.config["LOW_STOCK_ALERTS_ENABLED"] = False
        try:
            stock_service.stock_out(ctx, product.id, 95)
        finally:
            app.config["LOW_STOCK_ALERTS_ENABLED"] = True
        assert Notification.query.count() == 0


class TestRoundTrip:

    @pytest.mark.parametrize("start,quantity", [
        (100, 1),
        (100, 37),
        (0, 40),
    ])
    def test_in_then_out_restores_stock(self, ctx, product, start, quantity):
        product.stock_qty = start
        db.session.commit()

        stock_service.stock_in(ctx, product.id, quantity)
        result = stock_service.stock_out(ctx, product.id, quantity)

        assert result.quantity_after == start
        assert db.session.get(Product, product.id).stock_qty == start
        assert [t.type for t in StockTransaction.query.order_by(StockTransaction.id)] == ["IN", "OUT"]


class TestStockAdjust:
    """Stock count corrections."""

    def test_adjust_down_records_magnitude(self, ctx, product):
        result = stock_service.stock_adjust(ctx, product.id, 80, reason="Cycle count")

        assert result.quantity_after == 80
        tx = result.transaction
        assert tx.type == "ADJUST"
        assert tx.quantity == 20
        assert tx.quantity_before == 100
        assert tx.quantity_after == 80
        assert tx.note == "Adjusted from 100 to 80"
        assert tx.reason == "Cycle count"

    def test_adjust_up(self, ctx, product):
        result = stock_service.stock_adjust(ctx, product.id, 130)
        assert result.transaction.quantity == 30
        assert db.session.get(Product, product.id).stock_qty == 130

    def test_adjust_to_zero_is_allowed(self, ctx, product):
        result = stock_service.stock_adjust(ctx, product.id, 0)
        assert result.quantity_after == 0

    def test_adjust_rejects_negative(self, ctx, product):
        with pytest.raises(ValidationError):
            stock_service.stock_adjust(ctx, product.id, -1)


class TestBestEffortHistory:
    """A failed history row never undoes the quantity change."""

    def test_history_failure_keeps_stock_change(self, ctx, product, monkeypatch):
        def broken(**fields):
            raise SQLAlchemyError("stock_transactions is read-only")

        monkeypatch.setattr(stock_service, "_build_transaction", broken)

        result = stock_service.stock_in(ctx, product.id, 10)

        assert result.transaction is None
        assert result.quantity_after == 110
        db.session.expire_all()
        assert db.session.get(Product, product.id).stock_qty == 110
        assert StockTransaction.query.count() == 0
        # The audit entry is independent of the history row
        assert AuditLog.query.filter_by(entity_type="product").count() == 1


class TestQueries:

    def test_list_transactions_newest_first_and_filtered(self, ctx, product):
        stock_service.stock_in(ctx, product.id, 10)
        stock_service.stock_out(ctx, product.id, 3)

        rows = stock_service.list_transactions(product_id=product.id)
        assert [r.type for r in rows] == ["OUT", "IN"]

        only_in = stock_service.list_transactions(type="IN")
        assert [r.type for r in only_in] == ["IN"]

    def test_list_transactions_rejects_unknown_type(self, db_session):
        with pytest.raises(ValidationError):
            stock_service.list_transactions(type="MOVE")

    def test_low_stock_products(self, ctx, product, db_session):
        other = Product(sku="SKU-2", name="Hiptrack White L", stock_qty=3, min_stock=0)
        db_session.add(other)
        db_session.commit()

        assert stock_service.list_low_stock_products() == []

        stock_service.stock_adjust(ctx, product.id, 10)
        assert [p.sku for p in stock_service.list_low_stock_products()] == ["SKU-1"]
