"""
Audit trail tests: snapshot typing, best-effort writes, cursor pagination.
"""

import json

import pytest
from sqlalchemy.exc import SQLAlchemyError

from garmentops.extensions import db
from garmentops.models import AuditLog, Product
from garmentops.services import audit_service, production_service, stock_service
from garmentops.services.audit_service import (
    JobSnapshot,
    ProductSnapshot,
    ProductStockSnapshot,
    ReservationSnapshot,
    diff_snapshots,
    list_audit_logs,
    parse_cursor,
    record_audit,
)
from garmentops.validation import ValidationError


def _broken_entry(*args, **kwargs):
    raise SQLAlchemyError("audit_logs unavailable")


class TestRecordAudit:

    def test_record_writes_row_with_context(self, ctx, product):
        result = record_audit(
            ctx,
            "update",
            product.id,
            old=ProductStockSnapshot(stock_qty=1),
            new=ProductStockSnapshot(stock_qty=2, transaction_type="IN", quantity=1),
        )
        db.session.commit()

        assert result.ok
        entry = db.session.get(AuditLog, result.entry.id)
        assert entry.user_id == ctx.actor_user_id
        assert entry.ip_address == "127.0.0.1"
        assert entry.user_agent == "pytest"
        assert json.loads(entry.old_data) == {"stock_qty": 1}
        assert json.loads(entry.new_data) == {"stock_qty": 2, "transaction_type": "IN", "quantity": 1}

    def test_unknown_action_is_rejected(self, ctx):
        with pytest.raises(ValidationError):
            record_audit(ctx, "archive", 1, new=ProductStockSnapshot(stock_qty=1))

    def test_snapshot_required(self, ctx):
        with pytest.raises(ValidationError):
            record_audit(ctx, "delete", 1)

    def test_mismatched_snapshot_types_are_rejected(self, ctx):
        with pytest.raises(ValidationError, match="mismatch"):
            record_audit(
                ctx,
                "update",
                1,
                old=ProductStockSnapshot(stock_qty=1),
                new=ReservationSnapshot(job_id=1, product_id=1, quantity=1, status="reserved"),
            )

    def test_database_failure_is_reported_not_raised(self, ctx, monkeypatch):
        monkeypatch.setattr(audit_service, "_build_entry", _broken_entry)

        result = record_audit(ctx, "create", 1, new=ProductStockSnapshot(stock_qty=1))
        assert not result.ok
        assert "audit_logs unavailable" in result.error


class TestAuditIsBestEffort:
    """A failed audit write never undoes the primary change."""

    def test_stock_change_survives_audit_failure(self, ctx, product, monkeypatch, caplog):
        monkeypatch.setattr(audit_service, "_build_entry", _broken_entry)

        with caplog.at_level("WARNING"):
            result = stock_service.stock_out(ctx, product.id, 10)

        assert result.quantity_after == 90
        db.session.expire_all()
        assert db.session.get(Product, product.id).stock_qty == 90
        assert AuditLog.query.count() == 0
        assert "Audit write failed" in caplog.text

    def test_status_change_survives_audit_failure(self, ctx, job, monkeypatch):
        monkeypatch.setattr(audit_service, "_build_entry", _broken_entry)

        production_service.update_job_status(ctx, job.id, "printing")
        db.session.expire_all()
        assert production_service.get_job(job.id).status == "printing"


class TestDiff:

    def _job_snapshot(self, **overrides):
        base = dict(
            job_number="PJ-000001",
            status="pending",
            progress=0,
            priority=0,
            ordered_qty=10,
            produced_qty=0,
            passed_qty=0,
            failed_qty=0,
            unit_price_cents=100,
            total_price_cents=1000,
            assigned_to=None,
            description=None,
            due_date=None,
            qc_status=None,
            rework_count=0,
        )
        base.update(overrides)
        return JobSnapshot(**base)

    def test_only_changed_fields(self):
        old = self._job_snapshot()
        new = self._job_snapshot(status="printing", progress=40)

        assert diff_snapshots(old, new) == {
            "progress": {"old": 0, "new": 40},
            "status": {"old": "pending", "new": "printing"},
        }

    def test_create_diff_has_every_field(self):
        changes = diff_snapshots(None, self._job_snapshot())
        assert changes["job_number"] == {"old": None, "new": "PJ-000001"}

    def test_cannot_diff_across_entities(self):
        product = ProductSnapshot(
            sku="S", name="N", category=None, cost_price_cents=0,
            sale_price_cents=0, min_stock=0, is_active=True,
        )
        with pytest.raises(ValidationError):
            diff_snapshots(product, self._job_snapshot())


class TestListing:

    def test_newest_first_with_filters(self, ctx, product):
        stock_service.stock_in(ctx, product.id, 1)
        stock_service.stock_in(ctx, product.id, 2)
        production_service.create_job(ctx, {"ordered_qty": 1})

        rows, next_cursor = list_audit_logs(entity_type="product")
        assert [json.loads(r.new_data)["quantity"] for r in rows] == [2, 1]
        assert next_cursor is None

        created, _ = list_audit_logs(action="create")
        assert [r.entity_type for r in created] == ["production_job"]

    def test_cursor_walks_every_row_once(self, ctx, product):
        for qty in range(1, 6):
            stock_service.stock_in(ctx, product.id, qty)

        seen = []
        cursor = None
        while True:
            rows, cursor = list_audit_logs(entity_type="product", limit=2, cursor=cursor)
            seen.extend(r.id for r in rows)
            if cursor is None:
                break

        all_ids = [r.id for r in AuditLog.query.order_by(AuditLog.id.desc()).all()]
        assert seen == all_ids
        assert len(seen) == 5

    def test_bad_cursor(self):
        with pytest.raises(ValidationError):
            parse_cursor("yesterday")
        with pytest.raises(ValidationError):
            parse_cursor("2026-10-18T10:00:00|abc")

    def test_empty_cursor_means_first_page(self):
        assert parse_cursor("") is None
        assert parse_cursor(None) is None
