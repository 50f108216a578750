from __future__ import annotations

from ..extensions import db
from garmentops.time_utils import to_utc_z, to_iso_date, utcnow


class ProductionJob(db.Model):
    """
    One unit of shop-floor work (print, embroider, sew...) for a quantity of
    garments.

    Status moves only through the transition table in production_service;
    every move appends a ProductionJobLog row.

    Rework jobs point back to the job they fix via original_job_id; the
    original keeps a running rework_count.
    """
    __tablename__ = "production_jobs"
    __table_args__ = (
        db.UniqueConstraint("job_number", name="uq_production_jobs_number"),
        db.Index("ix_production_jobs_status_priority", "status", "priority"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    job_number = db.Column(db.String(32), nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    work_type_code = db.Column(db.String(32), nullable=False, default="dtg")
    description = db.Column(db.Text, nullable=True)

    ordered_qty = db.Column(db.Integer, nullable=False)
    produced_qty = db.Column(db.Integer, nullable=False, default=0)
    passed_qty = db.Column(db.Integer, nullable=False, default=0)
    failed_qty = db.Column(db.Integer, nullable=False, default=0)

    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    # 0 normal, 1 rush, 2 urgent
    priority = db.Column(db.Integer, nullable=False, default=0)
    progress = db.Column(db.Integer, nullable=False, default=0)

    due_date = db.Column(db.Date, nullable=True)

    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    qc_status = db.Column(db.String(16), nullable=True)
    qc_notes = db.Column(db.Text, nullable=True)
    qc_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    qc_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_rework = db.Column(db.Boolean, nullable=False, default=False)
    rework_reason = db.Column(db.String(255), nullable=True)
    original_job_id = db.Column(db.Integer, db.ForeignKey("production_jobs.id"), nullable=True, index=True)
    rework_count = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    original_job = db.relationship("ProductionJob", remote_side=[id], backref="rework_jobs")

    def __repr__(self) -> str:
        return f"<ProductionJob id={self.id} number={self.job_number!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_number": self.job_number,
            "order_id": self.order_id,
            "order_item_id": self.order_item_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "work_type_code": self.work_type_code,
            "description": self.description,
            "ordered_qty": self.ordered_qty,
            "produced_qty": self.produced_qty,
            "passed_qty": self.passed_qty,
            "failed_qty": self.failed_qty,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "status": self.status,
            "priority": self.priority,
            "progress": self.progress,
            "due_date": to_iso_date(self.due_date),
            "assigned_to": self.assigned_to,
            "assigned_at": to_utc_z(self.assigned_at),
            "started_at": to_utc_z(self.started_at),
            "completed_at": to_utc_z(self.completed_at),
            "qc_status": self.qc_status,
            "qc_notes": self.qc_notes,
            "qc_by": self.qc_by,
            "qc_at": to_utc_z(self.qc_at),
            "is_rework": self.is_rework,
            "rework_reason": self.rework_reason,
            "original_job_id": self.original_job_id,
            "rework_count": self.rework_count,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductionJobLog(db.Model):
    """Append-only history of a job: creation, status moves, output, QC, rework."""
    __tablename__ = "production_job_logs"
    __table_args__ = (
        db.Index("ix_job_logs_job_created", "job_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey("production_jobs.id"), nullable=False, index=True)

    # created, status_changed, assigned, produced, qc_passed, qc_failed, rework_created
    action = db.Column(db.String(32), nullable=False)
    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=True)
    produced_qty = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    performed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    job = db.relationship("ProductionJob", backref=db.backref("logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "produced_qty": self.produced_qty,
            "notes": self.notes,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }


class QCCheckpoint(db.Model):
    __tablename__ = "qc_checkpoints"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey("production_jobs.id"), nullable=False, index=True)

    checkpoint_name = db.Column(db.String(128), nullable=False)
    passed = db.Column(db.Boolean, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    checked_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "checkpoint_name": self.checkpoint_name,
            "passed": self.passed,
            "notes": self.notes,
            "checked_by": self.checked_by,
            "created_at": to_utc_z(self.created_at),
        }
