from __future__ import annotations

from ..extensions import db
from garmentops.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Blank garment / material master data with its current stock level.

    Unlike a derived ledger, stock_qty is the authoritative on-hand count; the
    stock_transactions table is the history of how it got there.

    INVARIANT: stock_qty never ends below zero after a withdrawal. This is
    checked by the stock service before writing, not by a DB constraint.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    model = db.Column(db.String(64), nullable=True)  # Gildan, Hiptrack, TC, CVC...
    color = db.Column(db.String(32), nullable=True)
    size = db.Column(db.String(8), nullable=True)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_qty = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.min_stock > 0 and self.stock_qty <= self.min_stock

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock_qty={self.stock_qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "model": self.model,
            "color": self.color,
            "size": self.size,
            "cost_price_cents": self.cost_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "stock_qty": self.stock_qty,
            "min_stock": self.min_stock,
            "in_stock": self.stock_qty > 0,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransaction(db.Model):
    """
    Stock ledger row: one per IN / OUT / ADJUST.

    quantity is always the non-negative magnitude; quantity_before and
    quantity_after carry the direction. Rows are never updated or deleted.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stocktx_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # IN, OUT, ADJUST
    quantity = db.Column(db.Integer, nullable=False)
    quantity_before = db.Column(db.Integer, nullable=True)
    quantity_after = db.Column(db.Integer, nullable=True)

    ref_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    ref_job_id = db.Column(db.Integer, db.ForeignKey("production_jobs.id"), nullable=True, index=True)

    reason_category = db.Column(db.String(32), nullable=True)
    reason = db.Column(db.String(255), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "ref_order_id": self.ref_order_id,
            "ref_job_id": self.ref_job_id,
            "reason_category": self.reason_category,
            "reason": self.reason,
            "note": self.note,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class StockReservation(db.Model):
    """
    A claim on part of a product's stock for one production job.

    Lifecycle: reserved -> used | released. Only rows in 'reserved' count
    against available quantity. Reserving never touches products.stock_qty.
    """
    __tablename__ = "stock_reservations"
    __table_args__ = (
        db.Index("ix_reservations_product_status", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    job_id = db.Column(db.Integer, db.ForeignKey("production_jobs.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="reserved", index=True)

    reserved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reserved_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    released_at = db.Column(db.DateTime(timezone=True), nullable=True)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product", backref=db.backref("reservations", lazy=True))
    job = db.relationship("ProductionJob", backref=db.backref("reservations", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "status": self.status,
            "reserved_by": self.reserved_by,
            "reserved_at": to_utc_z(self.reserved_at),
            "released_at": to_utc_z(self.released_at),
            "used_at": to_utc_z(self.used_at),
        }
