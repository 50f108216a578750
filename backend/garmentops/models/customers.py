from __future__ import annotations

from ..extensions import db
from garmentops.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    CRM customer record.

    total_orders / total_spent_cents are running totals maintained when
    orders complete; tier is derived from total_spent_cents.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_customers_code"),
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    # individual, company
    type = db.Column(db.String(16), nullable=False, default="company")

    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    line_id = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    tax_id = db.Column(db.String(32), nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    # cash, credit_7, credit_15, credit_30
    payment_terms = db.Column(db.String(16), nullable=False, default="cash")
    # bronze, silver, gold, platinum
    tier = db.Column(db.String(16), nullable=False, default="bronze")
    # active, inactive, blocked
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "line_id": self.line_id,
            "address": self.address,
            "tax_id": self.tax_id,
            "credit_limit_cents": self.credit_limit_cents,
            "payment_terms": self.payment_terms,
            "tier": self.tier,
            "status": self.status,
            "total_orders": self.total_orders,
            "total_spent_cents": self.total_spent_cents,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerInteraction(db.Model):
    __tablename__ = "customer_interactions"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    # call, email, line, visit, order, complaint, note
    type = db.Column(db.String(16), nullable=False)
    subject = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("interactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "type": self.type,
            "subject": self.subject,
            "content": self.content,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
