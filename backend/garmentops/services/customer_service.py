# Overview: CRM customers, interactions and spend-based tiers.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..context import OperationContext
from ..extensions import db
from ..models import Customer, CustomerInteraction
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_choice,
    validate_payload,
)
from .audit_service import CustomerSnapshot, audit_or_warn
from .document_service import next_document_number


CUSTOMER_TYPES = ("individual", "company")
PAYMENT_TERMS = ("cash", "credit_7", "credit_15", "credit_30")
CUSTOMER_STATUSES = ("active", "inactive", "blocked")
INTERACTION_TYPES = ("call", "email", "line", "visit", "order", "complaint", "note")

# Highest threshold first; amounts in satang (baht * 100)
TIER_THRESHOLDS = (
    ("platinum", 500_000 * 100),
    ("gold", 200_000 * 100),
    ("silver", 50_000 * 100),
    ("bronze", 0),
)
CUSTOMER_TIERS = tuple(reversed([tier for tier, _ in TIER_THRESHOLDS]))

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "type",
        "contact_name",
        "email",
        "phone",
        "line_id",
        "address",
        "tax_id",
        "credit_limit_cents",
        "payment_terms",
        "status",
        "notes",
    },
    required_on_create={"name"},
)


def _enforce_rules_customer(patch: dict) -> None:
    enforce_choice(patch, "type", CUSTOMER_TYPES)
    enforce_choice(patch, "payment_terms", PAYMENT_TERMS)
    enforce_choice(patch, "status", CUSTOMER_STATUSES)
    if patch.get("credit_limit_cents") is not None and patch["credit_limit_cents"] < 0:
        raise ValidationError("credit_limit_cents must be >= 0")


def tier_for_spent(total_spent_cents: int) -> str:
    for tier, minimum in TIER_THRESHOLDS:
        if total_spent_cents >= minimum:
            return tier
    return "bronze"


def _get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def get_customer(customer_id: int) -> Customer:
    return _get_customer(customer_id)


def create_customer(ctx: OperationContext, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    _enforce_rules_customer(patch)

    code = next_document_number(
        document_type="customer",
        prefix=current_app.config.get("CUSTOMER_CODE_PREFIX", "C"),
        pad=4,
    )
    customer = Customer(code=code, created_by=ctx.actor_user_id, **patch)
    customer.type = customer.type or "company"
    customer.payment_terms = customer.payment_terms or "cash"
    customer.status = customer.status or "active"
    customer.tier = "bronze"
    customer.credit_limit_cents = customer.credit_limit_cents or 0
    customer.total_orders = 0
    customer.total_spent_cents = 0
    db.session.add(customer)
    db.session.flush()

    audit_or_warn(ctx, "create", customer.id, new=CustomerSnapshot.from_model(customer))
    db.session.commit()
    return customer


def update_customer(ctx: OperationContext, customer_id: int, payload: dict) -> Customer:
    customer = _get_customer(customer_id)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    _enforce_rules_customer(patch)
    if not patch:
        return customer

    before = CustomerSnapshot.from_model(customer)
    for k, v in patch.items():
        setattr(customer, k, v)
    db.session.flush()

    audit_or_warn(ctx, "update", customer.id, old=before, new=CustomerSnapshot.from_model(customer))
    db.session.commit()
    return customer


def add_interaction(
    ctx: OperationContext,
    customer_id: int,
    *,
    type: str,
    subject: str | None = None,
    content: str | None = None,
) -> CustomerInteraction:
    _get_customer(customer_id)
    if type not in INTERACTION_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(INTERACTION_TYPES)}")

    interaction = CustomerInteraction(
        customer_id=customer_id,
        type=type,
        subject=(subject or "").strip()[:255] or None,
        content=content,
        created_by=ctx.actor_user_id,
    )
    db.session.add(interaction)
    db.session.commit()
    return interaction


def list_interactions(customer_id: int) -> list[CustomerInteraction]:
    _get_customer(customer_id)
    return (
        CustomerInteraction.query.filter_by(customer_id=customer_id)
        .order_by(CustomerInteraction.created_at.desc(), CustomerInteraction.id.desc())
        .all()
    )


def list_customers(
    *,
    search: str | None = None,
    status: str | None = None,
    tier: str | None = None,
) -> list[Customer]:
    q = Customer.query
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Customer.name.ilike(like),
                Customer.code.ilike(like),
                Customer.contact_name.ilike(like),
                Customer.phone.ilike(like),
                Customer.email.ilike(like),
            )
        )
    if status:
        if status not in CUSTOMER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(CUSTOMER_STATUSES)}")
        q = q.filter(Customer.status == status)
    if tier:
        if tier not in CUSTOMER_TIERS:
            raise ValidationError(f"tier must be one of: {', '.join(CUSTOMER_TIERS)}")
        q = q.filter(Customer.tier == tier)
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def record_completed_order(ctx: OperationContext, customer: Customer, total_cents: int) -> Customer:
    """Add a completed order to the running totals and re-derive tier. Does not commit."""
    before = CustomerSnapshot.from_model(customer)
    customer.total_orders = (customer.total_orders or 0) + 1
    customer.total_spent_cents = (customer.total_spent_cents or 0) + total_cents
    customer.tier = tier_for_spent(customer.total_spent_cents)
    db.session.flush()
    audit_or_warn(ctx, "update", customer.id, old=before, new=CustomerSnapshot.from_model(customer))
    return customer


def recalculate_tier(ctx: OperationContext, customer_id: int) -> Customer:
    customer = _get_customer(customer_id)
    new_tier = tier_for_spent(customer.total_spent_cents or 0)
    if new_tier != customer.tier:
        before = CustomerSnapshot.from_model(customer)
        customer.tier = new_tier
        db.session.flush()
        audit_or_warn(ctx, "update", customer.id, old=before, new=CustomerSnapshot.from_model(customer))
        db.session.commit()
    return customer
