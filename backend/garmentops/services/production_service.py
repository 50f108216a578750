# Overview: Production jobs; status state machine, output logging, QC and rework.

"""
Production Job State Machine

================================================================================
Every status change goes through TRANSITIONS: (from_status, event) -> to_status.
Anything not in the table raises InvalidTransitionError and writes nothing.

    pending -> reserved -> assigned -> printing | in_progress
            -> curing -> packing -> qc_passed | qc_failed -> completed

    - Earlier stages may be skipped (pending -> printing is allowed).
    - cancelled is reachable from every non-terminal state except qc_passed.
    - qc_passed may go back to packing; qc_failed may be re-checked.
    - completed and cancelled are terminal.

Side effects of a successful move:
    - progress is recomputed from STATUS_PROGRESS
    - started_at is stamped on the first entry to printing / in_progress
    - assigned_at on assigned, completed_at on completed
    - one ProductionJobLog row {from, to, note, actor}
    - one audit entry (old / new JobSnapshot)
================================================================================
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..context import OperationContext
from ..extensions import db
from ..models import ProductionJob, ProductionJobLog, QCCheckpoint, User
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_job,
    require_positive_int,
    validate_payload,
)
from .audit_service import JobSnapshot, audit_or_warn
from .document_service import next_document_number
from .notification_service import notify_job_complete


JOB_STATUSES = (
    "pending",
    "reserved",
    "assigned",
    "printing",
    "in_progress",
    "curing",
    "packing",
    "qc_passed",
    "qc_failed",
    "completed",
    "cancelled",
)

TERMINAL_STATUSES = frozenset({"completed", "cancelled"})

STATUS_PROGRESS = {
    "pending": 0,
    "reserved": 15,
    "assigned": 15,
    "printing": 40,
    "in_progress": 40,
    "curing": 65,
    "packing": 85,
    "qc_passed": 90,
    "qc_failed": 90,
    "completed": 100,
    "cancelled": 0,
}

# Target status -> event that produces it
STATUS_EVENTS = {
    "reserved": "reserve",
    "assigned": "assign",
    "printing": "print",
    "in_progress": "start",
    "curing": "cure",
    "packing": "pack",
    "qc_passed": "qc_pass",
    "qc_failed": "qc_fail",
    "completed": "complete",
    "cancelled": "cancel",
}

_ALLOWED_EVENTS = {
    "pending": ("reserve", "assign", "print", "start", "cancel"),
    "reserved": ("assign", "print", "start", "cancel"),
    "assigned": ("print", "start", "cancel"),
    "printing": ("cure", "pack", "qc_pass", "qc_fail", "cancel"),
    "in_progress": ("cure", "pack", "qc_pass", "qc_fail", "cancel"),
    "curing": ("pack", "qc_pass", "qc_fail", "cancel"),
    "packing": ("qc_pass", "qc_fail", "complete", "cancel"),
    "qc_passed": ("pack", "complete"),
    "qc_failed": ("qc_pass", "qc_fail", "complete", "cancel"),
}

EVENT_TARGETS = {event: status for status, event in STATUS_EVENTS.items()}

TRANSITIONS = {
    (from_status, event): EVENT_TARGETS[event]
    for from_status, events in _ALLOWED_EVENTS.items()
    for event in events
}

PRIORITY_NORMAL = 0
PRIORITY_RUSH = 1
PRIORITY_URGENT = 2

REWORK_PREFIX = "[REWORK] "

JOB_POLICY = ModelValidationPolicy(
    writable_fields={
        "order_id",
        "order_item_id",
        "customer_id",
        "customer_name",
        "work_type_code",
        "description",
        "ordered_qty",
        "unit_price_cents",
        "priority",
        "due_date",
        "notes",
    },
    required_on_create={"ordered_qty"},
)

# Fields a PATCH may touch; quantities produced / QC results have their own operations
JOB_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name",
        "work_type_code",
        "description",
        "ordered_qty",
        "unit_price_cents",
        "priority",
        "due_date",
        "notes",
    },
)


class InvalidTransitionError(ValueError):
    """
    Raised when a status move is not in the transition table.

    Domain error (400), not a conflict: the caller asked for a move the
    workflow does not have.
    """
    pass


def validate_status(status: str) -> None:
    if status not in JOB_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(JOB_STATUSES)}"
        )


def next_status(from_status: str, event: str) -> str:
    """Look up (from_status, event); raise InvalidTransitionError when absent."""
    to_status = TRANSITIONS.get((from_status, event))
    if to_status is None:
        if from_status in TERMINAL_STATUSES:
            raise InvalidTransitionError(f"Job is {from_status}; no further status changes allowed")
        raise InvalidTransitionError(f"Cannot {event} a job in status '{from_status}'")
    return to_status


def can_transition(from_status: str, to_status: str) -> bool:
    event = STATUS_EVENTS.get(to_status)
    return event is not None and (from_status, event) in TRANSITIONS


def allowed_next_statuses(from_status: str) -> list[str]:
    return [EVENT_TARGETS[e] for e in _ALLOWED_EVENTS.get(from_status, ())]


def _get_job(job_id: int) -> ProductionJob:
    job = db.session.get(ProductionJob, job_id)
    if job is None:
        raise NotFoundError("Production job not found")
    return job


def _add_log(
    ctx: OperationContext,
    job: ProductionJob,
    *,
    action: str,
    from_status: str | None = None,
    to_status: str | None = None,
    produced_qty: int | None = None,
    notes: str | None = None,
) -> ProductionJobLog:
    log = ProductionJobLog(
        job_id=job.id,
        action=action,
        from_status=from_status,
        to_status=to_status,
        produced_qty=produced_qty,
        notes=notes,
        performed_by=ctx.actor_user_id,
    )
    db.session.add(log)
    return log


def _apply_status(ctx: OperationContext, job: ProductionJob, new_status: str) -> str:
    """Validate and write status + derived fields. Returns the previous status."""
    validate_status(new_status)
    event = STATUS_EVENTS.get(new_status)
    if event is None:
        # Only "pending" has no event: jobs never move back to it
        raise InvalidTransitionError(f"Cannot move a job back to '{new_status}'")

    previous = job.status
    job.status = next_status(previous, event)
    job.progress = STATUS_PROGRESS[job.status]

    now = utcnow()
    if job.status in ("printing", "in_progress") and job.started_at is None:
        job.started_at = now
    if job.status == "assigned":
        job.assigned_at = now
    if job.status == "completed":
        job.completed_at = now

    return previous


def _transition(
    ctx: OperationContext,
    job: ProductionJob,
    new_status: str,
    *,
    note: str | None = None,
    action: str = "status_changed",
    before: JobSnapshot | None = None,
) -> ProductionJob:
    """Status move + log row + audit. Does not commit."""
    before = before or JobSnapshot.from_model(job)
    previous = _apply_status(ctx, job, new_status)

    _add_log(ctx, job, action=action, from_status=previous, to_status=job.status, notes=note)
    db.session.flush()
    audit_or_warn(ctx, "update", job.id, old=before, new=JobSnapshot.from_model(job))

    if job.status == "completed":
        notify_job_complete(job)

    return job


def create_job(ctx: OperationContext, payload: dict) -> ProductionJob:
    """
    Create a job in 'pending' with a fresh PJ-NNNNNN number.

    total_price_cents = unit_price_cents * ordered_qty.
    """
    patch = validate_payload(model=ProductionJob, payload=payload, policy=JOB_POLICY, partial=False)
    enforce_rules_job(patch)

    job_number = next_document_number(
        document_type="production_job",
        prefix=current_app.config.get("JOB_NUMBER_PREFIX", "PJ"),
    )

    job = ProductionJob(
        job_number=job_number,
        status="pending",
        progress=STATUS_PROGRESS["pending"],
        created_by=ctx.actor_user_id,
        **patch,
    )
    if job.unit_price_cents is None:
        job.unit_price_cents = 0
    job.total_price_cents = job.unit_price_cents * job.ordered_qty
    if job.priority is None:
        job.priority = PRIORITY_NORMAL
    db.session.add(job)
    db.session.flush()

    _add_log(ctx, job, action="created", to_status="pending")
    audit_or_warn(ctx, "create", job.id, new=JobSnapshot.from_model(job))

    db.session.commit()
    return job


def update_job(ctx: OperationContext, job_id: int, payload: dict) -> ProductionJob:
    """Descriptive fields only; status changes go through update_job_status."""
    job = _get_job(job_id)
    if job.status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Job is {job.status}; it can no longer be edited")

    patch = validate_payload(model=ProductionJob, payload=payload, policy=JOB_UPDATE_POLICY, partial=True)
    enforce_rules_job(patch)
    if not patch:
        return job

    before = JobSnapshot.from_model(job)
    for k, v in patch.items():
        setattr(job, k, v)

    if "unit_price_cents" in patch or "ordered_qty" in patch:
        job.total_price_cents = (job.unit_price_cents or 0) * job.ordered_qty

    db.session.flush()
    audit_or_warn(ctx, "update", job.id, old=before, new=JobSnapshot.from_model(job))
    db.session.commit()
    return job


def update_job_status(
    ctx: OperationContext,
    job_id: int,
    new_status: str,
    note: str | None = None,
) -> ProductionJob:
    job = _get_job(job_id)
    _transition(ctx, job, new_status, note=note)
    db.session.commit()
    return job


def assign_job(ctx: OperationContext, job_id: int, user_id: int, note: str | None = None) -> ProductionJob:
    job = _get_job(job_id)
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("Assignee not found")

    next_status(job.status, "assign")

    before = JobSnapshot.from_model(job)
    job.assigned_to = user.id
    _transition(
        ctx,
        job,
        "assigned",
        note=note or f"Assigned to {user.username}",
        action="assigned",
        before=before,
    )
    db.session.commit()
    return job


def log_production(
    ctx: OperationContext,
    job_id: int,
    produced_qty: int,
    notes: str | None = None,
) -> ProductionJob:
    """Record finished pieces: produced_qty accumulates."""
    require_positive_int(produced_qty, "produced_qty")
    job = _get_job(job_id)
    if job.status in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Job is {job.status}; output can no longer be logged")

    before = JobSnapshot.from_model(job)
    job.produced_qty = (job.produced_qty or 0) + produced_qty
    _add_log(ctx, job, action="produced", produced_qty=produced_qty, notes=notes)
    db.session.flush()
    audit_or_warn(ctx, "update", job.id, old=before, new=JobSnapshot.from_model(job))
    db.session.commit()
    return job


def _normalize_checkpoints(checkpoints) -> list[dict]:
    if not isinstance(checkpoints, list):
        raise ValidationError("checkpoints must be a list")
    cleaned = []
    for idx, cp in enumerate(checkpoints):
        if not isinstance(cp, dict):
            raise ValidationError(f"checkpoints[{idx}] must be an object")
        name = str(cp.get("checkpoint_name") or cp.get("name") or "").strip()
        if not name:
            raise ValidationError(f"checkpoints[{idx}].checkpoint_name is required")
        passed = cp.get("passed")
        if not isinstance(passed, bool):
            raise ValidationError(f"checkpoints[{idx}].passed must be true or false")
        cleaned.append({"checkpoint_name": name[:128], "passed": passed, "notes": cp.get("notes")})
    return cleaned


def perform_qc_check(
    ctx: OperationContext,
    job_id: int,
    checkpoints,
    overall_passed: bool,
    qc_notes: str | None = None,
) -> ProductionJob:
    """
    Record a QC inspection.

    The outcome is the aggregate overall_passed flag, not per-checkpoint:
    passed -> passed_qty = produced_qty; failed -> failed_qty = produced_qty.
    """
    if not isinstance(overall_passed, bool):
        raise ValidationError("overall_passed must be true or false")
    cleaned = _normalize_checkpoints(checkpoints)

    job = _get_job(job_id)
    target = "qc_passed" if overall_passed else "qc_failed"
    before = JobSnapshot.from_model(job)
    previous = _apply_status(ctx, job, target)

    for cp in cleaned:
        db.session.add(QCCheckpoint(job_id=job.id, checked_by=ctx.actor_user_id, **cp))

    if overall_passed:
        job.passed_qty = job.produced_qty or 0
    else:
        job.failed_qty = job.produced_qty or 0

    job.qc_status = "passed" if overall_passed else "failed"
    job.qc_notes = qc_notes
    job.qc_by = ctx.actor_user_id
    job.qc_at = utcnow()

    _add_log(ctx, job, action=target, from_status=previous, to_status=job.status, notes=qc_notes)
    db.session.flush()
    audit_or_warn(ctx, "update", job.id, old=before, new=JobSnapshot.from_model(job))
    db.session.commit()
    return job


def create_rework_job(
    ctx: OperationContext,
    original_job_id: int,
    quantity: int,
    reason: str,
) -> ProductionJob:
    """
    Spawn a rush job that redoes part of an existing one.

    The original's rework_count is incremented; the new job carries the
    incremented count and links back through original_job_id.
    """
    require_positive_int(quantity, "quantity")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason is required")

    original = _get_job(original_job_id)
    original_before = JobSnapshot.from_model(original)

    original.rework_count = (original.rework_count or 0) + 1

    job_number = next_document_number(
        document_type="production_job",
        prefix=current_app.config.get("JOB_NUMBER_PREFIX", "PJ"),
    )
    rework = ProductionJob(
        job_number=job_number,
        order_id=original.order_id,
        customer_id=original.customer_id,
        customer_name=original.customer_name,
        work_type_code=original.work_type_code,
        description=f"{REWORK_PREFIX}{original.description or ''}",
        ordered_qty=quantity,
        unit_price_cents=original.unit_price_cents or 0,
        total_price_cents=(original.unit_price_cents or 0) * quantity,
        due_date=original.due_date,
        status="pending",
        progress=STATUS_PROGRESS["pending"],
        priority=PRIORITY_RUSH,
        is_rework=True,
        rework_reason=reason[:255],
        original_job_id=original.id,
        rework_count=original.rework_count,
        created_by=ctx.actor_user_id,
    )
    db.session.add(rework)
    db.session.flush()

    _add_log(ctx, rework, action="created", to_status="pending", notes=f"Rework of {original.job_number}")
    _add_log(
        ctx,
        original,
        action="rework_created",
        notes=f"{rework.job_number} ({quantity} pcs): {reason}",
    )
    db.session.flush()
    audit_or_warn(ctx, "create", rework.id, new=JobSnapshot.from_model(rework))
    audit_or_warn(ctx, "update", original.id, old=original_before, new=JobSnapshot.from_model(original))

    db.session.commit()
    return rework


def get_job(job_id: int) -> ProductionJob:
    return _get_job(job_id)


def list_jobs(
    *,
    status: str | None = None,
    priority: int | None = None,
    due_before: date | None = None,
    limit: int = 200,
) -> list[ProductionJob]:
    """Most urgent first, then by due date, then newest."""
    limit = max(1, min(int(limit), 500))
    q = ProductionJob.query
    if status is not None:
        validate_status(status)
        q = q.filter(ProductionJob.status == status)
    if priority is not None:
        q = q.filter(ProductionJob.priority == priority)
    if due_before is not None:
        q = q.filter(ProductionJob.due_date <= due_before)
    return (
        q.order_by(
            ProductionJob.priority.desc(),
            ProductionJob.due_date.is_(None),
            ProductionJob.due_date.asc(),
            ProductionJob.id.desc(),
        )
        .limit(limit)
        .all()
    )


def get_job_logs(job_id: int) -> list[ProductionJobLog]:
    _get_job(job_id)
    return (
        ProductionJobLog.query.filter_by(job_id=job_id)
        .order_by(ProductionJobLog.created_at.asc(), ProductionJobLog.id.asc())
        .all()
    )


def list_qc_checkpoints(job_id: int) -> list[QCCheckpoint]:
    _get_job(job_id)
    return (
        QCCheckpoint.query.filter_by(job_id=job_id)
        .order_by(QCCheckpoint.id.asc())
        .all()
    )
