# backend/garmentops/routes/production.py
"""
Production job routes.

- GET   /api/production/jobs?status=&priority=
- POST  /api/production/jobs
- GET   /api/production/jobs/<id>            (includes allowed next statuses)
- PATCH /api/production/jobs/<id>            descriptive fields only
- POST  /api/production/jobs/<id>/status     {status, note?}
- POST  /api/production/jobs/<id>/assign     {user_id, note?}
- POST  /api/production/jobs/<id>/produce    {produced_qty, notes?}
- POST  /api/production/jobs/<id>/qc         {checkpoints: [...], overall_passed, qc_notes?}
- POST  /api/production/jobs/<id>/rework     {quantity, reason}
- GET   /api/production/jobs/<id>/logs

Illegal status moves are rejected with 400 and leave the job untouched.
"""
from flask import Blueprint, request, g

from ..decorators import require_actor
from ..services import production_service
from ..validation import ValidationError
from . import error_response, get_json_payload, ok, unexpected_error


production_bp = Blueprint("production", __name__, url_prefix="/api/production")


def _job_body(job) -> dict:
    data = job.to_dict()
    data["allowed_next_statuses"] = production_service.allowed_next_statuses(job.status)
    return data


@production_bp.get("/jobs")
@require_actor
def list_jobs_route():
    try:
        jobs = production_service.list_jobs(
            status=request.args.get("status"),
            priority=request.args.get("priority", type=int),
            limit=request.args.get("limit", default=200, type=int),
        )
    except ValueError as e:
        return error_response(e)
    return ok({"items": [j.to_dict() for j in jobs], "count": len(jobs)})


@production_bp.post("/jobs")
@require_actor
def create_job_route():
    try:
        job = production_service.create_job(g.operation_context, get_json_payload())
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to create production job")
    return ok({"job": _job_body(job)}, 201)


@production_bp.get("/jobs/<int:job_id>")
@require_actor
def get_job_route(job_id: int):
    try:
        job = production_service.get_job(job_id)
        checkpoints = production_service.list_qc_checkpoints(job_id)
    except ValueError as e:
        return error_response(e)
    return ok({
        "job": _job_body(job),
        "reservations": [r.to_dict() for r in job.reservations],
        "qc_checkpoints": [c.to_dict() for c in checkpoints],
    })


@production_bp.patch("/jobs/<int:job_id>")
@require_actor
def update_job_route(job_id: int):
    try:
        job = production_service.update_job(g.operation_context, job_id, get_json_payload())
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to update production job")
    return ok({"job": _job_body(job)})


@production_bp.post("/jobs/<int:job_id>/status")
@require_actor
def update_status_route(job_id: int):
    payload = get_json_payload()
    try:
        status = payload.get("status")
        if not isinstance(status, str) or not status:
            raise ValidationError("Missing required fields: status")
        job = production_service.update_job_status(
            g.operation_context,
            job_id,
            status,
            note=payload.get("note"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to update job status")
    return ok({"job": _job_body(job)})


@production_bp.post("/jobs/<int:job_id>/assign")
@require_actor
def assign_job_route(job_id: int):
    payload = get_json_payload()
    try:
        user_id = payload.get("user_id")
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise ValidationError("user_id must be an integer")
        job = production_service.assign_job(g.operation_context, job_id, user_id, note=payload.get("note"))
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to assign job")
    return ok({"job": _job_body(job)})


@production_bp.post("/jobs/<int:job_id>/produce")
@require_actor
def log_production_route(job_id: int):
    payload = get_json_payload()
    try:
        job = production_service.log_production(
            g.operation_context,
            job_id,
            payload.get("produced_qty"),
            notes=payload.get("notes"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to log production")
    return ok({"job": _job_body(job)})


@production_bp.post("/jobs/<int:job_id>/qc")
@require_actor
def qc_route(job_id: int):
    payload = get_json_payload()
    try:
        job = production_service.perform_qc_check(
            g.operation_context,
            job_id,
            payload.get("checkpoints", []),
            payload.get("overall_passed"),
            qc_notes=payload.get("qc_notes"),
        )
        checkpoints = production_service.list_qc_checkpoints(job_id)
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("QC check failed")
    return ok({"job": _job_body(job), "qc_checkpoints": [c.to_dict() for c in checkpoints]})


@production_bp.post("/jobs/<int:job_id>/rework")
@require_actor
def rework_route(job_id: int):
    payload = get_json_payload()
    try:
        rework = production_service.create_rework_job(
            g.operation_context,
            job_id,
            payload.get("quantity"),
            payload.get("reason"),
        )
    except ValueError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("Failed to create rework job")
    return ok({"job": _job_body(rework)}, 201)


@production_bp.get("/jobs/<int:job_id>/logs")
@require_actor
def job_logs_route(job_id: int):
    try:
        logs = production_service.get_job_logs(job_id)
    except ValueError as e:
        return error_response(e)
    return ok({"items": [log.to_dict() for log in logs], "count": len(logs)})
