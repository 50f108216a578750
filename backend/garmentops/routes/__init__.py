# Overview: Shared JSON result helpers for the API blueprints.

from flask import current_app, jsonify, request

from ..extensions import db
from ..validation import ConflictError, NotFoundError


def ok(payload: dict | None = None, status: int = 200):
    body = {"success": True}
    if payload:
        body.update(payload)
    return jsonify(body), status


def fail(message: str, status: int = 400):
    return jsonify({"success": False, "error": message}), status


def error_response(exc: ValueError):
    """
    Map a service-layer error to a result:
    NotFoundError -> 404, ConflictError (insufficient stock, reservation
    state, duplicate SKU) -> 409, any other ValueError -> 400.
    """
    db.session.rollback()
    if isinstance(exc, NotFoundError):
        return fail(str(exc), 404)
    if isinstance(exc, ConflictError):
        return fail(str(exc), 409)
    return fail(str(exc), 400)


def unexpected_error(message: str):
    db.session.rollback()
    current_app.logger.exception(message)
    return fail("Internal server error", 500)


def get_json_payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}
