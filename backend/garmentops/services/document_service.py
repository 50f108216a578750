# Overview: Human-readable document numbers (jobs, orders, customer codes).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from .concurrency import run_with_retry


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""


def next_document_number(*, document_type: str, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next number for a document type, e.g. "PJ-000042".

    The counter row is bumped with a single UPDATE so two callers never
    receive the same number. Does not commit; the number is only consumed
    if the caller's transaction commits.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    def _op() -> str:
        stmt = (
            update(DocumentSequence)
            .where(DocumentSequence.document_type == document_type)
            .values(next_number=DocumentSequence.next_number + 1)
        )

        result = db.session.execute(stmt)
        if result.rowcount:
            current = (
                db.session.query(DocumentSequence.next_number)
                .filter_by(document_type=document_type)
                .scalar()
            )
            next_num = current - 1
        else:
            seq = DocumentSequence(document_type=document_type, next_number=2)
            try:
                with db.session.begin_nested():
                    db.session.add(seq)
                next_num = 1
            except IntegrityError:
                # Another writer created the row first
                db.session.execute(stmt)
                current = (
                    db.session.query(DocumentSequence.next_number)
                    .filter_by(document_type=document_type)
                    .scalar()
                )
                next_num = current - 1

        return f"{prefix}-{next_num:0{pad}d}"

    return run_with_retry(_op)
