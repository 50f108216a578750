from __future__ import annotations

import json

from ..extensions import db
from garmentops.time_utils import to_utc_z, utcnow


class AuditLog(db.Model):
    """
    Append-only record of who changed what.

    old_data / new_data hold JSON-encoded snapshots produced by the typed
    snapshot classes in audit_service. Rows are never updated or deleted.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        db.Index("ix_audit_logs_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # create, update, delete
    action = db.Column(db.String(16), nullable=False, index=True)
    # product, reservation, production_job, customer, order
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)

    old_data = db.Column(db.Text, nullable=True)
    new_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    @staticmethod
    def _load(raw: str | None):
        return json.loads(raw) if raw else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "old_data": self._load(self.old_data),
            "new_data": self._load(self.new_data),
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": to_utc_z(self.created_at),
        }
