from __future__ import annotations

from ..extensions import db
from economica.time_utils import to_utc_z


class AuditLog(db.Model):
    """
    Append-only audit trail.

    Rows are written inside the same transaction as the action they record
    and are never updated or deleted.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_table_record", "table_name", "record_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(64), nullable=False, index=True)
    table_name = db.Column(db.String(64), nullable=True)
    record_id = db.Column(db.Integer, nullable=True)

    details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "details": self.details,
            "created_at": to_utc_z(self.created_at),
        }
