from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z, utcnow


NOTIFICATION_KINDS = ("success", "error", "info")


class Notification(db.Model):
    """User-facing message raised by the ledger (sale saved, credit refused, ...)."""
    __tablename__ = "notifications"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, index=True)  # success, error, info
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind,
            "message": self.message,
            "created_at": to_utc_z(self.created_at),
        }
