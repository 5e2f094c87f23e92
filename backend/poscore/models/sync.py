from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z, utcnow


class OfflineQueueEntry(db.Model):
    """
    Transaction committed while the till was offline.

    ORDERING: `position` is autoincrement and never reused, so flushing in
    position order replays sales in the order they were made.
    """
    __tablename__ = "offline_queue"
    __table_args__ = {"sqlite_autoincrement": True}

    position = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(64), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False)
    queued_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "transaction_id": self.transaction_id,
            "queued_at": to_utc_z(self.queued_at),
            "transaction": self.payload,
        }


class SyncState(db.Model):
    """Singleton row (id=1) holding the persisted connectivity flag."""
    __tablename__ = "sync_state"

    id = db.Column(db.Integer, primary_key=True)
    is_online = db.Column(db.Boolean, nullable=False, default=True)
    last_synced_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "is_online": self.is_online,
            "last_synced_at": to_utc_z(self.last_synced_at) if self.last_synced_at else None,
            "updated_at": to_utc_z(self.updated_at),
        }
