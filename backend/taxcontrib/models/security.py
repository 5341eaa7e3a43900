from __future__ import annotations

from ..extensions import db
from taxcontrib.time_utils import to_utc_z, utcnow

class SecurityEvent(db.Model):
    """
    Security event audit log with tenant context.

    Tracks sign-ins, denied actions, cross-tenant attempts, role anomalies,
    public registrations and orphaned storage objects.

    IMMUTABLE: Never update. Deleted only by the retention cleanup command.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_org_occurred", "organisation_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    organisation_id = db.Column(db.String(36), nullable=True, index=True)  # Nullable for pre-auth events
    user_id = db.Column(db.String(36), nullable=True, index=True)  # Nullable for anonymous

    # Event classification
    event_type = db.Column(db.String(64), nullable=False, index=True)  # PERMISSION_DENIED, LOGIN_FAILED, etc.
    resource = db.Column(db.String(255), nullable=True)  # e.g., "/api/contribuables/<id>/validate"
    action = db.Column(db.String(255), nullable=True)    # e.g., "validate", or the login identifier

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "organisation_id": self.organisation_id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
