# Overview: Subscribers that copy session-change notifications into the security audit log.

from ..signals import session_changed
from .permission_service import log_security_event


def on_session_changed(user_id, event: str, session=None, ip_address: str | None = None, **extra):
    log_security_event(
        user_id=user_id,
        event_type=event,
        success=True,
        resource="session",
        action=str(session.id) if session is not None else None,
        ip_address=ip_address,
    )


def register_audit_subscribers() -> None:
    """Connect audit receivers. Safe to call once per app; blinker dedupes receivers."""
    session_changed.connect(on_session_changed)
