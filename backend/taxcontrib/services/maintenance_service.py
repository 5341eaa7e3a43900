# Overview: Service-layer operations for maintenance; retention cleanup and storage reconciliation.

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..errors import UpstreamFailure
from ..extensions import db
from ..models import Document, SecurityEvent
from . import storage_service
from .document_service import storage_key_written_at
from taxcontrib.time_utils import utcnow


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """Delete security events older than retention_days."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


def find_orphaned_objects() -> list[str]:
    """Storage keys with no documents row."""
    known = {key for (key,) in db.session.query(Document.chemin_fichier).all()}
    return [key for key in storage_service.list_keys() if key not in known]


def find_dangling_documents() -> list[Document]:
    """documents rows whose storage object is missing."""
    keys = set(storage_service.list_keys())
    return [
        document for document in db.session.query(Document).all()
        if document.chemin_fichier not in keys
    ]


def _is_recent(storage_key: str, cutoff) -> bool:
    written_at = storage_key_written_at(storage_key)
    return written_at is not None and written_at > cutoff


def reconcile_storage(*, delete: bool = False, grace_seconds: int | None = None) -> dict:
    """
    Compare storage with document metadata.

    Objects written less than grace_seconds ago (from the timestamp in their
    key) are reported as in_flight and never treated as orphans: their
    documents row may not be committed yet.

    With delete=True, orphaned objects are removed. Dangling rows are only
    reported; they may point at objects an operator can restore.
    """
    if grace_seconds is None:
        grace_seconds = current_app.config.get("STORAGE_RECONCILE_GRACE_SECONDS", 900)
    cutoff = utcnow() - timedelta(seconds=grace_seconds)

    orphans: list[str] = []
    in_flight: list[str] = []
    for key in find_orphaned_objects():
        (in_flight if _is_recent(key, cutoff) else orphans).append(key)

    dangling = [d.chemin_fichier for d in find_dangling_documents()]

    removed: list[str] = []
    failed: list[dict] = []
    if delete:
        for key in orphans:
            try:
                storage_service.delete_file(key)
                removed.append(key)
            except UpstreamFailure as e:
                current_app.logger.warning("Could not remove orphaned object %s: %s", key, e)
                failed.append({"key": key, "error": str(e)})

    return {
        "orphaned_objects": orphans,
        "in_flight": in_flight,
        "dangling_documents": dangling,
        "removed": removed,
        "failed": failed,
    }
