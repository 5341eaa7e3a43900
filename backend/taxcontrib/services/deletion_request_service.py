# Overview: Secondary workflow letting personnel ask an admin to delete a taxpayer record.

"""
Deletion requests.

    pending -> approved   (admin; the record is deleted)
    pending -> rejected   (admin)

Only pending requests can be resolved. A record has at most one pending
request at a time.
"""

from __future__ import annotations

from flask import current_app

from ..errors import PartialFailure, WorkflowError
from ..extensions import db
from ..models import Contribuable, DeletionRequest
from ..models.contribuables import DELETION_APPROVED, DELETION_PENDING, DELETION_REJECTED
from ..validation import ValidationError
from .contribuable_service import remove_contribuable
from .permission_service import require_action
from .tenant_service import get_scoped
from taxcontrib.time_utils import utcnow


def request_deletion(identity, contribuable_id: str, reason: str | None = None) -> DeletionRequest:
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("Le motif doit être un texte")

    record = get_scoped(Contribuable, contribuable_id, identity, action="request-deletion")
    require_action(identity, "request-deletion", target_org_id=record.organisation_id)

    existing = db.session.query(DeletionRequest).filter_by(
        contribuable_id=record.id, status=DELETION_PENDING,
    ).first()
    if existing:
        raise WorkflowError("Une demande de suppression est déjà en attente pour ce contribuable")

    deletion_request = DeletionRequest(
        contribuable_id=record.id,
        organisation_id=record.organisation_id,
        requested_by=identity.user_id,
        reason=(reason or "").strip() or None,
        status=DELETION_PENDING,
    )
    db.session.add(deletion_request)
    db.session.commit()
    return deletion_request


def list_requests(identity, status: str | None = None) -> list[DeletionRequest]:
    """Admins see every request of the organisation, others only their own."""
    require_action(identity, "resolve-deletion" if identity.is_admin else "view-taxpayers")

    query = db.session.query(DeletionRequest).filter_by(organisation_id=identity.organisation_id)
    if not identity.is_admin:
        query = query.filter_by(requested_by=identity.user_id)
    if status:
        query = query.filter_by(status=status)

    return query.order_by(DeletionRequest.created_at.desc()).all()


def _load_pending(identity, request_id: str) -> DeletionRequest:
    deletion_request = get_scoped(DeletionRequest, request_id, identity, action="resolve-deletion")
    require_action(identity, "resolve-deletion", target_org_id=deletion_request.organisation_id)

    if deletion_request.status != DELETION_PENDING:
        raise WorkflowError("Cette demande a déjà été traitée")
    return deletion_request


def approve(identity, request_id: str) -> DeletionRequest:
    """
    Mark approved and delete the record.

    A record already gone is not an error; the request is closed anyway.
    """
    deletion_request = _load_pending(identity, request_id)

    deletion_request.status = DELETION_APPROVED
    deletion_request.approved_by = identity.user_id
    deletion_request.resolved_at = utcnow()

    record = db.session.get(Contribuable, deletion_request.contribuable_id)
    if record is None:
        db.session.commit()
        return deletion_request

    orphans = remove_contribuable(record, identity.user_id)
    current_app.logger.info(
        "Deletion request %s approved by %s", deletion_request.id, identity.user_id,
    )
    if orphans:
        raise PartialFailure(
            "Contribuable supprimé, mais certains fichiers n'ont pas pu être effacés du stockage.",
            failures=orphans,
        )
    return deletion_request


def reject(identity, request_id: str) -> DeletionRequest:
    deletion_request = _load_pending(identity, request_id)

    deletion_request.status = DELETION_REJECTED
    deletion_request.approved_by = identity.user_id
    deletion_request.resolved_at = utcnow()
    db.session.commit()
    return deletion_request
