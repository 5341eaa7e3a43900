# Overview: Service-layer operations for taxpayer records; encapsulates the review workflow.

"""
Taxpayer Record Workflow

================================================================================
STATE MACHINE:
    en_attente -> valide    (validate, admin)
    en_attente -> rejete    (reject, admin)
    valide|rejete -> en_attente   (reopen, admin override)

    en_attente: every new record, whatever the submitter (public or staff)
    valide:     terminal for validate/reject; only reopen leaves it
    rejete:     terminal for validate/reject; only reopen leaves it

RULES:
1. Status is never written through field edits, only through transitions
2. Repeating a transition to the current status is a no-op (idempotent)
3. validate on rejete and reject on valide fail with WorkflowError
4. Non-status fields are editable by both roles in every status
5. Concurrent edits: last write wins
================================================================================
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PartialFailure, UpstreamFailure, WorkflowError
from ..extensions import db
from ..models import Contribuable, DeletionRequest, Document
from ..models.contribuables import (
    DELETION_PENDING,
    DELETION_REJECTED,
    STATUT_EN_ATTENTE,
    STATUT_REJETE,
    STATUT_VALIDE,
    VALID_STATUTS,
)
from ..validation import CreateTaxpayerInput, UpdateTaxpayerInput
from . import storage_service
from .permission_service import log_security_event, require_action
from .tenant_service import get_scoped
from taxcontrib.time_utils import utcnow


# action -> (allowed source statuses, target status)
TRANSITIONS = {
    "validate": ({STATUT_EN_ATTENTE}, STATUT_VALIDE),
    "reject": ({STATUT_EN_ATTENTE}, STATUT_REJETE),
    "reopen": ({STATUT_VALIDE, STATUT_REJETE}, STATUT_EN_ATTENTE),
}

STATUT_LABELS = {
    STATUT_EN_ATTENTE: "en attente",
    STATUT_VALIDE: "validé",
    STATUT_REJETE: "rejeté",
}


def validate_statut(statut: str) -> None:
    if statut not in VALID_STATUTS:
        raise WorkflowError(
            f"Statut invalide '{statut}'. Valeurs possibles: {', '.join(VALID_STATUTS)}"
        )


def can_transition(action: str, from_statut: str) -> bool:
    """
    True if action may move a record out of from_statut.

    A record already in the action's target status is accepted too
    (repeat clicks are no-ops).
    """
    validate_statut(from_statut)
    sources, target = TRANSITIONS[action]
    return from_statut == target or from_statut in sources


# =============================================================================
# CREATE / READ / EDIT
# =============================================================================

def insert_contribuable(fields: dict, organisation_id: str, created_by: str | None, *, commit: bool = True) -> Contribuable:
    """
    Persist a new record in en_attente. No authorization check: callers
    (staff intake, public registration) have already decided the tenant.
    """
    now = utcnow()
    record = Contribuable(
        **fields,
        statut=STATUT_EN_ATTENTE,
        organisation_id=organisation_id,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    db.session.add(record)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return record


def create_contribuable(identity, data: CreateTaxpayerInput) -> Contribuable:
    """Staff intake: the record belongs to the caller's organisation."""
    require_action(identity, "create-taxpayer")

    record = insert_contribuable(data.fields, identity.organisation_id, identity.user_id)
    current_app.logger.info(
        "Contribuable %s created by %s in organisation %s",
        record.id, identity.user_id, identity.organisation_id,
    )
    return record


def get_contribuable(identity, contribuable_id: str) -> Contribuable:
    record = get_scoped(Contribuable, contribuable_id, identity, action="view-taxpayers")
    require_action(identity, "view-taxpayers", target_org_id=record.organisation_id)
    return record


def update_fields(identity, contribuable_id: str, data: UpdateTaxpayerInput) -> Contribuable:
    record = get_scoped(Contribuable, contribuable_id, identity, action="edit-taxpayer-fields")
    require_action(identity, "edit-taxpayer-fields", target_org_id=record.organisation_id)

    for key, value in data.fields.items():
        setattr(record, key, value)
    record.updated_at = utcnow()

    db.session.commit()
    return record


# =============================================================================
# TRANSITIONS
# =============================================================================

def _transition(identity, contribuable_id: str, action: str) -> Contribuable:
    record = get_scoped(Contribuable, contribuable_id, identity, action=action)
    require_action(identity, action, target_org_id=record.organisation_id)

    _sources, target = TRANSITIONS[action]

    if not can_transition(action, record.statut):
        raise WorkflowError(
            f"Impossible: le contribuable est déjà {STATUT_LABELS[record.statut]}. "
            "Remettez-le d'abord en attente."
        )

    if record.statut == target:
        return record

    previous = record.statut
    record.statut = target
    record.updated_at = utcnow()
    db.session.commit()

    current_app.logger.info(
        "Contribuable %s: %s -> %s by %s", record.id, previous, target, identity.user_id,
    )
    return record


def validate(identity, contribuable_id: str) -> Contribuable:
    """en_attente -> valide. Repeating it on a valide record is a no-op."""
    return _transition(identity, contribuable_id, "validate")


def reject(identity, contribuable_id: str) -> Contribuable:
    """en_attente -> rejete. Repeating it on a rejete record is a no-op."""
    return _transition(identity, contribuable_id, "reject")


def reopen(identity, contribuable_id: str) -> Contribuable:
    """Administrative override: valide|rejete -> en_attente."""
    return _transition(identity, contribuable_id, "reopen")


# =============================================================================
# DELETE
# =============================================================================

def remove_contribuable(record: Contribuable, user_id: str | None) -> list[dict]:
    """
    Delete a record with its attachments. No authorization check.

    Storage objects go first; keys that could not be removed are logged as
    ORPHANED_STORAGE_OBJECT and returned. Rows are always removed, pending
    deletion requests for the record are closed.
    """
    orphans: list[dict] = []
    documents = db.session.query(Document).filter_by(contribuable_id=record.id).all()

    for document in documents:
        try:
            storage_service.delete_file(document.chemin_fichier)
        except UpstreamFailure as e:
            current_app.logger.warning(
                "Storage object %s left behind while deleting contribuable %s: %s",
                document.chemin_fichier, record.id, e,
            )
            orphans.append({"chemin_fichier": document.chemin_fichier, "error": str(e)})
        db.session.delete(document)

    pending = db.session.query(DeletionRequest).filter_by(
        contribuable_id=record.id, status=DELETION_PENDING,
    ).all()
    for request_row in pending:
        request_row.status = DELETION_REJECTED
        request_row.resolved_at = utcnow()
        request_row.reason = ((request_row.reason or "") + " [contribuable supprimé]").strip()

    organisation_id = record.organisation_id
    db.session.delete(record)

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise UpstreamFailure("Impossible de supprimer le contribuable. Veuillez réessayer.") from e

    for orphan in orphans:
        log_security_event(
            user_id=user_id,
            event_type="ORPHANED_STORAGE_OBJECT",
            success=False,
            resource=orphan["chemin_fichier"],
            action="delete-taxpayer",
            reason=orphan["error"],
            org_id=organisation_id,
        )

    return orphans


def delete_contribuable(identity, contribuable_id: str) -> None:
    """
    Admin-only removal.

    Raises PartialFailure (after the record is gone) when some storage
    objects could not be removed; they are left for reconcile-storage.
    """
    record = get_scoped(Contribuable, contribuable_id, identity, action="delete-taxpayer")
    require_action(identity, "delete-taxpayer", target_org_id=record.organisation_id)

    orphans = remove_contribuable(record, identity.user_id)
    current_app.logger.info("Contribuable %s deleted by %s", contribuable_id, identity.user_id)

    if orphans:
        raise PartialFailure(
            "Contribuable supprimé, mais certains fichiers n'ont pas pu être effacés du stockage.",
            failures=orphans,
        )
