"""
Multi-Tenant Service: Tenant Scoping Helpers

WHY: Centralize tenant scoping for reuse across services and routes.
Every entity lookup is scoped to the caller's organisation; an entity of
another organisation is reported as missing (existence is not revealed)
and the attempt is logged.

USAGE:
    from taxcontrib.services.tenant_service import get_scoped

    record = get_scoped(Contribuable, contribuable_id, identity)
"""

from ..errors import NotFoundError
from ..extensions import db
from ..models import Organisation
from .permission_service import log_security_event


NOT_FOUND_MESSAGES = {
    "contribuables": "Contribuable introuvable",
    "profiles": "Employé introuvable",
    "deletion_requests": "Demande de suppression introuvable",
}


def _log_cross_tenant_attempt(reason: str, identity, action: str | None = None) -> None:
    log_security_event(
        user_id=identity.user_id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        action=action,
        reason=reason,
        org_id=identity.organisation_id,
    )


def get_scoped(model, entity_id: str, identity, action: str | None = None):
    """
    Load an organisation-owned entity for the calling identity.

    Raises NotFoundError if it does not exist or belongs to another
    organisation. The second case is logged as CROSS_TENANT_ACCESS_DENIED.
    """
    message = NOT_FOUND_MESSAGES.get(model.__tablename__, "Ressource introuvable")
    entity = db.session.get(model, entity_id)

    if entity is None:
        raise NotFoundError(message)

    if entity.organisation_id != identity.organisation_id:
        _log_cross_tenant_attempt(
            f"{model.__tablename__} {entity_id} belongs to organisation "
            f"{entity.organisation_id}, not {identity.organisation_id}",
            identity,
            action=action,
        )
        raise NotFoundError(message)

    return entity


def get_organisation(org_id: str) -> Organisation:
    org = db.session.get(Organisation, org_id)
    if not org:
        raise NotFoundError("Organisation introuvable")
    return org


def ensure_organisation(org_id: str, nom: str) -> Organisation:
    """Return the organisation, creating it with the given name if missing."""
    org = db.session.get(Organisation, org_id)
    if org is None:
        org = Organisation(id=org_id, nom=nom)
        db.session.add(org)
        db.session.commit()
    return org
