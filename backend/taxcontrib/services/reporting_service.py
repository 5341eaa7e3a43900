# Overview: Service-layer operations for reporting; read-side listings and dashboard counts.

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db, unicode_lower
from ..models import Contribuable, Document, Profile, User, UserRole
from ..models.auth import VALID_ROLES
from ..models.contribuables import STATUT_EN_ATTENTE, STATUT_REJETE, STATUT_VALIDE, VALID_STATUTS
from ..validation import ValidationError
from .permission_service import require_action


def _search_term(q: str | None) -> str | None:
    term = (q or "").strip().lower()
    return term or None


def list_contribuables(identity, q: str | None = None, statut: str | None = None) -> list[Contribuable]:
    """
    Records of the caller's organisation, newest first.

    q: case-insensitive substring over raison_sociale, nom_gerant, ville.
    statut: exact status filter ("all" or empty means no filter).
    """
    require_action(identity, "view-taxpayers")

    query = db.session.query(Contribuable).filter(
        Contribuable.organisation_id == identity.organisation_id
    )

    if statut and statut != "all":
        if statut not in VALID_STATUTS:
            raise ValidationError(f"Statut invalide. Valeurs possibles: {', '.join(VALID_STATUTS)}")
        query = query.filter(Contribuable.statut == statut)

    term = _search_term(q)
    if term:
        query = query.filter(or_(
            unicode_lower(Contribuable.raison_sociale).contains(term, autoescape=True),
            unicode_lower(Contribuable.nom_gerant).contains(term, autoescape=True),
            unicode_lower(Contribuable.ville).contains(term, autoescape=True),
        ))

    return query.order_by(Contribuable.created_at.desc(), Contribuable.id.desc()).all()


def list_staff(identity, q: str | None = None, role: str | None = None,
               include_inactive: bool = False) -> list[tuple[Profile, str | None]]:
    """
    Staff of the caller's organisation as (profile, role) pairs, newest first.

    q: case-insensitive substring over nom, email, numero_travail.
    role: admin | personnel.
    Removed staff (deactivated identity) are hidden unless include_inactive.
    """
    require_action(identity, "view-staff")

    query = db.session.query(Profile, UserRole.role).join(
        User, User.id == Profile.user_id
    ).outerjoin(
        UserRole,
        (UserRole.user_id == Profile.user_id) & (UserRole.organisation_id == Profile.organisation_id),
    ).filter(Profile.organisation_id == identity.organisation_id)

    if not include_inactive:
        query = query.filter(User.is_active.is_(True))

    if role and role != "all":
        if role not in VALID_ROLES:
            raise ValidationError(f"Rôle invalide. Valeurs possibles: {', '.join(VALID_ROLES)}")
        query = query.filter(UserRole.role == role)

    term = _search_term(q)
    if term:
        query = query.filter(or_(
            unicode_lower(Profile.nom).contains(term, autoescape=True),
            unicode_lower(User.email).contains(term, autoescape=True),
            unicode_lower(func.coalesce(Profile.numero_travail, "")).contains(term, autoescape=True),
        ))

    return query.order_by(Profile.created_at.desc(), Profile.id.desc()).all()


def dashboard_stats(identity) -> dict:
    """
    Headline counts for the dashboard.

    Admins get organisation-wide figures plus staff counts; personnel get
    the figures for the records they created.
    """
    require_action(identity, "view-taxpayers")

    base = db.session.query(Contribuable.statut, func.count(Contribuable.id)).filter(
        Contribuable.organisation_id == identity.organisation_id
    )
    documents = db.session.query(func.count(Document.id)).join(
        Contribuable, Contribuable.id == Document.contribuable_id
    ).filter(Contribuable.organisation_id == identity.organisation_id)

    scope = "organisation"
    if not identity.is_admin:
        scope = "mine"
        base = base.filter(Contribuable.created_by == identity.user_id)
        documents = documents.filter(Contribuable.created_by == identity.user_id)

    by_statut = {statut: 0 for statut in VALID_STATUTS}
    for statut, count in base.group_by(Contribuable.statut).all():
        by_statut[statut] = count

    stats = {
        "scope": scope,
        "total": sum(by_statut.values()),
        STATUT_EN_ATTENTE: by_statut[STATUT_EN_ATTENTE],
        STATUT_VALIDE: by_statut[STATUT_VALIDE],
        STATUT_REJETE: by_statut[STATUT_REJETE],
        "documents": documents.scalar() or 0,
    }

    if identity.is_admin:
        staff_counts = {r: 0 for r in VALID_ROLES}
        rows = db.session.query(UserRole.role, func.count(UserRole.id)).join(
            User, User.id == UserRole.user_id
        ).filter(
            UserRole.organisation_id == identity.organisation_id,
            User.is_active.is_(True),
        ).group_by(UserRole.role).all()
        for role, count in rows:
            staff_counts[role] = count
        stats["staff"] = staff_counts

    return stats
