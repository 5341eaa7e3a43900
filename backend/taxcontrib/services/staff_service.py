# Overview: Service-layer operations for staff (profiles + role assignments); admin only.

"""
Staff management.

A staff member is three rows created together: the identity (users),
the Profile in the admin's organisation and one UserRole.

Removal is a soft lifecycle: the role assignment is revoked, the identity
deactivated and its sessions revoked. The Profile is kept so records keep
their attribution. An admin can neither remove nor demote themselves.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import WorkflowError
from ..extensions import db
from ..models import Profile, User, UserRole
from ..models.auth import ROLE_ADMIN, ROLE_PERSONNEL, VALID_ROLES
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from . import auth_service, session_service
from .identity_service import get_role_assignment
from .permission_service import require_action
from .tenant_service import get_scoped


PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"nom", "numero_travail", "contacts"},
    required_on_create={"nom"},
)


def validate_role(role: str | None) -> str:
    if role not in VALID_ROLES:
        raise ValidationError(f"Rôle invalide. Valeurs possibles: {', '.join(VALID_ROLES)}")
    return role


def staff_to_dict(profile: Profile, role: str | None = None) -> dict:
    if role is None:
        assignment = get_role_assignment(profile.user_id, profile.organisation_id)
        role = assignment.role if assignment else None
    data = profile.to_dict()
    data["email"] = profile.user.email if profile.user else profile.email
    data["role"] = role
    data["is_active"] = bool(profile.user and profile.user.is_active)
    return data


def get_staff(identity, profile_id: str) -> Profile:
    profile = get_scoped(Profile, profile_id, identity, action="view-staff")
    require_action(identity, "view-staff", target_org_id=profile.organisation_id)
    return profile


def provision_staff(organisation_id: str, payload: dict, created_by: str | None = None) -> Profile:
    """
    Create profile + role assignment (and the identity if needed). No authorization check.

    payload: nom, email, password, numero_travail?, contacts?, role (default personnel)

    An email that already belongs to a signed-up identity without profile
    provisions that identity; password is then optional. An identity that
    already has a profile is rejected.
    """
    payload = dict(payload or {})
    email = auth_service.normalize_email(payload.pop("email", None))
    password = payload.pop("password", None)
    role = validate_role(payload.pop("role", None) or ROLE_PERSONNEL)

    if not email:
        raise ValidationError("Email requis")

    fields = validate_payload(model=Profile, payload=payload, policy=PROFILE_POLICY, partial=False)

    try:
        user = auth_service.get_user_by_email(email)
        if user is not None:
            if user.profile is not None:
                raise ValidationError("Cet employé existe déjà")
            user.is_active = True
        else:
            if not password:
                raise ValidationError("Email et mot de passe requis")
            user = auth_service.sign_up(
                email,
                password,
                metadata={"nom": fields["nom"], "numero_travail": fields.get("numero_travail"), "role": role},
                commit=False,
            )

        profile = Profile(
            user_id=user.id,
            email=user.email,
            organisation_id=organisation_id,
            **fields,
        )
        db.session.add(profile)
        db.session.add(UserRole(user_id=user.id, role=role, organisation_id=organisation_id))
        db.session.commit()
    except ValidationError:
        db.session.rollback()
        raise
    except IntegrityError as e:
        db.session.rollback()
        raise ValidationError("Cet employé existe déjà") from e

    current_app.logger.info(
        "Staff %s (%s) provisioned as %s in organisation %s by %s",
        profile.id, user.email, role, organisation_id, created_by or "cli",
    )
    return profile


def create_staff(identity, payload: dict) -> Profile:
    """Admin-created staff member in the caller's organisation."""
    require_action(identity, "create-staff")
    return provision_staff(identity.organisation_id, payload, created_by=identity.user_id)


def update_staff(identity, profile_id: str, payload: dict) -> Profile:
    """Edit nom, numero_travail, contacts and/or role."""
    profile = get_scoped(Profile, profile_id, identity, action="edit-staff")
    require_action(identity, "edit-staff", target_org_id=profile.organisation_id)

    payload = dict(payload or {})
    new_role = payload.pop("role", None)
    if "email" in payload:
        raise ValidationError("L'email ne peut pas être modifié")

    fields = validate_payload(model=Profile, payload=payload, policy=PROFILE_POLICY, partial=True)
    if not fields and new_role is None:
        raise ValidationError("Aucune modification fournie")

    for key, value in fields.items():
        setattr(profile, key, value)

    if new_role is not None:
        validate_role(new_role)
        if profile.user_id == identity.user_id and new_role != ROLE_ADMIN:
            raise WorkflowError("Vous ne pouvez pas retirer votre propre rôle administrateur")

        assignment = get_role_assignment(profile.user_id, profile.organisation_id)
        if assignment is None:
            db.session.add(UserRole(
                user_id=profile.user_id, role=new_role, organisation_id=profile.organisation_id,
            ))
        else:
            assignment.role = new_role

    db.session.commit()
    return profile


def delete_staff(identity, profile_id: str) -> Profile:
    """Revoke role, deactivate identity, revoke sessions. The profile stays."""
    profile = get_scoped(Profile, profile_id, identity, action="delete-staff")
    require_action(identity, "delete-staff", target_org_id=profile.organisation_id)

    if profile.user_id == identity.user_id:
        raise WorkflowError("Vous ne pouvez pas supprimer votre propre compte")

    db.session.query(UserRole).filter_by(
        user_id=profile.user_id, organisation_id=profile.organisation_id,
    ).delete(synchronize_session=False)

    user = db.session.get(User, profile.user_id)
    if user is not None:
        user.is_active = False

    revoked = session_service.revoke_all_user_sessions(profile.user_id, reason="Staff removed", commit=False)
    db.session.commit()

    current_app.logger.info(
        "Staff %s removed by %s (%d sessions revoked)", profile.id, identity.user_id, revoked,
    )
    return profile
