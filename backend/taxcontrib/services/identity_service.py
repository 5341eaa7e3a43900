# Overview: Resolves an authenticated identity to its profile, organisation and role.

"""
Identity & Role Resolver

resolve(user_id) looks up the Profile of an identity, then the UserRole
scoped to the profile's organisation.

- No profile: None ("not yet provisioned"; callers show a pending state).
- No role assignment: effective role personnel with role_resolved=False.
  The anomaly is logged and written as a ROLE_ASSIGNMENT_MISSING event.

Read-only apart from the audit event. Called on every authenticated
request; results are never cached, so role changes and session changes
apply on the next request.
"""

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Profile, UserRole
from ..models.auth import ROLE_ADMIN, ROLE_PERSONNEL
from .permission_service import log_security_event


@dataclass(frozen=True)
class ResolvedIdentity:
    user_id: str
    email: str
    profile: Profile
    organisation_id: str
    role: str
    role_resolved: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role_resolved and self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "profile": self.profile.to_dict(),
            "organisation_id": self.organisation_id,
            "role": self.role,
            "role_resolved": self.role_resolved,
        }


def get_role_assignment(user_id: str, organisation_id: str) -> UserRole | None:
    return db.session.query(UserRole).filter_by(
        user_id=user_id,
        organisation_id=organisation_id,
    ).first()


def resolve(user_id: str) -> ResolvedIdentity | None:
    profile = db.session.query(Profile).filter_by(user_id=user_id).first()
    if profile is None:
        return None

    assignment = get_role_assignment(user_id, profile.organisation_id)
    email = profile.user.email if profile.user else profile.email

    if assignment is None:
        current_app.logger.warning(
            "No role assignment for user %s in organisation %s; using personnel (read-only)",
            user_id, profile.organisation_id,
        )
        log_security_event(
            user_id=user_id,
            event_type="ROLE_ASSIGNMENT_MISSING",
            success=False,
            reason="Profile without role assignment",
            org_id=profile.organisation_id,
        )
        return ResolvedIdentity(
            user_id=user_id,
            email=email,
            profile=profile,
            organisation_id=profile.organisation_id,
            role=ROLE_PERSONNEL,
            role_resolved=False,
        )

    return ResolvedIdentity(
        user_id=user_id,
        email=email,
        profile=profile,
        organisation_id=profile.organisation_id,
        role=assignment.role,
    )
