# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Access Control Policy and Security Event Logging

WHY: Every state-changing or sensitive-read operation consults the policy
before touching the database. Denials are logged for security monitoring.

RULES (evaluated in this order):
1. Cross-organisation access is always denied. The only anonymous action is
   create-taxpayer, and it always targets the public (default) organisation.
2. An identity without a role assignment may read (personnel level) but
   every mutating action is denied until a role exists.
3. The role grant table (taxcontrib.permissions.ROLE_ACTIONS) decides.

DESIGN PRINCIPLES:
- Fail closed: deny by default, unknown actions are denied
- is_allowed is pure (no database, no request context)
- Log denials only: grants are not logged
"""

from flask import current_app, has_app_context, has_request_context, request

from ..config import DEFAULT_ORGANISATION_ID
from ..errors import AuthorizationDenied
from ..extensions import db
from ..models import SecurityEvent
from ..permissions import ROLE_ACTIONS, get_action_definition, is_mutating
from taxcontrib.time_utils import utcnow


ANONYMOUS_ACTIONS = {"create-taxpayer"}


def _request_meta(ip_address: str | None, user_agent: str | None, resource: str | None):
    if has_request_context():
        ip_address = ip_address or request.remote_addr
        user_agent = user_agent or request.headers.get("User-Agent")
        resource = resource or request.path
    return ip_address, user_agent, resource


def log_security_event(
    user_id: str | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: str | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Append a security event to the audit trail with tenant context.

    Client address, user agent and path are taken from the current request
    when not given explicitly.

    event_type examples:
    - LOGIN_SUCCESS / LOGIN_FAILED
    - SIGNED_IN / SIGNED_OUT / TOKEN_REFRESHED
    - PERMISSION_DENIED
    - CROSS_TENANT_ACCESS_DENIED
    - ROLE_ASSIGNMENT_MISSING
    - PUBLIC_REGISTRATION
    - ORPHANED_STORAGE_OBJECT
    """
    ip_address, user_agent, resource = _request_meta(ip_address, user_agent, resource)

    event = SecurityEvent(
        user_id=user_id,
        organisation_id=org_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=(ip_address or "")[:45] or None,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow()
    )

    db.session.add(event)
    if commit:
        db.session.commit()
    else:
        db.session.flush()

    return event


def is_allowed(identity, action: str, target_org_id: str | None = None, *,
               public_org_id: str = DEFAULT_ORGANISATION_ID) -> bool:
    """
    Pure authorization predicate.

    identity is a ResolvedIdentity (or None for an anonymous caller).
    target_org_id is the organisation owning the target entity; None means
    "the caller's own organisation" (list/create paths).
    """
    if get_action_definition(action) is None:
        return False

    if identity is None:
        return action in ANONYMOUS_ACTIONS and target_org_id in (None, public_org_id)

    if target_org_id is not None and target_org_id != identity.organisation_id:
        return False

    if not identity.role_resolved and is_mutating(action):
        return False

    return action in ROLE_ACTIONS.get(identity.role, frozenset())


def require_action(
    identity,
    action: str,
    target_org_id: str | None = None,
    resource: str | None = None,
) -> None:
    """
    Raise AuthorizationDenied unless identity may perform action.

    Denials are written to security_events before raising.

    Usage:
        require_action(g.identity, "validate", target_org_id=record.organisation_id)
    """
    public_org_id = DEFAULT_ORGANISATION_ID
    if has_app_context():
        public_org_id = current_app.config.get("DEFAULT_ORGANISATION_ID", DEFAULT_ORGANISATION_ID)

    if is_allowed(identity, action, target_org_id, public_org_id=public_org_id):
        return

    cross_tenant = (
        identity is not None
        and target_org_id is not None
        and target_org_id != identity.organisation_id
    )

    if cross_tenant:
        event_type = "CROSS_TENANT_ACCESS_DENIED"
        reason = f"Target organisation {target_org_id} differs from {identity.organisation_id}"
    elif identity is not None and not identity.role_resolved:
        event_type = "PERMISSION_DENIED"
        reason = "No role assignment: mutating actions denied"
    else:
        event_type = "PERMISSION_DENIED"
        reason = f"Role {identity.role if identity else 'anonymous'} lacks {action}"

    log_security_event(
        user_id=identity.user_id if identity else None,
        event_type=event_type,
        success=False,
        resource=resource,
        action=action,
        reason=reason,
        org_id=identity.organisation_id if identity else None,
    )

    raise AuthorizationDenied(action=action)


def allowed_actions(identity) -> list[str]:
    """Actions the identity may perform inside its own organisation (for UI filtering)."""
    if identity is None:
        return sorted(ANONYMOUS_ACTIONS)
    return sorted(
        code for code in ROLE_ACTIONS.get(identity.role, frozenset())
        if is_allowed(identity, code)
    )
