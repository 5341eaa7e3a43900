# Overview: Request decorators and response helpers for API routes.

from functools import wraps

from flask import g, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from .errors import (
    AuthorizationDenied,
    NotFoundError,
    REQUEST_TOO_LARGE_MESSAGE,
    RateLimited,
    UpstreamFailure,
    WorkflowError,
    http_status_for,
)
from .services import identity_service, session_service
from .validation import ValidationError


# Errors a route turns into {"error": message} with their own status code
DOMAIN_ERRORS = (
    ValidationError,
    AuthorizationDenied,
    NotFoundError,
    WorkflowError,
    RateLimited,
    UpstreamFailure,
    RequestEntityTooLarge,
)


def error_response(error: Exception):
    status = http_status_for(error)
    body = {"error": str(error)}
    if isinstance(error, RequestEntityTooLarge):
        body["error"] = REQUEST_TOO_LARGE_MESSAGE
    if isinstance(error, RateLimited) and error.retry_after_seconds:
        body["retry_after_seconds"] = error.retry_after_seconds
    if isinstance(error, AuthorizationDenied) and error.action:
        body["action"] = error.action
    return jsonify(body), status


def json_body() -> dict:
    """JSON request body as a dict; a missing or unparsable body reads as {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Données invalides")
    return data


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _establish_session():
    """Validate the bearer token; returns an error response or None."""
    token = bearer_token()
    if not token:
        return jsonify({"error": "Authentification requise"}), 401

    context = session_service.validate_session(token)
    if not context:
        return jsonify({"error": "Session invalide ou expirée"}), 401

    g.current_user = context.user
    g.session_context = context
    # Re-resolved on every request, never cached
    g.identity = identity_service.resolve(context.user.id)
    return None


def require_session(f):
    """
    Require a valid session only.

    Sets g.current_user, g.session_context and g.identity; g.identity is
    None for an identity that has no profile yet.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        failure = _establish_session()
        if failure is not None:
            return failure
        return f(*args, **kwargs)

    return decorated_function


def require_auth(f):
    """
    Require authentication and a provisioned identity.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.identity: ResolvedIdentity (profile, organisation, role)
    - g.session_context: The full SessionContext object

    Returns 401 without a valid session and 403 with status
    "pending_provisioning" when the identity has no profile yet.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        failure = _establish_session()
        if failure is not None:
            return failure

        if g.identity is None:
            return jsonify({
                "error": "Votre compte n'est pas encore configuré. Contactez un administrateur.",
                "status": "pending_provisioning",
            }), 403

        return f(*args, **kwargs)

    return decorated_function
