# Overview: Domain error taxonomy shared by services and routes.

"""
Domain errors.

Each error maps to one HTTP status at the route layer. Messages are shown to
the end user as-is, so they are written in the application's language.

    ValidationError      400  (defined in taxcontrib.validation)
    AuthorizationDenied  403
    NotFoundError        404
    WorkflowError        409
    RateLimited          429
    UpstreamFailure      502
    RequestEntityTooLarge 413 (body over MAX_CONTENT_LENGTH, raised by Werkzeug)
    PartialFailure       reported in-band (multi-step write half done)
"""

from __future__ import annotations

from werkzeug.exceptions import RequestEntityTooLarge


class AuthorizationDenied(Exception):
    """Policy check failed; the operation was not executed."""

    def __init__(self, message: str = "Action non autorisée", *, action: str | None = None):
        super().__init__(message)
        self.action = action


class NotFoundError(LookupError):
    """Referenced entity is missing (or belongs to another organisation)."""


class WorkflowError(ValueError):
    """Invalid status transition for a taxpayer record or deletion request."""


class RateLimited(Exception):
    """Throttle triggered; caller should retry later."""

    def __init__(self, message: str, *, retry_after_seconds: int | None = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class UpstreamFailure(Exception):
    """Storage, auth or database collaborator call failed."""


class PartialFailure(Exception):
    """
    A multi-step operation completed only partly.

    Not raised by the intake saga (which reports failures in-band); raised
    where a caller must decide how to surface the remaining work.
    """

    def __init__(self, message: str, *, failures: list[dict] | None = None):
        super().__init__(message)
        self.failures = failures or []


GENERIC_ERROR_MESSAGE = "Une erreur est survenue. Veuillez réessayer."

REQUEST_TOO_LARGE_MESSAGE = (
    "La requête dépasse la taille maximale autorisée. "
    "Chaque fichier est limité à 10 Mo."
)


def http_status_for(error: Exception) -> int:
    """HTTP status code for a domain error (500 for anything else)."""
    from .validation import ValidationError

    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthorizationDenied):
        return 403
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, WorkflowError):
        return 409
    if isinstance(error, RateLimited):
        return 429
    if isinstance(error, UpstreamFailure):
        return 502
    if isinstance(error, RequestEntityTooLarge):
        return 413
    return 500
