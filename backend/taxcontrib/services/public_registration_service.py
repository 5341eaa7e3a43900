# Overview: Unauthenticated self-registration of taxpayers, with a coarse global throttle.

"""
Public registration.

Records always land in the default organisation (DEFAULT_ORGANISATION_ID),
in en_attente, with no creator. The throttle counts every en_attente record
created in that organisation during the trailing hour, whoever submitted it;
it is not keyed by client address. The client address is only recorded on
the PUBLIC_REGISTRATION audit event.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import RateLimited
from ..extensions import db
from ..models import Contribuable
from ..models.contribuables import STATUT_EN_ATTENTE
from ..validation import CreateTaxpayerInput
from .contribuable_service import insert_contribuable
from .permission_service import log_security_event, require_action
from .tenant_service import ensure_organisation
from taxcontrib.time_utils import utcnow


THROTTLE_WINDOW = timedelta(hours=1)
RATE_LIMIT_MESSAGE = "Trop de demandes. Veuillez réessayer dans une heure."


def count_recent_pending(organisation_id: str) -> int:
    cutoff = utcnow() - THROTTLE_WINDOW
    return db.session.query(Contribuable).filter(
        Contribuable.organisation_id == organisation_id,
        Contribuable.statut == STATUT_EN_ATTENTE,
        Contribuable.created_at >= cutoff,
    ).count()


def check_throttle(organisation_id: str) -> None:
    limit = int(current_app.config.get("PUBLIC_REGISTER_MAX_PER_HOUR", 3))
    if count_recent_pending(organisation_id) >= limit:
        raise RateLimited(RATE_LIMIT_MESSAGE, retry_after_seconds=int(THROTTLE_WINDOW.total_seconds()))


def register(data: CreateTaxpayerInput, client_ip: str | None = None) -> Contribuable:
    """
    Create a pending record in the default organisation.

    Raises RateLimited (nothing written) when the hourly quota is used up.
    """
    organisation_id = current_app.config["DEFAULT_ORGANISATION_ID"]
    require_action(None, "create-taxpayer", target_org_id=organisation_id)

    ip_address = client_ip or "unknown"
    current_app.logger.info("Public registration attempt from %s", ip_address)

    try:
        check_throttle(organisation_id)
    except RateLimited:
        current_app.logger.warning("Public registration throttled for %s", ip_address)
        raise

    ensure_organisation(organisation_id, current_app.config.get("DEFAULT_ORGANISATION_NAME", "Le Royaume CGA"))

    # Record and audit event commit together
    record = insert_contribuable(data.fields, organisation_id, created_by=None, commit=False)
    log_security_event(
        user_id=None,
        event_type="PUBLIC_REGISTRATION",
        success=True,
        action="create-taxpayer",
        reason=f"contribuable {record.id}",
        ip_address=ip_address,
        org_id=organisation_id,
        commit=False,
    )
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise

    current_app.logger.info("Public registration stored as contribuable %s", record.id)
    return record
