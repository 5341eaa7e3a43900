# Overview: Pytest coverage for the unauthenticated public registration endpoint.

"""
Public Registration Tests

Verifies:
- Submissions land in the default organisation, en_attente, with no creator
- The default organisation's admin sees them in the pending list
- The hourly throttle: a 4th submission within the hour is refused, nothing written
- The client address is kept on the audit event only
"""

from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from taxcontrib.config import DEFAULT_ORGANISATION_ID
from taxcontrib.extensions import db
from taxcontrib.models import Contribuable, Organisation, SecurityEvent
from taxcontrib.services.public_registration_service import RATE_LIMIT_MESSAGE
from taxcontrib.time_utils import utcnow


def submit(client, fields, client_ip="196.201.1.10"):
    return client.post("/api/public-register", json={"contribuableData": fields, "clientIp": client_ip})


def test_submission_lands_in_default_org(client, db_session, default_org, acme_fields):
    resp = submit(client, acme_fields)

    assert resp.status_code == 200
    assert resp.json["success"] is True

    record = db.session.get(Contribuable, resp.json["contribuableId"])
    assert record.organisation_id == DEFAULT_ORGANISATION_ID
    assert record.statut == "en_attente"
    assert record.created_by is None


def test_default_org_created_when_missing(client, db_session, acme_fields):
    resp = submit(client, acme_fields)

    assert resp.status_code == 200
    assert db.session.get(Organisation, DEFAULT_ORGANISATION_ID) is not None


def test_admin_sees_submission_in_pending_list(client, db_session, admin_headers, acme_fields):
    record_id = submit(client, acme_fields).json["contribuableId"]

    resp = client.get("/api/contribuables?statut=en_attente", headers=admin_headers)
    assert resp.status_code == 200
    assert record_id in [item["id"] for item in resp.json["items"]]


def test_other_org_does_not_see_submission(client, db_session, default_org, other_admin_headers, acme_fields):
    submit(client, acme_fields)

    resp = client.get("/api/contribuables", headers=other_admin_headers)
    assert resp.json["count"] == 0


def test_fourth_submission_in_an_hour_is_throttled(client, db_session, default_org, acme_fields):
    for index in range(3):
        resp = submit(client, {**acme_fields, "raison_sociale": f"ACME {index}"}, client_ip=f"10.0.0.{index}")
        assert resp.status_code == 200

    resp = submit(client, {**acme_fields, "raison_sociale": "ACME 4"}, client_ip="10.0.0.99")

    assert resp.status_code == 429
    assert resp.json["error"] == RATE_LIMIT_MESSAGE
    assert resp.headers["Retry-After"] == "3600"
    assert db_session.query(Contribuable).count() == 3
    assert db_session.query(Contribuable).filter_by(raison_sociale="ACME 4").count() == 0


def test_throttle_only_counts_the_trailing_hour(client, db_session, default_org, acme_fields):
    for index in range(3):
        submit(client, {**acme_fields, "raison_sociale": f"ACME {index}"})

    for record in db_session.query(Contribuable).all():
        record.created_at = utcnow() - timedelta(hours=2)
    db_session.commit()

    assert submit(client, acme_fields).status_code == 200


def test_reviewed_records_do_not_count(client, db_session, default_org, acme_fields):
    for index in range(3):
        submit(client, {**acme_fields, "raison_sociale": f"ACME {index}"})

    db_session.query(Contribuable).update({"statut": "valide"})
    db_session.commit()

    assert submit(client, acme_fields).status_code == 200


def test_invalid_submission(client, db_session, default_org, acme_fields):
    resp = submit(client, {**acme_fields, "contact_1": ""})

    assert resp.status_code == 400
    assert db_session.query(Contribuable).count() == 0


def test_statut_cannot_be_forced(client, db_session, default_org, acme_fields):
    resp = submit(client, {**acme_fields, "statut": "valide"})

    assert resp.status_code == 400
    assert db_session.query(Contribuable).count() == 0


def test_client_ip_recorded_on_audit_event(client, db_session, default_org, acme_fields):
    record_id = submit(client, acme_fields, client_ip="41.243.7.7").json["contribuableId"]

    event = db_session.query(SecurityEvent).filter_by(event_type="PUBLIC_REGISTRATION").one()
    assert event.ip_address == "41.243.7.7"
    assert record_id in event.reason
    assert event.user_id is None


def test_non_object_body_rejected(client, db_session, default_org):
    resp = client.post("/api/public-register", json=[1, 2])

    assert resp.status_code == 400
    assert resp.json["error"] == "Données invalides"
    assert db_session.query(Contribuable).count() == 0


def test_oversized_client_ip_is_truncated(client, db_session, default_org, acme_fields):
    resp = submit(client, acme_fields, client_ip="1" * 200)
    assert resp.status_code == 200

    event = db_session.query(SecurityEvent).filter_by(event_type="PUBLIC_REGISTRATION").one()
    assert event.ip_address == "1" * 45


def test_forwarded_for_uses_first_hop(client, db_session, default_org, acme_fields):
    client.post(
        "/api/public-register",
        json={"contribuableData": acme_fields},
        headers={"X-Forwarded-For": "41.243.7.7, 10.0.0.1"},
    )

    event = db_session.query(SecurityEvent).filter_by(event_type="PUBLIC_REGISTRATION").one()
    assert event.ip_address == "41.243.7.7"


def test_record_and_audit_event_commit_together(client, db_session, default_org, acme_fields, monkeypatch):
    def failing_commit(session):
        raise SQLAlchemyError("value too long for type character varying(45)")

    monkeypatch.setattr(type(db.session()), "commit", failing_commit)

    resp = submit(client, acme_fields)
    assert resp.status_code == 500

    monkeypatch.undo()
    assert db_session.query(Contribuable).count() == 0
    assert db_session.query(SecurityEvent).filter_by(event_type="PUBLIC_REGISTRATION").count() == 0


def test_storage_failure_returns_generic_message(client, db_session, default_org, acme_fields, monkeypatch):
    from taxcontrib.services import public_registration_service

    def broken(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(public_registration_service, "insert_contribuable", broken)

    resp = submit(client, acme_fields)
    assert resp.status_code == 500
    assert resp.json["error"] == "Impossible d'enregistrer votre demande. Veuillez réessayer."


def test_cors_open_for_public_form(client, db_session, default_org, acme_fields):
    resp = client.post(
        "/api/public-register",
        json={"contribuableData": acme_fields},
        headers={"Origin": "https://formulaire.example"},
    )
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
