# Overview: Pytest coverage for the deletion request workflow.

import pytest

from taxcontrib.errors import AuthorizationDenied, WorkflowError
from taxcontrib.extensions import db
from taxcontrib.models import Contribuable, DeletionRequest
from taxcontrib.services import contribuable_service, deletion_request_service
from taxcontrib.validation import CreateTaxpayerInput


@pytest.fixture
def record(db_session, personnel, acme_fields):
    return contribuable_service.create_contribuable(personnel, CreateTaxpayerInput.from_payload(acme_fields))


@pytest.fixture
def pending(record, personnel):
    return deletion_request_service.request_deletion(personnel, record.id, "  Doublon de ACME  ")


def test_personnel_requests_deletion(db_session, pending, personnel, record):
    assert pending.status == "pending"
    assert pending.requested_by == personnel.user_id
    assert pending.reason == "Doublon de ACME"
    assert db.session.get(Contribuable, record.id) is not None


def test_one_pending_request_per_record(db_session, pending, admin, record):
    with pytest.raises(WorkflowError):
        deletion_request_service.request_deletion(admin, record.id)


def test_approve_deletes_record(db_session, pending, admin, record):
    approved = deletion_request_service.approve(admin, pending.id)

    assert approved.status == "approved"
    assert approved.approved_by == admin.user_id
    assert approved.resolved_at is not None
    assert db.session.get(Contribuable, record.id) is None


def test_reject_keeps_record(db_session, pending, admin, record):
    rejected = deletion_request_service.reject(admin, pending.id)

    assert rejected.status == "rejected"
    assert db.session.get(Contribuable, record.id) is not None


def test_only_pending_requests_resolve(db_session, pending, admin):
    deletion_request_service.reject(admin, pending.id)

    with pytest.raises(WorkflowError):
        deletion_request_service.approve(admin, pending.id)


def test_personnel_cannot_resolve(db_session, pending, personnel, record):
    with pytest.raises(AuthorizationDenied):
        deletion_request_service.approve(personnel, pending.id)
    assert db.session.get(Contribuable, record.id) is not None


def test_direct_delete_closes_pending_request(db_session, pending, admin, record):
    contribuable_service.delete_contribuable(admin, record.id)

    closed = db.session.get(DeletionRequest, pending.id)
    assert closed.status == "rejected"
    assert closed.reason.endswith("[contribuable supprimé]")


def test_listing_scope(db_session, pending, admin, personnel, acme_fields):
    other = contribuable_service.create_contribuable(admin, CreateTaxpayerInput.from_payload(acme_fields))
    deletion_request_service.request_deletion(admin, other.id)

    assert len(deletion_request_service.list_requests(admin)) == 2
    assert [r.id for r in deletion_request_service.list_requests(personnel)] == [pending.id]
    assert deletion_request_service.list_requests(admin, status="approved") == []


def test_routes(client, db_session, personnel_headers, admin_headers, record):
    resp = client.post(
        f"/api/contribuables/{record.id}/deletion-requests",
        json={"reason": "Entreprise fermée"},
        headers=personnel_headers,
    )
    assert resp.status_code == 201
    request_id = resp.json["deletion_request"]["id"]

    resp = client.post(f"/api/deletion-requests/{request_id}/approve", headers=personnel_headers)
    assert resp.status_code == 403

    resp = client.get("/api/deletion-requests?status=pending", headers=admin_headers)
    assert [r["id"] for r in resp.json["items"]] == [request_id]

    resp = client.post(f"/api/deletion-requests/{request_id}/approve", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json["deletion_request"]["status"] == "approved"

    resp = client.post(f"/api/deletion-requests/{request_id}/reject", headers=admin_headers)
    assert resp.status_code == 409


def test_malformed_request_bodies_rejected(client, db_session, personnel_headers, record):
    url = f"/api/contribuables/{record.id}/deletion-requests"

    resp = client.post(url, json=["Doublon"], headers=personnel_headers)
    assert resp.status_code == 400
    assert resp.json["error"] == "Données invalides"

    resp = client.post(url, json={"reason": 42}, headers=personnel_headers)
    assert resp.status_code == 400
    assert db_session.query(DeletionRequest).count() == 0
