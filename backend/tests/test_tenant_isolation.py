# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

These tests create two organisations with their own admins, then verify
that:
1. An admin of organisation B cannot read or mutate records of organisation A
2. Cross-tenant lookups answer 404 (existence is not revealed)
3. Listings only ever contain the caller's organisation
4. Security events are logged for cross-tenant access attempts
"""

import pytest

from taxcontrib.errors import AuthorizationDenied, NotFoundError
from taxcontrib.extensions import db
from taxcontrib.models import Contribuable, SecurityEvent
from taxcontrib.services import (
    contribuable_service,
    deletion_request_service,
    document_service,
    reporting_service,
    staff_service,
)
from taxcontrib.services.permission_service import require_action
from taxcontrib.validation import AttachDocumentInput, CreateTaxpayerInput


@pytest.fixture
def record_a(db_session, admin, acme_fields):
    return contribuable_service.create_contribuable(admin, CreateTaxpayerInput.from_payload(acme_fields))


def cross_tenant_events(identity):
    return db.session.query(SecurityEvent).filter_by(
        event_type="CROSS_TENANT_ACCESS_DENIED", user_id=identity.user_id,
    ).count()


class TestServiceIsolation:

    @pytest.mark.parametrize("operation", ["get_contribuable", "validate", "reject", "reopen", "delete_contribuable"])
    def test_foreign_record_is_not_found(self, db_session, other_admin, record_a, operation):
        with pytest.raises(NotFoundError):
            getattr(contribuable_service, operation)(other_admin, record_a.id)

        db_session.expire_all()
        stored = db.session.get(Contribuable, record_a.id)
        assert stored is not None
        assert stored.statut == "en_attente"

    def test_attempt_is_logged(self, db_session, other_admin, record_a):
        with pytest.raises(NotFoundError):
            contribuable_service.validate(other_admin, record_a.id)

        assert cross_tenant_events(other_admin) == 1

    def test_documents_of_foreign_record(self, db_session, admin, other_admin, record_a):
        document = document_service.attach_document(
            admin, record_a.id, AttachDocumentInput("rc.pdf", "application/pdf", b"%PDF-1.4"),
        )

        with pytest.raises(NotFoundError):
            document_service.list_documents(other_admin, record_a.id)
        with pytest.raises(NotFoundError):
            document_service.get_document_view(other_admin, document.id)
        with pytest.raises(NotFoundError):
            document_service.delete_document(other_admin, document.id)
        with pytest.raises(NotFoundError):
            document_service.attach_document(
                other_admin, record_a.id, AttachDocumentInput("x.pdf", "application/pdf", b"%PDF-1.4"),
            )

    def test_foreign_staff_is_not_found(self, db_session, other_admin, personnel_profile):
        with pytest.raises(NotFoundError):
            staff_service.get_staff(other_admin, personnel_profile.id)
        with pytest.raises(NotFoundError):
            staff_service.delete_staff(other_admin, personnel_profile.id)

    def test_foreign_deletion_request_is_not_found(self, db_session, personnel, other_admin, record_a):
        deletion_request = deletion_request_service.request_deletion(personnel, record_a.id, "Doublon")

        with pytest.raises(NotFoundError):
            deletion_request_service.approve(other_admin, deletion_request.id)
        assert db.session.get(Contribuable, record_a.id) is not None

    def test_listings_are_scoped(self, db_session, admin, other_admin, record_a, acme_fields):
        contribuable_service.create_contribuable(
            other_admin, CreateTaxpayerInput.from_payload({**acme_fields, "raison_sociale": "NORD SARL"}),
        )

        assert [r.raison_sociale for r in reporting_service.list_contribuables(other_admin)] == ["NORD SARL"]
        assert [r.id for r in reporting_service.list_contribuables(admin)] == [record_a.id]
        assert reporting_service.dashboard_stats(other_admin)["total"] == 1

    def test_explicit_foreign_target_denied(self, db_session, admin, other_admin):
        with pytest.raises(AuthorizationDenied):
            require_action(other_admin, "view-taxpayers", target_org_id=admin.organisation_id)
        assert cross_tenant_events(other_admin) == 1


class TestRouteIsolation:

    def test_read_is_404(self, client, db_session, other_admin_headers, record_a):
        resp = client.get(f"/api/contribuables/{record_a.id}", headers=other_admin_headers)
        assert resp.status_code == 404

    @pytest.mark.parametrize("path", ["/validate", "/reject", "/reopen"])
    def test_transitions_are_404(self, client, db_session, other_admin_headers, record_a, path):
        resp = client.post(f"/api/contribuables/{record_a.id}{path}", headers=other_admin_headers)
        assert resp.status_code == 404

        db_session.expire_all()
        assert db.session.get(Contribuable, record_a.id).statut == "en_attente"

    def test_edit_is_404(self, client, db_session, other_admin_headers, record_a):
        resp = client.patch(
            f"/api/contribuables/{record_a.id}",
            json={"raison_sociale": "Piraté"},
            headers=other_admin_headers,
        )
        assert resp.status_code == 404

        db_session.expire_all()
        assert db.session.get(Contribuable, record_a.id).raison_sociale == "ACME"

    def test_list_is_empty(self, client, db_session, other_admin_headers, record_a):
        resp = client.get("/api/contribuables", headers=other_admin_headers)
        assert resp.status_code == 200
        assert resp.json["items"] == []
