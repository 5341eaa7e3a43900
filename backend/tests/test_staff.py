# Overview: Pytest coverage for staff management (admin only).

import pytest

from taxcontrib.errors import AuthorizationDenied, WorkflowError
from taxcontrib.models import Profile, SessionToken, User, UserRole
from taxcontrib.services import auth_service, identity_service, session_service, staff_service
from taxcontrib.validation import ValidationError

from conftest import PASSWORD, auth_headers, get_auth_token


NEW_STAFF = {
    "email": "Nadine@CGA.test",
    "password": PASSWORD,
    "nom": "Nadine Kalala",
    "numero_travail": "AG-020",
    "contacts": "+243990000000",
}


class TestCreate:

    def test_admin_creates_personnel(self, db_session, admin):
        profile = staff_service.create_staff(admin, dict(NEW_STAFF))

        assert profile.organisation_id == admin.organisation_id
        assert profile.user.email == "nadine@cga.test"

        identity = identity_service.resolve(profile.user_id)
        assert identity.role == "personnel"
        assert identity.role_resolved

    def test_admin_creates_admin(self, db_session, admin):
        profile = staff_service.create_staff(admin, {**NEW_STAFF, "role": "admin"})
        assert identity_service.resolve(profile.user_id).is_admin

    def test_personnel_denied(self, db_session, personnel):
        with pytest.raises(AuthorizationDenied):
            staff_service.create_staff(personnel, dict(NEW_STAFF))
        assert auth_service.get_user_by_email(NEW_STAFF["email"]) is None

    def test_duplicate_rejected(self, db_session, admin, personnel_profile):
        with pytest.raises(ValidationError):
            staff_service.create_staff(admin, {**NEW_STAFF, "email": "agent@cga.test"})

    def test_invalid_role_rejected(self, db_session, admin):
        with pytest.raises(ValidationError):
            staff_service.create_staff(admin, {**NEW_STAFF, "role": "superviseur"})
        assert db_session.query(Profile).count() == 1

    def test_nom_required(self, db_session, admin):
        with pytest.raises(ValidationError):
            staff_service.create_staff(admin, {**NEW_STAFF, "nom": ""})
        assert auth_service.get_user_by_email(NEW_STAFF["email"]) is None

    def test_signed_up_identity_is_provisioned(self, db_session, admin):
        user = auth_service.sign_up("nadine@cga.test", PASSWORD)
        assert identity_service.resolve(user.id) is None

        profile = staff_service.create_staff(admin, {"email": "nadine@cga.test", "nom": "Nadine Kalala"})

        assert profile.user_id == user.id
        assert identity_service.resolve(user.id).role == "personnel"

    def test_create_route(self, client, db_session, admin_headers):
        resp = client.post("/api/staff", json=NEW_STAFF, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["staff"]["role"] == "personnel"
        assert resp.json["staff"]["email"] == "nadine@cga.test"

        token = get_auth_token(client, "nadine@cga.test")
        assert token

    def test_create_route_denied_for_personnel(self, client, db_session, personnel_headers):
        resp = client.post("/api/staff", json=NEW_STAFF, headers=personnel_headers)
        assert resp.status_code == 403


class TestUpdate:

    def test_promote(self, db_session, admin, personnel_profile):
        staff_service.update_staff(admin, personnel_profile.id, {"role": "admin", "contacts": "+243811111111"})

        assert identity_service.resolve(personnel_profile.user_id).is_admin
        assert personnel_profile.contacts == "+243811111111"

    def test_email_is_immutable(self, db_session, admin, personnel_profile):
        with pytest.raises(ValidationError):
            staff_service.update_staff(admin, personnel_profile.id, {"email": "autre@cga.test"})

    def test_admin_cannot_demote_self(self, db_session, admin, admin_profile):
        with pytest.raises(WorkflowError):
            staff_service.update_staff(admin, admin_profile.id, {"role": "personnel"})

    def test_restores_missing_role(self, db_session, admin, personnel_profile):
        db_session.query(UserRole).filter_by(user_id=personnel_profile.user_id).delete()
        db_session.commit()

        staff_service.update_staff(admin, personnel_profile.id, {"role": "personnel"})
        assert identity_service.resolve(personnel_profile.user_id).role_resolved


class TestDelete:

    def test_soft_removal(self, client, db_session, admin, personnel_profile):
        token = get_auth_token(client, "agent@cga.test")

        staff_service.delete_staff(admin, personnel_profile.id)

        assert db_session.get(Profile, personnel_profile.id) is not None
        assert db_session.get(User, personnel_profile.user_id).is_active is False
        assert db_session.query(UserRole).filter_by(user_id=personnel_profile.user_id).count() == 0
        assert db_session.query(SessionToken).filter_by(
            user_id=personnel_profile.user_id, is_revoked=False,
        ).count() == 0
        assert session_service.validate_session(token) is None
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
        assert get_auth_token(client, "agent@cga.test") is None

    def test_admin_cannot_delete_self(self, db_session, admin, admin_profile):
        with pytest.raises(WorkflowError):
            staff_service.delete_staff(admin, admin_profile.id)

    def test_delete_route(self, client, db_session, admin_headers, personnel_profile):
        resp = client.delete(f"/api/staff/{personnel_profile.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["staff"]["is_active"] is False

        listing = client.get("/api/staff", headers=admin_headers)
        assert personnel_profile.id not in [s["id"] for s in listing.json["items"]]

        listing = client.get("/api/staff?include_inactive=true", headers=admin_headers)
        assert personnel_profile.id in [s["id"] for s in listing.json["items"]]


class TestList:

    def test_filters(self, client, db_session, admin_headers, personnel_profile):
        resp = client.get("/api/staff?role=personnel", headers=admin_headers)
        assert [s["nom"] for s in resp.json["items"]] == ["Paul Mbala"]

        resp = client.get("/api/staff?q=adm-001", headers=admin_headers)
        assert [s["nom"] for s in resp.json["items"]] == ["Awa Koné"]

    def test_personnel_cannot_list(self, client, db_session, personnel_headers):
        assert client.get("/api/staff", headers=personnel_headers).status_code == 403
