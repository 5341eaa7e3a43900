# Overview: Pytest coverage for identity resolution and the auth routes.

"""
Identity & session tests.

Covers:
- resolve(): profile + role, missing profile, missing role assignment
- Login, lockout after 10 failures, refresh, logout
- /api/auth/me for provisioned and pending identities
"""

from taxcontrib.extensions import db
from taxcontrib.models import SecurityEvent, SessionToken, UserRole
from taxcontrib.services import auth_service, identity_service, session_service
from taxcontrib.services.login_throttle_service import MAX_FAILED_ATTEMPTS

from conftest import PASSWORD, auth_headers, get_auth_token


class TestResolve:

    def test_resolves_profile_org_and_role(self, db_session, admin_profile, default_org):
        identity = identity_service.resolve(admin_profile.user_id)

        assert identity.organisation_id == default_org.id
        assert identity.role == "admin"
        assert identity.role_resolved
        assert identity.is_admin
        assert identity.email == "admin@cga.test"

    def test_identity_without_profile_is_unprovisioned(self, db_session):
        user = auth_service.sign_up("nouveau@cga.test", PASSWORD)
        assert identity_service.resolve(user.id) is None

    def test_missing_role_falls_back_to_unresolved_personnel(self, db_session, personnel_profile):
        db_session.query(UserRole).filter_by(user_id=personnel_profile.user_id).delete()
        db_session.commit()

        identity = identity_service.resolve(personnel_profile.user_id)

        assert identity.role == "personnel"
        assert identity.role_resolved is False
        assert not identity.is_admin
        assert db_session.query(SecurityEvent).filter_by(
            event_type="ROLE_ASSIGNMENT_MISSING",
            user_id=personnel_profile.user_id,
        ).count() == 1

    def test_role_change_applies_on_next_resolve(self, db_session, personnel_profile):
        assignment = db_session.query(UserRole).filter_by(user_id=personnel_profile.user_id).one()
        assignment.role = "admin"
        db_session.commit()

        assert identity_service.resolve(personnel_profile.user_id).is_admin


class TestSignUp:

    def test_weak_password_rejected(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "x@cga.test", "password": "faible"})
        assert resp.status_code == 400

    def test_duplicate_email_rejected(self, client, db_session, admin_profile):
        resp = client.post("/api/auth/register", json={"email": "ADMIN@cga.test", "password": PASSWORD})
        assert resp.status_code == 400
        assert "déjà utilisée" in resp.json["error"]

    def test_self_sign_up_is_pending_provisioning(self, client, db_session):
        resp = client.post("/api/auth/register", json={"email": "x@cga.test", "password": PASSWORD})
        assert resp.status_code == 201
        assert resp.json["status"] == "pending_provisioning"

        token = get_auth_token(client, "x@cga.test")
        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["status"] == "pending_provisioning"

        listing = client.get("/api/contribuables", headers=auth_headers(token))
        assert listing.status_code == 403
        assert listing.json["status"] == "pending_provisioning"


class TestLogin:

    def test_login_and_me(self, client, db_session, personnel_profile):
        token = get_auth_token(client, "agent@cga.test")
        assert token

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.json["status"] == "active"
        assert resp.json["identity"]["role"] == "personnel"
        assert "validate" not in resp.json["actions"]
        assert "create-taxpayer" in resp.json["actions"]

    def test_wrong_password(self, client, db_session, admin_profile):
        resp = client.post("/api/auth/login", json={"email": "admin@cga.test", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_lockout_after_repeated_failures(self, client, db_session, admin_profile):
        for _ in range(MAX_FAILED_ATTEMPTS - 1):
            resp = client.post("/api/auth/login", json={"email": "admin@cga.test", "password": "Wrong123!"})
            assert resp.status_code == 401

        resp = client.post("/api/auth/login", json={"email": "admin@cga.test", "password": "Wrong123!"})
        assert resp.status_code == 429

        # Correct password is refused while locked
        resp = client.post("/api/auth/login", json={"email": "admin@cga.test", "password": PASSWORD})
        assert resp.status_code == 429
        assert resp.json["locked"] is True

    def test_missing_token_is_401(self, client, db_session):
        assert client.get("/api/contribuables").status_code == 401
        assert client.get("/api/staff").status_code == 401


class TestSessions:

    def test_refresh_revokes_old_token(self, client, db_session, admin_profile):
        token = get_auth_token(client, "admin@cga.test")

        resp = client.post("/api/auth/refresh", headers=auth_headers(token))
        assert resp.status_code == 200
        new_token = resp.json["token"]
        assert new_token != token

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
        assert client.get("/api/auth/me", headers=auth_headers(new_token)).status_code == 200

    def test_logout(self, client, db_session, admin_profile):
        token = get_auth_token(client, "admin@cga.test")

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_session_events_are_audited(self, db_session, admin_profile):
        session, token = session_service.create_session(admin_profile.user_id)
        session_service.revoke_session(token)

        events = {
            e.event_type for e in db_session.query(SecurityEvent).filter_by(user_id=admin_profile.user_id)
        }
        assert {"SIGNED_IN", "SIGNED_OUT"} <= events

    def test_token_stored_hashed(self, db_session, admin_profile):
        session, token = session_service.create_session(admin_profile.user_id)

        stored = db.session.get(SessionToken, session.id)
        assert stored.token_hash == session_service.hash_token(token)
        assert stored.token_hash != token
