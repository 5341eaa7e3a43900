# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on sign-up
- Login throttling to prevent brute-force attacks
- Account lockout after repeated failed attempts
- Session management with token-based auth
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import bearer_token, json_body, require_session
from ..services import auth_service, login_throttle_service, session_service
from ..services.permission_service import allowed_actions
from ..validation import ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self sign-up: creates an identity only.

    The identity stays "pending provisioning" until an administrator
    attaches a profile and role to it.
    """
    try:
        data = json_body()
        metadata = {"nom": (data.get("nom") or "").strip() or None}

        user = auth_service.sign_up(data.get("email"), data.get("password"), metadata)

        return jsonify({
            "user": user.to_dict(),
            "status": "pending_provisioning",
            "message": "Compte créé. Un administrateur doit encore vous attribuer un rôle.",
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Erreur interne du serveur"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = json_body()
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "Email et mot de passe requis"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
        if is_locked:
            return jsonify({
                "error": "Compte temporairement bloqué après trop de tentatives échouées",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
                "retry_after_minutes": (seconds_remaining // 60) + 1 if seconds_remaining else 15,
            }), 429

        user = auth_service.authenticate(email, password)

        if not user:
            failed_count = login_throttle_service.record_failed_attempt(
                identifier=email,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            remaining = login_throttle_service.MAX_FAILED_ATTEMPTS - failed_count

            if remaining <= 0:
                return jsonify({
                    "error": "Compte bloqué après trop de tentatives échouées",
                    "locked": True,
                    "retry_after_minutes": 15,
                }), 429
            if remaining <= 3:
                return jsonify({
                    "error": "Identifiants invalides",
                    "warning": f"{remaining} tentative(s) restante(s) avant blocage du compte",
                }), 401
            return jsonify({"error": "Identifiants invalides"}), 401

        login_throttle_service.record_successful_login(
            user_id=user.id,
            identifier=email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Connexion réussie",
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Erreur interne du serveur"}), 500


@auth_bp.get("/lockout-status/<identifier>")
def lockout_status_route(identifier: str):
    return jsonify(login_throttle_service.get_lockout_status(identifier))


@auth_bp.post("/logout")
def logout_route():
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentification requise"}), 401

        if not session_service.revoke_session(token, reason="User logout", ip_address=request.remote_addr):
            return jsonify({"error": "Session invalide ou expirée"}), 401

        return jsonify({"message": "Déconnexion réussie"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Erreur interne du serveur"}), 500


@auth_bp.post("/refresh")
def refresh_route():
    """Exchange the current token for a new one; the old token stops working."""
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentification requise"}), 401

        refreshed = session_service.refresh_session(
            token,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        if not refreshed:
            return jsonify({"error": "Session invalide ou expirée"}), 401

        session, new_token = refreshed
        return jsonify({
            "token": new_token,
            "session": session.to_dict(),
            "message": "Session renouvelée",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to refresh session")
        return jsonify({"error": "Erreur interne du serveur"}), 500


@auth_bp.get("/me")
@require_session
def me_route():
    """
    Current identity with profile, organisation, role and allowed actions.

    An identity without profile gets status "pending_provisioning" (200),
    so the client can show a waiting screen rather than an error page.
    """
    if g.identity is None:
        return jsonify({
            "user": g.current_user.to_dict(),
            "status": "pending_provisioning",
        }), 200

    return jsonify({
        "user": g.current_user.to_dict(),
        "status": "active",
        "identity": g.identity.to_dict(),
        "actions": allowed_actions(g.identity),
    }), 200
