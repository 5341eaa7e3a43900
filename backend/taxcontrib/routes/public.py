# Overview: Unauthenticated public registration endpoint.

"""
POST /api/public-register

Body: {"contribuableData": {...}, "clientIp": "optional"}

200 {"success": true, "contribuableId": ...}
400 invalid fields
429 hourly quota reached ("Trop de demandes. Veuillez réessayer dans une heure.")
500 storage failure ("Impossible d'enregistrer votre demande. Veuillez réessayer.")
"""

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from ..decorators import json_body
from ..errors import REQUEST_TOO_LARGE_MESSAGE, RateLimited
from ..services import public_registration_service
from ..validation import CreateTaxpayerInput, ValidationError


public_bp = Blueprint("public", __name__, url_prefix="/api")

SAVE_FAILED_MESSAGE = "Impossible d'enregistrer votre demande. Veuillez réessayer."


def _client_ip(body: dict) -> str | None:
    """clientIp from the body, else the first X-Forwarded-For hop, else the peer."""
    client_ip = body.get("clientIp")
    if not isinstance(client_ip, str) or not client_ip.strip():
        client_ip = request.headers.get("X-Forwarded-For", "").split(",", 1)[0]
    return client_ip.strip()[:45] or request.remote_addr


@public_bp.post("/public-register")
def public_register_route():
    try:
        body = json_body()
        data = CreateTaxpayerInput.from_payload(body.get("contribuableData"))
        record = public_registration_service.register(data, client_ip=_client_ip(body))
        return jsonify({"success": True, "contribuableId": record.id}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RequestEntityTooLarge:
        return jsonify({"error": REQUEST_TOO_LARGE_MESSAGE}), 413
    except RateLimited as e:
        response = jsonify({"error": str(e)})
        if e.retry_after_seconds:
            response.headers["Retry-After"] = str(e.retry_after_seconds)
        return response, 429
    except Exception:
        current_app.logger.exception("Public registration failed")
        return jsonify({"error": SAVE_FAILED_MESSAGE}), 500
