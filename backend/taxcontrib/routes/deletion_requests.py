# Overview: Flask API routes for deletion requests; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import DOMAIN_ERRORS, error_response, require_auth
from ..errors import GENERIC_ERROR_MESSAGE, PartialFailure
from ..services import deletion_request_service


deletion_requests_bp = Blueprint("deletion_requests", __name__, url_prefix="/api/deletion-requests")


@deletion_requests_bp.get("")
@require_auth
def list_deletion_requests_route():
    try:
        rows = deletion_request_service.list_requests(g.identity, status=request.args.get("status"))
        return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list deletion requests")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@deletion_requests_bp.post("/<request_id>/approve")
@require_auth
def approve_deletion_request_route(request_id: str):
    try:
        deletion_request = deletion_request_service.approve(g.identity, request_id)
        return jsonify({
            "deletion_request": deletion_request.to_dict(),
            "message": "Demande approuvée, contribuable supprimé",
        })
    except PartialFailure as e:
        return jsonify({
            "message": "Demande approuvée, contribuable supprimé",
            "warning": str(e),
            "partial_failure": True,
            "orphaned_objects": e.failures,
        }), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to approve deletion request")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@deletion_requests_bp.post("/<request_id>/reject")
@require_auth
def reject_deletion_request_route(request_id: str):
    try:
        deletion_request = deletion_request_service.reject(g.identity, request_id)
        return jsonify({"deletion_request": deletion_request.to_dict(), "message": "Demande rejetée"})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reject deletion request")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500
