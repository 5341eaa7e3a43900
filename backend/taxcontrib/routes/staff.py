# Overview: Flask API routes for staff management (admin only); parses input and returns JSON responses.

import io

from flask import Blueprint, current_app, g, jsonify, request, send_file

from ..decorators import DOMAIN_ERRORS, error_response, json_body, require_auth
from ..errors import GENERIC_ERROR_MESSAGE
from ..services import export_service, reporting_service, staff_service
from ..services.permission_service import require_action
from ..services.tenant_service import get_organisation
from taxcontrib.time_utils import utcnow


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


def _staff_filters() -> dict:
    return {
        "q": request.args.get("q"),
        "role": request.args.get("role"),
        "include_inactive": request.args.get("include_inactive", "false").lower() in ("1", "true", "yes"),
    }


@staff_bp.get("")
@require_auth
def list_staff_route():
    try:
        rows = reporting_service.list_staff(g.identity, **_staff_filters())
        return jsonify({"items": [staff_service.staff_to_dict(p, r) for p, r in rows], "count": len(rows)})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list staff")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@staff_bp.get("/export.pdf")
@require_auth
def export_staff_route():
    try:
        require_action(g.identity, "export-listing")
        rows = reporting_service.list_staff(g.identity, **_staff_filters())
        organisation = get_organisation(g.identity.organisation_id)
        pdf = export_service.export_staff(rows, organisation.nom)
        return send_file(
            io.BytesIO(pdf),
            mimetype="application/pdf",
            as_attachment=True,
            download_name=f"personnel_{utcnow().strftime('%Y%m%d_%H%M')}.pdf",
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to export staff")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@staff_bp.post("")
@require_auth
def create_staff_route():
    try:
        profile = staff_service.create_staff(g.identity, json_body())
        return jsonify({"staff": staff_service.staff_to_dict(profile), "message": "Employé créé"}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create staff")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@staff_bp.get("/<profile_id>")
@require_auth
def get_staff_route(profile_id: str):
    try:
        profile = staff_service.get_staff(g.identity, profile_id)
        return jsonify({"staff": staff_service.staff_to_dict(profile)})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load staff")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@staff_bp.route("/<profile_id>", methods=["PATCH", "PUT"])
@require_auth
def update_staff_route(profile_id: str):
    try:
        profile = staff_service.update_staff(g.identity, profile_id, json_body())
        return jsonify({"staff": staff_service.staff_to_dict(profile), "message": "Employé mis à jour"})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update staff")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@staff_bp.delete("/<profile_id>")
@require_auth
def delete_staff_route(profile_id: str):
    try:
        profile = staff_service.delete_staff(g.identity, profile_id)
        return jsonify({"staff": staff_service.staff_to_dict(profile), "message": "Employé supprimé"})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete staff")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500
