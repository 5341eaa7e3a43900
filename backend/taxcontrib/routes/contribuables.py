# Overview: Flask API routes for taxpayer records; parses input and returns JSON responses.

"""
Taxpayer record routes.

Staff intake accepts either a JSON body (fields only) or multipart form
data: the fields as a JSON string in "data", files in "documents" and an
optional parallel list of "types" (registre_commerce, dfe, piece_identite,
autre). Document failures after the record is stored are reported in the
201 response (partial_failure, failed_documents); the record is kept.
"""

import io
import json

from flask import Blueprint, current_app, g, jsonify, request, send_file

from ..decorators import DOMAIN_ERRORS, error_response, json_body, require_auth
from ..errors import GENERIC_ERROR_MESSAGE, PartialFailure
from ..services import (
    contribuable_service,
    deletion_request_service,
    document_service,
    export_service,
    reporting_service,
)
from ..services.permission_service import require_action
from ..services.tenant_service import get_organisation
from ..validation import AttachDocumentInput, CreateTaxpayerInput, UpdateTaxpayerInput, ValidationError
from taxcontrib.time_utils import utcnow


contribuables_bp = Blueprint("contribuables", __name__, url_prefix="/api/contribuables")


def file_inputs(files, types) -> list[AttachDocumentInput]:
    inputs = []
    for index, storage in enumerate(files):
        if not storage or not storage.filename:
            continue
        type_document = types[index] if index < len(types) and types[index] else "autre"
        inputs.append(AttachDocumentInput(
            filename=storage.filename,
            content_type=storage.mimetype or "",
            data=storage.read(),
            type_document=type_document,
        ))
    return inputs


def _intake_payload() -> tuple[dict, list[AttachDocumentInput]]:
    if request.mimetype == "multipart/form-data":
        raw = request.form.get("data") or "{}"
        try:
            fields = json.loads(raw)
        except ValueError:
            raise ValidationError("Données du formulaire invalides")
        files = file_inputs(request.files.getlist("documents"), request.form.getlist("types"))
        return fields, files

    return request.get_json(silent=True) or {}, []


@contribuables_bp.get("")
@require_auth
def list_contribuables_route():
    try:
        records = reporting_service.list_contribuables(
            g.identity,
            q=request.args.get("q"),
            statut=request.args.get("statut"),
        )
        return jsonify({"items": [r.to_dict() for r in records], "count": len(records)})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list contribuables")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@contribuables_bp.get("/stats")
@require_auth
def stats_route():
    try:
        return jsonify({"stats": reporting_service.dashboard_stats(g.identity)})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute dashboard stats")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@contribuables_bp.get("/export.pdf")
@require_auth
def export_contribuables_route():
    """PDF of exactly the list the same q/statut filters return."""
    try:
        require_action(g.identity, "export-listing")
        records = reporting_service.list_contribuables(
            g.identity,
            q=request.args.get("q"),
            statut=request.args.get("statut"),
        )
        organisation = get_organisation(g.identity.organisation_id)
        pdf = export_service.export_contribuables(records, organisation.nom)
        return send_file(
            io.BytesIO(pdf),
            mimetype="application/pdf",
            as_attachment=True,
            download_name=f"contribuables_{utcnow().strftime('%Y%m%d_%H%M')}.pdf",
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to export contribuables")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@contribuables_bp.post("")
@require_auth
def create_contribuable_route():
    try:
        fields, files = _intake_payload()
        data = CreateTaxpayerInput.from_payload(fields)

        record, attached, failures = document_service.create_with_documents(g.identity, data, files)

        body = {
            "contribuable": record.to_dict(),
            "documents": [d.to_dict() for d in attached],
            "partial_failure": bool(failures),
            "failed_documents": failures,
            "message": "Contribuable enregistré avec succès",
        }
        if failures:
            body["warning"] = (
                f"Contribuable enregistré, mais {len(failures)} document(s) "
                "n'ont pas pu être téléversés."
            )
        return jsonify(body), 201

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create contribuable")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@contribuables_bp.get("/<contribuable_id>")
@require_auth
def get_contribuable_route(contribuable_id: str):
    try:
        record = contribuable_service.get_contribuable(g.identity, contribuable_id)
        return jsonify({"contribuable": record.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load contribuable")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@contribuables_bp.route("/<contribuable_id>", methods=["PATCH", "PUT"])
@require_auth
def update_contribuable_route(contribuable_id: str):
    try:
        data = UpdateTaxpayerInput.from_payload(request.get_json(silent=True))
        record = contribuable_service.update_fields(g.identity, contribuable_id, data)
        return jsonify({"contribuable": record.to_dict(), "message": "Contribuable mis à jour"})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update contribuable")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


TRANSITION_MESSAGES = {
    "validate": "Contribuable validé",
    "reject": "Contribuable rejeté",
    "reopen": "Contribuable remis en attente",
}


def _transition_response(contribuable_id: str, action: str):
    try:
        operation = getattr(contribuable_service, action)
        record = operation(g.identity, contribuable_id)
        return jsonify({"contribuable": record.to_dict(), "message": TRANSITION_MESSAGES[action]})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to %s contribuable", action)
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@contribuables_bp.post("/<contribuable_id>/validate")
@require_auth
def validate_contribuable_route(contribuable_id: str):
    return _transition_response(contribuable_id, "validate")


@contribuables_bp.post("/<contribuable_id>/reject")
@require_auth
def reject_contribuable_route(contribuable_id: str):
    return _transition_response(contribuable_id, "reject")


@contribuables_bp.post("/<contribuable_id>/reopen")
@require_auth
def reopen_contribuable_route(contribuable_id: str):
    return _transition_response(contribuable_id, "reopen")


@contribuables_bp.delete("/<contribuable_id>")
@require_auth
def delete_contribuable_route(contribuable_id: str):
    try:
        contribuable_service.delete_contribuable(g.identity, contribuable_id)
        return jsonify({"message": "Contribuable supprimé"})
    except PartialFailure as e:
        return jsonify({
            "message": "Contribuable supprimé",
            "warning": str(e),
            "partial_failure": True,
            "orphaned_objects": e.failures,
        }), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete contribuable")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@contribuables_bp.post("/<contribuable_id>/deletion-requests")
@require_auth
def request_deletion_route(contribuable_id: str):
    try:
        data = json_body()
        deletion_request = deletion_request_service.request_deletion(
            g.identity, contribuable_id, reason=data.get("reason"),
        )
        return jsonify({
            "deletion_request": deletion_request.to_dict(),
            "message": "Demande de suppression envoyée",
        }), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to request deletion")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@contribuables_bp.get("/<contribuable_id>/documents")
@require_auth
def list_documents_route(contribuable_id: str):
    try:
        documents = document_service.list_documents(g.identity, contribuable_id)
        return jsonify({"items": [d.to_dict() for d in documents], "count": len(documents)})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list documents")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@contribuables_bp.post("/<contribuable_id>/documents")
@require_auth
def attach_document_route(contribuable_id: str):
    """multipart/form-data: "file" and optional "type_document"."""
    try:
        storage = request.files.get("file")
        if storage is None or not storage.filename:
            return jsonify({"error": "Aucun fichier fourni"}), 400

        inputs = file_inputs([storage], [request.form.get("type_document")])
        document = document_service.attach_document(g.identity, contribuable_id, inputs[0])
        return jsonify({"document": document.to_dict(), "message": "Document ajouté"}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to attach document")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500
