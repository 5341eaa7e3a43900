# Overview: Flask API routes for document attachments and local signed downloads.

"""
Document routes.

GET /api/documents/<id> returns metadata and, for images only, a
time-limited URL for inline preview. Other types get metadata only; the
explicit /download endpoint issues a URL for any type.

GET /api/storage/<key>?token=... serves objects of the local storage
backend. The token is the signature issued with the URL, so the endpoint
needs no session.
"""

from flask import Blueprint, abort, current_app, g, jsonify, request, send_file

from ..decorators import DOMAIN_ERRORS, error_response, require_auth
from ..errors import GENERIC_ERROR_MESSAGE
from ..services import document_service, storage_service


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")
storage_bp = Blueprint("storage", __name__, url_prefix="/api/storage")


@documents_bp.get("/types")
def document_types_route():
    from ..models.documents import DOCUMENT_TYPES
    return jsonify({"types": [{"code": code, "label": label} for code, label in DOCUMENT_TYPES.items()]})


@documents_bp.get("/<document_id>")
@require_auth
def get_document_route(document_id: str):
    try:
        return jsonify({"document": document_service.get_document_view(g.identity, document_id)})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load document")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@documents_bp.get("/<document_id>/download")
@require_auth
def download_document_route(document_id: str):
    try:
        url = document_service.get_download_url(g.identity, document_id)
        return jsonify({
            "url": url,
            "expires_in": current_app.config.get("SIGNED_URL_EXPIRY_SECONDS", 3600),
        })
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to sign document URL")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@documents_bp.delete("/<document_id>")
@require_auth
def delete_document_route(document_id: str):
    try:
        document_service.delete_document(g.identity, document_id)
        return jsonify({"message": "Document supprimé"})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete document")
        return jsonify({"error": GENERIC_ERROR_MESSAGE}), 500


@storage_bp.get("/<path:storage_key>")
def download_local_object_route(storage_key: str):
    if storage_service.get_storage_backend() != "local":
        abort(404)

    if not storage_service.verify_download_token(storage_key, request.args.get("token")):
        return jsonify({"error": "Lien expiré ou invalide"}), 403

    path = storage_service.local_file_path(storage_key)
    if path is None:
        return jsonify({"error": "Fichier introuvable"}), 404

    return send_file(path, download_name=storage_key.rsplit("/", 1)[-1].split("-", 1)[-1])
