# Overview: Service-layer operations for document attachments; validation, storage and metadata.

"""
Document Attachment Manager

ATTACH (storage first, then metadata):
1. Validate size (<= 10 MiB) and type (PDF, JPEG, PNG, GIF, WEBP) before
   any storage write. Extension and content type must agree.
2. Write the object under "{contribuable_id}/{timestampMs}{random}-{filename}".
3. Insert the documents row. If that insert fails, the object written in
   step 2 is deleted again (compensation); if compensation fails too, the
   key is logged as ORPHANED_STORAGE_OBJECT.

DELETE (storage first):
    The storage object is removed before the row. If storage refuses, the
    row is kept and UpstreamFailure is raised, so metadata never points at
    a missing object because of this service.

INTAKE SAGA:
    create_with_documents creates the record, then attaches each file.
    The record is never rolled back; per-file failures are collected and
    returned to the caller.
"""

from __future__ import annotations

import mimetypes
import secrets
import time
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from ..errors import NotFoundError, UpstreamFailure
from ..extensions import db
from ..models import Contribuable, Document
from ..models.documents import DOCUMENT_TYPES
from ..validation import AttachDocumentInput, CreateTaxpayerInput, ValidationError
from . import storage_service
from .contribuable_service import create_contribuable
from .permission_service import log_security_event, require_action
from .tenant_service import get_scoped


MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MiB

ALLOWED_TYPES = {
    "pdf": {"application/pdf"},
    "jpg": {"image/jpeg", "image/pjpeg"},
    "jpeg": {"image/jpeg", "image/pjpeg"},
    "png": {"image/png"},
    "gif": {"image/gif"},
    "webp": {"image/webp"},
}

# Content types sent by clients that could not sniff the file
_GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

# Random bytes appended to the millisecond timestamp in storage keys
_KEY_SUFFIX_BYTES = 3


class FileTooLarge(ValidationError):
    pass


class UnsupportedType(ValidationError):
    pass


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def resolve_content_type(filename: str, content_type: str | None) -> str:
    """
    Validate type and return the content type to store with the object.

    Raises UnsupportedType when the extension is not allowed or the declared
    content type does not match it.
    """
    ext = _extension(filename)
    allowed = ALLOWED_TYPES.get(ext)
    if not allowed:
        raise UnsupportedType(
            f"Type de fichier non autorisé (.{ext or '?'}). "
            "Formats acceptés: PDF, JPEG, PNG, GIF, WEBP"
        )

    declared = (content_type or "").split(";", 1)[0].strip().lower()
    if declared in _GENERIC_CONTENT_TYPES:
        return mimetypes.guess_type(f"x.{ext}")[0] or sorted(allowed)[0]

    if declared not in allowed:
        raise UnsupportedType(f"Le type {declared} ne correspond pas à l'extension .{ext}")
    return declared


def validate_attachment(data: AttachDocumentInput) -> str:
    """Checks done before any storage write. Returns the content type to store."""
    if not data.filename:
        raise ValidationError("Nom de fichier manquant")

    if data.size > MAX_FILE_SIZE_BYTES:
        raise FileTooLarge(f"Le fichier {data.filename} dépasse la taille maximale de 10 Mo")

    if data.type_document not in DOCUMENT_TYPES:
        raise ValidationError(
            f"Type de document invalide. Valeurs possibles: {', '.join(DOCUMENT_TYPES)}"
        )

    return resolve_content_type(data.filename, data.content_type)


def build_storage_key(contribuable_id: str, filename: str) -> str:
    """
    Unique key namespaced under the owning record.

    Millisecond timestamp plus a random suffix keeps concurrent uploads of
    the same filename apart.
    """
    safe_name = secure_filename(filename) or f"fichier.{_extension(filename) or 'bin'}"
    token = f"{int(time.time() * 1000)}{secrets.token_hex(_KEY_SUFFIX_BYTES)}"
    return f"{contribuable_id}/{token}-{safe_name}"


def storage_key_written_at(storage_key: str) -> datetime | None:
    """Upload time embedded in a key built by build_storage_key (naive UTC), or None."""
    token = storage_key.rsplit("/", 1)[-1].split("-", 1)[0]
    millis = token[:-_KEY_SUFFIX_BYTES * 2]
    if not millis.isdigit():
        return None
    try:
        return datetime.fromtimestamp(int(millis) / 1000, tz=timezone.utc).replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        return None


def _store_and_register(record: Contribuable, data: AttachDocumentInput, user_id: str | None) -> Document:
    content_type = validate_attachment(data)
    storage_key = build_storage_key(record.id, data.filename)

    storage_service.store_file(storage_key, data.data, content_type)

    document = Document(
        contribuable_id=record.id,
        nom_fichier=data.filename,
        chemin_fichier=storage_key,
        type_document=data.type_document,
        taille_fichier=data.size,
    )
    db.session.add(document)

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Document metadata insert failed for %s", storage_key)
        try:
            storage_service.delete_file(storage_key)
        except UpstreamFailure as cleanup_error:
            log_security_event(
                user_id=user_id,
                event_type="ORPHANED_STORAGE_OBJECT",
                success=False,
                resource=storage_key,
                action="attach-document",
                reason=str(cleanup_error),
                org_id=record.organisation_id,
            )
        raise UpstreamFailure("Impossible d'enregistrer le document. Veuillez réessayer.") from e

    return document


# =============================================================================
# OPERATIONS
# =============================================================================

def attach_document(identity, contribuable_id: str, data: AttachDocumentInput) -> Document:
    record = get_scoped(Contribuable, contribuable_id, identity, action="attach-document")
    require_action(identity, "attach-document", target_org_id=record.organisation_id)
    return _store_and_register(record, data, identity.user_id)


def attach_documents(record: Contribuable, files: list[AttachDocumentInput], user_id: str | None) -> tuple[list[Document], list[dict]]:
    """
    Attach files one by one, continuing after failures.

    Returns (attached documents, [{"filename", "error"}] for each failure).
    """
    attached: list[Document] = []
    failures: list[dict] = []

    for data in files:
        try:
            attached.append(_store_and_register(record, data, user_id))
        except (ValidationError, UpstreamFailure) as e:
            current_app.logger.warning(
                "Attachment %s failed for contribuable %s: %s", data.filename, record.id, e,
            )
            failures.append({"filename": data.filename, "error": str(e)})

    return attached, failures


def create_with_documents(identity, data: CreateTaxpayerInput, files: list[AttachDocumentInput]) -> tuple[Contribuable, list[Document], list[dict]]:
    """
    Staff intake saga: record first, then each file. The record always stays.

    Files are validated up front, so a bad file rejects the whole form
    before anything is written.
    """
    for file_input in files:
        validate_attachment(file_input)
    if files:
        require_action(identity, "attach-document")

    record = create_contribuable(identity, data)
    attached, failures = attach_documents(record, files, identity.user_id)
    return record, attached, failures


def list_documents(identity, contribuable_id: str) -> list[Document]:
    record = get_scoped(Contribuable, contribuable_id, identity, action="view-documents")
    require_action(identity, "view-documents", target_org_id=record.organisation_id)

    return db.session.query(Document).filter_by(
        contribuable_id=record.id
    ).order_by(Document.created_at.desc()).all()


def _get_document(identity, document_id: str, action: str) -> Document:
    document = db.session.get(Document, document_id)
    if document is None:
        raise NotFoundError("Document introuvable")

    # Tenant check goes through the owning record
    try:
        get_scoped(Contribuable, document.contribuable_id, identity, action=action)
    except NotFoundError:
        raise NotFoundError("Document introuvable")

    require_action(identity, action, target_org_id=document.contribuable.organisation_id)
    return document


def get_document_view(identity, document_id: str) -> dict:
    """
    Metadata plus a time-limited URL for image documents.

    Non-image documents get metadata only (url is None).
    """
    document = _get_document(identity, document_id, "view-documents")
    view = document.to_dict()
    view["type_label"] = DOCUMENT_TYPES.get(document.type_document, document.type_document)
    view["url"] = storage_service.generate_signed_url(document.chemin_fichier) if document.is_image else None
    return view


def get_download_url(identity, document_id: str) -> str:
    """Time-limited URL for any document type (explicit download)."""
    document = _get_document(identity, document_id, "view-documents")
    return storage_service.generate_signed_url(document.chemin_fichier)


def delete_document(identity, document_id: str) -> None:
    """Storage first; the row stays if storage refuses."""
    document = _get_document(identity, document_id, "delete-document")

    storage_service.delete_file(document.chemin_fichier)

    db.session.delete(document)
    db.session.commit()
    current_app.logger.info("Document %s deleted by %s", document_id, identity.user_id)
