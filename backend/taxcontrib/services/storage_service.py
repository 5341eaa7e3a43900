# Overview: Object storage backends (local filesystem or S3) for document binaries.

"""
Document storage.

Two backends, selected by STORAGE_BACKEND:

- "s3": boto3 client against AWS or any S3-compatible endpoint; signed URLs
  are presigned get_object URLs.
- "local": files under LOCAL_STORAGE_PATH; signed URLs point at
  GET /api/storage/<key>?token=... where token is an itsdangerous timed
  signature of the key.

Every failure of the backend is raised as UpstreamFailure.
"""

from __future__ import annotations

import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..errors import UpstreamFailure


LOCAL_URL_PREFIX = "/api/storage/"
_SIGNER_SALT = "taxcontrib-storage-download"


# =============================================================================
# Configuration
# =============================================================================

def get_storage_backend() -> str:
    return (current_app.config.get("STORAGE_BACKEND") or "local").lower()


def _get_bucket() -> str:
    return current_app.config.get("STORAGE_BUCKET", "contribuables-documents")


def _get_local_storage_path() -> str:
    path = os.path.abspath(current_app.config.get("LOCAL_STORAGE_PATH", "instance/storage"))
    os.makedirs(path, exist_ok=True)
    return path


def _get_s3_client():
    """Return a configured S3 client (supports S3-compatible endpoints)."""
    endpoint_url = current_app.config.get("S3_ENDPOINT_URL")
    return boto3.client(
        "s3",
        region_name=current_app.config.get("S3_REGION") or None,
        aws_access_key_id=current_app.config.get("AWS_ACCESS_KEY_ID") or None,
        aws_secret_access_key=current_app.config.get("AWS_SECRET_ACCESS_KEY") or None,
        endpoint_url=endpoint_url.rstrip("/") if endpoint_url else None,
    )


def _local_path(storage_key: str) -> str:
    root = _get_local_storage_path()
    path = os.path.abspath(os.path.join(root, storage_key))
    if os.path.commonpath([root, path]) != root:
        raise UpstreamFailure("Clé de stockage invalide")
    return path


def _signer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_SIGNER_SALT)


def _expiry_seconds() -> int:
    return int(current_app.config.get("SIGNED_URL_EXPIRY_SECONDS", 3600))


# =============================================================================
# File Operations
# =============================================================================

def store_file(storage_key: str, data: bytes, content_type: str | None = None) -> None:
    """Write one object. Raises UpstreamFailure if the backend refuses it."""
    if get_storage_backend() == "s3":
        extra = {"ContentType": content_type} if content_type else {}
        try:
            _get_s3_client().put_object(Bucket=_get_bucket(), Key=storage_key, Body=data, **extra)
        except (ClientError, BotoCoreError) as e:
            raise UpstreamFailure(f"Échec de l'envoi du fichier: {e}") from e
        return

    path = _local_path(storage_key)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise UpstreamFailure(f"Échec de l'envoi du fichier: {e}") from e


def delete_file(storage_key: str) -> None:
    """Delete one object. A key that is already gone counts as deleted."""
    if get_storage_backend() == "s3":
        try:
            _get_s3_client().delete_object(Bucket=_get_bucket(), Key=storage_key)
        except (ClientError, BotoCoreError) as e:
            raise UpstreamFailure(f"Échec de la suppression du fichier: {e}") from e
        return

    path = _local_path(storage_key)
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        raise UpstreamFailure(f"Échec de la suppression du fichier: {e}") from e


def generate_signed_url(storage_key: str) -> str:
    """Time-limited read URL for one object."""
    if get_storage_backend() == "s3":
        try:
            return _get_s3_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": _get_bucket(), "Key": storage_key},
                ExpiresIn=_expiry_seconds(),
            )
        except (ClientError, BotoCoreError) as e:
            raise UpstreamFailure(f"Impossible de générer le lien du document: {e}") from e

    token = _signer().dumps(storage_key)
    return f"{LOCAL_URL_PREFIX}{storage_key}?token={token}"


def verify_download_token(storage_key: str, token: str | None) -> bool:
    """Check a local signed URL token against the key it was issued for."""
    if not token:
        return False
    try:
        signed_key = _signer().loads(token, max_age=_expiry_seconds())
    except (SignatureExpired, BadSignature):
        return False
    return signed_key == storage_key


def local_file_path(storage_key: str) -> str | None:
    """Absolute path of a local object, or None if it does not exist."""
    path = _local_path(storage_key)
    return path if os.path.isfile(path) else None


def list_keys(prefix: str = "") -> list[str]:
    """All object keys under prefix."""
    if get_storage_backend() == "s3":
        keys: list[str] = []
        try:
            paginator = _get_s3_client().get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=_get_bucket(), Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            raise UpstreamFailure(f"Impossible de lister le stockage: {e}") from e
        return keys

    root = _get_local_storage_path()
    keys = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            key = os.path.relpath(os.path.join(dirpath, name), root).replace(os.sep, "/")
            if key.startswith(prefix):
                keys.append(key)
    return sorted(keys)
