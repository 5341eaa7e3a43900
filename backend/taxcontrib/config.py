# backend/taxcontrib/config.py
from __future__ import annotations
import os


DEFAULT_ORGANISATION_ID = "00000000-0000-0000-0000-000000000001"


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/taxcontrib.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///taxcontrib.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tenant that receives every unauthenticated (public) registration
    DEFAULT_ORGANISATION_ID = os.environ.get("DEFAULT_ORGANISATION_ID", DEFAULT_ORGANISATION_ID)
    DEFAULT_ORGANISATION_NAME = os.environ.get("DEFAULT_ORGANISATION_NAME", "Le Royaume CGA")

    # Document storage: "local" (filesystem) or "s3" (boto3, S3-compatible)
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "local")
    STORAGE_BUCKET = os.environ.get("STORAGE_BUCKET", "contribuables-documents")
    LOCAL_STORAGE_PATH = os.environ.get("LOCAL_STORAGE_PATH", "instance/storage")
    S3_REGION = os.environ.get("S3_REGION", "us-east-1")
    S3_ENDPOINT_URL = os.environ.get("S3_ENDPOINT_URL")
    AWS_ACCESS_KEY_ID = os.environ.get("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY = os.environ.get("AWS_SECRET_ACCESS_KEY")
    SIGNED_URL_EXPIRY_SECONDS = int(os.environ.get("SIGNED_URL_EXPIRY_SECONDS", "3600"))
    # reconcile-storage leaves objects younger than this alone (upload may be in flight)
    STORAGE_RECONCILE_GRACE_SECONDS = int(os.environ.get("STORAGE_RECONCILE_GRACE_SECONDS", "900"))

    # Global throttle on the public registration endpoint
    PUBLIC_REGISTER_MAX_PER_HOUR = int(os.environ.get("PUBLIC_REGISTER_MAX_PER_HOUR", "3"))

    # Comma-separated list of front-end origins allowed by CORS
    CORS_ALLOWED_ORIGINS = os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080",
    )

    # Hard cap on request bodies (intake forms carry several documents)
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", str(64 * 1024 * 1024)))
