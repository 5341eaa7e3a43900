from __future__ import annotations
from datetime import datetime
from taxcontrib.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Float, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


class ValidationError(ValueError):
    """400-level input problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or not stripped.lstrip("-").isdigit():
                raise ValidationError(f"{col.key} doit être un entier")
            return int(stripped)
        raise ValidationError(f"{col.key} doit être un entier")

    # Floats (coordinates); form posts send them as strings
    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} doit être un nombre")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            stripped = value.strip().replace(",", ".")
            if not stripped:
                return None
            try:
                return float(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} doit être un nombre")
        raise ValidationError(f"{col.key} doit être un nombre")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} doit être une date ISO-8601")
            if dt is None:
                raise ValidationError(f"{col.key} doit être une date ISO-8601")
            return dt
        raise ValidationError(f"{col.key} doit être une date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    Blank strings on nullable columns are stored as NULL, the way the
    intake forms send untouched optional inputs.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Données invalides")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(
            f for f in required
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(f"Champs obligatoires manquants: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in cols:
            raise ValidationError(f"Champ inconnu: {k}")
        if k not in policy.writable_fields:
            raise ValidationError(f"Champ non modifiable: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} ne peut pas être vide")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(val, str) and val == "":
            if not col.nullable:
                raise ValidationError(f"{k} ne peut pas être vide")
            val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} dépasse la longueur maximale de {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_contribuable(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    latitude = patch.get("latitude")
    if latitude is not None and not LATITUDE_RANGE[0] <= latitude <= LATITUDE_RANGE[1]:
        raise ValidationError("latitude doit être comprise entre -90 et 90")

    longitude = patch.get("longitude")
    if longitude is not None and not LONGITUDE_RANGE[0] <= longitude <= LONGITUDE_RANGE[1]:
        raise ValidationError("longitude doit être comprise entre -180 et 180")


# =============================================================================
# OPERATION INPUTS
# =============================================================================

CONTRIBUABLE_REQUIRED_FIELDS = {
    "raison_sociale", "ville", "commune", "nom_gerant", "prenom_gerant", "contact_1",
}

CONTRIBUABLE_WRITABLE_FIELDS = CONTRIBUABLE_REQUIRED_FIELDS | {
    "quartier", "rccm", "ncc", "contact_2", "latitude", "longitude",
    "commentaire", "photo_position",
}


def contribuable_policy() -> ModelValidationPolicy:
    return ModelValidationPolicy(
        writable_fields=CONTRIBUABLE_WRITABLE_FIELDS,
        required_on_create=CONTRIBUABLE_REQUIRED_FIELDS,
    )


@dataclass(frozen=True)
class CreateTaxpayerInput:
    """Validated intake form for a new taxpayer record."""
    fields: dict

    @classmethod
    def from_payload(cls, payload: dict | None) -> "CreateTaxpayerInput":
        from .models import Contribuable

        patch = validate_payload(
            model=Contribuable,
            payload=payload,
            policy=contribuable_policy(),
            partial=False,
        )
        enforce_rules_contribuable(patch)
        return cls(fields=patch)


@dataclass(frozen=True)
class UpdateTaxpayerInput:
    """Validated patch of non-status taxpayer fields."""
    fields: dict

    @classmethod
    def from_payload(cls, payload: dict | None) -> "UpdateTaxpayerInput":
        from .models import Contribuable

        patch = validate_payload(
            model=Contribuable,
            payload=payload,
            policy=contribuable_policy(),
            partial=True,
        )
        enforce_rules_contribuable(patch)
        if not patch:
            raise ValidationError("Aucune modification fournie")
        return cls(fields=patch)


@dataclass(frozen=True)
class AttachDocumentInput:
    """One uploaded file, as received from the client."""
    filename: str
    content_type: str
    data: bytes
    type_document: str = "autre"

    @property
    def size(self) -> int:
        return len(self.data)
