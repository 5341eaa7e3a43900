from __future__ import annotations

import uuid

from ..extensions import db
from taxcontrib.time_utils import to_utc_z, utcnow


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Organisation(db.Model):
    """
    Multi-tenant root: every tenant is an Organisation.

    All taxpayers, staff profiles and role assignments belong to exactly
    one organisation. No data may cross organisation boundaries.

    Public (unauthenticated) registrations always land in the default
    organisation (Config.DEFAULT_ORGANISATION_ID).
    """
    __tablename__ = "organisations"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    nom = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Organisation id={self.id} nom={self.nom!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nom": self.nom,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
