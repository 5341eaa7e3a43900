from __future__ import annotations

from ..extensions import db
from taxcontrib.time_utils import to_utc_z, utcnow
from .tenancy import generate_uuid


STATUT_EN_ATTENTE = "en_attente"
STATUT_VALIDE = "valide"
STATUT_REJETE = "rejete"
VALID_STATUTS = (STATUT_EN_ATTENTE, STATUT_VALIDE, STATUT_REJETE)


class Contribuable(db.Model):
    """
    Taxpayer record, the central entity.

    LIFECYCLE:
        en_attente -> valide   (admin)
        en_attente -> rejete   (admin)
        valide|rejete -> en_attente   (admin reopen)

    Every record starts en_attente, whoever submits it. created_by is NULL
    for public submissions.
    """
    __tablename__ = "contribuables"
    __table_args__ = (
        db.Index("ix_contribuables_org_statut_created", "organisation_id", "statut", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)

    # Business
    raison_sociale = db.Column(db.String(255), nullable=False)
    ville = db.Column(db.String(120), nullable=False)
    commune = db.Column(db.String(120), nullable=False)
    quartier = db.Column(db.String(120), nullable=True)

    # Manager
    nom_gerant = db.Column(db.String(120), nullable=False)
    prenom_gerant = db.Column(db.String(120), nullable=False)

    # Legal registry numbers
    rccm = db.Column(db.String(64), nullable=True)
    ncc = db.Column(db.String(64), nullable=True)

    contact_1 = db.Column(db.String(32), nullable=False)
    contact_2 = db.Column(db.String(32), nullable=True)

    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    photo_position = db.Column(db.String(512), nullable=True)

    commentaire = db.Column(db.Text, nullable=True)

    statut = db.Column(db.String(16), nullable=False, default=STATUT_EN_ATTENTE, index=True)  # en_attente, valide, rejete

    organisation_id = db.Column(db.String(36), db.ForeignKey("organisations.id"), nullable=False, index=True)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    organisation = db.relationship("Organisation", backref=db.backref("contribuables", lazy=True))

    def __repr__(self) -> str:
        return f"<Contribuable id={self.id} raison_sociale={self.raison_sociale!r} statut={self.statut}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "raison_sociale": self.raison_sociale,
            "ville": self.ville,
            "commune": self.commune,
            "quartier": self.quartier,
            "nom_gerant": self.nom_gerant,
            "prenom_gerant": self.prenom_gerant,
            "rccm": self.rccm,
            "ncc": self.ncc,
            "contact_1": self.contact_1,
            "contact_2": self.contact_2,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "photo_position": self.photo_position,
            "commentaire": self.commentaire,
            "statut": self.statut,
            "organisation_id": self.organisation_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


DELETION_PENDING = "pending"
DELETION_APPROVED = "approved"
DELETION_REJECTED = "rejected"


class DeletionRequest(db.Model):
    """
    Request by a non-admin to delete a taxpayer record.

    pending -> approved (record deleted) | rejected. contribuable_id is not a
    foreign key so that approved requests outlive the record they removed.
    """
    __tablename__ = "deletion_requests"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    contribuable_id = db.Column(db.String(36), nullable=False, index=True)
    organisation_id = db.Column(db.String(36), db.ForeignKey("organisations.id"), nullable=False, index=True)

    requested_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    approved_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    reason = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=DELETION_PENDING, index=True)  # pending, approved, rejected

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contribuable_id": self.contribuable_id,
            "organisation_id": self.organisation_id,
            "requested_by": self.requested_by,
            "approved_by": self.approved_by,
            "reason": self.reason,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
        }
