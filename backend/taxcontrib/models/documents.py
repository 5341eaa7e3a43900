from __future__ import annotations

from ..extensions import db
from taxcontrib.time_utils import to_utc_z, utcnow
from .tenancy import generate_uuid


DOCUMENT_TYPES = {
    "registre_commerce": "Extrait du registre de commerce",
    "dfe": "Déclaration fiscale d'existence",
    "piece_identite": "Pièce d'identité",
    "autre": "Autre",
}

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}


class Document(db.Model):
    """
    File attached to one taxpayer record.

    chemin_fichier is the object-storage key, always namespaced under the
    owning contribuable id: "{contribuable_id}/{token}-{filename}".
    """
    __tablename__ = "documents"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    contribuable_id = db.Column(db.String(36), db.ForeignKey("contribuables.id"), nullable=False, index=True)

    nom_fichier = db.Column(db.String(255), nullable=False)
    chemin_fichier = db.Column(db.String(512), nullable=False, unique=True)
    type_document = db.Column(db.String(32), nullable=False, default="autre")  # registre_commerce, dfe, piece_identite, autre
    taille_fichier = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    contribuable = db.relationship("Contribuable", backref=db.backref("documents", lazy=True))

    @property
    def extension(self) -> str:
        return self.nom_fichier.rsplit(".", 1)[-1].lower() if "." in self.nom_fichier else ""

    @property
    def is_image(self) -> bool:
        return self.extension in IMAGE_EXTENSIONS

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contribuable_id": self.contribuable_id,
            "nom_fichier": self.nom_fichier,
            "chemin_fichier": self.chemin_fichier,
            "type_document": self.type_document,
            "taille_fichier": self.taille_fichier,
            "is_image": self.is_image,
            "created_at": to_utc_z(self.created_at),
        }
