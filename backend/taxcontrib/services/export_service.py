# Overview: PDF rendering of filtered listings (ReportLab).

"""
Listing export.

Each export is a titled A4 landscape document: organisation name, export
timestamp, summary counts, then one table row per record of the filtered
set the caller passed in. Nothing is re-queried here, so the PDF always
matches the view it was exported from.
"""

from __future__ import annotations

import io
from xml.sax.saxutils import escape
from typing import Iterable

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .contribuable_service import STATUT_LABELS
from taxcontrib.time_utils import format_local_label, utcnow


HEADER_COLOR = colors.HexColor("#1e40af")

CONTRIBUABLE_COLUMNS = [
    "Raison sociale", "Gérant", "Ville", "Commune", "Contact", "RCCM", "Statut", "Enregistré le",
]

STAFF_COLUMNS = ["Nom", "Email", "Numéro de travail", "Rôle", "Ajouté le"]


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        "ListingTitle",
        parent=styles["Title"],
        fontSize=16,
        textColor=HEADER_COLOR,
        spaceAfter=4,
    ))
    styles.add(ParagraphStyle(
        "ListingMeta",
        parent=styles["Normal"],
        fontSize=9,
        textColor=colors.grey,
    ))
    styles.add(ParagraphStyle(
        "Cell",
        parent=styles["Normal"],
        fontSize=8,
        leading=10,
    ))
    return styles


def _table(header: list[str], rows: list[list[str]], cell_style) -> Table:
    data = [header] + [[Paragraph(escape(str(value or "")), cell_style) for value in row] for row in rows]
    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f3f4f6")]),
    ]))
    return table


def render_listing(title: str, organisation_name: str, summary: list[tuple[str, int]],
                   header: list[str], rows: list[list[str]]) -> bytes:
    """Render one listing document and return the PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        title=title,
    )
    styles = _styles()

    story = [
        Paragraph(title, styles["ListingTitle"]),
        Paragraph(escape(organisation_name), styles["Heading3"]),
        Paragraph(f"Exporté le {format_local_label(utcnow())}", styles["ListingMeta"]),
        Spacer(1, 0.3 * cm),
        Paragraph(" · ".join(f"{label}: {count}" for label, count in summary), styles["Normal"]),
        Spacer(1, 0.4 * cm),
    ]

    if rows:
        story.append(_table(header, rows, styles["Cell"]))
    else:
        story.append(Paragraph("Aucun résultat pour ces filtres.", styles["Normal"]))

    doc.build(story)
    return buffer.getvalue()


def export_contribuables(records: Iterable, organisation_name: str) -> bytes:
    records = list(records)
    rows = [
        [
            r.raison_sociale,
            f"{r.prenom_gerant} {r.nom_gerant}",
            r.ville,
            r.commune,
            r.contact_1,
            r.rccm,
            STATUT_LABELS.get(r.statut, r.statut),
            r.created_at.strftime("%d/%m/%Y") if r.created_at else "",
        ]
        for r in records
    ]

    summary = [("Total", len(records))]
    for statut, label in STATUT_LABELS.items():
        summary.append((label.capitalize(), sum(1 for r in records if r.statut == statut)))

    return render_listing(
        "Liste des contribuables",
        organisation_name,
        summary,
        CONTRIBUABLE_COLUMNS,
        rows,
    )


def export_staff(staff: Iterable[tuple], organisation_name: str) -> bytes:
    """staff: (profile, role) pairs as returned by reporting_service.list_staff."""
    staff = list(staff)
    rows = [
        [
            profile.nom,
            profile.user.email if profile.user else profile.email,
            profile.numero_travail,
            role or "non attribué",
            profile.created_at.strftime("%d/%m/%Y") if profile.created_at else "",
        ]
        for profile, role in staff
    ]

    summary = [
        ("Total", len(staff)),
        ("Administrateurs", sum(1 for _, role in staff if role == "admin")),
        ("Personnel", sum(1 for _, role in staff if role == "personnel")),
    ]

    return render_listing("Liste du personnel", organisation_name, summary, STAFF_COLUMNS, rows)
