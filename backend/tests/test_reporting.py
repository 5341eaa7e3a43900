# Overview: Pytest coverage for listings, dashboard counts and PDF export.

import pytest

from taxcontrib.errors import AuthorizationDenied
from taxcontrib.services import contribuable_service, export_service, reporting_service
from taxcontrib.validation import CreateTaxpayerInput, ValidationError


def create(identity, acme_fields, **overrides):
    return contribuable_service.create_contribuable(
        identity, CreateTaxpayerInput.from_payload({**acme_fields, **overrides}),
    )


@pytest.fixture
def three_records(db_session, admin, personnel, acme_fields):
    return [
        create(personnel, acme_fields, raison_sociale="SARL TECH", nom_gerant="Lukusa", ville="Lubumbashi"),
        create(personnel, acme_fields, raison_sociale="ENTREPRISE MOKOKO", nom_gerant="Ilunga"),
        create(admin, acme_fields, raison_sociale="COMMERCE NKOUKOU", nom_gerant="Kabongo"),
    ]


class TestListContribuables:

    def test_search_is_case_insensitive_substring(self, admin, three_records):
        names = {r.raison_sociale for r in reporting_service.list_contribuables(admin, q="moko")}
        assert names == {"ENTREPRISE MOKOKO"}

    def test_search_covers_gerant_and_ville(self, admin, three_records):
        assert [r.raison_sociale for r in reporting_service.list_contribuables(admin, q="KABONGO")] == ["COMMERCE NKOUKOU"]
        assert [r.raison_sociale for r in reporting_service.list_contribuables(admin, q="lubum")] == ["SARL TECH"]

    def test_search_folds_accented_letters(self, admin, personnel, acme_fields, three_records):
        create(personnel, acme_fields, raison_sociale="SOCIÉTÉ GÉNÉRALE", ville="Kisangani")

        for q in ("société", "SOCIÉTÉ", "générale"):
            names = [r.raison_sociale for r in reporting_service.list_contribuables(admin, q=q)]
            assert names == ["SOCIÉTÉ GÉNÉRALE"]

    def test_staff_search_folds_accented_letters(self, admin, personnel):
        profiles = [p.nom for p, _role in reporting_service.list_staff(admin, q="KONÉ")]
        assert profiles == ["Awa Koné"]

    def test_like_wildcards_are_literal(self, admin, three_records):
        assert reporting_service.list_contribuables(admin, q="%") == []

    def test_status_filter(self, admin, three_records):
        contribuable_service.validate(admin, three_records[0].id)

        valides = reporting_service.list_contribuables(admin, statut="valide")
        assert [r.id for r in valides] == [three_records[0].id]
        assert len(reporting_service.list_contribuables(admin, statut="en_attente")) == 2
        assert len(reporting_service.list_contribuables(admin, statut="all")) == 3

    def test_invalid_status_filter(self, admin, three_records):
        with pytest.raises(ValidationError):
            reporting_service.list_contribuables(admin, statut="archive")

    def test_newest_first(self, admin, three_records):
        listed = reporting_service.list_contribuables(admin)
        assert listed[0].created_at >= listed[-1].created_at

    def test_list_route(self, client, db_session, personnel_headers, three_records):
        resp = client.get("/api/contribuables?q=tech", headers=personnel_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert resp.json["items"][0]["raison_sociale"] == "SARL TECH"


class TestDashboard:

    def test_admin_sees_organisation(self, admin, three_records):
        contribuable_service.reject(admin, three_records[2].id)

        stats = reporting_service.dashboard_stats(admin)
        assert stats["scope"] == "organisation"
        assert stats["total"] == 3
        assert stats["en_attente"] == 2
        assert stats["rejete"] == 1
        assert stats["staff"] == {"admin": 1, "personnel": 1}

    def test_personnel_sees_own_records(self, personnel, three_records):
        stats = reporting_service.dashboard_stats(personnel)
        assert stats["scope"] == "mine"
        assert stats["total"] == 2
        assert "staff" not in stats


class TestExport:

    def test_render_contribuables(self, three_records):
        pdf = export_service.export_contribuables(three_records, "Le Royaume CGA")
        assert pdf.startswith(b"%PDF")

    def test_special_characters_escaped(self, admin, acme_fields):
        record = create(admin, acme_fields, raison_sociale="Dupont & Fils <SARL>")
        assert export_service.export_contribuables([record], "Le Royaume CGA").startswith(b"%PDF")

    def test_empty_listing(self):
        assert export_service.export_contribuables([], "Le Royaume CGA").startswith(b"%PDF")

    def test_export_route_uses_filters(self, client, db_session, admin_headers, three_records):
        resp = client.get("/api/contribuables/export.pdf?q=moko", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.data.startswith(b"%PDF")

    def test_staff_export_admin_only(self, client, db_session, admin_headers, personnel_headers):
        resp = client.get("/api/staff/export.pdf", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.data.startswith(b"%PDF")

        assert client.get("/api/staff/export.pdf", headers=personnel_headers).status_code == 403

    def test_anonymous_cannot_list(self, db_session):
        with pytest.raises(AuthorizationDenied):
            reporting_service.list_contribuables(None)
