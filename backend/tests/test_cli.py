# Overview: Pytest coverage for the Flask CLI command groups and health checks.

from taxcontrib.config import DEFAULT_ORGANISATION_ID
from taxcontrib.extensions import db
from taxcontrib.models import Organisation, UserRole
from taxcontrib.services import storage_service


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init", "--admin-email", "chef@cga.test"])
    assert result.exit_code == 0, result.output
    assert "Created admin chef@cga.test" in result.output

    assert db.session.get(Organisation, DEFAULT_ORGANISATION_ID).nom == "Le Royaume CGA"
    assert db_session.query(UserRole).filter_by(role="admin").count() == 1

    result = runner.invoke(args=["system", "init"])
    assert result.exit_code == 0
    assert "Admin already present" in result.output
    assert db_session.query(UserRole).filter_by(role="admin").count() == 1


def test_orgs_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["orgs", "create", "--nom", "Centre Sud"])
    assert result.exit_code == 0
    assert "Centre Sud" in runner.invoke(args=["orgs", "list"]).output


def test_staff_create(app, db_session, default_org):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "staff", "create",
        "--email", "agent2@cga.test",
        "--nom", "Jeanne Mwamba",
        "--role", "personnel",
        "--password", "Password123!",
    ])
    assert result.exit_code == 0, result.output
    assert "PASS" in result.output
    assert "agent2@cga.test" in runner.invoke(args=["staff", "list"]).output


def test_reconcile_storage(app, db_session):
    storage_service.store_file("orphelin/1700000000000abc123-scan.pdf", b"%PDF-1.4")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["maintenance", "reconcile-storage"])
    assert "Orphaned objects: 1" in result.output
    assert storage_service.list_keys() == ["orphelin/1700000000000abc123-scan.pdf"]

    result = runner.invoke(args=["maintenance", "reconcile-storage", "--delete"])
    assert "Removed 1 objects" in result.output
    assert storage_service.list_keys() == []


def test_health_degraded_without_default_org(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["status"] == "degraded"
    assert resp.json["checks"]["public_registration"]["status"] == "degraded"


def test_health_after_init(app, client, db_session):
    app.test_cli_runner().invoke(args=["system", "init"])

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["status"] == "healthy"
    assert resp.json["checks"]["storage"]["details"]["backend"] == "local"
