# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/taxcontrib/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@taxcontrib.local]
#   Idempotent bootstrap: default organisation (public registrations) and a first admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organisation management:
# - python -m flask orgs list
# - python -m flask orgs create --nom "Centre des impôts Nord"
#
# Staff inspection/bootstrap:
# - python -m flask staff list [--org-id <uuid>]
# - python -m flask staff create --org-id <uuid> --email a@b.c --nom "Awa Koné" --role admin
#   Creates identity + profile + role (prompts for the password). An email that
#   already signed up without profile is provisioned instead.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
# - python -m flask maintenance cleanup-security-events --retention-days 90
# - python -m flask maintenance reconcile-storage [--delete] [--grace-seconds N]
#   Report storage objects without metadata (and rows without objects); --delete removes the objects.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Contribuable, Organisation, Profile, UserRole
from .models.auth import ROLE_ADMIN, VALID_ROLES
from .services import maintenance_service, session_service, staff_service
from .services.tenant_service import ensure_organisation
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@taxcontrib.local', show_default=True)
@click.option('--admin-password', default='Password123!', show_default=True)
@click.option('--admin-nom', default='Administrateur', show_default=True)
@with_appcontext
def init_system(admin_email, admin_password, admin_nom):
    """
    Create the default organisation and a first admin.

    The default organisation (DEFAULT_ORGANISATION_ID) receives every
    public registration.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing TaxContrib...")

    db.create_all()

    org = ensure_organisation(
        current_app.config["DEFAULT_ORGANISATION_ID"],
        current_app.config["DEFAULT_ORGANISATION_NAME"],
    )
    click.echo(f"PASS Default organisation: {org.nom} (ID: {org.id})")

    has_admin = db.session.query(UserRole).filter_by(organisation_id=org.id, role=ROLE_ADMIN).first()
    if has_admin:
        click.echo("PASS Admin already present, skipping")
        return

    try:
        profile = staff_service.provision_staff(org.id, {
            "email": admin_email,
            "password": admin_password,
            "nom": admin_nom,
            "role": ROLE_ADMIN,
        })
    except ValidationError as e:
        click.echo(f"FAIL Could not create admin: {e}")
        return

    click.echo(f"PASS Created admin {admin_email} (profile {profile.id})")
    click.echo("WARN Change the default password before going live")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('orgs')
def orgs_group():
    """Organisation (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    orgs = db.session.query(Organisation).order_by(Organisation.created_at).all()

    if not orgs:
        click.echo("No organisations found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<38} {'Nom':<35} {'Staff':<7} {'Contribuables'}")
    click.echo("=" * 100)

    for org in orgs:
        staff_count = db.session.query(Profile).filter_by(organisation_id=org.id).count()
        record_count = db.session.query(Contribuable).filter_by(organisation_id=org.id).count()
        click.echo(f"{org.id:<38} {org.nom:<35} {staff_count:<7} {record_count}")

    click.echo("=" * 100 + "\n")


@orgs_group.command('create')
@click.option('--nom', required=True, help='Organisation name')
@with_appcontext
def create_org_cli(nom):
    org = Organisation(nom=nom)
    db.session.add(org)
    db.session.commit()
    click.echo(f"PASS Created organisation: {org.nom} (ID: {org.id})")


@click.group('staff')
def staff_group():
    """Staff inspection and bootstrap commands."""


@staff_group.command('create')
@click.option('--org-id', help='Organisation ID (default organisation if omitted)')
@click.option('--email', prompt=True)
@click.option('--nom', prompt=True)
@click.option('--numero-travail', default=None)
@click.option('--role', type=click.Choice(list(VALID_ROLES)), default='personnel', show_default=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_staff_cli(org_id, email, nom, numero_travail, role, password):
    """
    Create a staff member.

    Password must meet strength requirements:
    8+ chars, uppercase, lowercase, digit, special char.
    """
    org_id = org_id or current_app.config["DEFAULT_ORGANISATION_ID"]
    if not db.session.get(Organisation, org_id):
        click.echo(f"FAIL Organisation {org_id} not found. Run 'python -m flask system init' first.")
        return

    payload = {"email": email, "password": password, "nom": nom, "role": role}
    if numero_travail:
        payload["numero_travail"] = numero_travail

    try:
        profile = staff_service.provision_staff(org_id, payload)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created {role} {email} (profile {profile.id}) in organisation {org_id}")


@staff_group.command('list')
@click.option('--org-id', help='Filter by organisation ID')
@with_appcontext
def list_staff_cli(org_id):
    query = db.session.query(Profile)
    if org_id:
        query = query.filter_by(organisation_id=org_id)
    profiles = query.order_by(Profile.created_at).all()

    if not profiles:
        click.echo("No staff found.")
        return

    click.echo("\n" + "=" * 110)
    click.echo(f"{'Profile':<38} {'Nom':<25} {'Email':<30} {'Role':<10} {'Active'}")
    click.echo("=" * 110)

    for profile in profiles:
        data = staff_service.staff_to_dict(profile)
        active_str = "Yes" if data["is_active"] else "No"
        click.echo(f"{profile.id:<38} {profile.nom:<25} {data['email'] or '-':<30} {data['role'] or 'none':<10} {active_str}")

    click.echo("=" * 110 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired/revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} sessions.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


@maintenance_group.command('reconcile-storage')
@click.option('--delete', 'delete_orphans', is_flag=True, help='Remove orphaned storage objects')
@click.option('--grace-seconds', type=int, default=None,
              help='Skip objects written more recently (default: STORAGE_RECONCILE_GRACE_SECONDS)')
@with_appcontext
def reconcile_storage_cli(delete_orphans, grace_seconds):
    report = maintenance_service.reconcile_storage(delete=delete_orphans, grace_seconds=grace_seconds)

    click.echo(f"Orphaned objects: {len(report['orphaned_objects'])}")
    for key in report["orphaned_objects"]:
        click.echo(f"  {key}")
    if report["in_flight"]:
        click.echo(f"Skipped {len(report['in_flight'])} recent objects (upload may be in flight).")
    click.echo(f"Documents without object: {len(report['dangling_documents'])}")
    for key in report["dangling_documents"]:
        click.echo(f"  {key}")

    if delete_orphans:
        click.echo(f"Removed {len(report['removed'])} objects, {len(report['failed'])} failures.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)
    app.cli.add_command(staff_group)
    app.cli.add_command(maintenance_group)
