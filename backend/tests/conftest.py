"""
Pytest fixtures for TaxContrib backend tests.

Provides test database setup, two organisations with admin and personnel
staff, local document storage in a temporary directory, and the test client.
"""

import os
import shutil

import pytest

from taxcontrib import create_app
from taxcontrib.config import DEFAULT_ORGANISATION_ID
from taxcontrib.extensions import db
from taxcontrib.models import Organisation
from taxcontrib.services import identity_service
from taxcontrib.services.staff_service import provision_staff


PASSWORD = "Password123!"

ACME_FIELDS = {
    "raison_sociale": "ACME",
    "ville": "Kinshasa",
    "commune": "Gombe",
    "nom_gerant": "Mbemba",
    "prenom_gerant": "Jean",
    "contact_1": "+243123456789",
}


@pytest.fixture(scope='session')
def storage_dir(tmp_path_factory):
    return str(tmp_path_factory.mktemp("storage"))


@pytest.fixture(scope='session')
def app(storage_dir):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STORAGE_BACKEND': 'local',
        'LOCAL_STORAGE_PATH': storage_dir,
        'PUBLIC_REGISTER_MAX_PER_HOUR': 3,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app, storage_dir):
    """Create fresh database (and empty storage) for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        for name in os.listdir(storage_dir):
            shutil.rmtree(os.path.join(storage_dir, name), ignore_errors=True)

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def default_org(db_session):
    """The default organisation: receives public registrations."""
    org = Organisation(id=DEFAULT_ORGANISATION_ID, nom="Le Royaume CGA")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def other_org(db_session):
    """A second tenant."""
    org = Organisation(nom="Centre des impôts Nord")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def admin_profile(db_session, default_org):
    return provision_staff(default_org.id, {
        "email": "admin@cga.test",
        "password": PASSWORD,
        "nom": "Awa Koné",
        "numero_travail": "ADM-001",
        "role": "admin",
    })


@pytest.fixture(scope='function')
def personnel_profile(db_session, default_org):
    return provision_staff(default_org.id, {
        "email": "agent@cga.test",
        "password": PASSWORD,
        "nom": "Paul Mbala",
        "numero_travail": "AG-014",
        "role": "personnel",
    })


@pytest.fixture(scope='function')
def other_admin_profile(db_session, other_org):
    return provision_staff(other_org.id, {
        "email": "admin@nord.test",
        "password": PASSWORD,
        "nom": "Marie Nsimba",
        "role": "admin",
    })


@pytest.fixture(scope='function')
def admin(admin_profile):
    """ResolvedIdentity of the default organisation's admin."""
    return identity_service.resolve(admin_profile.user_id)


@pytest.fixture(scope='function')
def personnel(personnel_profile):
    return identity_service.resolve(personnel_profile.user_id)


@pytest.fixture(scope='function')
def other_admin(other_admin_profile):
    return identity_service.resolve(other_admin_profile.user_id)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_profile):
    return auth_headers(get_auth_token(client, "admin@cga.test"))


@pytest.fixture(scope='function')
def personnel_headers(client, personnel_profile):
    return auth_headers(get_auth_token(client, "agent@cga.test"))


@pytest.fixture(scope='function')
def other_admin_headers(client, other_admin_profile):
    return auth_headers(get_auth_token(client, "admin@nord.test"))


@pytest.fixture(scope='function')
def acme_fields():
    """Round-trip intake form used across workflow tests."""
    return dict(ACME_FIELDS)
