"""initial taxcontrib schema

Revision ID: tc001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete schema:
- organisations: tenant root (default organisation receives public registrations)
- users / profiles / user_roles / session_tokens: identity, staff and roles
- contribuables: taxpayer records with review status
- documents: attachments, storage key namespaced under the contribuable id
- deletion_requests: secondary deletion workflow
- security_events: append-only audit log
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'tc001'
down_revision = None
branch_labels = None
depends_on = None


DEFAULT_ORGANISATION_ID = '00000000-0000-0000-0000-000000000001'


def upgrade():
    # ============================================================================
    # organisations
    # ============================================================================
    op.create_table(
        'organisations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('nom', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # ============================================================================
    # users: authentication identities
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('raw_user_meta_data', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # ============================================================================
    # profiles: staff members
    # ============================================================================
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('nom', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('numero_travail', sa.String(length=64), nullable=True),
        sa.Column('contacts', sa.String(length=255), nullable=True),
        sa.Column('organisation_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['organisation_id'], ['organisations.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index('ix_profiles_organisation_id', 'profiles', ['organisation_id'])

    # ============================================================================
    # user_roles: at most one role per (user, organisation)
    # ============================================================================
    op.create_table(
        'user_roles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('organisation_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['organisation_id'], ['organisations.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'organisation_id', name='uq_user_roles_user_org'),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])
    op.create_index('ix_user_roles_organisation_id', 'user_roles', ['organisation_id'])

    # ============================================================================
    # session_tokens
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # contribuables: taxpayer records
    # ============================================================================
    op.create_table(
        'contribuables',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('raison_sociale', sa.String(length=255), nullable=False),
        sa.Column('ville', sa.String(length=120), nullable=False),
        sa.Column('commune', sa.String(length=120), nullable=False),
        sa.Column('quartier', sa.String(length=120), nullable=True),
        sa.Column('nom_gerant', sa.String(length=120), nullable=False),
        sa.Column('prenom_gerant', sa.String(length=120), nullable=False),
        sa.Column('rccm', sa.String(length=64), nullable=True),
        sa.Column('ncc', sa.String(length=64), nullable=True),
        sa.Column('contact_1', sa.String(length=32), nullable=False),
        sa.Column('contact_2', sa.String(length=32), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('photo_position', sa.String(length=512), nullable=True),
        sa.Column('commentaire', sa.Text(), nullable=True),
        sa.Column('statut', sa.String(length=16), nullable=False, server_default='en_attente'),
        sa.Column('organisation_id', sa.String(length=36), nullable=False),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['organisation_id'], ['organisations.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contribuables_statut', 'contribuables', ['statut'])
    op.create_index('ix_contribuables_organisation_id', 'contribuables', ['organisation_id'])
    op.create_index('ix_contribuables_created_at', 'contribuables', ['created_at'])
    op.create_index('ix_contribuables_org_statut_created', 'contribuables',
                    ['organisation_id', 'statut', 'created_at'])

    # ============================================================================
    # documents
    # ============================================================================
    op.create_table(
        'documents',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('contribuable_id', sa.String(length=36), nullable=False),
        sa.Column('nom_fichier', sa.String(length=255), nullable=False),
        sa.Column('chemin_fichier', sa.String(length=512), nullable=False),
        sa.Column('type_document', sa.String(length=32), nullable=False, server_default='autre'),
        sa.Column('taille_fichier', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['contribuable_id'], ['contribuables.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('chemin_fichier'),
    )
    op.create_index('ix_documents_contribuable_id', 'documents', ['contribuable_id'])

    # ============================================================================
    # deletion_requests
    # ============================================================================
    op.create_table(
        'deletion_requests',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('contribuable_id', sa.String(length=36), nullable=False),
        sa.Column('organisation_id', sa.String(length=36), nullable=False),
        sa.Column('requested_by', sa.String(length=36), nullable=False),
        sa.Column('approved_by', sa.String(length=36), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['organisation_id'], ['organisations.id']),
        sa.ForeignKeyConstraint(['requested_by'], ['users.id']),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deletion_requests_contribuable_id', 'deletion_requests', ['contribuable_id'])
    op.create_index('ix_deletion_requests_organisation_id', 'deletion_requests', ['organisation_id'])
    op.create_index('ix_deletion_requests_status', 'deletion_requests', ['status'])

    # ============================================================================
    # security_events: append-only audit log
    # ============================================================================
    op.create_table(
        'security_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organisation_id', sa.String(length=36), nullable=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_security_events_organisation_id', 'security_events', ['organisation_id'])
    op.create_index('ix_security_events_user_id', 'security_events', ['user_id'])
    op.create_index('ix_security_events_event_type', 'security_events', ['event_type'])
    op.create_index('ix_security_events_success', 'security_events', ['success'])
    op.create_index('ix_security_events_occurred_at', 'security_events', ['occurred_at'])
    op.create_index('ix_security_events_user_type', 'security_events', ['user_id', 'event_type'])
    op.create_index('ix_security_events_org_occurred', 'security_events', ['organisation_id', 'occurred_at'])

    # Default organisation for public registrations
    op.execute(
        sa.text(
            "INSERT INTO organisations (id, nom, created_at, updated_at) "
            "VALUES (:id, :nom, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
        ).bindparams(id=DEFAULT_ORGANISATION_ID, nom='Le Royaume CGA')
    )


def downgrade():
    op.drop_table('security_events')
    op.drop_table('deletion_requests')
    op.drop_table('documents')
    op.drop_table('contribuables')
    op.drop_table('session_tokens')
    op.drop_table('user_roles')
    op.drop_table('profiles')
    op.drop_table('users')
    op.drop_table('organisations')
