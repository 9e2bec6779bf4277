"""Credentialing schema - records, phases, documents, verifications, alerts, audit.

Revision ID: 0001_credentialing_schema
Revises:
Create Date: 2026-10-18

Creates:
- providers (directory profile read by credentialing)
- credentialing_records, credentialing_phases, credentialing_notes
- credentialing_documents
- credentialing_verifications
- credentialing_alerts
- credentialing_audit_log
- oig_exclusions
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_credentialing_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ==========================================================================
    # providers
    # ==========================================================================
    op.create_table(
        'providers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('license_number', sa.String(50), nullable=True),
        sa.Column('license_state', sa.String(2), nullable=True),
        sa.Column('npi_number', sa.String(10), nullable=True),
        sa.Column('dea_number', sa.String(9), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # ==========================================================================
    # credentialing_records
    # ==========================================================================
    op.create_table(
        'credentialing_records',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('provider_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('submitted_identity_number', sa.String(10), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_id'),
    )
    op.create_index('ix_credentialing_records_status', 'credentialing_records', ['status'])

    op.create_table(
        'credentialing_phases',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('record_id', sa.Uuid(), nullable=False),
        sa.Column('phase', sa.String(40), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['record_id'], ['credentialing_records.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('record_id', 'phase', name='uq_credentialing_phases_record_phase'),
    )

    op.create_table(
        'credentialing_notes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('record_id', sa.Uuid(), nullable=False),
        sa.Column('author_id', sa.String(64), nullable=False),
        sa.Column('category', sa.String(20), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['record_id'], ['credentialing_records.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_credentialing_notes_record', 'credentialing_notes', ['record_id', 'created_at']
    )

    # ==========================================================================
    # credentialing_documents
    # ==========================================================================
    op.create_table(
        'credentialing_documents',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('provider_id', sa.Uuid(), nullable=False),
        sa.Column('document_type', sa.String(40), nullable=False),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('storage_key', sa.String(512), nullable=False),
        sa.Column('content_type', sa.String(100), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('checksum_sha256', sa.String(64), nullable=False),
        sa.Column('expiration_date', sa.Date(), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False),
        sa.Column('verification_notes', sa.Text(), nullable=True),
        sa.Column('verified_by', sa.String(64), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_credentialing_documents_provider',
        'credentialing_documents',
        ['provider_id', 'document_type'],
    )
    op.create_index(
        'ix_credentialing_documents_expiration', 'credentialing_documents', ['expiration_date']
    )

    # ==========================================================================
    # credentialing_verifications
    # ==========================================================================
    op.create_table(
        'credentialing_verifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('provider_id', sa.Uuid(), nullable=False),
        sa.Column('verification_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('source', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('next_check_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'provider_id',
            'verification_type',
            name='uq_credentialing_verifications_provider_type',
        ),
    )

    # ==========================================================================
    # credentialing_alerts
    # ==========================================================================
    op.create_table(
        'credentialing_alerts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('provider_id', sa.Uuid(), nullable=False),
        sa.Column('alert_type', sa.String(50), nullable=False),
        sa.Column('dedupe_key', sa.String(100), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('resolved', sa.Boolean(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_by', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_credentialing_alerts_condition',
        'credentialing_alerts',
        ['provider_id', 'alert_type', 'dedupe_key', 'resolved'],
    )
    op.create_index('ix_credentialing_alerts_open', 'credentialing_alerts', ['resolved', 'severity'])

    # ==========================================================================
    # credentialing_audit_log
    # ==========================================================================
    op.create_table(
        'credentialing_audit_log',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('provider_id', sa.Uuid(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('actor_id', sa.String(64), nullable=False),
        sa.Column('target_type', sa.String(50), nullable=True),
        sa.Column('target_id', sa.String(64), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('prev_hash', sa.String(64), nullable=True),
        sa.Column('entry_hash', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'provider_id', 'sequence', name='uq_credentialing_audit_provider_sequence'
        ),
    )
    op.create_index(
        'ix_credentialing_audit_provider',
        'credentialing_audit_log',
        ['provider_id', 'created_at'],
    )

    # ==========================================================================
    # oig_exclusions
    # ==========================================================================
    op.create_table(
        'oig_exclusions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('middle_name', sa.String(100), nullable=True),
        sa.Column('business_name', sa.String(255), nullable=True),
        sa.Column('specialty', sa.String(100), nullable=True),
        sa.Column('npi', sa.String(10), nullable=True),
        sa.Column('state', sa.String(2), nullable=True),
        sa.Column('exclusion_type', sa.String(20), nullable=True),
        sa.Column('exclusion_date', sa.Date(), nullable=True),
        sa.Column('reinstatement_date', sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_oig_exclusions_name', 'oig_exclusions', ['last_name', 'first_name'])
    op.create_index('ix_oig_exclusions_npi', 'oig_exclusions', ['npi'])


def downgrade() -> None:
    op.drop_table('oig_exclusions')
    op.drop_table('credentialing_audit_log')
    op.drop_table('credentialing_alerts')
    op.drop_table('credentialing_verifications')
    op.drop_table('credentialing_documents')
    op.drop_table('credentialing_notes')
    op.drop_table('credentialing_phases')
    op.drop_table('credentialing_records')
    op.drop_table('providers')
