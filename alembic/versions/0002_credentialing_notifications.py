"""Provider notification outbox and email preferences.

Revision ID: 0002_credentialing_notifications
Revises: 0001_credentialing_schema
Create Date: 2026-10-18

Creates:
- credentialing_notifications (queued provider emails)
- credentialing_notification_preferences (per-provider toggles)
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002_credentialing_notifications'
down_revision = '0001_credentialing_schema'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ==========================================================================
    # credentialing_notifications
    # ==========================================================================
    op.create_table(
        'credentialing_notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('provider_id', sa.Uuid(), nullable=False),
        sa.Column('kind', sa.String(50), nullable=False),
        sa.Column('recipient_email', sa.String(255), nullable=False),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('external_message_id', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_credentialing_notifications_status',
        'credentialing_notifications',
        ['status', 'created_at'],
    )
    op.create_index(
        'ix_credentialing_notifications_provider',
        'credentialing_notifications',
        ['provider_id', 'created_at'],
    )

    # ==========================================================================
    # credentialing_notification_preferences
    # ==========================================================================
    op.create_table(
        'credentialing_notification_preferences',
        sa.Column('provider_id', sa.Uuid(), nullable=False),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            'document_upload_confirmation', sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column('document_verified', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('document_expiring', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('phase_completed', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('credentialing_approved', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('alerts', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('critical_alerts_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('provider_id'),
    )


def downgrade() -> None:
    op.drop_table('credentialing_notification_preferences')
    op.drop_table('credentialing_notifications')
