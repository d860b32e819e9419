"""Create company, audit, user, notification and tier history tables

Audits keep company_id / assigned_to as plain indexed UUID columns (no foreign
keys): deleting a company leaves its audits behind until the orphan cleanup job
removes them.

Revision ID: create_audit_tables
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = 'create_audit_tables'
down_revision = None
branch_labels = None
depends_on = None

company_tier = sa.Enum('TIER_1', 'TIER_2', 'TIER_3', name='companytier')
audit_status = sa.Enum('SCHEDULED', 'COMPLETED', 'OVERDUE', name='auditstatus')
user_role = sa.Enum('CEO', 'MANAGER', 'TEAM_MEMBER', name='userrole')
notification_type = sa.Enum('MEETING_REMINDER', 'AUDIT_DUE', 'COMPANY_MILESTONE', name='notificationtype')
tier_change_reason = sa.Enum('AUTOMATIC', 'MANUAL_OVERRIDE', name='tierchangereason')


def upgrade() -> None:
    op.create_table(
        'companies',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.Column('ad_spend', sa.Float, nullable=False, server_default='0'),
        sa.Column('tier', company_tier, nullable=False, server_default='TIER_2'),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        'audits',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('company_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('scheduled_date', sa.DateTime, nullable=False),
        sa.Column('completed_date', sa.DateTime, nullable=True),
        sa.Column('assigned_to', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', audit_status, nullable=False, server_default='SCHEDULED'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_audits_company_id', 'audits', ['company_id'])
    op.create_index('ix_audits_scheduled_date', 'audits', ['scheduled_date'])
    op.create_index('ix_audits_assigned_to', 'audits', ['assigned_to'])
    op.create_index('ix_audits_status', 'audits', ['status'])

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('username', sa.String(100), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('role', user_role, nullable=False, server_default='TEAM_MEMBER'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('related_company_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('scheduled_for', sa.DateTime, nullable=False),
        sa.Column('is_read', sa.Boolean, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    op.create_table(
        'tier_change_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('company_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('old_tier', company_tier, nullable=False),
        sa.Column('new_tier', company_tier, nullable=False),
        sa.Column('reason', tier_change_reason, nullable=False),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_tier_change_logs_company_id', 'tier_change_logs', ['company_id'])
    op.create_index('ix_tier_change_logs_created_at', 'tier_change_logs', ['created_at'])


def downgrade() -> None:
    op.drop_table('tier_change_logs')
    op.drop_table('notifications')
    op.drop_table('users')
    op.drop_table('audits')
    op.drop_table('companies')

    bind = op.get_bind()
    for enum_type in (tier_change_reason, notification_type, user_role, audit_status, company_tier):
        enum_type.drop(bind, checkfirst=True)
