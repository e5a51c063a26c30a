"""initial schema

Revision ID: 5c1e0a7d2b94
Revises:
Create Date: 2026-10-01 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5c1e0a7d2b94'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

run_status = sa.Enum('SUCCESS', 'ERROR', 'SKIPPED', name='run_status')
report_severity = sa.Enum('INFO', 'WARNING', 'CRITICAL', name='report_severity')
escalation_severity = sa.Enum('CRITICAL', 'HIGH', 'MEDIUM', 'LOW', name='escalation_severity')
queue_status = sa.Enum('PENDING', 'IN_PROGRESS', 'COMPLETED', 'FAILED', 'CANCELLED', name='queue_status')
session_status = sa.Enum('ACTIVE', 'COMPLETED', 'VOICE_ACTIVE', name='session_status')


def upgrade() -> None:
    op.create_table(
        'task_configs',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('task_name', sa.String(255), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cron_schedule', sa.String(100), nullable=False),
        sa.Column('prompt_template', sa.Text(), nullable=False),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('max_retries', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('consecutive_failures', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_run_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_run_status', run_status, nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'reports',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('task_name', sa.String(255), nullable=True),
        sa.Column('report_type', sa.String(100), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('severity', report_severity, nullable=False),
        sa.Column('model_used', sa.String(100), nullable=True),
        sa.Column('tokens_in', sa.Integer(), nullable=True),
        sa.Column('tokens_out', sa.Integer(), nullable=True),
        sa.Column('cost_estimate', sa.Float(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('acknowledged', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_reports_task_name_created_at', 'reports', ['task_name', 'created_at'])

    op.create_table(
        'escalations',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('severity', escalation_severity, nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('source_task', sa.String(255), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('acknowledged', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('resolved', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'queue_items',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('request_summary', sa.Text(), nullable=False),
        sa.Column('full_context', sa.Text(), nullable=True),
        sa.Column('required_tools', postgresql.JSONB(), nullable=False),
        sa.Column('priority', sa.String(2), nullable=False, server_default='P2'),
        sa.Column('queued_by', sa.String(50), nullable=False, server_default='railway'),
        sa.Column('target_mode', sa.String(50), nullable=False, server_default='cowork'),
        sa.Column('status', queue_status, nullable=False),
        sa.Column('queued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('result_summary', sa.Text(), nullable=True),
        sa.Column('result_detail', sa.Text(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
    )

    op.create_table(
        'conversation_sessions',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.Column('conversation_type', sa.String(50), nullable=False, server_default='general'),
        sa.Column('messages', postgresql.JSONB(), nullable=False),
        sa.Column('system_prompt', sa.Text(), nullable=False),
        sa.Column('context', postgresql.JSONB(), nullable=False),
        sa.Column('status', session_status, nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'memory',
        sa.Column('key', sa.String(255), primary_key=True),
        sa.Column('value', postgresql.JSONB(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'notification_settings',
        sa.Column('user_email', sa.String(255), primary_key=True),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('digest_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('digest_time', sa.String(5), nullable=False, server_default='14:00'),
        sa.Column('immediate_severities', postgresql.JSONB(), nullable=False),
        sa.Column('quiet_hours_start', sa.String(5), nullable=True),
        sa.Column('quiet_hours_end', sa.String(5), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('notification_settings')
    op.drop_table('memory')
    op.drop_table('conversation_sessions')
    op.drop_table('queue_items')
    op.drop_table('escalations')
    op.drop_index('ix_reports_task_name_created_at', table_name='reports')
    op.drop_table('reports')
    op.drop_table('task_configs')
    for enum in (session_status, queue_status, escalation_severity, report_severity, run_status):
        enum.drop(op.get_bind(), checkfirst=True)
