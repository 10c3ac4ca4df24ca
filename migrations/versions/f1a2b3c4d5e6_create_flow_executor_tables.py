"""Create flow executor tables

Revision ID: f1a2b3c4d5e6
Revises:
Create Date: 2025-01-14

Flow projects with their published graph versions, legacy variables and
vault secrets, execution records, monitoring logs, endpoint analytics and
the table projects used by the data-table node.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = 'f1a2b3c4d5e6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'flow_projects',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('endpoint_slug', sa.String(255), nullable=False, unique=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_deployed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('deployment_status', sa.String(50), nullable=False, server_default='draft'),
        sa.Column('webhook_secret', sa.String(255), nullable=True),
        sa.Column('signature_provider', sa.String(50), nullable=True, server_default='none'),
        sa.Column('signature_header_name', sa.String(255), nullable=True),
        sa.Column('signature_algorithm', sa.String(50), nullable=True),
        sa.Column('external_webhook_secret', sa.String(512), nullable=True),
        sa.Column('signature_timestamp_tolerance', sa.Integer(), nullable=True),
        sa.Column('signature_require_timestamp', sa.Boolean(), nullable=False, server_default='false'),
    )
    op.create_index('idx_flow_projects_endpoint_slug', 'flow_projects', ['endpoint_slug'])

    op.create_table(
        'flow_data',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            'flow_project_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('flow_projects.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('nodes', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('edges', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default='false'),
    )
    op.create_index('idx_flow_data_project_published', 'flow_data', ['flow_project_id', 'is_published'])

    op.create_table(
        'flow_variables',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            'flow_project_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('flow_projects.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('is_secret', sa.Boolean(), nullable=False, server_default='false'),
        sa.UniqueConstraint('flow_project_id', 'name', name='uq_flow_variables_project_name'),
    )

    op.create_table(
        'flow_secrets',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            'flow_project_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('flow_projects.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('encrypted_value', sa.Text(), nullable=False),
        sa.UniqueConstraint('flow_project_id', 'name', name='uq_flow_secrets_project_name'),
    )

    op.create_table(
        'flow_executions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'flow_data_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('flow_data.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('status', sa.String(20), nullable=False, server_default='running'),
        sa.Column('started_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('execution_time_ms', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('logs', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
    )
    op.create_index('idx_flow_executions_flow_data_id', 'flow_executions', ['flow_data_id'])
    op.create_index('idx_flow_executions_status', 'flow_executions', ['status'])

    op.create_table(
        'flow_monitoring_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('flow_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('execution_id', sa.String(64), nullable=False),
        sa.Column('node_id', sa.String(255), nullable=True),
        sa.Column('level', sa.String(20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    )
    op.create_index('idx_flow_monitoring_logs_flow_id', 'flow_monitoring_logs', ['flow_id'])
    op.create_index('idx_flow_monitoring_logs_execution_id', 'flow_monitoring_logs', ['execution_id'])
    op.create_index('idx_flow_monitoring_logs_level', 'flow_monitoring_logs', ['level'])

    op.create_table(
        'flow_endpoint_analytics',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            'flow_project_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('flow_projects.id', ondelete='CASCADE'),
            nullable=False
        ),
        sa.Column('method', sa.String(10), nullable=False),
        sa.Column('status_code', sa.Integer(), nullable=False),
        sa.Column('response_time_ms', sa.Integer(), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('request_params', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('request_size_bytes', sa.Integer(), nullable=True),
        sa.Column('response_size_bytes', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
    )
    op.create_index('idx_flow_endpoint_analytics_project_id', 'flow_endpoint_analytics', ['flow_project_id'])
    op.create_index('idx_flow_endpoint_analytics_created_at', 'flow_endpoint_analytics', ['created_at'])

    op.create_table(
        'table_projects',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('records', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('schema', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table('table_projects')
    op.drop_index('idx_flow_endpoint_analytics_created_at', table_name='flow_endpoint_analytics')
    op.drop_index('idx_flow_endpoint_analytics_project_id', table_name='flow_endpoint_analytics')
    op.drop_table('flow_endpoint_analytics')
    op.drop_index('idx_flow_monitoring_logs_level', table_name='flow_monitoring_logs')
    op.drop_index('idx_flow_monitoring_logs_execution_id', table_name='flow_monitoring_logs')
    op.drop_index('idx_flow_monitoring_logs_flow_id', table_name='flow_monitoring_logs')
    op.drop_table('flow_monitoring_logs')
    op.drop_index('idx_flow_executions_status', table_name='flow_executions')
    op.drop_index('idx_flow_executions_flow_data_id', table_name='flow_executions')
    op.drop_table('flow_executions')
    op.drop_table('flow_secrets')
    op.drop_table('flow_variables')
    op.drop_index('idx_flow_data_project_published', table_name='flow_data')
    op.drop_table('flow_data')
    op.drop_index('idx_flow_projects_endpoint_slug', table_name='flow_projects')
    op.drop_table('flow_projects')
