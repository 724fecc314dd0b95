"""Incident reporting schema: users, incidents, attachments, responses

Revision ID: 001_incident_reporting
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_incident_reporting'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, incidents, incident_attachments and incident_responses."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('department', sa.String(length=100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'incidents',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('date_of_incident', sa.Date(), nullable=False),
        sa.Column('project_name', sa.String(length=255), nullable=True),
        sa.Column('source_of_incident', sa.Text(), nullable=False),
        sa.Column('mistake_committed', sa.Text(), nullable=False),
        sa.Column('preliminary_investigation', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('details_and_findings', sa.Text(), nullable=False),
        sa.Column('suggestions', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='open'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_incidents_user_id', 'incidents', ['user_id'], unique=False)
    op.create_index('ix_incidents_status', 'incidents', ['status'], unique=False)
    op.create_index('ix_incidents_created_at', 'incidents', ['created_at'], unique=False)

    op.create_table(
        'incident_attachments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('incident_id', sa.String(length=36), nullable=False),
        sa.Column('file_url', sa.String(length=1024), nullable=False),
        sa.Column('file_type', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['incident_id'], ['incidents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_incident_attachments_incident_id', 'incident_attachments', ['incident_id'], unique=False)

    op.create_table(
        'incident_responses',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('incident_id', sa.String(length=36), nullable=False),
        sa.Column('investigation_findings', sa.Text(), nullable=True),
        sa.Column('root_cause', sa.Text(), nullable=True),
        sa.Column('action_taken', sa.Text(), nullable=True),
        sa.Column('further_action_plan', sa.Text(), nullable=True),
        sa.Column('acknowledged_by', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['incident_id'], ['incidents.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['acknowledged_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_incident_responses_incident_id', 'incident_responses', ['incident_id'], unique=False)
    op.create_index('ix_incident_responses_acknowledged_by', 'incident_responses', ['acknowledged_by'], unique=False)


def downgrade() -> None:
    """Drop the incident reporting tables."""
    op.drop_index('ix_incident_responses_acknowledged_by', table_name='incident_responses')
    op.drop_index('ix_incident_responses_incident_id', table_name='incident_responses')
    op.drop_table('incident_responses')
    op.drop_index('ix_incident_attachments_incident_id', table_name='incident_attachments')
    op.drop_table('incident_attachments')
    op.drop_index('ix_incidents_created_at', table_name='incidents')
    op.drop_index('ix_incidents_status', table_name='incidents')
    op.drop_index('ix_incidents_user_id', table_name='incidents')
    op.drop_table('incidents')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
