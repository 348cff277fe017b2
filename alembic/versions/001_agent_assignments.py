"""Add users, candidate profiles, agent assignments and audit log tables

Revision ID: 001_agent_assignments
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_agent_assignments'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create agent assignment tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_status', 'users', ['status'])

    op.create_table(
        'candidate_profiles',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('skills', sa.JSON(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('salary_min', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('salary_max', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('salary_currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('available_from', sa.DateTime(timezone=True), nullable=True),
        sa.Column('remote', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('relocation', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('experience_level', sa.String(length=20), nullable=False, server_default='entry'),
        sa.Column('resume_status', sa.String(length=20), nullable=False, server_default='not_uploaded'),
        sa.Column('profile_completion', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_candidate_profiles_user_id', 'candidate_profiles', ['user_id'], unique=True)

    op.create_table(
        'agent_assignments',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('agent_id', sa.BigInteger(), nullable=False),
        sa.Column('assigned_by', sa.BigInteger(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps(),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['agent_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_by'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_agent_assignments_agent_id', 'agent_assignments', ['agent_id'], unique=True)
    op.create_index('ix_agent_assignments_status', 'agent_assignments', ['status'])

    # One owner per resource across all assignments
    op.create_table(
        'agent_assignment_hrs',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('assignment_id', sa.BigInteger(), nullable=False),
        sa.Column('hr_user_id', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['assignment_id'], ['agent_assignments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['hr_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('hr_user_id', name='uq_agent_assignment_hrs_hr_user_id'),
    )
    op.create_index('ix_agent_assignment_hrs_assignment_id', 'agent_assignment_hrs', ['assignment_id'])

    op.create_table(
        'agent_assignment_candidates',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('assignment_id', sa.BigInteger(), nullable=False),
        sa.Column('candidate_profile_id', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['assignment_id'], ['agent_assignments.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['candidate_profile_id'], ['candidate_profiles.id'], ondelete='CASCADE'),
        sa.UniqueConstraint(
            'candidate_profile_id', name='uq_agent_assignment_candidates_candidate_profile_id'
        ),
    )
    op.create_index(
        'ix_agent_assignment_candidates_assignment_id', 'agent_assignment_candidates', ['assignment_id']
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('actor_id', sa.BigInteger(), nullable=True),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.BigInteger(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('before', sa.JSON(), nullable=True),
        sa.Column('after', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('business_process', sa.String(length=50), nullable=False, server_default='agent_management'),
        sa.Column('risk_level', sa.String(length=20), nullable=False, server_default='low'),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['actor_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_logs_request_id', 'audit_logs', ['request_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    """Drop agent assignment tables."""
    op.drop_table('audit_logs')
    op.drop_table('agent_assignment_candidates')
    op.drop_table('agent_assignment_hrs')
    op.drop_table('agent_assignments')
    op.drop_table('candidate_profiles')
    op.drop_table('users')
