"""Mission engine schema: seasons, active-season lock, missions, bandit arm states.

Revision ID: 001_mission_engine
Revises:
Create Date: 2026-10-19

Creates:
- seasons table for org-wide OKRs
- active_seasons lock table with a partial unique index on is_active
- missions table with selection diagnostics and edit history
- bandit_arm_states table with Beta posteriors per (user, arm)
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '001_mission_engine'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create enum types
    op.execute("CREATE TYPE dimension AS ENUM ('LU', 'Q', 'O')")
    op.execute("CREATE TYPE usermode AS ENUM ('EARN', 'LEARN', 'TEAM')")

    # Create seasons table
    op.create_table(
        'seasons',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('target_dimension', postgresql.ENUM('LU', 'Q', 'O', name='dimension', create_type=False),
                  nullable=False, server_default='Q'),
        sa.Column('focus_kpi', sa.String(50), nullable=False, server_default='custom_okr'),
        sa.Column('objective', sa.Text, nullable=False),
        sa.Column('key_result', sa.Text, nullable=False),
        sa.Column('strategy_name', sa.Text, nullable=False),
        sa.Column('narrative_text', sa.Text, nullable=True),
        sa.Column('ai_message', sa.Text, nullable=True),
        sa.Column('icon_char', sa.String(32), nullable=False, server_default='construction'),
        sa.Column('theme_color', sa.String(16), nullable=False, server_default='#475569'),
        sa.Column('is_default', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('start_at', sa.DateTime, nullable=False),
        sa.Column('end_at', sa.DateTime, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_seasons_created_at', 'seasons', ['created_at'])

    # Create active_seasons lock table
    op.create_table(
        'active_seasons',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('season_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('seasons.id', ondelete='CASCADE'), nullable=False),
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    # At most one active row; concurrent creators lose with a unique violation
    op.create_index(
        'uq_active_seasons_single_active',
        'active_seasons',
        ['is_active'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    # Create missions table
    op.create_table(
        'missions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('season_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('seasons.id', ondelete='SET NULL'), nullable=True),
        sa.Column('phase_index', sa.Integer, nullable=False, server_default='0'),
        sa.Column('arm_id', sa.String(32), nullable=True),
        sa.Column('mode', postgresql.ENUM('EARN', 'LEARN', 'TEAM', name='usermode', create_type=False),
                  nullable=True),
        sa.Column('target_dimension', postgresql.ENUM('LU', 'Q', 'O', name='dimension', create_type=False),
                  nullable=False, server_default='Q'),
        sa.Column('sample_value', sa.Float, nullable=True),
        sa.Column('ucb_bonus', sa.Float, nullable=True),
        sa.Column('context_boost', sa.Float, nullable=True),
        sa.Column('final_score', sa.Float, nullable=True),
        sa.Column('action', sa.Text, nullable=False),
        sa.Column('hint', sa.Text, nullable=False),
        sa.Column('is_default', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('original_action', sa.Text, nullable=True),
        sa.Column('original_hint', sa.Text, nullable=True),
        sa.Column('change_reason', sa.Text, nullable=True),
        sa.Column('edited_at', sa.DateTime, nullable=True),
        sa.Column('feedback_rating', sa.Integer, nullable=True),
        sa.Column('feedback_at', sa.DateTime, nullable=True),
        sa.Column('last_outcome_window_end', sa.DateTime, nullable=True),
        sa.Column('mission_end_at', sa.DateTime, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_missions_user_created', 'missions', ['user_id', 'created_at'])
    op.create_index('ix_missions_season_id', 'missions', ['season_id'])

    # Create bandit_arm_states table
    op.create_table(
        'bandit_arm_states',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('arm_id', sa.String(32), nullable=False),
        sa.Column('alpha', sa.Float, nullable=False, server_default='2.0'),
        sa.Column('beta', sa.Float, nullable=False, server_default='2.0'),
        sa.Column('trials', sa.Integer, nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'arm_id', name='uq_bandit_arm_states_user_arm'),
    )
    op.create_index('ix_bandit_arm_states_user_id', 'bandit_arm_states', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_bandit_arm_states_user_id', table_name='bandit_arm_states')
    op.drop_table('bandit_arm_states')

    op.drop_index('ix_missions_season_id', table_name='missions')
    op.drop_index('ix_missions_user_created', table_name='missions')
    op.drop_table('missions')

    op.drop_index('uq_active_seasons_single_active', table_name='active_seasons')
    op.drop_table('active_seasons')

    op.drop_index('ix_seasons_created_at', table_name='seasons')
    op.drop_table('seasons')

    # Drop enum types
    op.execute("DROP TYPE IF EXISTS usermode")
    op.execute("DROP TYPE IF EXISTS dimension")
