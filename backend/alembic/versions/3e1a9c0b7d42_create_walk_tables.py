"""create walk_schedules, walk_participants, walk_sessions, user_statistics

Revision ID: 3e1a9c0b7d42
Revises:
Create Date: 2026-10-18 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3e1a9c0b7d42'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    tables = inspector.get_table_names()

    if 'walk_schedules' not in tables:
        op.create_table(
            'walk_schedules',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('organizer_id', sa.String(64), nullable=False),
            sa.Column('partner_id', sa.String(64), nullable=True),
            sa.Column('title', sa.String(255), nullable=False),
            sa.Column('description', sa.String(), nullable=True),
            sa.Column('scheduled_date', sa.Date(), nullable=False),
            sa.Column('scheduled_time', sa.Time(), nullable=False),
            sa.Column('duration_minutes', sa.Integer(), nullable=True),
            sa.Column('location_name', sa.String(255), nullable=False),
            sa.Column('location_address', sa.String(), nullable=True),
            sa.Column('location_coordinates', sa.JSON(), nullable=True),
            sa.Column('max_participants', sa.Integer(), nullable=False),
            sa.Column('is_group_walk', sa.Boolean(), nullable=False),
            sa.Column('status', sa.String(20), server_default='scheduled', nullable=False),
            sa.Column('reminder_sent', sa.Boolean(), nullable=False),
            sa.Column('notes', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_walk_schedules_id', 'walk_schedules', ['id'])
        op.create_index('ix_walk_schedules_organizer_id', 'walk_schedules', ['organizer_id'])
        op.create_index('ix_walk_schedules_partner_id', 'walk_schedules', ['partner_id'])

    if 'walk_participants' not in tables:
        op.create_table(
            'walk_participants',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('walk_id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(64), nullable=False),
            sa.Column('dog_id', sa.String(64), nullable=True),
            sa.Column('status', sa.String(20), nullable=False),
            sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('left_at', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(['walk_id'], ['walk_schedules.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('walk_id', 'user_id', name='uq_walk_participants_walk_user')
        )
        op.create_index('ix_walk_participants_id', 'walk_participants', ['id'])
        op.create_index('ix_walk_participants_walk_id', 'walk_participants', ['walk_id'])
        op.create_index('ix_walk_participants_user_id', 'walk_participants', ['user_id'])

    if 'walk_sessions' not in tables:
        op.create_table(
            'walk_sessions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(64), nullable=False),
            sa.Column('dog_id', sa.String(64), nullable=True),
            sa.Column('scheduled_walk_id', sa.Integer(), nullable=True),
            sa.Column('start_time', sa.DateTime(), nullable=False),
            sa.Column('end_time', sa.DateTime(), nullable=True),
            sa.Column('duration_minutes', sa.Integer(), nullable=False),
            sa.Column('distance_km', sa.Float(), nullable=False),
            sa.Column('steps', sa.Integer(), nullable=False),
            sa.Column('calories_burned', sa.Integer(), nullable=False),
            sa.Column('route_points', sa.JSON(), nullable=True),
            sa.Column('start_location', sa.JSON(), nullable=True),
            sa.Column('end_location', sa.JSON(), nullable=True),
            sa.Column('notes', sa.String(), nullable=True),
            sa.Column('is_completed', sa.Boolean(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
            sa.ForeignKeyConstraint(['scheduled_walk_id'], ['walk_schedules.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_walk_sessions_id', 'walk_sessions', ['id'])
        op.create_index('ix_walk_sessions_user_id', 'walk_sessions', ['user_id'])
        op.create_index('ix_walk_sessions_start_time', 'walk_sessions', ['start_time'])

    if 'user_statistics' not in tables:
        op.create_table(
            'user_statistics',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.String(64), nullable=False),
            sa.Column('total_walks', sa.Integer(), nullable=False),
            sa.Column('total_distance_km', sa.Float(), nullable=False),
            sa.Column('total_duration_minutes', sa.Integer(), nullable=False),
            sa.Column('total_steps', sa.Integer(), nullable=False),
            sa.Column('total_calories_burned', sa.Integer(), nullable=False),
            sa.Column('current_streak_days', sa.Integer(), nullable=False),
            sa.Column('longest_streak_days', sa.Integer(), nullable=False),
            sa.Column('last_walk_date', sa.Date(), nullable=True),
            sa.Column('version', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_user_statistics_id', 'user_statistics', ['id'])
        op.create_index('ix_user_statistics_user_id', 'user_statistics', ['user_id'], unique=True)


def downgrade() -> None:
    op.execute('DROP TABLE IF EXISTS user_statistics')
    op.execute('DROP TABLE IF EXISTS walk_sessions')
    op.execute('DROP TABLE IF EXISTS walk_participants')
    op.execute('DROP TABLE IF EXISTS walk_schedules')
