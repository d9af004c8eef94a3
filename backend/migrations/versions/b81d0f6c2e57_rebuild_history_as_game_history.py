"""rebuild history as game_history indexed by ended_at

The history table is a cache of finished sessions, not a source of truth:
the old table and its timestamp index are dropped outright, not copied.

Revision ID: b81d0f6c2e57
Revises: 3a7c51e2b904
Create Date: 2025-10-14 18:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b81d0f6c2e57'
down_revision = '3a7c51e2b904'
branch_labels = None
depends_on = None


def _create_game_history():
    op.create_table(
        'game_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('schema', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(length=16), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
    )
    op.create_index('ix_game_history_ended_at', 'game_history', ['ended_at'])
    op.create_index('ix_game_history_mode', 'game_history', ['mode'])


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'history' in existing_tables:
        op.drop_table('history')
    if 'game_history' in existing_tables:
        op.drop_table('game_history')
    _create_game_history()


def downgrade():
    op.drop_index('ix_game_history_mode', table_name='game_history')
    op.drop_index('ix_game_history_ended_at', table_name='game_history')
    op.drop_table('game_history')
    op.create_table(
        'history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('schema', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(length=16), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
    )
    op.create_index('by_timestamp', 'history', ['timestamp'])
    op.create_index('by_mode', 'history', ['mode'])
