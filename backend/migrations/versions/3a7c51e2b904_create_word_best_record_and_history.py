"""create word, best_record and legacy history tables

Revision ID: 3a7c51e2b904
Revises:
Create Date: 2025-09-02 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3a7c51e2b904'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'word' not in existing_tables:
        op.create_table(
            'word',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('word', sa.String(length=128), nullable=False),
            sa.Column('frequency', sa.Integer(), nullable=False),
            sa.Column('pos_m', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('pos_n', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('pos_f', sa.Boolean(), nullable=False, server_default=sa.false()),
        )
        op.create_index('ix_word_word', 'word', ['word'], unique=True)
        op.create_index('ix_word_frequency', 'word', ['frequency'])

    if 'best_record' not in existing_tables:
        op.create_table(
            'best_record',
            sa.Column('mode', sa.String(length=16), primary_key=True),
            sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
        )

    # Flat-round history keyed by a millisecond timestamp (schema 1 payloads).
    if 'history' not in existing_tables:
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


def downgrade():
    op.drop_index('by_mode', table_name='history')
    op.drop_index('by_timestamp', table_name='history')
    op.drop_table('history')
    op.drop_table('best_record')
    op.drop_index('ix_word_frequency', table_name='word')
    op.drop_index('ix_word_word', table_name='word')
    op.drop_table('word')
