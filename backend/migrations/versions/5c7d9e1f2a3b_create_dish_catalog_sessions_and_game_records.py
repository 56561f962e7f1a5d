"""create dish catalog, player sessions and game records

Revision ID: 5c7d9e1f2a3b
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c7d9e1f2a3b'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'dish' not in existing_tables:
        op.create_table(
            'dish',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('country', sa.String(length=128), nullable=False, server_default=''),
            sa.Column('city', sa.String(length=128), nullable=True),
            sa.Column('latitude', sa.Float(), nullable=False),
            sa.Column('longitude', sa.Float(), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('fact', sa.Text(), nullable=True),
            sa.Column('difficulty_level', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        )
        op.create_index('ix_dish_name', 'dish', ['name'])

    if 'dish_image' not in existing_tables:
        op.create_table(
            'dish_image',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('dish_id', sa.Integer(), sa.ForeignKey('dish.id'), nullable=False),
            sa.Column('url', sa.String(length=512), nullable=False),
            sa.Column('image_order', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('alt_text', sa.String(length=256), nullable=True),
        )
        op.create_index('ix_dish_image_dish_id', 'dish_image', ['dish_id'])

    if 'player_session' not in existing_tables:
        op.create_table(
            'player_session',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('player_key', sa.String(length=64), nullable=False),
            sa.Column('schema_version', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('payload', sa.Text(), nullable=True),
            sa.Column('updated_at', sa.Float(), nullable=True),
        )
        op.create_index('ix_player_session_player_key', 'player_session', ['player_key'], unique=True)

    if 'game_record' not in existing_tables:
        op.create_table(
            'game_record',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_code', sa.String(length=8), nullable=False),
            sa.Column('player_key', sa.String(length=64), nullable=True),
            sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('max_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('total_distance_km', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('rounds_played', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('dish_ids', sa.Text(), nullable=True),
            sa.Column('round_history', sa.Text(), nullable=True),
            sa.Column('started_at', sa.String(length=40), nullable=True),
            sa.Column('finished_at', sa.String(length=40), nullable=True),
        )
        op.create_index('ix_game_record_game_code', 'game_record', ['game_code'])
        op.create_index('ix_game_record_player_key', 'game_record', ['player_key'])


def downgrade():
    op.drop_table('game_record')
    op.drop_table('player_session')
    op.drop_table('dish_image')
    op.drop_table('dish')
