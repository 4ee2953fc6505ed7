"""Create loot box catalog tables

Revision ID: 4c1e9a7d2b10
Revises:
Create Date: 2026-09-02 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4c1e9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Ids are assigned by the catalog service (0, 1, 2, ...), not by a sequence
    op.create_table(
        'loot_boxes',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('price', sa.Numeric(38, 9), nullable=False),
        sa.Column('max_supply', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_opened', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reserved_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )

    op.create_table(
        'loot_box_rewards',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('box_id', sa.Integer(), sa.ForeignKey('loot_boxes.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('token_type', sa.String(20), nullable=False),
        sa.Column('token_address', sa.String(100), nullable=False),
        sa.Column('token_id', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('amount', sa.Numeric(38, 9), nullable=False),
        sa.Column('weight', sa.Integer(), nullable=False),
        sa.UniqueConstraint('box_id', 'position', name='uq_loot_box_rewards_box_position'),
    )
    op.create_index('ix_loot_box_rewards_box_id', 'loot_box_rewards', ['box_id'])


def downgrade() -> None:
    op.drop_index('ix_loot_box_rewards_box_id', table_name='loot_box_rewards')
    op.drop_table('loot_box_rewards')
    op.drop_table('loot_boxes')
