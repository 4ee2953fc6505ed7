"""Add open requests, per-user open counts, custody ledger and event log

Revision ID: 8f3b6d0e5a21
Revises: 4c1e9a7d2b10
Create Date: 2026-09-09 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8f3b6d0e5a21'
down_revision: Union[str, None] = '4c1e9a7d2b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # open_requests: one row per accepted open, keyed by the randomness request id
    op.create_table(
        'open_requests',
        sa.Column('request_id', sa.String(100), primary_key=True),
        sa.Column('box_id', sa.Integer(), sa.ForeignKey('loot_boxes.id'), nullable=False),
        sa.Column('caller', sa.String(100), nullable=False),
        sa.Column('payment', sa.Numeric(38, 9), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='requested'),
        sa.Column('random_value', sa.String(80), nullable=True),
        sa.Column('reward_position', sa.Integer(), nullable=True),
        sa.Column('failure_reason', sa.String(255), nullable=True),
        sa.Column('requested_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('fulfilled_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_open_requests_box_id', 'open_requests', ['box_id'])
    op.create_index('ix_open_requests_caller', 'open_requests', ['caller'])
    op.create_index(
        'ix_open_requests_status_requested_at',
        'open_requests',
        ['status', 'requested_at'],
    )

    op.create_table(
        'user_open_counts',
        sa.Column('box_id', sa.Integer(), sa.ForeignKey('loot_boxes.id'), primary_key=True),
        sa.Column('user_address', sa.String(100), primary_key=True),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'asset_holdings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('holder', sa.String(100), nullable=False),
        sa.Column('token_type', sa.String(20), nullable=False),
        sa.Column('token_address', sa.String(100), nullable=False),
        sa.Column('token_id', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('amount', sa.Numeric(38, 9), nullable=False, server_default='0'),
        sa.UniqueConstraint(
            'holder', 'token_address', 'token_id', name='uq_asset_holdings_holder_asset'
        ),
    )
    op.create_index('ix_asset_holdings_holder', 'asset_holdings', ['holder'])

    op.create_table(
        'loot_box_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_type', sa.String(40), nullable=False),
        sa.Column('box_id', sa.Integer(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('ix_loot_box_events_event_type', 'loot_box_events', ['event_type'])
    op.create_index('ix_loot_box_events_box_id', 'loot_box_events', ['box_id'])


def downgrade() -> None:
    op.drop_index('ix_loot_box_events_box_id', table_name='loot_box_events')
    op.drop_index('ix_loot_box_events_event_type', table_name='loot_box_events')
    op.drop_table('loot_box_events')
    op.drop_index('ix_asset_holdings_holder', table_name='asset_holdings')
    op.drop_table('asset_holdings')
    op.drop_table('user_open_counts')
    op.drop_index('ix_open_requests_status_requested_at', table_name='open_requests')
    op.drop_index('ix_open_requests_caller', table_name='open_requests')
    op.drop_index('ix_open_requests_box_id', table_name='open_requests')
    op.drop_table('open_requests')
