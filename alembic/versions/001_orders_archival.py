"""Orders table with archival fields

Revision ID: 001_orders_archival
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '001_orders_archival'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('orders',
        sa.Column('order_id', sa.String(255), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=True, index=True),
        sa.Column('items', sa.JSON(), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('subsidy', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('shipping', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('shipping_address', sa.JSON(), nullable=True),
        sa.Column('payment_method', sa.String(64), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),

        # Archival
        sa.Column('cid', sa.String(255), nullable=True, unique=True),
        sa.Column('wallet_address', sa.String(128), nullable=True),
        sa.Column('wallet_signature', sa.Text(), nullable=True),
        sa.Column('encryption_salt', sa.String(64), nullable=True),
        sa.Column('archival_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('archival_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('archival_error', sa.Text(), nullable=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),

        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_orders_unarchived', 'orders', ['archival_status', 'created_at'])


def downgrade() -> None:
    op.drop_index('idx_orders_unarchived', table_name='orders')
    op.drop_table('orders')
