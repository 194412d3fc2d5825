"""Initial schema: items, movement ledger, operator sessions

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. items (master data + cached quantity, optimistic version column)
2. movements (incoming / sale / borrow / return ledger, one table keyed by kind)
3. admin_sessions (hashed bearer tokens with expiry and revocation)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. ITEMS
    # ==========================================================================
    op.create_table('items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=128), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_items_code'),
        sa.CheckConstraint('quantity >= 0', name='ck_items_quantity_non_negative'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_items_created_at', 'items', ['created_at'])

    # ==========================================================================
    # 2. MOVEMENTS
    # ==========================================================================
    op.create_table('movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=True),
        sa.Column('item_code', sa.String(length=64), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=True),
        sa.Column('status_changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('borrower', sa.String(length=255), nullable=True),
        sa.Column('purpose', sa.String(length=255), nullable=True),
        sa.Column('source', sa.String(length=32), nullable=True),
        sa.Column('store_name', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_movements_quantity_positive'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_movements_kind', 'movements', ['kind'])
    op.create_index('ix_movements_item_id', 'movements', ['item_id'])
    op.create_index('ix_movements_status', 'movements', ['status'])
    op.create_index('ix_movements_occurred_at', 'movements', ['occurred_at'])
    op.create_index('ix_movements_kind_occurred_at', 'movements', ['kind', 'occurred_at'])
    op.create_index('ix_movements_item_kind', 'movements', ['item_id', 'kind'])

    # ==========================================================================
    # 3. ADMIN SESSIONS
    # ==========================================================================
    op.create_table('admin_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=128), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_admin_sessions_token_hash', 'admin_sessions', ['token_hash'], unique=True)
    op.create_index('ix_admin_sessions_expires_at', 'admin_sessions', ['expires_at'])
    op.create_index('ix_admin_sessions_is_revoked', 'admin_sessions', ['is_revoked'])
    op.create_index('ix_admin_sessions_active', 'admin_sessions', ['username', 'is_revoked'])


def downgrade():
    op.drop_table('admin_sessions')
    op.drop_table('movements')
    op.drop_table('items')
