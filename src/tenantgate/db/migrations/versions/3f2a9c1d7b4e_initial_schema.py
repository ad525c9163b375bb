"""Initial schema: tenants, API keys, end customers, risk profiles, events

The partial unique index uq_api_keys_one_active_per_tenant enforces the
one-active-key-per-tenant rule in the database itself.

Revision ID: 3f2a9c1d7b4e
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b4e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ─── Tenants ─────────────────────────────────────────
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('salt', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='active', nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sa.UniqueConstraint('email'),
    )

    # ─── API keys ────────────────────────────────────────
    op.create_table(
        'tenants_api_keys',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('kid', sa.String(length=128), nullable=False),
        sa.Column('api_key_hash', sa.String(length=512), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=False),
        sa.Column('environment', sa.String(length=20), server_default='production', nullable=False),
        sa.Column('status', sa.String(length=20), server_default='active', nullable=False),
        *_timestamps(),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rotated_from_key_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['rotated_from_key_id'], ['tenants_api_keys.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('kid'),
    )
    op.create_index('idx_api_keys_tenant_status', 'tenants_api_keys', ['tenant_id', 'status'])
    op.create_index('idx_api_keys_expires_at', 'tenants_api_keys', ['expires_at'])
    op.create_index(
        'uq_api_keys_one_active_per_tenant',
        'tenants_api_keys',
        ['tenant_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    # ─── End customers ───────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('external_customer_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='active', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'external_customer_id', name='uq_users_tenant_external_id'),
    )
    op.create_table(
        'risk_profile',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('risk_score', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )

    # ─── Events ──────────────────────────────────────────
    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('stream_id', sa.String(length=100), nullable=False),
        sa.Column('type', sa.String(length=100), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_events_stream', 'events', ['stream_id', 'id'])
    op.create_index('idx_events_type', 'events', ['type'])


def downgrade() -> None:
    op.drop_index('idx_events_type', table_name='events')
    op.drop_index('idx_events_stream', table_name='events')
    op.drop_table('events')
    op.drop_table('risk_profile')
    op.drop_table('users')
    op.drop_index('uq_api_keys_one_active_per_tenant', table_name='tenants_api_keys')
    op.drop_index('idx_api_keys_expires_at', table_name='tenants_api_keys')
    op.drop_index('idx_api_keys_tenant_status', table_name='tenants_api_keys')
    op.drop_table('tenants_api_keys')
    op.drop_table('tenants')
