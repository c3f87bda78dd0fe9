"""membership_and_quota_schema

Revision ID: 3a1c9e2b7d40
Revises:
Create Date: 2026-10-19 09:12:44.118201

Production-safe migration: tables are only created when missing.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3a1c9e2b7d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
    ]


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('password_hash', sa.String(), nullable=False),
            sa.Column('role', sa.String(length=20), server_default='user', nullable=False),
            sa.Column('status', sa.String(length=20), server_default='active', nullable=False),
            sa.Column('admin_notes', sa.Text(), nullable=True),
            sa.Column('disabled_at', sa.DateTime(), nullable=True),
            sa.Column('disabled_by', sa.Integer(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['disabled_by'], ['users.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_status'), 'users', ['status'], unique=False)

    if not table_exists('plans'):
        op.create_table('plans',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('price', sa.Numeric(10, 2), nullable=False),
            sa.Column('duration_days', sa.Integer(), nullable=False),
            sa.Column('features', sa.JSON(), nullable=False),
            sa.Column('status', sa.String(length=50), server_default='active', nullable=False),
            sa.Column('is_default', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_plans_id'), 'plans', ['id'], unique=False)
        op.create_index(
            'one_default_plan', 'plans', ['is_default'], unique=True,
            postgresql_where=sa.text('is_default'),
            sqlite_where=sa.text('is_default = 1'),
        )

    if not table_exists('top_up_packs'):
        op.create_table('top_up_packs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('price', sa.Numeric(10, 2), nullable=False),
            sa.Column('features', sa.JSON(), nullable=False),
            sa.Column('status', sa.String(length=50), server_default='active', nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_top_up_packs_id'), 'top_up_packs', ['id'], unique=False)
        op.create_index(op.f('ix_top_up_packs_status'), 'top_up_packs', ['status'], unique=False)

    if not table_exists('user_quotas'):
        op.create_table('user_quotas',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('plan_id', sa.Integer(), nullable=True),
            sa.Column('subscription_quota', sa.Integer(), nullable=False),
            sa.Column('permanent_quota', sa.Integer(), nullable=False),
            sa.Column('subscription_expires_at', sa.DateTime(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.CheckConstraint('subscription_quota >= 0', name='ck_user_quotas_subscription_non_negative'),
            sa.CheckConstraint('permanent_quota >= 0', name='ck_user_quotas_permanent_non_negative'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_user_quotas_id'), 'user_quotas', ['id'], unique=False)
        op.create_index(op.f('ix_user_quotas_user_id'), 'user_quotas', ['user_id'], unique=True)

    if not table_exists('membership_tiers'):
        op.create_table('membership_tiers',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('original_price', sa.Numeric(10, 2), nullable=False),
            sa.Column('reduction_price', sa.Numeric(10, 2), nullable=True),
            sa.Column('duration_days', sa.Integer(), nullable=False),
            sa.Column('ai_resume_quota', sa.Integer(), nullable=False),
            sa.Column('template_access_level', sa.String(length=20), nullable=False),
            sa.Column('features', sa.JSON(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_membership_tiers_id'), 'membership_tiers', ['id'], unique=False)
        op.create_index(op.f('ix_membership_tiers_name'), 'membership_tiers', ['name'], unique=False)

    if not table_exists('user_memberships'):
        op.create_table('user_memberships',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('membership_tier_id', sa.Integer(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('start_date', sa.DateTime(), nullable=True),
            sa.Column('end_date', sa.DateTime(), nullable=True),
            sa.Column('remaining_ai_quota', sa.Integer(), nullable=False),
            sa.Column('quota_reset_date', sa.DateTime(), nullable=True),
            sa.Column('payment_status', sa.String(length=20), nullable=False),
            sa.Column('paid_amount', sa.Numeric(10, 2), nullable=True),
            sa.Column('payment_method', sa.String(length=50), nullable=True),
            sa.Column('admin_notes', sa.Text(), nullable=True),
            *_timestamps(),
            sa.CheckConstraint('remaining_ai_quota >= 0', name='ck_user_memberships_quota_non_negative'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['membership_tier_id'], ['membership_tiers.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_user_memberships_id'), 'user_memberships', ['id'], unique=False)
        op.create_index('idx_user_memberships_user_status', 'user_memberships', ['user_id', 'status'], unique=False)
        op.create_index('idx_user_memberships_end_date', 'user_memberships', ['end_date'], unique=False)

    if not table_exists('membership_orders'):
        op.create_table('membership_orders',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('order_number', sa.String(length=100), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('membership_tier_id', sa.Integer(), nullable=False),
            sa.Column('original_amount', sa.Numeric(10, 2), nullable=False),
            sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False),
            sa.Column('final_amount', sa.Numeric(10, 2), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('payment_method', sa.String(length=50), nullable=True),
            sa.Column('payment_transaction_id', sa.String(length=200), nullable=True),
            sa.Column('paid_at', sa.DateTime(), nullable=True),
            sa.Column('admin_notes', sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['membership_tier_id'], ['membership_tiers.id'], ondelete='RESTRICT'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_membership_orders_id'), 'membership_orders', ['id'], unique=False)
        op.create_index(op.f('ix_membership_orders_order_number'), 'membership_orders', ['order_number'], unique=True)
        op.create_index(op.f('ix_membership_orders_status'), 'membership_orders', ['status'], unique=False)
        op.create_index(op.f('ix_membership_orders_created_at'), 'membership_orders', ['created_at'], unique=False)
        op.create_index('idx_membership_orders_user_status', 'membership_orders', ['user_id', 'status'], unique=False)

    if not table_exists('quota_usage_logs'):
        op.create_table('quota_usage_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('quota_type', sa.String(length=50), nullable=False),
            sa.Column('source', sa.String(length=20), nullable=False),
            sa.Column('action_type', sa.String(length=20), nullable=False),
            sa.Column('amount', sa.Integer(), nullable=False),
            sa.Column('remaining_quota', sa.Integer(), nullable=True),
            sa.Column('is_success', sa.Boolean(), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('related_resource_type', sa.String(length=50), nullable=True),
            sa.Column('related_resource_id', sa.Integer(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_quota_usage_logs_id'), 'quota_usage_logs', ['id'], unique=False)
        op.create_index(op.f('ix_quota_usage_logs_user_id'), 'quota_usage_logs', ['user_id'], unique=False)
        op.create_index(op.f('ix_quota_usage_logs_created_at'), 'quota_usage_logs', ['created_at'], unique=False)
        op.create_index('idx_quota_usage_user_type_created', 'quota_usage_logs', ['user_id', 'quota_type', 'created_at'], unique=False)

    if not table_exists('user_action_logs'):
        op.create_table('user_action_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('admin_user_id', sa.Integer(), nullable=True),
            sa.Column('action_type', sa.String(length=50), nullable=False),
            sa.Column('action_description', sa.Text(), nullable=True),
            sa.Column('old_values', sa.JSON(), nullable=True),
            sa.Column('new_values', sa.JSON(), nullable=True),
            sa.Column('ip_address', sa.String(length=64), nullable=True),
            sa.Column('user_agent', sa.String(length=500), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['admin_user_id'], ['users.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_user_action_logs_id'), 'user_action_logs', ['id'], unique=False)
        op.create_index(op.f('ix_user_action_logs_user_id'), 'user_action_logs', ['user_id'], unique=False)
        op.create_index(op.f('ix_user_action_logs_admin_user_id'), 'user_action_logs', ['admin_user_id'], unique=False)
        op.create_index(op.f('ix_user_action_logs_action_type'), 'user_action_logs', ['action_type'], unique=False)
        op.create_index(op.f('ix_user_action_logs_created_at'), 'user_action_logs', ['created_at'], unique=False)
        op.create_index('idx_user_action_logs_user_created', 'user_action_logs', ['user_id', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('user_action_logs')
    op.drop_table('quota_usage_logs')
    op.drop_table('membership_orders')
    op.drop_table('user_memberships')
    op.drop_table('membership_tiers')
    op.drop_table('user_quotas')
    op.drop_table('top_up_packs')
    op.drop_index('one_default_plan', table_name='plans')
    op.drop_table('plans')
    op.drop_table('users')
