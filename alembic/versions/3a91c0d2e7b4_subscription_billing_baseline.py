"""subscription_billing_baseline

Revision ID: 3a91c0d2e7b4
Revises: 
Create Date: 2026-10-19 09:12:44.120518

Production-safe migration: only creates tables that don't exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3a91c0d2e7b4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    if not table_exists('subscriptions'):
        op.create_table('subscriptions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('tier', sa.String(length=20), nullable=False),
            sa.Column('status', sa.String(length=30), nullable=False),
            sa.Column('billing_period', sa.String(length=20), nullable=False),
            sa.Column('payment_provider', sa.String(length=20), nullable=False),
            sa.Column('external_subscription_id', sa.String(length=255), nullable=True),
            sa.Column('customer_id', sa.String(length=255), nullable=True),
            sa.Column('current_period_start', sa.DateTime(), nullable=False),
            sa.Column('current_period_end', sa.DateTime(), nullable=False),
            sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('canceled_at', sa.DateTime(), nullable=True),
            sa.Column('trial_start', sa.DateTime(), nullable=True),
            sa.Column('trial_end', sa.DateTime(), nullable=True),
            sa.Column('provider_event_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id')
        )
        op.create_index(op.f('ix_subscriptions_id'), 'subscriptions', ['id'], unique=False)
        op.create_index('idx_subscriptions_status', 'subscriptions', ['status'], unique=False)
        op.create_index('idx_subscriptions_external_id', 'subscriptions', ['external_subscription_id'], unique=False)

    if not table_exists('billing_customers'):
        op.create_table('billing_customers',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('customer_id', sa.String(length=255), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id')
        )
        op.create_index(op.f('ix_billing_customers_id'), 'billing_customers', ['id'], unique=False)
        op.create_index(op.f('ix_billing_customers_customer_id'), 'billing_customers', ['customer_id'], unique=True)

    if not table_exists('payments'):
        op.create_table('payments',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('subscription_id', sa.Integer(), nullable=True),
            sa.Column('external_payment_id', sa.String(length=255), nullable=False),
            sa.Column('provider', sa.String(length=20), nullable=False),
            sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('currency', sa.String(length=3), nullable=False),
            sa.Column('status', sa.String(length=30), nullable=False),
            sa.Column('description', sa.String(length=255), nullable=True),
            sa.Column('invoice_id', sa.String(length=255), nullable=True),
            sa.Column('receipt_url', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('provider', 'external_payment_id', 'status', name='uq_payment_external_status')
        )
        op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)
        op.create_index('idx_payments_user', 'payments', ['user_id'], unique=False)

    if not table_exists('webhook_event_receipts'):
        op.create_table('webhook_event_receipts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('external_event_id', sa.String(length=255), nullable=False),
            sa.Column('event_type', sa.String(length=100), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('raw_payload', sa.Text(), nullable=False),
            sa.Column('processed_at', sa.DateTime(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_webhook_event_receipts_id'), 'webhook_event_receipts', ['id'], unique=False)
        op.create_index(op.f('ix_webhook_event_receipts_external_event_id'), 'webhook_event_receipts', ['external_event_id'], unique=True)

    if not table_exists('usage_periods'):
        op.create_table('usage_periods',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('period_start', sa.DateTime(), nullable=False),
            sa.Column('period_end', sa.DateTime(), nullable=False),
            sa.Column('resume_versions_used', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('cover_letters_used', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('interview_sessions_used', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'period_start', name='uq_usage_user_period')
        )
        op.create_index(op.f('ix_usage_periods_id'), 'usage_periods', ['id'], unique=False)
        op.create_index(op.f('ix_usage_periods_user_id'), 'usage_periods', ['user_id'], unique=False)

    if not table_exists('daily_usage'):
        op.create_table('daily_usage',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('day', sa.DateTime(), nullable=False),
            sa.Column('ai_enhancements_used', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'day', name='uq_daily_usage_user_day')
        )
        op.create_index(op.f('ix_daily_usage_id'), 'daily_usage', ['id'], unique=False)
        op.create_index(op.f('ix_daily_usage_user_id'), 'daily_usage', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_table('daily_usage')
    op.drop_table('usage_periods')
    op.drop_table('webhook_event_receipts')
    op.drop_table('payments')
    op.drop_table('billing_customers')
    op.drop_table('subscriptions')
    op.drop_table('users')
