"""Initial schema: merchants, product configs, reviews, processed events, email logs, credit transactions

Revision ID: 001
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tables may already exist if Base.metadata.create_all ran at startup
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    if 'merchants' not in existing_tables:
        op.create_table(
            'merchants',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('company_id', sa.String(length=255), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=True),
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('credit_balance', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('review_display_format', sa.String(length=20), nullable=False, server_default='grid'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.CheckConstraint('credit_balance >= 0', name='ck_merchants_credit_balance_non_negative'),
        )
        op.create_index('ix_merchants_id', 'merchants', ['id'])
        op.create_index('ix_merchants_company_id', 'merchants', ['company_id'], unique=True)

    if 'product_configs' not in existing_tables:
        op.create_table(
            'product_configs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('merchant_id', sa.Integer(), nullable=False),
            sa.Column('platform_product_id', sa.String(length=255), nullable=False),
            sa.Column('product_name', sa.String(length=255), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='visible'),
            sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('review_type', sa.String(length=10), nullable=False, server_default='any'),
            sa.Column('promo_code', sa.String(length=255), nullable=True),
            sa.Column('promo_code_name', sa.String(length=255), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_product_configs_id', 'product_configs', ['id'])
        op.create_index('ix_product_configs_merchant_id', 'product_configs', ['merchant_id'])
        op.create_index('ix_product_configs_platform_product_id', 'product_configs', ['platform_product_id'], unique=True)
        op.create_index('ix_product_configs_merchant_enabled', 'product_configs', ['merchant_id', 'is_enabled'])

    if 'reviews' not in existing_tables:
        op.create_table(
            'reviews',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('merchant_id', sa.Integer(), nullable=False),
            sa.Column('product_config_id', sa.Integer(), nullable=False),
            sa.Column('customer_email', sa.String(length=255), nullable=True),
            sa.Column('customer_name', sa.String(length=255), nullable=False),
            sa.Column('customer_platform_id', sa.String(length=255), nullable=False),
            sa.Column('status', sa.String(length=30), nullable=False, server_default='pending_submission'),
            sa.Column('submission_token', sa.String(length=255), nullable=False),
            sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('file_url', sa.Text(), nullable=True),
            sa.Column('file_type', sa.String(length=10), nullable=True),
            sa.Column('comment', sa.Text(), nullable=True),
            sa.Column('rating', sa.Integer(), nullable=True),
            sa.Column('promo_code_sent', sa.String(length=255), nullable=True),
            sa.Column('promo_code_id', sa.String(length=255), nullable=True),
            sa.Column('rejection_reason', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['product_config_id'], ['product_configs.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_reviews_id', 'reviews', ['id'])
        op.create_index('ix_reviews_merchant_id', 'reviews', ['merchant_id'])
        op.create_index('ix_reviews_product_config_id', 'reviews', ['product_config_id'])
        op.create_index('ix_reviews_submission_token', 'reviews', ['submission_token'], unique=True)
        op.create_index('ix_reviews_merchant_status', 'reviews', ['merchant_id', 'status'])
        op.create_index('ix_reviews_status_created', 'reviews', ['status', 'created_at'])

    if 'processed_events' not in existing_tables:
        op.create_table(
            'processed_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('event_id', sa.String(length=255), nullable=False),
            sa.Column('event_type', sa.String(length=100), nullable=False),
            sa.Column('payload', sa.JSON(), nullable=True),
            sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_processed_events_id', 'processed_events', ['id'])
        op.create_index('ix_processed_events_event_id', 'processed_events', ['event_id'], unique=True)
        op.create_index('ix_processed_events_event_type', 'processed_events', ['event_type'])
        op.create_index('ix_processed_events_processed_at', 'processed_events', ['processed_at'])

    if 'email_logs' not in existing_tables:
        op.create_table(
            'email_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('merchant_id', sa.Integer(), nullable=False),
            sa.Column('review_id', sa.Integer(), nullable=True),
            sa.Column('email_type', sa.String(length=30), nullable=False),
            sa.Column('recipient', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('subject', sa.String(length=255), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('provider_message_id', sa.String(length=255), nullable=True),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('metadata', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_email_logs_id', 'email_logs', ['id'])
        op.create_index('ix_email_logs_merchant_id', 'email_logs', ['merchant_id'])
        op.create_index('ix_email_logs_review_id', 'email_logs', ['review_id'])
        op.create_index('ix_email_logs_status', 'email_logs', ['status'])
        op.create_index('ix_email_logs_provider_message_id', 'email_logs', ['provider_message_id'])
        op.create_index('ix_email_logs_created_at', 'email_logs', ['created_at'])
        op.create_index('ix_email_logs_merchant_type', 'email_logs', ['merchant_id', 'email_type'])

    if 'credit_transactions' not in existing_tables:
        op.create_table(
            'credit_transactions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('merchant_id', sa.Integer(), nullable=False),
            sa.Column('review_id', sa.Integer(), nullable=True),
            sa.Column('transaction_type', sa.String(length=50), nullable=False),
            sa.Column('credits', sa.Integer(), nullable=False),
            sa.Column('balance_after', sa.Integer(), nullable=False),
            sa.Column('transaction_metadata', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_credit_transactions_id', 'credit_transactions', ['id'])
        op.create_index('ix_credit_transactions_merchant_id', 'credit_transactions', ['merchant_id'])
        op.create_index('ix_credit_transactions_created_at', 'credit_transactions', ['created_at'])
        op.create_index('ix_credit_transactions_merchant_created', 'credit_transactions', ['merchant_id', 'created_at'])


def downgrade() -> None:
    for table in ('credit_transactions', 'email_logs', 'processed_events', 'reviews', 'product_configs', 'merchants'):
        op.drop_table(table)
