"""create_transactions_table

Revision ID: create_transactions_20261018
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'create_transactions_20261018'
down_revision = None
branch_labels = None
depends_on = None

transaction_direction = sa.Enum('DEPOSIT', 'WITHDRAW', name='transaction_direction', create_constraint=True)
transaction_status = sa.Enum('PENDING', 'PROCESSING', 'SUCCESS', 'FAILED', name='transaction_status', create_constraint=True)


def upgrade() -> None:
    op.create_table(
        'transactions',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('merchant_order_no', sa.String(length=64), nullable=False),
        sa.Column('provider_ref', sa.String(length=128), nullable=True),
        sa.Column('direction', transaction_direction, nullable=False),
        sa.Column('status', transaction_status, nullable=False),
        sa.Column('amount', sa.Numeric(20, 2), nullable=False),
        sa.Column('site', sa.String(length=64), nullable=False),
        sa.Column('merchant_id', sa.String(length=64), nullable=True),
        sa.Column('gateway_id', sa.String(length=64), nullable=True),
        sa.Column('callback_url', sa.String(length=512), nullable=True),
        sa.Column('customer_id', sa.String(length=128), nullable=False),
        sa.Column('bank_name', sa.String(length=128), nullable=True),
        sa.Column('bank_account', sa.String(length=64), nullable=True),
        sa.Column('bank_account_name', sa.String(length=255), nullable=True),
        sa.Column('pay_url', sa.String(length=1024), nullable=True),
        sa.Column('expired_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('provider_status', sa.String(length=8), nullable=True),
        sa.Column('error_code', sa.String(length=32), nullable=True),
        sa.Column('error_message', sa.String(length=512), nullable=True),
        sa.Column('credited_amount', sa.Numeric(20, 2), nullable=True),
        sa.Column('fee_amount', sa.Numeric(20, 2), nullable=True),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='check_transactions_amount_positive'),
    )

    op.create_index(op.f('ix_transactions_id'), 'transactions', ['id'], unique=False)
    op.create_index(op.f('ix_transactions_merchant_order_no'), 'transactions', ['merchant_order_no'], unique=True)
    op.create_index(op.f('ix_transactions_provider_ref'), 'transactions', ['provider_ref'], unique=False)
    op.create_index(op.f('ix_transactions_direction'), 'transactions', ['direction'], unique=False)
    op.create_index(op.f('ix_transactions_status'), 'transactions', ['status'], unique=False)
    op.create_index(op.f('ix_transactions_site'), 'transactions', ['site'], unique=False)
    op.create_index(op.f('ix_transactions_customer_id'), 'transactions', ['customer_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_transactions_customer_id'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_site'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_status'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_direction'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_provider_ref'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_merchant_order_no'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_id'), table_name='transactions')
    op.drop_table('transactions')

    transaction_status.drop(op.get_bind(), checkfirst=True)
    transaction_direction.drop(op.get_bind(), checkfirst=True)
