"""create_assessment_payment_tables

Revision ID: 3c1f9a2e7b54
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c1f9a2e7b54'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*names: str) -> list:
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        for name in names
    ]


def _otp_columns() -> list:
    return [
        sa.Column('otp_code', sa.String(length=10), nullable=True),
        sa.Column('otp_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_otp_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def upgrade() -> None:
    # Accounts
    op.create_table(
        'users',
        sa.Column('sap_id', sa.String(length=50), nullable=False, comment='SAP ID'),
        sa.Column('username', sa.String(length=100), nullable=False, comment='Display name'),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        *_otp_columns(),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('sap_id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'organizations',
        sa.Column('sap_id', sa.String(length=50), nullable=False, comment='SAP ID'),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        *_otp_columns(),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('sap_id'),
    )
    op.create_index('ix_organizations_email', 'organizations', ['email'], unique=True)

    op.create_table(
        'special_users',
        sa.Column('sap_id', sa.String(length=50), nullable=False, comment='SAP ID, same namespace as users'),
        sa.Column('organization_sap_id', sa.String(length=50), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['organization_sap_id'], ['organizations.sap_id']),
        sa.PrimaryKeyConstraint('sap_id'),
    )
    op.create_index('ix_special_users_organization_sap_id', 'special_users', ['organization_sap_id'])
    op.create_index('ix_special_users_email', 'special_users', ['email'])

    # Tests and results
    op.create_table(
        'tests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False, comment='Booking price in INR'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'test_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('test_id', sa.Integer(), nullable=False),
        sa.Column('subject_kind', sa.String(length=20), nullable=False, comment='user/special_user'),
        sa.Column('subject_sap_id', sa.String(length=50), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=False),
        sa.Column('attempt_number', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps('submitted_at'),
        sa.ForeignKeyConstraint(['test_id'], ['tests.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_test_results_test_id', 'test_results', ['test_id'])
    op.create_index('idx_test_results_subject', 'test_results', ['subject_kind', 'subject_sap_id'])

    # Bookings: pending_key is set only while pending
    op.create_table(
        'test_bookings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('test_id', sa.Integer(), nullable=False),
        sa.Column('subject_kind', sa.String(length=20), nullable=False, comment='user/special_user'),
        sa.Column('subject_sap_id', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending',
                  comment='pending/confirmed/cancelled/failed/superseded'),
        sa.Column('transaction_id', sa.String(length=40), nullable=True),
        sa.Column('status_reason', sa.String(length=500), nullable=True),
        sa.Column('is_reattempt', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('pending_key', sa.String(length=120), nullable=True),
        *_timestamps('booked_at', 'updated_at'),
        sa.ForeignKeyConstraint(['test_id'], ['tests.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', name='uq_test_bookings_transaction_id'),
        sa.UniqueConstraint('pending_key', name='uq_test_bookings_pending_key'),
    )
    op.create_index('ix_test_bookings_test_id', 'test_bookings', ['test_id'])
    op.create_index('ix_test_bookings_status', 'test_bookings', ['status'])
    op.create_index('idx_bookings_test_subject', 'test_bookings', ['test_id', 'subject_kind', 'subject_sap_id'])

    # Certificate purchases: live_test_result_id is cleared when a purchase fails
    op.create_table(
        'certificate_purchases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('test_result_id', sa.Integer(), nullable=False),
        sa.Column('live_test_result_id', sa.Integer(), nullable=True),
        sa.Column('subject_kind', sa.String(length=20), nullable=False),
        sa.Column('subject_sap_id', sa.String(length=50), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='INR'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending',
                  comment='pending/completed/failed'),
        sa.Column('transaction_id', sa.String(length=40), nullable=True),
        sa.Column('provider_payment_id', sa.String(length=100), nullable=True),
        sa.Column('failure_reason', sa.String(length=500), nullable=True),
        sa.Column('certificate_url', sa.String(length=500), nullable=True),
        sa.Column('certificate_generated_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['test_result_id'], ['test_results.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('live_test_result_id', name='uq_certificate_purchases_live_result'),
        sa.UniqueConstraint('transaction_id', name='uq_certificate_purchases_transaction_id'),
    )
    op.create_index('ix_certificate_purchases_test_result_id', 'certificate_purchases', ['test_result_id'])
    op.create_index('ix_certificate_purchases_status', 'certificate_purchases', ['status'])

    # Payment orders
    op.create_table(
        'payment_orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('transaction_id', sa.String(length=40), nullable=False, comment='Local id, sent as receipt'),
        sa.Column('purpose', sa.String(length=20), nullable=False, comment='booking/certificate'),
        sa.Column('reference_id', sa.Integer(), nullable=False, comment='Booking or certificate purchase id'),
        sa.Column('subject_kind', sa.String(length=20), nullable=False),
        sa.Column('subject_sap_id', sa.String(length=50), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('amount_minor', sa.BigInteger(), nullable=False, comment='Amount in paise'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='INR'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending',
                  comment='pending/completed/failed'),
        sa.Column('provider', sa.String(length=30), nullable=False, server_default='razorpay'),
        sa.Column('provider_order_id', sa.String(length=100), nullable=True),
        sa.Column('provider_payment_id', sa.String(length=100), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('extra_metadata', sa.JSON(), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider_order_id', name='uq_payment_orders_provider_order_id'),
    )
    op.create_index('ix_payment_orders_transaction_id', 'payment_orders', ['transaction_id'], unique=True)
    op.create_index('ix_payment_orders_status', 'payment_orders', ['status'])
    op.create_index('ix_payment_orders_created_at', 'payment_orders', ['created_at'])
    op.create_index('idx_payment_orders_purpose_ref', 'payment_orders', ['purpose', 'reference_id'])


def downgrade() -> None:
    op.drop_table('payment_orders')
    op.drop_table('certificate_purchases')
    op.drop_table('test_bookings')
    op.drop_table('test_results')
    op.drop_table('tests')
    op.drop_table('special_users')
    op.drop_table('organizations')
    op.drop_table('users')
