"""Phase A: Hotels, inventory, pricing rules, bookings, payments, ledger, audit and idempotency

Revision ID: phase_a_001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = 'phase_a_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Hotels and inventory ---
    op.create_table('hotels',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
        sa.Column('check_in_time', sa.String(length=5), nullable=False, server_default='14:00'),
        sa.Column('check_out_time', sa.String(length=5), nullable=False, server_default='11:00'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table('room_types',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('hotel_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('max_adults', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('max_children', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('base_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('hotel_id', 'name', name='uq_room_types_hotel_name'),
    )
    op.create_index('ix_room_types_hotel_id', 'room_types', ['hotel_id'])

    op.create_table('rooms',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('hotel_id', sa.UUID(), nullable=False),
        sa.Column('room_type_id', sa.UUID(), nullable=False),
        sa.Column('room_number', sa.String(length=20), nullable=False),
        sa.Column('floor', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Available'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['room_type_id'], ['room_types.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('hotel_id', 'room_number', name='uq_rooms_hotel_number'),
    )
    op.create_index('ix_rooms_room_type_id', 'rooms', ['room_type_id'])

    for table, per_guest_default in (('hotel_addons', 'false'), ('activity_addons', 'true')):
        columns = [
            sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
            sa.Column('hotel_id', sa.UUID(), nullable=False),
            sa.Column('name', sa.String(length=100), nullable=False),
            sa.Column('base_price', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('per_guest', sa.Boolean(), nullable=False, server_default=per_guest_default),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        ]
        if table == 'activity_addons':
            columns.append(sa.Column('duration_minutes', sa.Integer(), nullable=True))
        op.create_table(table,
            *columns,
            sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(f'ix_{table}_hotel_id', table, ['hotel_id'])

    # --- Pricing rules ---
    op.create_table('dynamic_pricing',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('entity_type', sa.String(length=20), nullable=False),
        sa.Column('entity_id', sa.UUID(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_dynamic_pricing_entity_id', 'dynamic_pricing', ['entity_id'])
    op.create_index('idx_dynamic_pricing_lookup', 'dynamic_pricing', ['entity_type', 'entity_id', 'start_date'])

    op.create_table('tax_rules',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('hotel_id', sa.UUID(), nullable=False),
        sa.Column('tax_name', sa.String(length=100), nullable=False),
        sa.Column('tax_type', sa.String(length=20), nullable=False),
        sa.Column('tax_value', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('applicable_on', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tax_rules_hotel_id', 'tax_rules', ['hotel_id'])

    op.create_table('coupons',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(length=20), nullable=False),
        sa.Column('discount_value', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('max_discount_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('minimum_spend', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('usage_limit', sa.Integer(), nullable=False, server_default='-1'),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sa.CheckConstraint('usage_limit = -1 OR usage_count <= usage_limit', name='ck_coupons_usage_within_limit'),
    )

    op.create_table('cancellation_policies',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('hotel_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('hours_before_check_in', sa.Integer(), nullable=False),
        sa.Column('refund_percentage', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cancellation_policies_hotel_id', 'cancellation_policies', ['hotel_id'])

    # --- Bookings ---
    op.create_table('bookings',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('hotel_id', sa.UUID(), nullable=False),
        sa.Column('room_type_id', sa.UUID(), nullable=False),
        sa.Column('room_id', sa.UUID(), nullable=False),
        sa.Column('check_in_date', sa.Date(), nullable=False),
        sa.Column('check_out_date', sa.Date(), nullable=False),
        sa.Column('num_adults', sa.Integer(), nullable=False),
        sa.Column('num_children', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('guest_name', sa.String(length=200), nullable=False),
        sa.Column('guest_email', sa.String(length=255), nullable=True),
        sa.Column('guest_phone', sa.String(length=50), nullable=True),
        sa.Column('booked_by', sa.String(length=20), nullable=False, server_default='Guest'),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Pending'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='Pending'),
        sa.Column('status_changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status_reason', sa.Text(), nullable=True),
        sa.Column('base_room_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('room_price_total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('hotel_addons_total', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('activity_addons_total', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('subtotal_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('tax_total', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('total_discount', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('price_breakdown', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['hotel_id'], ['hotels.id']),
        sa.ForeignKeyConstraint(['room_type_id'], ['room_types.id']),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bookings_hotel_id', 'bookings', ['hotel_id'])
    op.create_index('idx_bookings_status_checkout', 'bookings', ['status', 'check_out_date'])

    op.create_table('room_availability',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('room_id', sa.UUID(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('is_booked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('booking_id', sa.UUID(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id', 'date', name='uq_room_availability_room_date'),
    )
    op.create_index('ix_room_availability_booking_id', 'room_availability', ['booking_id'])

    op.create_table('booking_coupons',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('booking_id', sa.UUID(), nullable=False),
        sa.Column('coupon_id', sa.UUID(), nullable=False),
        sa.Column('coupon_code', sa.String(length=50), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('applied_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['coupon_id'], ['coupons.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id'),
    )

    for table, addon_table in (('booking_hotel_addons', 'hotel_addons'), ('booking_activity_addons', 'activity_addons')):
        op.create_table(table,
            sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
            sa.Column('booking_id', sa.UUID(), nullable=False),
            sa.Column('addon_id', sa.UUID(), nullable=False),
            sa.Column('quantity', sa.Integer(), nullable=False),
            sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
            sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['addon_id'], [f'{addon_table}.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(f'ix_{table}_booking_id', table, ['booking_id'])

    # --- Payments, refunds, ledger ---
    op.create_table('payments',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('booking_id', sa.UUID(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_mode', sa.String(length=20), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='Completed'),
        sa.Column('payment_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('transaction_ref', sa.String(length=100), nullable=True),
        sa.Column('gateway_name', sa.String(length=50), nullable=True),
        sa.Column('gateway_response', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_payments_amount_positive'),
    )
    op.create_index('ix_payments_booking_id', 'payments', ['booking_id'])

    op.create_table('refunds',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('payment_id', sa.UUID(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Completed'),
        sa.Column('refund_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('refund_transaction_ref', sa.String(length=100), nullable=True),
        sa.Column('gateway_response', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_refunds_amount_positive'),
    )
    op.create_index('ix_refunds_payment_id', 'refunds', ['payment_id'])

    op.create_table('transactions',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('booking_id', sa.UUID(), nullable=False),
        sa.Column('payment_id', sa.UUID(), nullable=True),
        sa.Column('refund_id', sa.UUID(), nullable=True),
        sa.Column('transaction_type', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id']),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id']),
        sa.ForeignKeyConstraint(['refund_id'], ['refunds.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_transactions_booking_id', 'transactions', ['booking_id'])

    # --- Audit, notifications, idempotency ---
    op.create_table('audit_logs',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('actor_id', sa.String(length=64), nullable=True),
        sa.Column('actor_type', sa.String(length=20), nullable=False, server_default='System'),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        sa.Column('before_state', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('after_state', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])

    op.create_table('notifications',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('recipient_type', sa.String(length=20), nullable=False, server_default='Guest'),
        sa.Column('recipient', sa.String(length=255), nullable=True),
        sa.Column('channel', sa.String(length=20), nullable=False),
        sa.Column('template_key', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Pending'),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_notifications_reference', 'notifications', ['reference_type', 'reference_id'])

    op.create_table('idempotency_keys',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('scope', sa.String(length=50), nullable=False),
        sa.Column('request_hash', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='InProgress'),
        sa.Column('response_status', sa.Integer(), nullable=True),
        sa.Column('response_body', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key', 'scope', name='uq_idempotency_key_scope'),
    )
    op.create_index('idx_idempotency_keys_expires', 'idempotency_keys', ['expires_at'])


def downgrade() -> None:
    for index, table in (
        ('idx_idempotency_keys_expires', 'idempotency_keys'),
        ('idx_notifications_reference', 'notifications'),
        ('ix_audit_logs_entity_id', 'audit_logs'),
        ('ix_transactions_booking_id', 'transactions'),
        ('ix_refunds_payment_id', 'refunds'),
        ('ix_payments_booking_id', 'payments'),
        ('ix_booking_activity_addons_booking_id', 'booking_activity_addons'),
        ('ix_booking_hotel_addons_booking_id', 'booking_hotel_addons'),
        ('ix_room_availability_booking_id', 'room_availability'),
        ('idx_bookings_status_checkout', 'bookings'),
        ('ix_bookings_hotel_id', 'bookings'),
        ('ix_cancellation_policies_hotel_id', 'cancellation_policies'),
        ('ix_tax_rules_hotel_id', 'tax_rules'),
        ('idx_dynamic_pricing_lookup', 'dynamic_pricing'),
        ('ix_dynamic_pricing_entity_id', 'dynamic_pricing'),
        ('ix_activity_addons_hotel_id', 'activity_addons'),
        ('ix_hotel_addons_hotel_id', 'hotel_addons'),
        ('ix_rooms_room_type_id', 'rooms'),
        ('ix_room_types_hotel_id', 'room_types'),
    ):
        op.drop_index(index, table_name=table)

    for table in (
        'idempotency_keys',
        'notifications',
        'audit_logs',
        'transactions',
        'refunds',
        'payments',
        'booking_activity_addons',
        'booking_hotel_addons',
        'booking_coupons',
        'room_availability',
        'bookings',
        'cancellation_policies',
        'coupons',
        'tax_rules',
        'dynamic_pricing',
        'activity_addons',
        'hotel_addons',
        'rooms',
        'room_types',
        'hotels',
    ):
        op.drop_table(table)
