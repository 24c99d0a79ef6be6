"""create agenda tables

Revision ID: 20251020_0001
Revises:
Create Date: 2025-10-20 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20251020_0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# enums are stored as their lowercase values (non-native)
_ENUM = sa.String(32)
_TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'shops',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(20)),
        sa.Column('address', sa.Text()),
        sa.Column('timezone', sa.String(64)),
        sa.Column('created_at', _TS, nullable=False),
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('shop_id', sa.BigInteger(), sa.ForeignKey('shops.id', ondelete='CASCADE'), nullable=False),
        sa.Column('first_name', sa.String(120), nullable=False),
        sa.Column('last_name', sa.String(120)),
        sa.Column('phone', sa.String(20)),
        sa.Column('email', sa.String(254)),
    )
    op.create_index('ix_customers_shop_id', 'customers', ['shop_id'])

    op.create_table(
        'working_hours',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('shop_id', sa.BigInteger(), sa.ForeignKey('shops.id', ondelete='CASCADE'), nullable=False),
        sa.Column('weekday', sa.SmallInteger(), nullable=False),
        sa.Column('is_open', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('break_start', sa.Time()),
        sa.Column('break_end', sa.Time()),
        sa.UniqueConstraint('shop_id', 'weekday', name='uq_working_hours_shop_id_weekday'),
        sa.CheckConstraint('weekday BETWEEN 0 AND 6', name='ck_working_hours_weekday'),
        sa.CheckConstraint('(break_start IS NULL) = (break_end IS NULL)', name='ck_working_hours_break_pair'),
    )

    op.create_table(
        'appointments',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('shop_id', sa.BigInteger(), sa.ForeignKey('shops.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sav_case_id', sa.String(64)),
        sa.Column('customer_id', sa.BigInteger()),
        sa.Column('technician_id', sa.String(64)),
        sa.Column('start_datetime', _TS, nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('status', _ENUM, nullable=False, server_default='proposed'),
        sa.Column('appointment_type', _ENUM, nullable=False),
        sa.Column('proposed_by', _ENUM, nullable=False),
        sa.Column('confirmation_token', sa.String(128), nullable=False, unique=True),
        sa.Column('token_digest', sa.String(64), nullable=False),
        sa.Column('counter_proposal_datetime', _TS),
        sa.Column('counter_proposal_message', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('device_info', sa.JSON(), nullable=False),
        sa.Column('created_at', _TS, nullable=False),
        sa.Column('updated_at', _TS, nullable=False),
        sa.CheckConstraint('duration_minutes > 0', name='ck_appointments_duration_positive'),
    )
    op.create_index('ix_appointments_token_digest', 'appointments', ['token_digest'], unique=True)
    op.create_index('ix_appointments_shop_id_start', 'appointments', ['shop_id', 'start_datetime'])
    op.create_index('ix_appointments_shop_id_status', 'appointments', ['shop_id', 'status'])

    op.create_table(
        'appointment_events',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            'appointment_id', sa.BigInteger(),
            sa.ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('action', _ENUM, nullable=False),
        sa.Column('actor', _ENUM, nullable=False),
        sa.Column('from_status', _ENUM),
        sa.Column('to_status', _ENUM, nullable=False),
        sa.Column('start_datetime', _TS, nullable=False),
        sa.Column('counter_proposal_datetime', _TS),
        sa.Column('counter_proposal_message', sa.Text()),
        sa.Column('created_at', _TS, nullable=False),
    )
    op.create_index('ix_appointment_events_appointment_id', 'appointment_events', ['appointment_id'])

    op.create_table(
        'appointment_messages',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('shop_id', sa.BigInteger(), nullable=False),
        sa.Column('appointment_id', sa.BigInteger(), nullable=False),
        sa.Column('sav_case_id', sa.String(64)),
        sa.Column('sender_type', _ENUM, nullable=False),
        sa.Column('event_kind', _ENUM, nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', _TS, nullable=False),
    )
    op.create_index('ix_appointment_messages_shop_id', 'appointment_messages', ['shop_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_appointment_messages_shop_id', table_name='appointment_messages')
    op.drop_table('appointment_messages')
    op.drop_index('ix_appointment_events_appointment_id', table_name='appointment_events')
    op.drop_table('appointment_events')
    op.drop_index('ix_appointments_shop_id_status', table_name='appointments')
    op.drop_index('ix_appointments_shop_id_start', table_name='appointments')
    op.drop_index('ix_appointments_token_digest', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('working_hours')
    op.drop_index('ix_customers_shop_id', table_name='customers')
    op.drop_table('customers')
    op.drop_table('shops')
