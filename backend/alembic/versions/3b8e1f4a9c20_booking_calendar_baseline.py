"""Booking calendar baseline schema

Revision ID: 3b8e1f4a9c20
Revises:
Create Date: 2026-10-19 09:12:44.118203

"""
from datetime import time
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b8e1f4a9c20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    conn = op.get_bind()
    is_postgres = conn.dialect.name == 'postgresql'

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])

    weekly = op.create_table(
        'weekly_availability',
        sa.Column('day_of_week', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('start_time_utc', sa.Time(), nullable=False),
        sa.Column('end_time_utc', sa.Time(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='check_valid_day_of_week'),
    )

    op.create_table(
        'exclusions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_exclusions_id', 'exclusions', ['id'])
    op.create_index('idx_exclusions_dates', 'exclusions', ['start_date', 'end_date'])

    op.create_table(
        'booking_types',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('duration_minutes > 0', name='check_positive_duration'),
    )
    op.create_index('ix_booking_types_id', 'booking_types', ['id'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column(
            'booking_type_id', sa.Integer(),
            sa.ForeignKey('booking_types.id', ondelete='SET NULL'), nullable=True,
        ),
        sa.Column('management_token_hash', sa.String(64), nullable=True),
        sa.Column('management_token_expires_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('end_at > start_at', name='check_booking_positive_interval'),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('ix_bookings_email', 'bookings', ['email'])
    op.create_index('ix_bookings_management_token_hash', 'bookings', ['management_token_hash'])
    op.create_index('idx_bookings_start_end', 'bookings', ['start_at', 'end_at'])

    if is_postgres:
        # Second line of defence behind the calendar lock: no two bookings may overlap
        op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')
        op.execute("""
            ALTER TABLE bookings
            ADD CONSTRAINT excl_bookings_no_overlap
            EXCLUDE USING gist (tstzrange(start_at, end_at, '[)') WITH &&)
        """)

    op.create_table(
        'one_time_codes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('purpose', sa.String(50), nullable=False),
        sa.Column('code_hash', sa.String(255), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('email', 'purpose', name='uq_one_time_codes_email_purpose'),
    )
    op.create_index('ix_one_time_codes_id', 'one_time_codes', ['id'])
    op.create_index('idx_one_time_codes_expires', 'one_time_codes', ['expires_at'])

    op.create_table(
        'booking_sessions',
        sa.Column('key', sa.String(64), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('purpose', sa.String(50), nullable=False),
        sa.Column('state', sa.String(30), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('verification_jti', sa.String(64), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index('idx_booking_sessions_created', 'booking_sessions', ['created_at'])
    op.create_index('idx_booking_sessions_email_purpose', 'booking_sessions', ['email', 'purpose'])

    locks = op.create_table(
        'calendar_locks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('name', sa.String(50), nullable=False, unique=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
    )

    op.bulk_insert(locks, [{'id': 1, 'name': 'bookings', 'version': 0}])
    # Every weekday starts disabled with office hours pre-filled
    op.bulk_insert(weekly, [
        {
            'day_of_week': day,
            'start_time_utc': time(9, 0),
            'end_time_utc': time(17, 0),
            'enabled': False,
        }
        for day in range(7)
    ])


def downgrade() -> None:
    op.drop_table('calendar_locks')
    op.drop_index('idx_booking_sessions_email_purpose', table_name='booking_sessions')
    op.drop_index('idx_booking_sessions_created', table_name='booking_sessions')
    op.drop_table('booking_sessions')
    op.drop_index('idx_one_time_codes_expires', table_name='one_time_codes')
    op.drop_index('ix_one_time_codes_id', table_name='one_time_codes')
    op.drop_table('one_time_codes')
    op.drop_index('idx_bookings_start_end', table_name='bookings')
    op.drop_index('ix_bookings_management_token_hash', table_name='bookings')
    op.drop_index('ix_bookings_email', table_name='bookings')
    op.drop_index('ix_bookings_id', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_booking_types_id', table_name='booking_types')
    op.drop_table('booking_types')
    op.drop_index('idx_exclusions_dates', table_name='exclusions')
    op.drop_index('ix_exclusions_id', table_name='exclusions')
    op.drop_table('exclusions')
    op.drop_table('weekly_availability')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
