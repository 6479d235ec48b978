"""Initial schema: users, plans, subscriptions, usage logs, waitlist entries

Revision ID: 5c1e7a2b9d40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5c1e7a2b9d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum labels are the Python enum member names
userrole = sa.Enum('USER', 'ADMIN', name='userrole')
plantier = sa.Enum('FREE', 'PRO', 'ENTERPRISE', name='plantier')
subscriptionstatus = sa.Enum(
    'ACTIVE', 'INACTIVE', 'TRIALING', 'PAST_DUE', 'CANCELED', 'UNPAID',
    name='subscriptionstatus',
)
usageaction = sa.Enum('CHAT', 'PRO_MODE', 'IMAGE_GENERATION', 'VIDEO_GENERATION', 'OTHER', name='usageaction')
waitliststatus = sa.Enum('PENDING', 'NOTIFIED', 'CONVERTED', 'EXPIRED', 'CANCELLED', name='waitliststatus')


def _timestamps() -> list:
    return [
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Create plan gating and waitlist tables."""
    # 1. Users (no dependencies)
    op.create_table(
        'users',
        *_timestamps(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('role', userrole, nullable=False, server_default='USER'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_created_at'), 'users', ['created_at'])

    # 2. Plans (no dependencies)
    op.create_table(
        'plans',
        *_timestamps(),
        sa.Column('name', plantier, nullable=False),
        sa.Column('monthly_price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stripe_price_id', sa.String(), nullable=True),
        sa.Column('features', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('max_requests_per_month', sa.Integer(), nullable=True),
        sa.Column('max_file_size', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_price_id'),
    )
    op.create_index(op.f('ix_plans_name'), 'plans', ['name'], unique=True)
    op.create_index(op.f('ix_plans_created_at'), 'plans', ['created_at'])

    # 3. Subscriptions (depends on users, plans); one per user
    op.create_table(
        'subscriptions',
        *_timestamps(),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('plan_id', sa.UUID(), nullable=False),
        sa.Column('status', subscriptionstatus, nullable=False, server_default='ACTIVE'),
        sa.Column('current_period_start', sa.DateTime(), nullable=True),
        sa.Column('current_period_end', sa.DateTime(), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('stripe_customer_id', sa.String(), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_customer_id'),
        sa.UniqueConstraint('stripe_subscription_id'),
    )
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=True)
    op.create_index(op.f('ix_subscriptions_plan_id'), 'subscriptions', ['plan_id'])
    op.create_index(op.f('ix_subscriptions_status'), 'subscriptions', ['status'])
    op.create_index(op.f('ix_subscriptions_created_at'), 'subscriptions', ['created_at'])

    # 4. Usage logs (depends on users); append-only
    op.create_table(
        'usage_logs',
        *_timestamps(),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('action', usageaction, nullable=False),
        sa.Column('resource_type', sa.String(), nullable=True),
        sa.Column('extra_metadata', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_usage_logs_user_id'), 'usage_logs', ['user_id'])
    op.create_index(op.f('ix_usage_logs_action'), 'usage_logs', ['action'])
    op.create_index(op.f('ix_usage_logs_created_at'), 'usage_logs', ['created_at'])
    # Monthly count: user_id + created_at range
    op.create_index('ix_usage_logs_user_id_created_at', 'usage_logs', ['user_id', 'created_at'])

    # 5. Waitlist entries (no dependencies)
    op.create_table(
        'waitlist_entries',
        *_timestamps(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('status', waitliststatus, nullable=False, server_default='PENDING'),
        sa.Column('registered_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('queue_number', sa.BigInteger(), nullable=False),
        sa.Column('notified_at', sa.DateTime(), nullable=True),
        sa.Column('notification_expires_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_waitlist_entries_email'), 'waitlist_entries', ['email'])
    op.create_index(op.f('ix_waitlist_entries_created_at'), 'waitlist_entries', ['created_at'])
    # Queue scans: pending entries oldest first
    op.create_index(
        'ix_waitlist_entries_status_registered_at',
        'waitlist_entries',
        ['status', 'registered_at'],
    )
    # At most one pending or notified entry per email
    op.create_index(
        'uq_waitlist_entries_active_email',
        'waitlist_entries',
        ['email'],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'NOTIFIED')"),
    )


def downgrade() -> None:
    """Drop all tables."""
    # Drop tables in reverse dependency order
    op.drop_table('waitlist_entries')
    op.drop_table('usage_logs')
    op.drop_table('subscriptions')
    op.drop_table('plans')
    op.drop_table('users')

    # Drop enums
    op.execute("DROP TYPE IF EXISTS waitliststatus")
    op.execute("DROP TYPE IF EXISTS usageaction")
    op.execute("DROP TYPE IF EXISTS subscriptionstatus")
    op.execute("DROP TYPE IF EXISTS plantier")
    op.execute("DROP TYPE IF EXISTS userrole")
