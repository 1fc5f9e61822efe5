"""
Initial schema: accounts and sessions, site settings, rate limits, gift cards,
course purchases, calendar events and bookings, subscriptions and audits.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'initial_20260101'
down_revision = None
branch_labels = None
depends_on = None


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('role', sa.String(length=10), nullable=False, server_default='USER'),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('must_change_password', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('created_at', nullable=False),
        _ts('updated_at'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'auth_sessions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_id', sa.String(length=64), nullable=False, unique=True),
        sa.Column('token_hash', sa.Text(), nullable=False),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        _ts('created_at', nullable=False),
        _ts('last_used_at'),
        _ts('expires_at', nullable=False),
        _ts('revoked_at'),
    )
    op.create_index('idx_auth_sessions_user_created', 'auth_sessions', ['user_id', 'created_at'])

    op.create_table(
        'password_reset_tokens',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_digest', sa.String(length=64), nullable=False, unique=True),
        _ts('expires_at', nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('created_at', nullable=False),
    )
    op.create_index('ix_password_reset_tokens_user_id', 'password_reset_tokens', ['user_id'])

    op.create_table(
        'email_verification_tokens',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_digest', sa.String(length=64), nullable=False, unique=True),
        _ts('expires_at', nullable=False),
        _ts('created_at', nullable=False),
    )
    op.create_index('ix_email_verification_tokens_user_id', 'email_verification_tokens', ['user_id'])

    op.create_table(
        'settings',
        sa.Column('key', sa.String(length=100), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('encrypted', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('updated_at'),
    )

    op.create_table(
        'rate_limits',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('ip_address', sa.String(length=64), nullable=False),
        sa.Column('endpoint', sa.String(length=100), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
        _ts('window_start', nullable=False),
        sa.UniqueConstraint('ip_address', 'endpoint', name='uq_rate_limits_ip_endpoint'),
    )

    op.create_table(
        'gift_cards',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('original_amount', sa.Integer(), nullable=False),
        sa.Column('remaining_amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('purchaser_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('purchaser_email', sa.String(), nullable=False),
        sa.Column('purchaser_name', sa.String(), nullable=True),
        sa.Column('recipient_email', sa.String(), nullable=True),
        sa.Column('recipient_name', sa.String(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        _ts('expires_at'),
        _ts('created_at', nullable=False),
        _ts('updated_at'),
    )
    op.create_index('ix_gift_cards_code', 'gift_cards', ['code'], unique=True)
    op.create_index('idx_gift_cards_recipient_email', 'gift_cards', ['recipient_email'])
    op.create_index('idx_gift_cards_purchaser_email', 'gift_cards', ['purchaser_email'])

    op.create_table(
        'gift_card_transactions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('gift_card_id', sa.Integer(), sa.ForeignKey('gift_cards.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index('ix_gift_card_transactions_gift_card_id', 'gift_card_transactions', ['gift_card_id'])

    op.create_table(
        'course_purchases',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_slug', sa.String(length=100), nullable=False),
        sa.Column('amount_paid', sa.Integer(), nullable=False),
        sa.Column('gift_card_code', sa.String(length=16), nullable=True),
        sa.Column('gift_card_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        _ts('expires_at'),
        _ts('purchased_at', nullable=False),
        sa.UniqueConstraint('user_id', 'course_slug', name='uq_course_purchases_user_course'),
    )
    op.create_index('ix_course_purchases_user_id', 'course_purchases', ['user_id'])

    op.create_table(
        'calendar_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _ts('start_time', nullable=False),
        _ts('end_time', nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _ts('created_at', nullable=False),
        _ts('updated_at'),
    )
    op.create_index('idx_calendar_events_start', 'calendar_events', ['start_time'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('calendar_events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='confirmed'),
        sa.Column('notes', sa.Text(), nullable=True),
        _ts('created_at', nullable=False),
        _ts('cancelled_at'),
    )
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'])
    op.create_index('ix_bookings_event_id', 'bookings', ['event_id'])
    op.create_index('idx_bookings_event_status', 'bookings', ['event_id', 'status'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tier', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        _ts('current_period_start', nullable=False),
        _ts('current_period_end'),
        _ts('created_at', nullable=False),
        _ts('cancelled_at'),
    )
    op.create_index('idx_subscriptions_user_status', 'subscriptions', ['user_id', 'status'])

    op.create_table(
        'admin_action_audits',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('target_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index('ix_admin_action_audits_admin_created', 'admin_action_audits', ['admin_id', 'created_at'])
    op.create_index('ix_admin_action_audits_action', 'admin_action_audits', ['action'])

    op.create_table(
        'password_change_audits',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('changed_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('change_type', sa.String(length=30), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        _ts('created_at', nullable=False),
    )
    op.create_index('ix_password_change_audits_user_created', 'password_change_audits', ['user_id', 'created_at'])


def downgrade() -> None:
    for table in (
        'password_change_audits',
        'admin_action_audits',
        'subscriptions',
        'bookings',
        'calendar_events',
        'course_purchases',
        'gift_card_transactions',
        'gift_cards',
        'rate_limits',
        'settings',
        'email_verification_tokens',
        'password_reset_tokens',
        'auth_sessions',
        'users',
    ):
        op.drop_table(table)
