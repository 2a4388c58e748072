"""Initial Icons Herald schema

Revision ID: a1c4e7b2d9f0
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates:
- users, revoked_tokens (accounts, sessions)
- nominations (intake & review queue)
- profiles, payments (builder drafts, Publish & Pay)
- analytics_events, audit_logs, system_settings
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = 'a1c4e7b2d9f0'
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names, matching SQLEnum(PyEnum) in models.py.
# Types are created once up front since several tables share them.
user_role = postgresql.ENUM('SUPER_ADMIN', 'ADMIN', 'MEMBER', 'APPLICANT', 'VISITOR', name='userrole', create_type=False)
user_status = postgresql.ENUM('ACTIVE', 'SUSPENDED', 'BANNED', name='userstatus', create_type=False)
profile_tier = postgresql.ENUM('EMERGING', 'ACCOMPLISHED', 'DISTINGUISHED', 'LEGACY', name='profiletier', create_type=False)
nomination_status = postgresql.ENUM('PENDING', 'APPROVED', 'REJECTED', 'FLAGGED', name='nominationstatus', create_type=False)
profile_status = postgresql.ENUM('DRAFT', 'PUBLISHED', 'ARCHIVED', name='profilestatus', create_type=False)
profile_payment_status = postgresql.ENUM('PENDING', 'COMPLETED', 'FAILED', name='profilepaymentstatus', create_type=False)
payment_status = postgresql.ENUM('CREATED', 'AUTHORIZED', 'CAPTURED', 'REFUNDED', 'FAILED', name='paymentstatus', create_type=False)
audit_event_type = postgresql.ENUM(
    'USER_LOGIN', 'USER_LOGOUT', 'USER_REGISTER', 'PASSWORD_CHANGED',
    'USER_ROLE_CHANGED', 'USER_STATUS_CHANGED',
    'NOMINATION_APPROVED', 'NOMINATION_REJECTED', 'NOMINATION_FLAGGED', 'INVITATION_FAILED',
    'PROFILE_PUBLISHED', 'PROFILE_ARCHIVED', 'PROFILE_RESTORED',
    'PAYMENT_CAPTURED', 'PAYMENT_FAILED', 'PAYMENT_REFUNDED',
    'SETTINGS_UPDATED', 'IMPERSONATION_STARTED', 'IMPERSONATION_ENDED',
    name='auditeventtype',
    create_type=False,
)

ALL_ENUMS = (
    user_role, user_status, profile_tier, nomination_status,
    profile_status, profile_payment_status, payment_status, audit_event_type,
)


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ALL_ENUMS:
        enum.create(bind, checkfirst=True)

    # ---- users ----
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('status', user_status, nullable=False),
        sa.Column('tier', profile_tier, nullable=True),
        sa.Column('must_reset_password', sa.Boolean(), default=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_status', 'users', ['status'])
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    # ---- revoked_tokens ----
    op.create_table(
        'revoked_tokens',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('jti', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True)),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_revoked_tokens_jti', 'revoked_tokens', ['jti'], unique=True)

    # ---- nominations ----
    op.create_table(
        'nominations',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('nominator_name', sa.String(), nullable=False),
        sa.Column('nominator_email', sa.String(), nullable=False),
        sa.Column('nominee_name', sa.String(), nullable=False),
        sa.Column('nominee_email', sa.String(), nullable=False),
        sa.Column('pitch', sa.Text(), nullable=False),
        sa.Column('desired_tier', profile_tier, nullable=False),
        sa.Column('links', sa.JSON(), nullable=False),
        sa.Column('status', nomination_status, nullable=False),
        sa.Column('assigned_tier', profile_tier, nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('flag_reason', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('nominee_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_nominations_nominee_name', 'nominations', ['nominee_name'])
    op.create_index('ix_nominations_nominee_email', 'nominations', ['nominee_email'])
    op.create_index('ix_nominations_desired_tier', 'nominations', ['desired_tier'])
    op.create_index('ix_nominations_status', 'nominations', ['status'])
    op.create_index('ix_nominations_created_at', 'nominations', ['created_at'])
    op.create_index('idx_nomination_status_created', 'nominations', ['status', 'created_at'])

    # ---- profiles ----
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('tier', profile_tier, nullable=False),
        sa.Column('status', profile_status, nullable=False),
        sa.Column('slug', sa.String(), nullable=False),
        sa.Column('content', sa.JSON(), nullable=False),
        sa.Column('theme_settings', sa.JSON(), nullable=False),
        sa.Column('template', sa.String(), nullable=True),
        sa.Column('meta_title', sa.String(), nullable=True),
        sa.Column('meta_description', sa.String(), nullable=True),
        sa.Column('payment_status', profile_payment_status, nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_user_id', 'profiles', ['user_id'], unique=True)
    op.create_index('ix_profiles_slug', 'profiles', ['slug'], unique=True)
    op.create_index('ix_profiles_tier', 'profiles', ['tier'])
    op.create_index('ix_profiles_status', 'profiles', ['status'])
    op.create_index('ix_profiles_created_at', 'profiles', ['created_at'])
    op.create_index('idx_profile_status_tier', 'profiles', ['status', 'tier'])

    # ---- payments ----
    op.create_table(
        'payments',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('profile_id', sa.String(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('tier', profile_tier, nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(), nullable=False),
        sa.Column('status', payment_status, nullable=False),
        sa.Column('gateway_order_id', sa.String(), nullable=False),
        sa.Column('gateway_payment_id', sa.String(), nullable=True),
        sa.Column('gateway_signature', sa.String(), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payments_profile_id', 'payments', ['profile_id'])
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_gateway_order_id', 'payments', ['gateway_order_id'], unique=True)
    op.create_index('ix_payments_gateway_payment_id', 'payments', ['gateway_payment_id'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])

    # ---- analytics_events ----
    op.create_table(
        'analytics_events',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('profile_id', sa.String(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('visitor_id', sa.String(), nullable=True),
        sa.Column('source', sa.String(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_analytics_events_event_type', 'analytics_events', ['event_type'])
    op.create_index('ix_analytics_events_profile_id', 'analytics_events', ['profile_id'])
    op.create_index('ix_analytics_events_created_at', 'analytics_events', ['created_at'])
    op.create_index('idx_analytics_profile_type_created', 'analytics_events', ['profile_id', 'event_type', 'created_at'])

    # ---- audit_logs ----
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True)),
        sa.Column('event_type', audit_event_type, nullable=False),
        sa.Column('actor_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('resource_type', sa.String(), nullable=True),
        sa.Column('resource_id', sa.String(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('request_id', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])
    op.create_index('ix_audit_logs_event_type', 'audit_logs', ['event_type'])
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_request_id', 'audit_logs', ['request_id'], unique=False)
    op.create_index('idx_audit_event_timestamp', 'audit_logs', ['event_type', 'timestamp'])

    # ---- system_settings ----
    op.create_table(
        'system_settings',
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_by', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade() -> None:
    op.drop_table('system_settings')
    op.drop_table('audit_logs')
    op.drop_table('analytics_events')
    op.drop_table('payments')
    op.drop_table('profiles')
    op.drop_table('nominations')
    op.drop_table('revoked_tokens')
    op.drop_table('users')
    bind = op.get_bind()
    for enum in reversed(ALL_ENUMS):
        enum.drop(bind, checkfirst=True)
