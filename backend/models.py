# models.py — Database models for Icons Herald
# - UUID primary keys everywhere
# - 5-role system (super_admin, admin, member, applicant, visitor)
# - Nomination intake & review queue
# - Tiered profiles with JSON content documents
# - Payment attempts, analytics events, audit trail, system settings

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, JSON, Boolean, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


def as_utc(value):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, PyEnum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MEMBER = "member"
    APPLICANT = "applicant"
    VISITOR = "visitor"


class UserStatus(str, PyEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class ProfileTier(str, PyEnum):
    EMERGING = "emerging"
    ACCOMPLISHED = "accomplished"
    DISTINGUISHED = "distinguished"
    LEGACY = "legacy"


class NominationStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


class ProfileStatus(str, PyEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ProfilePaymentStatus(str, PyEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentStatus(str, PyEnum):
    CREATED = "created"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    REFUNDED = "refunded"
    FAILED = "failed"


class AuditEventType(str, PyEnum):
    # Auth events
    USER_LOGIN = "auth.user.login"
    USER_LOGOUT = "auth.user.logout"
    USER_REGISTER = "auth.user.register"
    PASSWORD_CHANGED = "auth.password.changed"
    # User management
    USER_ROLE_CHANGED = "users.role_changed"
    USER_STATUS_CHANGED = "users.status_changed"
    # Nomination review
    NOMINATION_APPROVED = "nomination.approved"
    NOMINATION_REJECTED = "nomination.rejected"
    NOMINATION_FLAGGED = "nomination.flagged"
    INVITATION_FAILED = "nomination.invitation_failed"
    # Profiles & payments
    PROFILE_PUBLISHED = "profile.published"
    PROFILE_ARCHIVED = "profile.archived"
    PROFILE_RESTORED = "profile.restored"
    PAYMENT_CAPTURED = "payment.captured"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_REFUNDED = "payment.refunded"
    # Platform
    SETTINGS_UPDATED = "admin.settings.updated"
    IMPERSONATION_STARTED = "admin.impersonation.started"
    IMPERSONATION_ENDED = "admin.impersonation.ended"


# ============================================================
# USERS
# ============================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=False, default="")
    password_hash = Column(String, nullable=False)
    role = Column(SQLEnum(UserRole), default=UserRole.VISITOR, nullable=False, index=True)
    status = Column(SQLEnum(UserStatus), default=UserStatus.ACTIVE, nullable=False, index=True)
    tier = Column(SQLEnum(ProfileTier), nullable=True)
    must_reset_password = Column(Boolean, default=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    profile = relationship("Profile", back_populates="user", uselist=False)
    audit_logs = relationship("AuditLog", back_populates="actor", foreign_keys="AuditLog.actor_id")


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    id = Column(String, primary_key=True, default=new_uuid)
    jti = Column(String, unique=True, nullable=False, index=True)  # JWT ID
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)


# ============================================================
# NOMINATIONS
# ============================================================

class Nomination(Base):
    __tablename__ = "nominations"

    id = Column(String, primary_key=True, default=new_uuid)
    nominator_name = Column(String, nullable=False)
    nominator_email = Column(String, nullable=False)
    nominee_name = Column(String, nullable=False, index=True)
    nominee_email = Column(String, nullable=False, index=True)
    pitch = Column(Text, nullable=False)
    desired_tier = Column(SQLEnum(ProfileTier), nullable=False, index=True)
    links = Column(JSON, nullable=False, default=list)
    status = Column(SQLEnum(NominationStatus), default=NominationStatus.PENDING, nullable=False, index=True)
    assigned_tier = Column(SQLEnum(ProfileTier), nullable=True)
    admin_notes = Column(Text, nullable=True)
    flag_reason = Column(Text, nullable=True)
    reviewed_by = Column(String, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    nominee_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_nomination_status_created", "status", "created_at"),
    )


# ============================================================
# PROFILES
# ============================================================

class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    tier = Column(SQLEnum(ProfileTier), nullable=False, index=True)
    status = Column(SQLEnum(ProfileStatus), default=ProfileStatus.DRAFT, nullable=False, index=True)
    slug = Column(String, unique=True, nullable=False, index=True)
    content = Column(JSON, nullable=False, default=dict)
    theme_settings = Column(JSON, nullable=False, default=dict)
    template = Column(String, nullable=True)
    meta_title = Column(String, nullable=True)
    meta_description = Column(String, nullable=True)
    payment_status = Column(SQLEnum(ProfilePaymentStatus), default=ProfilePaymentStatus.PENDING, nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    view_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="profile")
    payments = relationship("Payment", back_populates="profile")

    __table_args__ = (
        Index("idx_profile_status_tier", "status", "tier"),
    )


# ============================================================
# PAYMENTS
# ============================================================

class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=new_uuid)
    profile_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    tier = Column(SQLEnum(ProfileTier), nullable=False)
    amount = Column(Integer, nullable=False)  # smallest currency unit (paise)
    currency = Column(String, nullable=False, default="INR")
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.CREATED, nullable=False, index=True)
    gateway_order_id = Column(String, unique=True, nullable=False, index=True)
    gateway_payment_id = Column(String, nullable=True, index=True)
    gateway_signature = Column(String, nullable=True)
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    profile = relationship("Profile", back_populates="payments")


# ============================================================
# ANALYTICS
# ============================================================

class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(String, primary_key=True, default=new_uuid)
    event_type = Column(String, nullable=False, index=True)
    profile_id = Column(String, ForeignKey("profiles.id"), nullable=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True)
    visitor_id = Column(String, nullable=True)
    source = Column(String, nullable=True)
    event_data = Column("metadata", JSON, nullable=False, default=dict)
    ip_address = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    __table_args__ = (
        Index("idx_analytics_profile_type_created", "profile_id", "event_type", "created_at"),
    )


# ============================================================
# AUDIT LOG
# ============================================================

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=new_uuid)
    timestamp = Column(DateTime(timezone=True), default=utcnow, index=True)
    event_type = Column(SQLEnum(AuditEventType), nullable=False, index=True)
    actor_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    resource_type = Column(String, nullable=True)
    resource_id = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    request_id = Column(String, index=True)

    actor = relationship("User", back_populates="audit_logs", foreign_keys=[actor_id])

    __table_args__ = (
        Index("idx_audit_event_timestamp", "event_type", "timestamp"),
    )


# ============================================================
# SYSTEM SETTINGS
# ============================================================

class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    updated_by = Column(String, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
