"""
Database models for companies, audits, users, notifications and tier history.

Audits reference companies and users by id only (no foreign keys): companies can
be removed independently, leaving orphaned audits that are cleaned up out of band.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    String, Text, Float, Boolean, DateTime, Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from auditdesk.core.clock import utcnow
from auditdesk.db.database import Base


# === ENUMS ===

class CompanyTier(str, Enum):
    TIER_1 = "TIER_1"  # established, high ad spend: quarterly audits
    TIER_2 = "TIER_2"  # new company: weekly audits
    TIER_3 = "TIER_3"  # established, low ad spend: monthly audits


class AuditStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"


class UserRole(str, Enum):
    CEO = "CEO"
    MANAGER = "MANAGER"
    TEAM_MEMBER = "TEAM_MEMBER"


class NotificationType(str, Enum):
    MEETING_REMINDER = "MEETING_REMINDER"
    AUDIT_DUE = "AUDIT_DUE"
    COMPANY_MILESTONE = "COMPANY_MILESTONE"


class TierChangeReason(str, Enum):
    AUTOMATIC = "AUTOMATIC"
    MANUAL_OVERRIDE = "MANUAL_OVERRIDE"


# === MODELS ===

class Company(Base):
    """Client company whose account is audited on a tier-based cadence"""
    __tablename__ = "companies"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ad_spend: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)  # recurring (weekly) spend
    tier: Mapped[CompanyTier] = mapped_column(SQLEnum(CompanyTier), default=CompanyTier.TIER_2, nullable=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class Audit(Base):
    """Scheduled compliance review of one company"""
    __tablename__ = "audits"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    scheduled_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)  # set iff COMPLETED
    assigned_to: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    status: Mapped[AuditStatus] = mapped_column(SQLEnum(AuditStatus), default=AuditStatus.SCHEDULED, nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class User(Base):
    """Staff member that can be assigned audits"""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), default=UserRole.TEAM_MEMBER, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Notification(Base):
    """Queued in-app notification; delivery transports read from here"""
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    type: Mapped[NotificationType] = mapped_column(SQLEnum(NotificationType), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_company_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    scheduled_for: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class TierChangeLog(Base):
    """History of tier transitions, automatic or manual"""
    __tablename__ = "tier_change_logs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    old_tier: Mapped[CompanyTier] = mapped_column(SQLEnum(CompanyTier), nullable=False)
    new_tier: Mapped[CompanyTier] = mapped_column(SQLEnum(CompanyTier), nullable=False)
    reason: Mapped[TierChangeReason] = mapped_column(SQLEnum(TierChangeReason), nullable=False)
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
