"""
VerdictTrace - SQLAlchemy ORM Models
Persistent storage for investigation cases, their audit trail,
scan settings and notification bookkeeping.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey, Boolean,
    Enum as SQLEnum, UniqueConstraint, event,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..exceptions import AuditImmutableError
from .signals import CaseStatus, AuditAction, SeverityTier, TERMINAL_STATUSES


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# CASES
# =============================================================================

class CaseDB(Base):
    """
    Investigation case opened from a cluster that crossed the confidence gate.

    Created only by the scan path; mutated by rescans and human actions;
    never deleted. live_flag is True while the case is live and NULL once it
    reaches a terminal status. NULLs never collide in a UNIQUE constraint, so
    (product_sku, failure_mode, live_flag) allows at most one live case per pair.
    """
    __tablename__ = "cases"
    __table_args__ = (
        UniqueConstraint("product_sku", "failure_mode", "live_flag", name="uq_cases_one_live"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    title = Column(String(255), nullable=False)

    # Cluster keys
    product_sku = Column(String(100), nullable=False, index=True)
    failure_mode = Column(String(255), nullable=False, index=True)
    live_flag = Column(Boolean, nullable=True)  # True while live, NULL once terminal

    # Classification
    severity_tier = Column(Integer, nullable=False, default=int(SeverityTier.MONITOR))
    status = Column(SQLEnum(CaseStatus), nullable=False, default=CaseStatus.OPEN, index=True)
    confidence_score = Column(Float, nullable=False, default=0.0)

    # Metrics
    complaint_count = Column(Integer, nullable=False, default=0)
    injury_count = Column(Integer, nullable=False, default=0)
    geo_regions = Column(JSON, default=list)

    # Evidence pack
    narrative = Column(Text, nullable=True)
    exemplar_ids = Column(JSON, default=list)
    trend_data = Column(JSON, default=dict)  # {"2024-01-01": 3, ...} chronological
    query_trace = Column(JSON, nullable=True)  # Queries that produced this case

    # Window the case was opened for
    date_range_start = Column(DateTime, nullable=True)
    date_range_end = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)

    # Relationships
    audit_log = relationship(
        "CaseAuditEntryDB",
        back_populates="case",
        order_by="CaseAuditEntryDB.sequence",
        cascade="all, delete-orphan",
    )

    @property
    def tier(self) -> SeverityTier:
        return SeverityTier(self.severity_tier)

    @property
    def is_live(self) -> bool:
        return self.status not in TERMINAL_STATUSES


class CaseAuditEntryDB(Base):
    """
    Immutable record of a case mutation.
    Append-only - rows are inserted and never updated or deleted.
    sequence preserves insertion order within a case.
    """
    __tablename__ = "case_audit_log"
    __table_args__ = (
        UniqueConstraint("case_id", "sequence", name="uq_case_audit_sequence"),
    )

    id = Column(String(36), primary_key=True)  # UUID
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    action = Column(SQLEnum(AuditAction), nullable=False)
    actor_id = Column(String(64), nullable=False)
    actor_name = Column(String(255), nullable=False)
    reason = Column(Text, nullable=True)

    # Timestamps (immutable)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    case = relationship("CaseDB", back_populates="audit_log")


@event.listens_for(CaseAuditEntryDB, "before_update")
def _refuse_audit_update(mapper, connection, target):
    raise AuditImmutableError(f"Audit entry {target.id} is immutable")


@event.listens_for(CaseAuditEntryDB, "before_delete")
def _refuse_audit_delete(mapper, connection, target):
    raise AuditImmutableError(f"Audit entry {target.id} cannot be deleted")


# =============================================================================
# CONFIGURATION & NOTIFICATIONS
# =============================================================================

class SettingDB(Base):
    """Mutable key/value settings (scan thresholds)."""
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(String(255), nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class RecipientDB(Base):
    """Investigator who may receive alert emails."""
    __tablename__ = "recipients"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    notify_email = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)


class NotificationDB(Base):
    """In-app notification raised for a case event."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)  # UUID
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=True, index=True)
    type = Column(String(50), nullable=False, default="escalation")
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to the naive UTC form stored in the database."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
