"""
Database ORM Models - Operational Tables.

============================================================
OPERATIONAL SCHEMA
============================================================

The subset of the FieldOps operational schema that the
analytics read:

1. work_orders  - dispatched jobs, schedule vs actual times
2. feedback     - client star ratings for agents
3. issues       - hazards/problems raised on work orders
4. audit_logs   - action trail written by audit.AuditLogger

Analytics never update these rows. audit_logs is append-only.

============================================================
"""

from datetime import datetime
import uuid

from sqlalchemy import (
    Column, Integer, String, Text, Boolean,
    DateTime, JSON, ForeignKey, Index,
)
from sqlalchemy.orm import relationship

from .engine import Base


# =============================================================
# HELPER FUNCTIONS
# =============================================================

def generate_uuid():
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utc_now():
    """Get current UTC timestamp (naive, storage convention)."""
    return datetime.utcnow()


# =============================================================
# 1. WORK ORDERS
# =============================================================

class WorkOrder(Base):
    """
    A dispatched field-service job.

    status: scheduled, confirmed, in_progress, pending, completed, cancelled
    """
    __tablename__ = "work_orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_id = Column(String(36), nullable=False, index=True)
    assignee_id = Column(String(36), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    priority = Column(String(20), nullable=False, default="medium")
    status = Column(String(20), nullable=False, default="scheduled", index=True)

    # Schedule vs actual
    scheduled_start = Column(DateTime, nullable=True)
    scheduled_end = Column(DateTime, nullable=True)
    actual_start = Column(DateTime, nullable=True)
    actual_end = Column(DateTime, nullable=True)

    due_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    feedback = relationship("Feedback", back_populates="work_order")
    issues = relationship("Issue", back_populates="work_order")

    __table_args__ = (
        Index("idx_work_orders_company_created", "company_id", "created_at"),
        Index("idx_work_orders_assignee_created", "assignee_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"WorkOrder(id={self.id}, status={self.status})"


# =============================================================
# 2. FEEDBACK
# =============================================================

class Feedback(Base):
    """Client rating of an agent for one work order (1-5 stars)."""
    __tablename__ = "feedback"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    work_order_id = Column(String(36), ForeignKey("work_orders.id"), nullable=False, index=True)
    given_by = Column(String(36), nullable=False)
    given_to = Column(String(36), nullable=False, index=True)

    stars = Column(Integer, nullable=False)
    category_scores = Column(JSON, nullable=True)
    comments = Column(Text, nullable=True)
    would_hire_again = Column(Boolean, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)

    work_order = relationship("WorkOrder", back_populates="feedback")


# =============================================================
# 3. ISSUES
# =============================================================

class Issue(Base):
    """
    Hazard or problem reported against a work order.

    status: open, investigating, resolved, closed
    """
    __tablename__ = "issues"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    work_order_id = Column(String(36), ForeignKey("work_orders.id"), nullable=False, index=True)
    company_id = Column(String(36), nullable=False, index=True)
    reported_by_id = Column(String(36), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    severity = Column(String(20), nullable=False, default="medium")
    category = Column(String(50), nullable=False, default="other")
    status = Column(String(20), nullable=False, default="open", index=True)

    resolved_by_id = Column(String(36), nullable=True)
    resolution = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)

    work_order = relationship("WorkOrder", back_populates="issues")


# =============================================================
# 4. AUDIT LOGS
# =============================================================

class AuditLog(Base):
    """
    One recorded system action.

    Append-only. previous_state/new_state/metadata hold JSON text
    with sensitive keys already redacted.
    """
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(100), nullable=False, index=True)
    action = Column(String(100), nullable=False, index=True)
    performed_by = Column(String(100), nullable=False, index=True)

    previous_state = Column(Text, nullable=True)
    new_state = Column(Text, nullable=True)
    reason = Column(Text, nullable=True)
    metadata_json = Column("metadata", Text, nullable=True)

    risk_level = Column(String(10), nullable=False, default="low", index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    session_id = Column(String(100), nullable=True)

    timestamp = Column(DateTime, nullable=False, default=utc_now, index=True)

    __table_args__ = (
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
        Index("idx_audit_logs_performer_time", "performed_by", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"AuditLog(id={self.id}, {self.entity_type}:{self.entity_id}, "
            f"action={self.action}, risk={self.risk_level})"
        )
