"""
Performance Scoring - Persistence Models.

============================================================
PURPOSE
============================================================
ORM models for scores and snapshots the caller chooses to keep.
Nothing is written during a plain score calculation.

============================================================
MODELS
============================================================
1. RiskScore: one composite score for an entity and window
2. RiskIntervention: follow-up action on a risk score
3. PerformanceSnapshot: agent metrics for a period
4. ServiceQualitySnapshot: company metrics for a period

============================================================
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database.engine import Base
from database.models import generate_uuid


# ============================================================
# RISK SCORE MODEL
# ============================================================


class RiskScore(Base):
    """
    Persisted composite risk score.

    flagged_metrics holds the same map the calculator returns:
    {name: {current, threshold, severity}}.
    """

    __tablename__ = "risk_scores"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    entity_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="'agent' or 'company'",
    )
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)

    score: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Risk score (0-100)",
    )
    composite: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Weighted composite (0-100, higher is better)",
    )

    period_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    period_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    flagged_metrics: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    category_scores: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    engine_version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0.0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
    )

    interventions: Mapped[List["RiskIntervention"]] = relationship(
        "RiskIntervention",
        back_populates="risk_score",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_risk_scores_entity", "entity_type", "entity_id"),
        Index("ix_risk_scores_created_at", "created_at"),
        Index("ix_risk_scores_score", "score"),
    )

    @property
    def has_high_severity(self) -> bool:
        return any(
            isinstance(flag, dict) and flag.get("severity") == "high"
            for flag in (self.flagged_metrics or {}).values()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "score": self.score,
            "periodStart": self.period_start.isoformat() if self.period_start else None,
            "periodEnd": self.period_end.isoformat() if self.period_end else None,
            "flaggedMetrics": self.flagged_metrics or {},
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"RiskScore("
            f"id={self.id}, "
            f"{self.entity_type}:{self.entity_id}, "
            f"score={self.score})"
        )


# ============================================================
# RISK INTERVENTION MODEL
# ============================================================


class RiskIntervention(Base):
    """
    Follow-up action opened against a risk score.

    status: open -> in_progress -> closed
    """

    __tablename__ = "risk_interventions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    risk_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("risk_scores.id", ondelete="CASCADE"),
        nullable=False,
    )

    action: Mapped[str] = mapped_column(Text, nullable=False)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    risk_score: Mapped["RiskScore"] = relationship("RiskScore", back_populates="interventions")

    __table_args__ = (
        Index("ix_risk_interventions_risk_id", "risk_id"),
        Index("ix_risk_interventions_status", "status"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "riskId": self.risk_id,
            "action": self.action,
            "assignedTo": self.assigned_to,
            "status": self.status,
            "notes": self.notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }


# ============================================================
# SNAPSHOT MODELS
# ============================================================


class PerformanceSnapshot(Base):
    """Agent performance metrics over one period."""

    __tablename__ = "performance_snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    agent_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    period_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    period_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    metrics: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class ServiceQualitySnapshot(Base):
    """Company service quality metrics over one period."""

    __tablename__ = "service_quality_snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    company_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    period_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    period_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    metrics: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
