"""
Performance Scoring - Repository.

============================================================
PURPOSE
============================================================
Repository pattern implementation for scoring persistence.

Provides clean interface for:
- Saving risk scores
- Querying latest and historical scores
- Opening and progressing interventions
- Storing agent and company metric snapshots

Repositories flush; committing is the caller's job.

============================================================
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from core.clock import utcnow_naive
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import RecordNotFoundError, ValidationError

from .models import (
    PerformanceSnapshot,
    RiskIntervention,
    RiskScore,
    ServiceQualitySnapshot,
)
from .types import CompositeScore, EntityType


INTERVENTION_STATUSES = ("open", "in_progress", "closed")


class RiskScoreRepository(BaseRepository[RiskScore]):
    """
    Repository for risk scores and their interventions.

    ============================================================
    METHODS
    ============================================================
    - save_risk_score: Persist a CompositeScore
    - get_latest_for_entity: Most recent score for an entity
    - get_risk_scores: Filtered listing, newest first
    - create_intervention / update_intervention_status
    - get_interventions

    ============================================================
    """

    def __init__(self, session: Session, engine_version: str = "1.0.0"):
        super().__init__(session, RiskScore, "RiskScoreRepository")
        self._engine_version = engine_version

    # --------------------------------------------------------
    # WRITE OPERATIONS
    # --------------------------------------------------------

    def save_risk_score(
        self,
        result: CompositeScore,
        created_at: Optional[datetime] = None,
    ) -> RiskScore:
        """
        Persist a composite score.

        created_at defaults to now (naive UTC).

        Raises:
            ValidationError: If the result carries no window
        """
        if result.window is None:
            raise ValidationError(
                repository_name=self._repository_name,
                operation="save_risk_score",
                field="window",
                reason="score must carry the window it was computed for",
            )

        record = RiskScore(
            entity_type=result.window.entity_type.value,
            entity_id=result.window.entity_id,
            score=result.score,
            composite=round(result.composite, 4),
            period_start=result.window.period_start,
            period_end=result.window.period_end,
            flagged_metrics=result.to_dict()["flaggedMetrics"],
            category_scores=result.category_scores.to_dict(),
            engine_version=self._engine_version,
            created_at=created_at or utcnow_naive(),
        )
        self._add(record)
        self._logger.info(
            f"Saved risk score {record.score} for "
            f"{record.entity_type}:{record.entity_id}"
        )
        return record

    def create_intervention(
        self,
        risk_id: str,
        action: str,
        assigned_to: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> RiskIntervention:
        """
        Open an intervention on an existing risk score.

        Raises:
            RecordNotFoundError: If the risk score does not exist
        """
        self._get_by_id_or_raise(risk_id, id_field="risk_id")
        intervention = RiskIntervention(
            risk_id=risk_id,
            action=action,
            assigned_to=assigned_to,
            notes=notes,
            status="open",
        )
        self._add(intervention)
        self._logger.info(f"Opened intervention on risk score {risk_id}")
        return intervention

    def update_intervention_status(
        self,
        intervention_id: str,
        status: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RiskIntervention:
        """
        Move an intervention to a new status.

        Closing stamps completed_at; reopening clears it.

        Raises:
            ValidationError: On an unknown status
            RecordNotFoundError: If the intervention does not exist
            RepositoryException: If the lookup or flush fails
        """
        if status not in INTERVENTION_STATUSES:
            raise ValidationError(
                repository_name=self._repository_name,
                operation="update_intervention_status",
                field="status",
                reason=f"must be one of {', '.join(INTERVENTION_STATUSES)}",
            )

        intervention = self._execute_scalar(
            select(RiskIntervention).where(RiskIntervention.id == intervention_id),
            "update_intervention_status",
        )
        if intervention is None:
            raise RecordNotFoundError(
                repository_name=self._repository_name,
                record_id=intervention_id,
                id_field="intervention_id",
            )

        stamp = now or utcnow_naive()
        intervention.status = status
        intervention.updated_at = stamp
        intervention.completed_at = stamp if status == "closed" else None
        if notes is not None:
            intervention.notes = notes

        self._flush("update_intervention_status")
        return intervention

    # --------------------------------------------------------
    # READ OPERATIONS
    # --------------------------------------------------------

    def get_by_id(self, risk_id: str) -> Optional[RiskScore]:
        return self._get_by_id(risk_id)

    def get_latest_for_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
    ) -> Optional[RiskScore]:
        stmt = (
            select(RiskScore)
            .where(RiskScore.entity_type == EntityType.parse(entity_type).value)
            .where(RiskScore.entity_id == entity_id)
            .order_by(desc(RiskScore.created_at))
            .limit(1)
        )
        rows = self._execute_query(stmt, "get_latest_for_entity")
        return rows[0] if rows else None

    def get_risk_scores(
        self,
        entity_type: Optional[EntityType] = None,
        min_score: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[RiskScore]:
        """Scores newest first, optionally filtered."""
        stmt = select(RiskScore)
        if entity_type is not None:
            stmt = stmt.where(RiskScore.entity_type == EntityType.parse(entity_type).value)
        if min_score is not None:
            stmt = stmt.where(RiskScore.score >= min_score)
        stmt = stmt.order_by(desc(RiskScore.created_at)).limit(limit).offset(offset)
        return self._execute_query(stmt, "get_risk_scores")

    def get_interventions(
        self,
        risk_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[RiskIntervention]:
        stmt = select(RiskIntervention)
        if risk_id is not None:
            stmt = stmt.where(RiskIntervention.risk_id == risk_id)
        if status is not None:
            stmt = stmt.where(RiskIntervention.status == status)
        stmt = stmt.order_by(desc(RiskIntervention.created_at))
        return self._execute_query(stmt, "get_interventions")


class SnapshotRepository(BaseRepository[PerformanceSnapshot]):
    """Agent performance and company service quality snapshots."""

    def __init__(self, session: Session):
        super().__init__(session, PerformanceSnapshot, "SnapshotRepository")

    def create_performance_snapshot(
        self,
        agent_id: str,
        period_start: Optional[date],
        period_end: Optional[date],
        metrics: Dict[str, Any],
    ) -> PerformanceSnapshot:
        snapshot = PerformanceSnapshot(
            agent_id=agent_id,
            period_start=period_start,
            period_end=period_end,
            metrics=metrics,
        )
        return self._add(snapshot)

    def create_service_quality_snapshot(
        self,
        company_id: str,
        period_start: Optional[date],
        period_end: Optional[date],
        metrics: Dict[str, Any],
    ) -> ServiceQualitySnapshot:
        snapshot = ServiceQualitySnapshot(
            company_id=company_id,
            period_start=period_start,
            period_end=period_end,
            metrics=metrics,
        )
        return self._add(snapshot)

    def get_performance_snapshots(self, agent_id: str, limit: int = 12) -> List[PerformanceSnapshot]:
        stmt = (
            select(PerformanceSnapshot)
            .where(PerformanceSnapshot.agent_id == agent_id)
            .order_by(desc(PerformanceSnapshot.created_at))
            .limit(limit)
        )
        return self._execute_query(stmt, "get_performance_snapshots")

    def get_service_quality_snapshots(
        self,
        company_id: str,
        limit: int = 12,
    ) -> List[ServiceQualitySnapshot]:
        stmt = (
            select(ServiceQualitySnapshot)
            .where(ServiceQualitySnapshot.company_id == company_id)
            .order_by(desc(ServiceQualitySnapshot.created_at))
            .limit(limit)
        )
        return self._execute_query(stmt, "get_service_quality_snapshots")
