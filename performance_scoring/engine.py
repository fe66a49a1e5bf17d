"""
Performance Scoring - Main Orchestrator.

============================================================
PURPOSE
============================================================
The PerformanceScoringEngine is the entry point for scoring
a field agent or a service company over a date window.

It orchestrates:
1. Window validation
2. Metric extraction
3. Ratio calculation
4. Weighted composition
5. Threshold classification
6. Result packaging

============================================================
DESIGN PRINCIPLES
============================================================
- Orchestration only; every step is delegated
- Stateless per call: no cache, nothing persisted unless asked
- Storage failures propagate, data gaps do not
- One engine per session; run independent scores on
  independent sessions

============================================================
USAGE
============================================================
    from database import get_db_session
    from performance_scoring import PerformanceScoringEngine

    with get_db_session() as session:
        engine = PerformanceScoringEngine(session)
        result = engine.calculate_risk_score(
            "agent", agent_id, "2024-01-01", "2024-01-31"
        )

    print(result["score"], result["flaggedMetrics"])

============================================================
"""

import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from core.exceptions import AnalyticsError, ScoringError

from .calculators import calculate_ratios, compliance_score, round_display
from .classifier import classify
from .composer import compose
from .config import PerformanceScoringConfig
from .extractor import MetricExtractor
from .models import PerformanceSnapshot, RiskScore, ServiceQualitySnapshot
from .repository import RiskScoreRepository, SnapshotRepository
from .types import (
    CompositeScore,
    DateLike,
    EntityType,
    MetricWindow,
    RatioSet,
)


logger = logging.getLogger(__name__)


class PerformanceScoringEngine:
    """
    Main orchestrator for performance scoring.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    1. Build and validate the MetricWindow
    2. Extract raw samples
    3. Compute ratios, compose, classify
    4. Package CompositeScore / metric dicts
    5. Persist scores and snapshots on request

    ============================================================
    """

    def __init__(
        self,
        session: Session,
        config: Optional[PerformanceScoringConfig] = None,
        extractor: Optional[MetricExtractor] = None,
    ):
        """
        Initialize the engine.

        Args:
            session: SQLAlchemy session used for reads (and writes on request)
            config: Weights and thresholds; defaults if not provided
            extractor: Override the extractor (tests)
        """
        self.config = config or PerformanceScoringConfig()
        self._session = session
        self._extractor = extractor or MetricExtractor(session)

    # =========================================================
    # RISK SCORE
    # =========================================================

    def score_window(self, window: MetricWindow) -> CompositeScore:
        """
        Score one entity over one window.

        Raises:
            MetricExtractionError: Storage failure
            ScoringError: Any other failure while composing
        """
        events = self._extractor.extract(window)

        try:
            ratios = calculate_ratios(events)
            category_scores, composite, score = compose(
                ratios, window.entity_type, self.config
            )
            flagged = classify(ratios, window.entity_type, self.config)
        except AnalyticsError:
            raise
        except Exception as e:
            raise ScoringError(
                f"Scoring failed: {e}",
                context=window.to_dict(),
                cause=e,
            ) from e

        result = CompositeScore(
            score=score,
            composite=composite,
            category_scores=category_scores,
            flagged_metrics=flagged,
            window=window,
            ratios=ratios,
        )

        logger.info(
            f"Risk score {score} for {window.entity_type.value}:{window.entity_id} "
            f"(flags: {', '.join(result.flagged_names) or 'none'})"
        )
        return result

    def calculate_risk_score(
        self,
        entity_type: Any,
        entity_id: str,
        period_start: DateLike = None,
        period_end: DateLike = None,
    ) -> Dict[str, Any]:
        """
        Score an entity and return {"score", "flaggedMetrics"}.

        Raises:
            InvalidWindowError: Bad entity type or date, before any query
            MetricExtractionError: Storage failure
        """
        window = MetricWindow.create(entity_type, entity_id, period_start, period_end)
        return self.score_window(window).to_dict()

    def calculate_and_save_risk_score(
        self,
        entity_type: Any,
        entity_id: str,
        period_start: DateLike = None,
        period_end: DateLike = None,
    ) -> Tuple[CompositeScore, RiskScore]:
        """Score and persist. The caller commits."""
        window = MetricWindow.create(entity_type, entity_id, period_start, period_end)
        result = self.score_window(window)
        record = RiskScoreRepository(
            self._session, engine_version=self.config.engine_version
        ).save_risk_score(result)
        return result, record

    # =========================================================
    # AGENT PERFORMANCE METRICS
    # =========================================================

    def calculate_agent_performance_metrics(
        self,
        agent_id: str,
        period_start: DateLike = None,
        period_end: DateLike = None,
    ) -> Dict[str, Any]:
        """Dashboard metrics for one field agent."""
        window = MetricWindow.create(EntityType.AGENT, agent_id, period_start, period_end)
        ratios = calculate_ratios(self._extractor.extract(window))
        return self._agent_metrics(ratios)

    def _agent_metrics(self, ratios: RatioSet) -> Dict[str, Any]:
        p = self.config.display_precision
        return {
            "totalJobs": ratios.total_jobs,
            "completedJobs": ratios.completed_jobs,
            "completionRate": round_display(ratios.completion_rate, p),
            "onTimeStartPct": round_display(ratios.on_time_start_pct, p),
            "onTimeFinishPct": round_display(ratios.on_time_finish_pct, p),
            "avgRating": round_display(ratios.avg_satisfaction, p),
            "totalFeedback": ratios.total_feedback,
            "wouldHireAgainPct": round_display(ratios.would_hire_again_pct, p),
            "totalIssues": ratios.total_issues,
            "resolvedIssues": ratios.resolved_issues,
            "issueResolutionPct": round_display(ratios.issue_resolution_pct, p),
            "auditLogCount": ratios.audit_log_count,
            "complianceScore": round_display(compliance_score(ratios.compliance_density), p),
        }

    def create_performance_snapshot(
        self,
        agent_id: str,
        period_start: DateLike = None,
        period_end: DateLike = None,
    ) -> PerformanceSnapshot:
        window = MetricWindow.create(EntityType.AGENT, agent_id, period_start, period_end)
        metrics = self._agent_metrics(calculate_ratios(self._extractor.extract(window)))
        return SnapshotRepository(self._session).create_performance_snapshot(
            agent_id, window.period_start, window.period_end, metrics
        )

    # =========================================================
    # SERVICE QUALITY METRICS
    # =========================================================

    def calculate_service_quality_metrics(
        self,
        company_id: str,
        period_start: DateLike = None,
        period_end: DateLike = None,
    ) -> Dict[str, Any]:
        """Dashboard metrics for one service company."""
        window = MetricWindow.create(EntityType.COMPANY, company_id, period_start, period_end)
        return self._service_quality_metrics(window)

    def _service_quality_metrics(self, window: MetricWindow) -> Dict[str, Any]:
        ratios = calculate_ratios(self._extractor.extract(window))
        p = self.config.display_precision
        return {
            "totalJobs": ratios.total_jobs,
            "completedJobs": ratios.completed_jobs,
            "completionRate": round_display(ratios.completion_rate, p),
            "onTimeStartPct": round_display(ratios.on_time_start_pct, p),
            "onTimeFinishPct": round_display(ratios.on_time_finish_pct, p),
            "avgSatisfaction": round_display(ratios.satisfaction_pct, p),
            "avgRating": round_display(ratios.avg_satisfaction, p),
            "wouldHireAgainPct": round_display(ratios.would_hire_again_pct, p),
            "totalIssues": ratios.total_issues,
            "openIssues": ratios.open_issues,
            "issueRate": round_display(ratios.issue_rate, p),
            "auditLogCount": ratios.audit_log_count,
            "complianceScore": round_display(compliance_score(ratios.compliance_density), p),
            "activeAgents": self._extractor.count_active_agents(window),
        }

    def create_service_quality_snapshot(
        self,
        company_id: str,
        period_start: DateLike = None,
        period_end: DateLike = None,
    ) -> ServiceQualitySnapshot:
        window = MetricWindow.create(EntityType.COMPANY, company_id, period_start, period_end)
        metrics = self._service_quality_metrics(window)
        return SnapshotRepository(self._session).create_service_quality_snapshot(
            company_id, window.period_start, window.period_end, metrics
        )

    def get_config(self) -> PerformanceScoringConfig:
        return self.config


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================


def calculate_risk_score(
    session: Session,
    entity_type: Any,
    entity_id: str,
    period_start: DateLike = None,
    period_end: DateLike = None,
    config: Optional[PerformanceScoringConfig] = None,
) -> Dict[str, Any]:
    """
    Score an entity in one call.

    Creates a temporary engine bound to the session.
    """
    engine = PerformanceScoringEngine(session, config=config)
    return engine.calculate_risk_score(entity_type, entity_id, period_start, period_end)


def format_score_summary(result: CompositeScore) -> str:
    """Human-readable summary for logs and the CLI."""
    window = result.window
    lines = [
        "=" * 50,
        "PERFORMANCE RISK SUMMARY",
        "=" * 50,
    ]
    if window is not None:
        lines.append(f"Entity: {window.entity_type.value}:{window.entity_id}")
        lines.append(
            f"Window: {window.period_start or 'open'} .. {window.period_end or 'open'}"
        )
    lines.append(f"Risk Score: {result.score}/100")
    lines.append(f"Composite:  {result.composite:.2f}")
    lines.append("")
    lines.append("Flagged Metrics:")
    if not result.flagged_metrics:
        lines.append("  none")
    for name, flag in sorted(result.flagged_metrics.items()):
        lines.append(
            f"  {name}: {flag.display_current()} "
            f"(threshold {flag.threshold}, {flag.severity.value})"
        )
    lines.append("=" * 50)
    return "\n".join(lines)
