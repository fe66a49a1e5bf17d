"""
Performance Scoring - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the performance scoring pipeline.

    MetricWindow -> RawEventCollections -> RatioSet -> CompositeScore

Raw rows are converted into pydantic samples at the storage
boundary so the calculators never see ORM objects or loosely
typed query results.

============================================================
DESIGN PRINCIPLES
============================================================
- Windows and results are immutable
- Enums for discrete values
- Samples validated once, when they leave the database
- Nothing here touches the database

============================================================
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

from core.exceptions import InvalidWindowError


DateLike = Union[str, date, datetime, None]


# ============================================================
# ENUMS
# ============================================================


class EntityType(str, Enum):
    """The subject being scored."""

    AGENT = "agent"
    COMPANY = "company"

    @classmethod
    def parse(cls, value: Union[str, "EntityType"]) -> "EntityType":
        """
        Convert user input to an EntityType.

        Raises:
            InvalidWindowError: If the value is not a known entity type
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidWindowError(
                f"Unknown entity type: {value!r} (expected 'agent' or 'company')",
                field="entity_type",
                value=value,
            )


class FlagSeverity(str, Enum):
    """Severity attached to a flagged metric."""

    MEDIUM = "medium"
    HIGH = "high"


class MetricName(str, Enum):
    """Keys used in the flaggedMetrics map."""

    CLIENT_SATISFACTION = "clientSatisfaction"
    TIMELINESS = "timeliness"
    ISSUE_RESOLUTION = "issueResolution"
    ISSUE_RATE = "issueRate"
    COMPLIANCE = "compliance"


class WorkOrderStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


RESOLVED_ISSUE_STATUSES = frozenset({"resolved", "closed"})
OPEN_ISSUE_STATUSES = frozenset({"open", "investigating"})


# ============================================================
# WINDOW
# ============================================================


def parse_window_date(value: DateLike, field_name: str) -> Optional[date]:
    """
    Normalize a window bound to a calendar date.

    Accepts ISO strings (date or datetime), date and datetime.
    Datetimes are truncated to their date; windows are whole days.

    Raises:
        InvalidWindowError: On malformed strings or unsupported types
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            raise InvalidWindowError(
                f"Malformed date for {field_name}: {value!r}",
                field=field_name,
                value=value,
            )
    raise InvalidWindowError(
        f"Unsupported type for {field_name}: {type(value).__name__}",
        field=field_name,
        value=value,
    )


@dataclass(frozen=True)
class MetricWindow:
    """
    Entity plus inclusive date range to aggregate over.

    A missing bound leaves that side of the window open.
    """

    entity_type: EntityType
    entity_id: str
    period_start: Optional[date] = None
    period_end: Optional[date] = None

    def __post_init__(self) -> None:
        if not self.entity_id or not str(self.entity_id).strip():
            raise InvalidWindowError("entity_id is required", field="entity_id")
        if (
            self.period_start is not None
            and self.period_end is not None
            and self.period_start > self.period_end
        ):
            raise InvalidWindowError(
                f"period_start {self.period_start} is after period_end {self.period_end}",
                field="period_start",
                value=self.period_start,
            )

    @classmethod
    def create(
        cls,
        entity_type: Union[str, EntityType],
        entity_id: str,
        period_start: DateLike = None,
        period_end: DateLike = None,
    ) -> "MetricWindow":
        """Build a window from loosely typed caller input."""
        return cls(
            entity_type=EntityType.parse(entity_type),
            entity_id=entity_id,
            period_start=parse_window_date(period_start, "period_start"),
            period_end=parse_window_date(period_end, "period_end"),
        )

    @property
    def start_datetime(self) -> Optional[datetime]:
        """Inclusive lower bound (midnight of period_start)."""
        if self.period_start is None:
            return None
        return datetime.combine(self.period_start, time.min)

    @property
    def end_exclusive(self) -> Optional[datetime]:
        """Exclusive upper bound (midnight after period_end)."""
        if self.period_end is None:
            return None
        return datetime.combine(self.period_end + timedelta(days=1), time.min)

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        start = self.start_datetime
        end = self.end_exclusive
        if start is not None and moment < start:
            return False
        if end is not None and moment >= end:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "period_end": self.period_end.isoformat() if self.period_end else None,
        }


# ============================================================
# RAW EVENT SAMPLES (storage boundary)
# ============================================================


class WorkOrderSample(BaseModel):
    """Work order columns the calculators read."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    company_id: str
    assignee_id: Optional[str] = None
    status: str = WorkOrderStatus.SCHEDULED.value
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == WorkOrderStatus.COMPLETED.value


class FeedbackSample(BaseModel):
    """Client rating; stars outside 1-5 are kept but ignored downstream."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    work_order_id: str
    given_to: Optional[str] = None
    stars: Optional[int] = None
    would_hire_again: Optional[bool] = None
    created_at: Optional[datetime] = None

    @field_validator("stars", mode="before")
    @classmethod
    def _coerce_stars(cls, value: Any) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @property
    def has_valid_stars(self) -> bool:
        return self.stars is not None and 1 <= self.stars <= 5


class IssueSample(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    work_order_id: str
    company_id: str
    reported_by_id: Optional[str] = None
    severity: Optional[str] = None
    status: str = "open"
    created_at: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_ISSUE_STATUSES

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ISSUE_STATUSES


class AuditLogSample(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    entity_type: str
    entity_id: str
    action: str
    performed_by: str
    risk_level: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class RawEventCollections:
    """Everything the extractor read for one window."""

    window: MetricWindow
    work_orders: Tuple[WorkOrderSample, ...] = ()
    feedback: Tuple[FeedbackSample, ...] = ()
    issues: Tuple[IssueSample, ...] = ()
    audit_logs: Tuple[AuditLogSample, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.work_orders or self.feedback or self.issues or self.audit_logs)

    def counts(self) -> Dict[str, int]:
        return {
            "work_orders": len(self.work_orders),
            "feedback": len(self.feedback),
            "issues": len(self.issues),
            "audit_logs": len(self.audit_logs),
        }


# ============================================================
# RATIOS
# ============================================================


@dataclass(frozen=True)
class RatioSet:
    """
    Derived ratios for one window, full precision.

    Percentages are in [0, 100]. compliance_density is a plain
    ratio (audit logs per completed job), not clamped.
    """

    on_time_start_pct: float = 100.0
    on_time_finish_pct: float = 100.0
    timeliness_pct: float = 100.0
    avg_satisfaction: float = 5.0
    satisfaction_pct: float = 100.0
    would_hire_again_pct: float = 100.0
    issue_rate: float = 0.0
    issue_resolution_pct: float = 100.0
    compliance_density: float = 1.0

    # Supporting counts
    total_jobs: int = 0
    completed_jobs: int = 0
    completion_rate: float = 0.0
    total_feedback: int = 0
    rated_feedback: int = 0
    total_issues: int = 0
    resolved_issues: int = 0
    open_issues: int = 0
    audit_log_count: int = 0

    def to_dict(self, precision: Optional[int] = 2) -> Dict[str, Any]:
        def r(value: float) -> float:
            return round(value, precision) if precision is not None else value

        return {
            "on_time_start_pct": r(self.on_time_start_pct),
            "on_time_finish_pct": r(self.on_time_finish_pct),
            "timeliness_pct": r(self.timeliness_pct),
            "avg_satisfaction": r(self.avg_satisfaction),
            "satisfaction_pct": r(self.satisfaction_pct),
            "would_hire_again_pct": r(self.would_hire_again_pct),
            "issue_rate": r(self.issue_rate),
            "issue_resolution_pct": r(self.issue_resolution_pct),
            "compliance_density": r(self.compliance_density),
            "total_jobs": self.total_jobs,
            "completed_jobs": self.completed_jobs,
            "completion_rate": r(self.completion_rate),
            "total_feedback": self.total_feedback,
            "rated_feedback": self.rated_feedback,
            "total_issues": self.total_issues,
            "resolved_issues": self.resolved_issues,
            "open_issues": self.open_issues,
            "audit_log_count": self.audit_log_count,
        }


# ============================================================
# OUTPUT CONTRACTS
# ============================================================


@dataclass(frozen=True)
class FlaggedMetric:
    """A category ratio that breached its threshold."""

    name: MetricName
    current: float
    threshold: float
    severity: FlagSeverity
    higher_is_better: bool = True

    def display_current(self, precision: int = 2) -> float:
        """
        current rounded for display, never rounded onto the passing
        side of the threshold (79.999 shows as 79.99, not 80.0).
        """
        rounded = round(self.current, precision)
        scale = 10 ** precision
        if self.higher_is_better and rounded >= self.threshold:
            return math.floor(self.current * scale) / scale
        if not self.higher_is_better and rounded <= self.threshold:
            return math.ceil(self.current * scale) / scale
        return rounded

    def to_dict(self, precision: int = 2) -> Dict[str, Any]:
        return {
            "current": self.display_current(precision),
            "threshold": self.threshold,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class CategoryScores:
    """Per-category sub-scores (0-100) fed into the weighted sum."""

    satisfaction: float = 100.0
    timeliness: float = 100.0
    issue_handling: float = 100.0
    compliance: float = 100.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "satisfaction": round(self.satisfaction, 2),
            "timeliness": round(self.timeliness, 2),
            "issue_handling": round(self.issue_handling, 2),
            "compliance": round(self.compliance, 2),
        }


@dataclass(frozen=True)
class CompositeScore:
    """
    Final result for one entity and window.

    score is the risk score: 0 means no measured shortfall,
    100 means every category scored zero.
    """

    score: int
    composite: float
    category_scores: CategoryScores
    flagged_metrics: Dict[str, FlaggedMetric] = field(default_factory=dict)
    window: Optional[MetricWindow] = None
    ratios: Optional[RatioSet] = None

    @property
    def has_high_severity(self) -> bool:
        return any(f.severity == FlagSeverity.HIGH for f in self.flagged_metrics.values())

    @property
    def flagged_names(self) -> List[str]:
        return sorted(self.flagged_metrics)

    def to_dict(self) -> Dict[str, Any]:
        """External result shape: {"score", "flaggedMetrics"}."""
        return {
            "score": self.score,
            "flaggedMetrics": {
                name: flag.to_dict() for name, flag in self.flagged_metrics.items()
            },
        }

    def to_detail_dict(self) -> Dict[str, Any]:
        """Result plus the inputs that produced it, for persistence."""
        detail = self.to_dict()
        detail["composite"] = round(self.composite, 2)
        detail["categoryScores"] = self.category_scores.to_dict()
        if self.window is not None:
            detail["window"] = self.window.to_dict()
        if self.ratios is not None:
            detail["ratios"] = self.ratios.to_dict()
        return detail
