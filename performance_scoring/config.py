"""
Performance Scoring - Configuration.

============================================================
PURPOSE
============================================================
Category weights, per-metric thresholds and alerting settings
for the performance scoring pipeline, plus runtime settings
read from the environment.

============================================================
THRESHOLD PHILOSOPHY
============================================================
Two values per metric:
- threshold: a metric past it is flagged and its category
  sub-score is replaced by the measured value
- high_cutoff: a metric strictly past it is flagged HIGH

Inside the threshold the category scores a flat 100. There is
no bonus for exceeding the threshold.

"Past" depends on direction. For higher-is-better metrics
(satisfaction, timeliness, resolution, compliance) past means
below. For the company issue rate past means above.

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from core.exceptions import InvalidConfigError


load_dotenv()


# ============================================================
# CATEGORY WEIGHTS
# ============================================================


@dataclass(frozen=True)
class CategoryWeights:
    """
    Weight of each category in the composite score.

    Weights must sum to 1.0.
    """

    satisfaction: float = 0.40
    timeliness: float = 0.20
    issue_handling: float = 0.30
    compliance: float = 0.10

    def __post_init__(self) -> None:
        for name in ("satisfaction", "timeliness", "issue_handling", "compliance"):
            if getattr(self, name) < 0:
                raise InvalidConfigError(name, getattr(self, name), "weight must be >= 0")
        if abs(self.total() - 1.0) > 1e-9:
            raise InvalidConfigError("weights", self.total(), "weights must sum to 1.0")

    def total(self) -> float:
        return self.satisfaction + self.timeliness + self.issue_handling + self.compliance

    def to_dict(self) -> Dict[str, Any]:
        return {
            "satisfaction": self.satisfaction,
            "timeliness": self.timeliness,
            "issue_handling": self.issue_handling,
            "compliance": self.compliance,
        }


# ============================================================
# METRIC THRESHOLDS
# ============================================================


@dataclass(frozen=True)
class MetricThreshold:
    """Threshold pair for one metric."""

    threshold: float
    high_cutoff: float
    higher_is_better: bool = True

    def __post_init__(self) -> None:
        if self.higher_is_better and self.high_cutoff > self.threshold:
            raise InvalidConfigError(
                "high_cutoff", self.high_cutoff,
                f"must be <= threshold {self.threshold} for a higher-is-better metric",
            )
        if not self.higher_is_better and self.high_cutoff < self.threshold:
            raise InvalidConfigError(
                "high_cutoff", self.high_cutoff,
                f"must be >= threshold {self.threshold} for a lower-is-better metric",
            )

    def is_breached(self, value: float) -> bool:
        if self.higher_is_better:
            return value < self.threshold
        return value > self.threshold

    def is_high(self, value: float) -> bool:
        if self.higher_is_better:
            return value < self.high_cutoff
        return value > self.high_cutoff

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold,
            "high_cutoff": self.high_cutoff,
            "higher_is_better": self.higher_is_better,
        }


@dataclass(frozen=True)
class SatisfactionThresholds(MetricThreshold):
    """Average stars (1-5). Flag below 3.5, HIGH below 2.5."""

    threshold: float = 3.5
    high_cutoff: float = 2.5
    higher_is_better: bool = True


@dataclass(frozen=True)
class TimelinessThresholds(MetricThreshold):
    """Mean of on-time start and finish percentages."""

    threshold: float = 80.0
    high_cutoff: float = 60.0
    higher_is_better: bool = True


@dataclass(frozen=True)
class IssueResolutionThresholds(MetricThreshold):
    """Agent only: resolved issues as a percentage of all issues."""

    threshold: float = 85.0
    high_cutoff: float = 70.0
    higher_is_better: bool = True


@dataclass(frozen=True)
class IssueRateThresholds(MetricThreshold):
    """Company only: issues per 100 completed jobs."""

    threshold: float = 15.0
    high_cutoff: float = 25.0
    higher_is_better: bool = False


@dataclass(frozen=True)
class ComplianceThresholds(MetricThreshold):
    """
    Audit log entries per completed job.

    high_cutoff is 0.5 (strict): a density of exactly 0.5 is MEDIUM.
    """

    threshold: float = 0.8
    high_cutoff: float = 0.5  # not 0.6: density 0.5 must classify MEDIUM
    higher_is_better: bool = True


# ============================================================
# ALERTING CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class AlertingConfig:
    """
    Configuration for risk score alerting.

    ============================================================
    ALERT PHILOSOPHY
    ============================================================
    - Alert when any flagged metric is HIGH
    - Optionally alert on scores at or above min_score
    - Rate-limit repeated alerts per entity

    ============================================================
    """

    alert_on_high_severity: bool = True
    min_score_for_alert: Optional[int] = None   # None disables score-based alerts

    min_seconds_between_alerts: float = 3600.0  # 1 hour per entity

    telegram_enabled: bool = True
    telegram_include_details: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert_on_high_severity": self.alert_on_high_severity,
            "min_score_for_alert": self.min_score_for_alert,
            "min_seconds_between_alerts": self.min_seconds_between_alerts,
            "telegram_enabled": self.telegram_enabled,
            "telegram_include_details": self.telegram_include_details,
        }


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class PerformanceScoringConfig:
    """Master configuration for the scoring pipeline."""

    weights: CategoryWeights = field(default_factory=CategoryWeights)

    satisfaction: SatisfactionThresholds = field(default_factory=SatisfactionThresholds)
    timeliness: TimelinessThresholds = field(default_factory=TimelinessThresholds)
    issue_resolution: IssueResolutionThresholds = field(default_factory=IssueResolutionThresholds)
    issue_rate: IssueRateThresholds = field(default_factory=IssueRateThresholds)
    compliance: ComplianceThresholds = field(default_factory=ComplianceThresholds)

    alerting: AlertingConfig = field(default_factory=AlertingConfig)

    engine_version: str = "1.0.0"

    # Rounding applied to displayed values only
    display_precision: int = 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": self.weights.to_dict(),
            "satisfaction": self.satisfaction.to_dict(),
            "timeliness": self.timeliness.to_dict(),
            "issue_resolution": self.issue_resolution.to_dict(),
            "issue_rate": self.issue_rate.to_dict(),
            "compliance": self.compliance.to_dict(),
            "alerting": self.alerting.to_dict(),
            "engine_version": self.engine_version,
            "display_precision": self.display_precision,
        }


# ============================================================
# DEFAULT CONFIGURATION
# ============================================================


def get_default_config() -> PerformanceScoringConfig:
    """Return the default scoring configuration."""
    return PerformanceScoringConfig()


def get_strict_config() -> PerformanceScoringConfig:
    """
    Return a stricter configuration.

    Higher bars = earlier flags. Useful for probation reviews.
    """
    return PerformanceScoringConfig(
        satisfaction=SatisfactionThresholds(threshold=4.0, high_cutoff=3.0),
        timeliness=TimelinessThresholds(threshold=90.0, high_cutoff=75.0),
        issue_resolution=IssueResolutionThresholds(threshold=95.0, high_cutoff=80.0),
        issue_rate=IssueRateThresholds(threshold=10.0, high_cutoff=20.0),
        compliance=ComplianceThresholds(threshold=1.0, high_cutoff=0.6),
        alerting=AlertingConfig(min_score_for_alert=20),
    )


# ============================================================
# RUNTIME SETTINGS
# ============================================================


@dataclass(frozen=True)
class RuntimeSettings:
    """Process settings read from the environment (.env supported)."""

    database_url: Optional[str] = None
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    log_level: str = "INFO"

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    def to_dict(self) -> Dict[str, Any]:
        # Token deliberately omitted
        return {
            "database_url_set": self.database_url is not None,
            "telegram_configured": self.telegram_configured,
            "log_level": self.log_level,
        }


def load_runtime_settings() -> RuntimeSettings:
    """Read runtime settings from environment variables."""
    return RuntimeSettings(
        database_url=os.getenv("DATABASE_URL_SYNC") or os.getenv("DATABASE_URL"),
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN"),
        telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
