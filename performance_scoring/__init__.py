"""
Performance Scoring - Package.

============================================================
PURPOSE
============================================================
Composite risk scoring for field agents and service companies
over a date window.

============================================================
PIPELINE
============================================================
1. Metric Extractor: reads work orders, feedback, issues and
   audit logs for the entity and window
2. Ratio Calculators: on-time rates, satisfaction, issue
   resolution / issue rate, compliance density
3. Weighted Score Composer: satisfaction 40%, timeliness 20%,
   issue handling 30%, compliance 10%
4. Threshold Classifier: flags breaching metrics as medium/high

============================================================
SCORING
============================================================
Risk score 0-100. 0 means no category fell short of its
threshold; higher means larger weighted shortfall.

============================================================
USAGE
============================================================
    from performance_scoring import PerformanceScoringEngine

    engine = PerformanceScoringEngine(session)
    engine.calculate_risk_score("company", company_id)
    # {"score": 9, "flaggedMetrics": {"issueRate": {...}}}

============================================================
"""

from .types import (
    EntityType,
    FlagSeverity,
    MetricName,
    MetricWindow,
    WorkOrderSample,
    FeedbackSample,
    IssueSample,
    AuditLogSample,
    RawEventCollections,
    RatioSet,
    FlaggedMetric,
    CategoryScores,
    CompositeScore,
    parse_window_date,
)
from .config import (
    CategoryWeights,
    MetricThreshold,
    SatisfactionThresholds,
    TimelinessThresholds,
    IssueResolutionThresholds,
    IssueRateThresholds,
    ComplianceThresholds,
    AlertingConfig,
    PerformanceScoringConfig,
    RuntimeSettings,
    get_default_config,
    get_strict_config,
    load_runtime_settings,
)
from .calculators import calculate_ratios
from .composer import compose
from .classifier import classify
from .extractor import MetricExtractor
from .engine import (
    PerformanceScoringEngine,
    calculate_risk_score,
    format_score_summary,
)
from .models import (
    RiskScore,
    RiskIntervention,
    PerformanceSnapshot,
    ServiceQualitySnapshot,
)
from .repository import RiskScoreRepository, SnapshotRepository
from .alerting import (
    RiskAlert,
    AlertSender,
    TelegramAlertSender,
    ConsoleAlertSender,
    AlertRateLimiter,
    RiskAlertingService,
    create_telegram_alerting_service,
    create_console_alerting_service,
    create_alerting_service_from_settings,
)


__all__ = [
    # Types
    "EntityType",
    "FlagSeverity",
    "MetricName",
    "MetricWindow",
    "WorkOrderSample",
    "FeedbackSample",
    "IssueSample",
    "AuditLogSample",
    "RawEventCollections",
    "RatioSet",
    "FlaggedMetric",
    "CategoryScores",
    "CompositeScore",
    "parse_window_date",
    # Config
    "CategoryWeights",
    "MetricThreshold",
    "SatisfactionThresholds",
    "TimelinessThresholds",
    "IssueResolutionThresholds",
    "IssueRateThresholds",
    "ComplianceThresholds",
    "AlertingConfig",
    "PerformanceScoringConfig",
    "RuntimeSettings",
    "get_default_config",
    "get_strict_config",
    "load_runtime_settings",
    # Pipeline
    "calculate_ratios",
    "compose",
    "classify",
    "MetricExtractor",
    "PerformanceScoringEngine",
    "calculate_risk_score",
    "format_score_summary",
    # Persistence
    "RiskScore",
    "RiskIntervention",
    "PerformanceSnapshot",
    "ServiceQualitySnapshot",
    "RiskScoreRepository",
    "SnapshotRepository",
    # Alerting
    "RiskAlert",
    "AlertSender",
    "TelegramAlertSender",
    "ConsoleAlertSender",
    "AlertRateLimiter",
    "RiskAlertingService",
    "create_telegram_alerting_service",
    "create_console_alerting_service",
    "create_alerting_service_from_settings",
]
