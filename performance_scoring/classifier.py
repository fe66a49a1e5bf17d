"""
Performance Scoring - Threshold Classifier.

Emits a FlaggedMetric for every ratio past its threshold.
Passing metrics are left out of the result entirely.

Severity is HIGH when the value is strictly past the high
cutoff, MEDIUM otherwise.
"""

from typing import Dict, List, Tuple

from .config import MetricThreshold, PerformanceScoringConfig
from .types import EntityType, FlaggedMetric, FlagSeverity, MetricName, RatioSet


def _metric_checks(
    ratios: RatioSet,
    entity_type: EntityType,
    config: PerformanceScoringConfig,
) -> List[Tuple[MetricName, float, MetricThreshold]]:
    checks = [
        (MetricName.CLIENT_SATISFACTION, ratios.avg_satisfaction, config.satisfaction),
        (MetricName.TIMELINESS, ratios.timeliness_pct, config.timeliness),
    ]
    if entity_type == EntityType.AGENT:
        checks.append(
            (MetricName.ISSUE_RESOLUTION, ratios.issue_resolution_pct, config.issue_resolution)
        )
    else:
        checks.append((MetricName.ISSUE_RATE, ratios.issue_rate, config.issue_rate))
    checks.append((MetricName.COMPLIANCE, ratios.compliance_density, config.compliance))
    return checks


def classify_metric(
    name: MetricName,
    value: float,
    thresholds: MetricThreshold,
) -> FlaggedMetric:
    severity = FlagSeverity.HIGH if thresholds.is_high(value) else FlagSeverity.MEDIUM
    return FlaggedMetric(
        name=name,
        current=value,
        threshold=thresholds.threshold,
        severity=severity,
        higher_is_better=thresholds.higher_is_better,
    )


def classify(
    ratios: RatioSet,
    entity_type: EntityType,
    config: PerformanceScoringConfig,
) -> Dict[str, FlaggedMetric]:
    """Map of metric name -> FlaggedMetric for breaching metrics only."""
    flagged: Dict[str, FlaggedMetric] = {}
    for name, value, thresholds in _metric_checks(ratios, entity_type, config):
        if thresholds.is_breached(value):
            flagged[name.value] = classify_metric(name, value, thresholds)
    return flagged
