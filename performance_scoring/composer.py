"""
Performance Scoring - Weighted Score Composer.

============================================================
PURPOSE
============================================================
Folds a RatioSet into four category sub-scores and a single
weighted composite.

============================================================
COMPOSITION RULE
============================================================
Each category starts at 100. Only a category whose metric is
past its threshold is replaced by the measured value:

    satisfaction    avg stars < 3.5      -> (avg / 5) * 100
    timeliness      timeliness < 80      -> timeliness
    issue handling  agent:   resolution < 85 -> resolution
                    company: rate > 15       -> 100 - rate
    compliance      density < 0.8        -> density * 100

    composite  = sum(weight * sub_score)
    risk score = round(100 - composite), clamped to [0, 100]

============================================================
"""

from typing import Tuple

from .calculators import _clamp, compliance_score
from .config import PerformanceScoringConfig
from .types import CategoryScores, EntityType, RatioSet


FULL_MARKS = 100.0


def compose_category_scores(
    ratios: RatioSet,
    entity_type: EntityType,
    config: PerformanceScoringConfig,
) -> CategoryScores:
    satisfaction = FULL_MARKS
    if config.satisfaction.is_breached(ratios.avg_satisfaction):
        satisfaction = ratios.satisfaction_pct

    timeliness = FULL_MARKS
    if config.timeliness.is_breached(ratios.timeliness_pct):
        timeliness = ratios.timeliness_pct

    issue_handling = FULL_MARKS
    if entity_type == EntityType.AGENT:
        if config.issue_resolution.is_breached(ratios.issue_resolution_pct):
            issue_handling = ratios.issue_resolution_pct
    elif config.issue_rate.is_breached(ratios.issue_rate):
        issue_handling = _clamp(FULL_MARKS - ratios.issue_rate)

    compliance = FULL_MARKS
    if config.compliance.is_breached(ratios.compliance_density):
        compliance = compliance_score(ratios.compliance_density)

    return CategoryScores(
        satisfaction=_clamp(satisfaction),
        timeliness=_clamp(timeliness),
        issue_handling=_clamp(issue_handling),
        compliance=_clamp(compliance),
    )


def weighted_composite(
    category_scores: CategoryScores,
    config: PerformanceScoringConfig,
) -> float:
    weights = config.weights
    composite = (
        weights.satisfaction * category_scores.satisfaction
        + weights.timeliness * category_scores.timeliness
        + weights.issue_handling * category_scores.issue_handling
        + weights.compliance * category_scores.compliance
    )
    return _clamp(composite)


def risk_score_from_composite(composite: float) -> int:
    """Invert the composite: 100 composite -> 0 risk."""
    return int(_clamp(round(FULL_MARKS - composite)))


def compose(
    ratios: RatioSet,
    entity_type: EntityType,
    config: PerformanceScoringConfig,
) -> Tuple[CategoryScores, float, int]:
    """Return (category scores, composite, risk score)."""
    category_scores = compose_category_scores(ratios, entity_type, config)
    composite = weighted_composite(category_scores, config)
    return category_scores, composite, risk_score_from_composite(composite)
