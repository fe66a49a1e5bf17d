"""
Performance Scoring - Ratio Calculators.

============================================================
PURPOSE
============================================================
Pure functions turning raw samples into ratios.

============================================================
NEUTRAL DEFAULTS
============================================================
An empty denominator never produces NaN or an error:
- higher-is-better percentages -> 100
- company issue rate           -> 0
- compliance density           -> 1.0
- average stars                -> 5.0

Malformed values (missing timestamps, stars outside 1-5)
are skipped, never raised on.

============================================================
"""

from typing import Any, Iterable, Optional, Sequence

from .types import (
    FeedbackSample,
    IssueSample,
    RatioSet,
    RawEventCollections,
    WorkOrderSample,
)


NEUTRAL_PCT = 100.0
NEUTRAL_ISSUE_RATE = 0.0
NEUTRAL_DENSITY = 1.0
NEUTRAL_STARS = 5.0
MAX_STARS = 5.0


# ============================================================
# HELPERS
# ============================================================


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _safe_div(numerator: float, denominator: float, default: float) -> float:
    if not denominator:
        return default
    return numerator / denominator


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _pct(numerator: float, denominator: float, default: float = NEUTRAL_PCT) -> float:
    return _clamp(_safe_div(numerator, denominator, default / 100.0) * 100.0)


def round_display(value: float, precision: int = 2) -> float:
    """Rounding for presentation. Composition uses full precision."""
    return round(value, precision)


# ============================================================
# TIMELINESS
# ============================================================


def on_time_start_pct(work_orders: Sequence[WorkOrderSample]) -> float:
    """Share of jobs started at or before their scheduled start."""
    eligible = [
        wo for wo in work_orders
        if wo.actual_start is not None and wo.scheduled_start is not None
    ]
    on_time = sum(1 for wo in eligible if wo.actual_start <= wo.scheduled_start)
    return _pct(on_time, len(eligible))


def on_time_finish_pct(work_orders: Sequence[WorkOrderSample]) -> float:
    """Share of jobs finished at or before their scheduled end."""
    eligible = [
        wo for wo in work_orders
        if wo.actual_end is not None and wo.scheduled_end is not None
    ]
    on_time = sum(1 for wo in eligible if wo.actual_end <= wo.scheduled_end)
    return _pct(on_time, len(eligible))


def timeliness_pct(start_pct: float, finish_pct: float) -> float:
    return _clamp((start_pct + finish_pct) / 2.0)


def completed_jobs(work_orders: Iterable[WorkOrderSample]) -> int:
    return sum(1 for wo in work_orders if wo.is_completed)


def completion_rate(work_orders: Sequence[WorkOrderSample]) -> float:
    """Completed jobs as a percentage of all jobs; 0 with no jobs."""
    return _pct(completed_jobs(work_orders), len(work_orders), default=0.0)


# ============================================================
# SATISFACTION
# ============================================================


def average_stars(feedback: Sequence[FeedbackSample]) -> Optional[float]:
    """Mean of valid star ratings, or None when there are none."""
    stars = [fb.stars for fb in feedback if fb.has_valid_stars]
    if not stars:
        return None
    return sum(stars) / len(stars)


def satisfaction_pct(avg_stars: Optional[float]) -> float:
    if avg_stars is None:
        return NEUTRAL_PCT
    return _clamp(avg_stars / MAX_STARS * 100.0)


def would_hire_again_pct(feedback: Sequence[FeedbackSample]) -> float:
    """True answers over all feedback; unanswered counts as not true."""
    yes = sum(1 for fb in feedback if fb.would_hire_again is True)
    return _pct(yes, len(feedback))


# ============================================================
# ISSUES
# ============================================================


def resolved_issues(issues: Iterable[IssueSample]) -> int:
    return sum(1 for issue in issues if issue.is_resolved)


def open_issues(issues: Iterable[IssueSample]) -> int:
    return sum(1 for issue in issues if issue.is_open)


def issue_resolution_pct(issues: Sequence[IssueSample]) -> float:
    """Agent formula: resolved / total * 100."""
    return _pct(resolved_issues(issues), len(issues))


def issue_rate(total_issues: int, completed: int) -> float:
    """
    Company formula: issues per 100 completed jobs, clamped to 0-100.
    """
    if not completed:
        return NEUTRAL_ISSUE_RATE
    return _clamp(total_issues / completed * 100.0)


# ============================================================
# COMPLIANCE
# ============================================================


def compliance_density(audit_log_count: int, completed: int) -> float:
    """Audit log entries per completed job."""
    return max(0.0, _safe_div(_to_float(audit_log_count), completed, NEUTRAL_DENSITY))


def compliance_score(density: float) -> float:
    """Density as a 0-100 score."""
    return _clamp(density * 100.0)


# ============================================================
# AGGREGATE
# ============================================================


def calculate_ratios(events: RawEventCollections) -> RatioSet:
    """Compute every ratio for one window."""
    work_orders = events.work_orders
    feedback = events.feedback
    issues = events.issues

    start_pct = on_time_start_pct(work_orders)
    finish_pct = on_time_finish_pct(work_orders)
    completed = completed_jobs(work_orders)
    avg = average_stars(feedback)
    rated = sum(1 for fb in feedback if fb.has_valid_stars)

    return RatioSet(
        on_time_start_pct=start_pct,
        on_time_finish_pct=finish_pct,
        timeliness_pct=timeliness_pct(start_pct, finish_pct),
        avg_satisfaction=avg if avg is not None else NEUTRAL_STARS,
        satisfaction_pct=satisfaction_pct(avg),
        would_hire_again_pct=would_hire_again_pct(feedback),
        issue_rate=issue_rate(len(issues), completed),
        issue_resolution_pct=issue_resolution_pct(issues),
        compliance_density=compliance_density(len(events.audit_logs), completed),
        total_jobs=len(work_orders),
        completed_jobs=completed,
        completion_rate=completion_rate(work_orders),
        total_feedback=len(feedback),
        rated_feedback=rated,
        total_issues=len(issues),
        resolved_issues=resolved_issues(issues),
        open_issues=open_issues(issues),
        audit_log_count=len(events.audit_logs),
    )
