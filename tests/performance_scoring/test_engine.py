"""
Tests for the Performance Scoring Engine.

============================================================
PURPOSE
============================================================
End-to-end scoring against an in-memory database.

TEST PRINCIPLES:
- Known inputs produce known scores and flags
- Windows are whole days, both ends inclusive
- Bad input fails before any query is issued
- Storage failures surface as MetricExtractionError

============================================================
"""

from datetime import date, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from core.exceptions import (
    DataValidationError,
    InvalidWindowError,
    MetricExtractionError,
    ScoringError,
)
from performance_scoring import (
    PerformanceScoringEngine,
    RiskScoreRepository,
    SnapshotRepository,
    calculate_risk_score,
    format_score_summary,
    get_strict_config,
)
from performance_scoring.types import EntityType, MetricWindow
from storage.repositories.exceptions import RepositoryException


MARCH_START = "2024-03-01"
MARCH_END = "2024-03-31"


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def scenario_a(make_work_order, make_feedback, make_audit_log):
    """
    Agent with good ratings, one late job and thin audit trail.

    10 completed jobs, 9 on time -> timeliness 90
    average 4.2 stars
    5 audit entries / 10 jobs -> density 0.5
    """
    orders = []
    for n in range(10):
        late = 30 if n == 0 else 0
        orders.append(make_work_order(
            company_id="co-A",
            assignee_id="agent-A",
            created_at=datetime(2024, 3, 5 + n, 8, 0),
            start_late_minutes=late,
            finish_late_minutes=late,
        ))
    for wo, stars in zip(orders, [5, 4, 4, 4, 4]):
        make_feedback(wo, stars, given_to="agent-A")
    for wo in orders[:5]:
        make_audit_log(wo.id, performed_by="agent-A")
    return orders


@pytest.fixture
def scenario_b(make_work_order, make_issue, make_audit_log):
    """
    Company with 3 issues on 10 completed jobs (rate 30).

    Full audit coverage, no feedback.
    """
    orders = [
        make_work_order(
            company_id="co-B",
            assignee_id="agent-B1" if n % 2 else "agent-B2",
            created_at=datetime(2024, 3, 2 + n, 8, 0),
        )
        for n in range(10)
    ]
    for wo in orders[:3]:
        make_issue(wo)
    for wo in orders:
        make_audit_log(wo.id, performed_by="dispatcher-1")
    return orders


@pytest.fixture
def engine(session):
    return PerformanceScoringEngine(session)


# ============================================================
# RISK SCORE SCENARIOS
# ============================================================

class TestRiskScore:
    """Tests for calculate_risk_score()."""

    def test_agent_with_thin_audit_trail(self, engine, scenario_a):
        """Compliance density 0.5 is flagged medium; risk score 5."""
        result = engine.calculate_risk_score("agent", "agent-A", MARCH_START, MARCH_END)

        assert result == {
            "score": 5,
            "flaggedMetrics": {
                "compliance": {"current": 0.5, "threshold": 0.8, "severity": "medium"},
            },
        }

    def test_company_with_high_issue_rate(self, engine, scenario_b):
        """Issue rate 30 is flagged high; risk score 9."""
        result = engine.calculate_risk_score("company", "co-B", MARCH_START, MARCH_END)

        assert result == {
            "score": 9,
            "flaggedMetrics": {
                "issueRate": {"current": 30.0, "threshold": 15.0, "severity": "high"},
            },
        }

    def test_issue_rate_capped_when_issues_outnumber_jobs(
        self, engine, make_work_order, make_issue, make_audit_log
    ):
        """3 issues on 2 completed jobs reports a rate of 100, not 150."""
        orders = [
            make_work_order(company_id="co-P", created_at=datetime(2024, 3, 4 + n, 8, 0))
            for n in range(2)
        ]
        make_issue(orders[0])
        make_issue(orders[0])
        make_issue(orders[1])
        for wo in orders:
            make_audit_log(wo.id, performed_by="dispatcher-1")

        result = engine.calculate_risk_score("company", "co-P", MARCH_START, MARCH_END)

        assert result["flaggedMetrics"]["issueRate"]["current"] == 100.0
        assert result["score"] == 30

    def test_unknown_entity_scores_zero(self, engine, scenario_a, scenario_b):
        """No data at all is neutral: no flags, no risk."""
        result = engine.calculate_risk_score("agent", "agent-nobody", MARCH_START, MARCH_END)

        assert result == {"score": 0, "flaggedMetrics": {}}

    def test_repeated_calls_are_identical(self, engine, scenario_a):
        first = engine.calculate_risk_score("agent", "agent-A", MARCH_START, MARCH_END)
        second = engine.calculate_risk_score("agent", "agent-A", MARCH_START, MARCH_END)

        assert first == second

    def test_score_in_range_and_flags_consistent(self, engine, scenario_a, scenario_b):
        for entity_type, entity_id in [("agent", "agent-A"), ("company", "co-B"), ("company", "co-A")]:
            result = engine.score_window(
                MetricWindow.create(entity_type, entity_id, MARCH_START, MARCH_END)
            )
            assert 0 <= result.score <= 100
            for name, flag in result.flagged_metrics.items():
                assert flag.severity.value in ("medium", "high")
                if flag.higher_is_better:
                    assert flag.current < flag.threshold
                else:
                    assert flag.current > flag.threshold

    def test_strict_profile(self, session, scenario_a):
        """Timeliness 90 passes by default but not under the strict profile."""
        strict = PerformanceScoringEngine(session, config=get_strict_config())
        result = strict.calculate_risk_score("agent", "agent-A", MARCH_START, MARCH_END)

        assert "compliance" in result["flaggedMetrics"]
        assert result["flaggedMetrics"]["compliance"]["severity"] == "high"
        assert "timeliness" not in result["flaggedMetrics"]

    def test_module_level_helper(self, session, scenario_b):
        result = calculate_risk_score(session, "company", "co-B", MARCH_START, MARCH_END)
        assert result["score"] == 9

    def test_summary_mentions_flags(self, engine, scenario_b):
        result = engine.score_window(
            MetricWindow.create("company", "co-B", MARCH_START, MARCH_END)
        )
        summary = format_score_summary(result)

        assert "Risk Score: 9/100" in summary
        assert "issueRate: 30.0" in summary


# ============================================================
# WINDOWS
# ============================================================

class TestWindows:
    """Tests for window bounds and input validation."""

    def test_end_day_is_inclusive(self, engine, make_work_order):
        make_work_order(assignee_id="agent-W", created_at=datetime(2024, 3, 31, 23, 59, 59))
        make_work_order(assignee_id="agent-W", created_at=datetime(2024, 4, 1, 0, 0, 0))
        make_work_order(assignee_id="agent-W", created_at=datetime(2024, 3, 1, 0, 0, 0))
        make_work_order(assignee_id="agent-W", created_at=datetime(2024, 2, 29, 23, 59, 59))

        metrics = engine.calculate_agent_performance_metrics("agent-W", MARCH_START, MARCH_END)

        assert metrics["totalJobs"] == 2

    def test_open_window_reads_everything(self, engine, make_work_order):
        make_work_order(assignee_id="agent-W", created_at=datetime(2020, 1, 1))
        make_work_order(assignee_id="agent-W", created_at=datetime(2030, 1, 1))

        metrics = engine.calculate_agent_performance_metrics("agent-W")

        assert metrics["totalJobs"] == 2

    def test_accepts_dates_and_datetimes(self, engine, scenario_a):
        as_strings = engine.calculate_risk_score("agent", "agent-A", MARCH_START, MARCH_END)
        as_dates = engine.calculate_risk_score("agent", "agent-A", date(2024, 3, 1), date(2024, 3, 31))
        as_datetimes = engine.calculate_risk_score(
            "agent", "agent-A", datetime(2024, 3, 1, 17, 0), "2024-03-31T10:00:00Z"
        )

        assert as_strings == as_dates == as_datetimes

    def test_single_day_window(self, engine, make_work_order):
        make_work_order(assignee_id="agent-W", created_at=datetime(2024, 3, 5, 0, 0))
        make_work_order(assignee_id="agent-W", created_at=datetime(2024, 3, 5, 23, 0))
        make_work_order(assignee_id="agent-W", created_at=datetime(2024, 3, 6, 0, 0))

        metrics = engine.calculate_agent_performance_metrics("agent-W", "2024-03-05", "2024-03-05")

        assert metrics["totalJobs"] == 2

    @pytest.mark.parametrize(
        "entity_type,start,end",
        [
            ("vendor", MARCH_START, MARCH_END),
            ("agent", "2024-13-45", MARCH_END),
            ("agent", "2024-03-31", "2024-03-01"),
        ],
    )
    def test_invalid_input_fails_before_query(self, session, entity_type, start, end):
        extractor = MagicMock()
        engine = PerformanceScoringEngine(session, extractor=extractor)

        with pytest.raises(InvalidWindowError):
            engine.calculate_risk_score(entity_type, "agent-A", start, end)

        extractor.extract.assert_not_called()

    def test_missing_entity_id(self, engine):
        with pytest.raises(InvalidWindowError):
            engine.calculate_risk_score("agent", "  ")

    def test_entity_type_is_case_insensitive(self):
        window = MetricWindow.create("Company", "co-1")
        assert window.entity_type == EntityType.COMPANY

    def test_window_bounds(self):
        window = MetricWindow.create("agent", "a", MARCH_START, MARCH_END)

        assert window.start_datetime == datetime(2024, 3, 1)
        assert window.end_exclusive == datetime(2024, 4, 1)
        assert window.contains(datetime(2024, 3, 31, 23, 59))
        assert not window.contains(datetime(2024, 4, 1))
        assert not window.contains(None)


# ============================================================
# FAILURES
# ============================================================

class TestFailures:
    """Tests for error propagation."""

    def test_storage_failure_raises_extraction_error(self):
        session = MagicMock()
        session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("db down"))
        engine = PerformanceScoringEngine(session)

        with pytest.raises(MetricExtractionError) as exc_info:
            engine.calculate_risk_score("agent", "agent-A", MARCH_START, MARCH_END)

        assert isinstance(exc_info.value.cause, RepositoryException)
        assert exc_info.value.context["entity_id"] == "agent-A"

    def test_unreadable_row_raises_extraction_error(self, engine):
        """A row missing required columns is reported with its id."""
        broken_row = SimpleNamespace(id="wo-broken", company_id=None)

        with patch.object(engine._extractor, "_execute_query", return_value=[broken_row]):
            with pytest.raises(MetricExtractionError) as exc_info:
                engine.calculate_risk_score("company", "co-1", MARCH_START, MARCH_END)

        cause = exc_info.value.cause
        assert isinstance(cause, DataValidationError)
        assert cause.context == {"record_type": "WorkOrderSample", "record_id": "wo-broken"}

    def test_calculation_failure_raises_scoring_error(self, engine, scenario_a):
        with patch(
            "performance_scoring.engine.calculate_ratios",
            side_effect=ValueError("boom"),
        ):
            with pytest.raises(ScoringError) as exc_info:
                engine.calculate_risk_score("agent", "agent-A", MARCH_START, MARCH_END)

        assert isinstance(exc_info.value.cause, ValueError)


# ============================================================
# DASHBOARD METRICS
# ============================================================

class TestAgentMetrics:
    """Tests for calculate_agent_performance_metrics()."""

    def test_scenario_a_metrics(self, engine, scenario_a):
        metrics = engine.calculate_agent_performance_metrics("agent-A", MARCH_START, MARCH_END)

        assert metrics == {
            "totalJobs": 10,
            "completedJobs": 10,
            "completionRate": 100.0,
            "onTimeStartPct": 90.0,
            "onTimeFinishPct": 90.0,
            "avgRating": 4.2,
            "totalFeedback": 5,
            "wouldHireAgainPct": 100.0,
            "totalIssues": 0,
            "resolvedIssues": 0,
            "issueResolutionPct": 100.0,
            "auditLogCount": 5,
            "complianceScore": 50.0,
        }

    def test_issues_reported_by_agent_count(self, engine, make_work_order, make_issue):
        other = make_work_order(assignee_id="agent-X")
        make_issue(other, status="resolved", reported_by_id="agent-R")
        make_issue(other, status="open", reported_by_id="agent-R")

        metrics = engine.calculate_agent_performance_metrics("agent-R")

        assert metrics["totalIssues"] == 2
        assert metrics["issueResolutionPct"] == 50.0

    def test_performance_snapshot(self, session, engine, scenario_a):
        snapshot = engine.create_performance_snapshot("agent-A", MARCH_START, MARCH_END)
        session.commit()

        stored = SnapshotRepository(session).get_performance_snapshots("agent-A")

        assert [s.id for s in stored] == [snapshot.id]
        assert stored[0].period_start == date(2024, 3, 1)
        assert stored[0].period_end == date(2024, 3, 31)
        assert stored[0].metrics["complianceScore"] == 50.0


class TestServiceQualityMetrics:
    """Tests for calculate_service_quality_metrics()."""

    def test_scenario_b_metrics(self, engine, scenario_b):
        metrics = engine.calculate_service_quality_metrics("co-B", MARCH_START, MARCH_END)

        assert metrics["totalJobs"] == 10
        assert metrics["completedJobs"] == 10
        assert metrics["issueRate"] == 30.0
        assert metrics["totalIssues"] == 3
        assert metrics["openIssues"] == 3
        assert metrics["avgSatisfaction"] == 100.0
        assert metrics["auditLogCount"] == 10
        assert metrics["complianceScore"] == 100.0
        assert metrics["activeAgents"] == 2

    def test_feedback_scoped_by_company_work_orders(self, engine, make_work_order, make_feedback):
        ours = make_work_order(company_id="co-F", assignee_id="agent-F")
        theirs = make_work_order(company_id="co-G", assignee_id="agent-F")
        make_feedback(ours, 2, given_to="agent-F")
        make_feedback(theirs, 5, given_to="agent-F")

        metrics = engine.calculate_service_quality_metrics("co-F")

        assert metrics["avgRating"] == 2.0
        assert metrics["avgSatisfaction"] == 40.0

    def test_old_work_order_feedback_counts_in_window(
        self, engine, make_work_order, make_feedback
    ):
        """Scoping by work order ignores the window; the feedback date decides."""
        old = make_work_order(company_id="co-H", created_at=datetime(2023, 12, 1))
        make_feedback(old, 1, created_at=datetime(2024, 3, 20))

        metrics = engine.calculate_service_quality_metrics("co-H", MARCH_START, MARCH_END)

        assert metrics["totalJobs"] == 0
        assert metrics["avgRating"] == 1.0

    def test_service_quality_snapshot(self, session, engine, scenario_b):
        snapshot = engine.create_service_quality_snapshot("co-B", MARCH_START, MARCH_END)
        session.commit()

        stored = SnapshotRepository(session).get_service_quality_snapshots("co-B")

        assert stored[0].id == snapshot.id
        assert stored[0].metrics["issueRate"] == 30.0


# ============================================================
# PERSISTENCE
# ============================================================

class TestCalculateAndSave:
    """Tests for calculate_and_save_risk_score()."""

    def test_saves_result(self, session, engine, scenario_b):
        result, record = engine.calculate_and_save_risk_score(
            "company", "co-B", MARCH_START, MARCH_END
        )
        session.commit()

        latest = RiskScoreRepository(session).get_latest_for_entity(EntityType.COMPANY, "co-B")

        assert latest.id == record.id
        assert latest.score == result.score == 9
        assert latest.flagged_metrics == result.to_dict()["flaggedMetrics"]
        assert latest.period_start == date(2024, 3, 1)
        assert latest.has_high_severity
