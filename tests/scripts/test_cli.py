"""
Tests for the command-line entry points.
"""

import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from performance_scoring.repository import RiskScoreRepository
from scripts import bootstrap_db, run_risk_report


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def seeded(session, make_work_order, make_issue, make_audit_log):
    """Company co-B: 3 issues on 10 completed jobs, full audit coverage."""
    orders = [
        make_work_order(company_id="co-B", created_at=datetime(2024, 3, 2 + n, 8, 0))
        for n in range(10)
    ]
    for wo in orders[:3]:
        make_issue(wo)
    for wo in orders:
        make_audit_log(wo.id, performed_by="dispatcher-1")
    session.commit()
    return orders


ARGS = ["-t", "company", "-i", "co-B", "--start", "2024-03-01", "--end", "2024-03-31"]


# ============================================================
# RISK REPORT
# ============================================================

class TestRunRiskReport:
    """Tests for scripts.run_risk_report.main()."""

    def test_prints_json(self, seeded, session_factory, capsys):
        exit_code = run_risk_report.main(ARGS, session_factory=session_factory)

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["score"] == 9
        assert output["flaggedMetrics"]["issueRate"]["severity"] == "high"

    def test_summary(self, seeded, session_factory, capsys):
        exit_code = run_risk_report.main(ARGS + ["--summary"], session_factory=session_factory)

        assert exit_code == 0
        assert "Risk Score: 9/100" in capsys.readouterr().out

    def test_persist(self, seeded, session_factory):
        exit_code = run_risk_report.main(ARGS + ["--persist"], session_factory=session_factory)

        assert exit_code == 0
        reader = session_factory()
        latest = RiskScoreRepository(reader).get_latest_for_entity("company", "co-B")
        assert latest is not None
        assert latest.score == 9
        reader.close()

    def test_alert(self, seeded, session_factory):
        service = MagicMock()
        service.process_result = AsyncMock(return_value=None)

        with patch.object(
            run_risk_report, "create_alerting_service_from_settings", return_value=service
        ):
            exit_code = run_risk_report.main(ARGS + ["--alert"], session_factory=session_factory)

        assert exit_code == 0
        service.process_result.assert_awaited_once()
        result = service.process_result.await_args.args[0]
        assert result.score == 9

    def test_invalid_date(self, session_factory):
        exit_code = run_risk_report.main(
            ["-t", "agent", "-i", "a1", "--start", "not-a-date"],
            session_factory=session_factory,
        )
        assert exit_code == 2

    def test_storage_failure(self):
        broken = MagicMock()
        broken.execute.side_effect = OperationalError("SELECT", {}, Exception("db down"))

        exit_code = run_risk_report.main(ARGS, session_factory=lambda: broken)

        assert exit_code == 1
        broken.rollback.assert_called_once()
        broken.close.assert_called_once()

    def test_disposes_engine_it_created(self, session):
        created_engine = MagicMock()

        with patch.object(run_risk_report, "create_database_engine", return_value=created_engine), \
                patch.object(run_risk_report, "sessionmaker", return_value=lambda: session):
            exit_code = run_risk_report.main(ARGS + ["--database-url", "sqlite://"])

        assert exit_code == 0
        created_engine.dispose.assert_called_once()

    def test_rejects_unknown_entity_type(self):
        with pytest.raises(SystemExit):
            run_risk_report.main(["-t", "vendor", "-i", "v1"])


# ============================================================
# BOOTSTRAP
# ============================================================

class TestBootstrapDb:
    """Tests for scripts.bootstrap_db.main()."""

    def test_validate_only_reports_missing(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'empty.db'}"
        assert bootstrap_db.main(["--validate-only", "--database-url", url]) == 1

    def test_creates_tables(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'fresh.db'}"

        assert bootstrap_db.main(["--database-url", url]) == 0
        assert bootstrap_db.main(["--validate-only", "--database-url", url]) == 0
