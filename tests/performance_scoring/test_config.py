"""
Tests for scoring configuration.
"""

from dataclasses import FrozenInstanceError

import pytest

from core.exceptions import InvalidConfigError
from performance_scoring.config import (
    AlertingConfig,
    CategoryWeights,
    ComplianceThresholds,
    IssueRateThresholds,
    MetricThreshold,
    PerformanceScoringConfig,
    get_default_config,
    get_strict_config,
    load_runtime_settings,
)


class TestCategoryWeights:
    """Tests for CategoryWeights validation."""

    def test_defaults_sum_to_one(self):
        weights = CategoryWeights()
        assert weights.total() == pytest.approx(1.0)
        assert weights.to_dict() == {
            "satisfaction": 0.40,
            "timeliness": 0.20,
            "issue_handling": 0.30,
            "compliance": 0.10,
        }

    def test_rejects_weights_not_summing_to_one(self):
        with pytest.raises(InvalidConfigError):
            CategoryWeights(satisfaction=0.5)

    def test_rejects_negative_weight(self):
        with pytest.raises(InvalidConfigError):
            CategoryWeights(satisfaction=0.7, compliance=-0.2)


class TestMetricThreshold:
    """Tests for threshold direction and validation."""

    def test_higher_is_better(self):
        t = MetricThreshold(threshold=80.0, high_cutoff=60.0)
        assert t.is_breached(79.9)
        assert not t.is_breached(80.0)
        assert t.is_high(59.9)
        assert not t.is_high(60.0)

    def test_lower_is_better(self):
        t = IssueRateThresholds()
        assert t.is_breached(15.1)
        assert not t.is_breached(15.0)
        assert t.is_high(25.1)
        assert not t.is_high(25.0)

    def test_cutoff_must_sit_past_threshold(self):
        with pytest.raises(InvalidConfigError):
            MetricThreshold(threshold=80.0, high_cutoff=90.0)
        with pytest.raises(InvalidConfigError):
            MetricThreshold(threshold=15.0, high_cutoff=10.0, higher_is_better=False)

    def test_compliance_defaults(self):
        t = ComplianceThresholds()
        assert (t.threshold, t.high_cutoff) == (0.8, 0.5)


class TestPerformanceScoringConfig:
    """Tests for the master config."""

    def test_to_dict_contains_every_section(self):
        data = get_default_config().to_dict()
        assert set(data) == {
            "weights", "satisfaction", "timeliness", "issue_resolution",
            "issue_rate", "compliance", "alerting", "engine_version",
            "display_precision",
        }
        assert data["issue_rate"]["higher_is_better"] is False

    def test_strict_is_stricter(self):
        default = get_default_config()
        strict = get_strict_config()
        assert strict.timeliness.threshold > default.timeliness.threshold
        assert strict.issue_rate.threshold < default.issue_rate.threshold
        assert strict.alerting.min_score_for_alert == 20

    def test_config_is_frozen(self):
        config = PerformanceScoringConfig()
        with pytest.raises(FrozenInstanceError):
            config.engine_version = "2.0.0"

    def test_alerting_defaults(self):
        alerting = AlertingConfig()
        assert alerting.alert_on_high_severity is True
        assert alerting.min_score_for_alert is None


class TestRuntimeSettings:
    """Tests for environment-driven settings."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL_SYNC", "sqlite:///test.db")
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "abc")
        monkeypatch.setenv("TELEGRAM_CHAT_ID", "42")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = load_runtime_settings()

        assert settings.database_url == "sqlite:///test.db"
        assert settings.telegram_configured
        assert settings.log_level == "DEBUG"
        assert "abc" not in str(settings.to_dict())

    def test_telegram_needs_both_values(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "abc")
        monkeypatch.delenv("TELEGRAM_CHAT_ID", raising=False)

        assert not load_runtime_settings().telegram_configured
