"""
Tests for risk alerting.

============================================================
PURPOSE
============================================================
- Alert only when a result warrants it
- Rate limit per entity
- A failing sender does not stop the others

============================================================
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from core.clock import MockClock
from performance_scoring.alerting import (
    AlertRateLimiter,
    ConsoleAlertSender,
    RiskAlertingService,
    TelegramAlertSender,
    create_alerting_service_from_settings,
)
from performance_scoring.classifier import classify
from performance_scoring.composer import compose
from performance_scoring.config import AlertingConfig, RuntimeSettings, get_default_config
from performance_scoring.types import CompositeScore, MetricWindow, RatioSet


# ============================================================
# FIXTURES
# ============================================================

def _result(entity_id: str = "co-1", **ratio_overrides) -> CompositeScore:
    config = get_default_config()
    window = MetricWindow.create("company", entity_id, "2024-03-01", "2024-03-31")
    ratios = RatioSet(**ratio_overrides)
    categories, composite, score = compose(ratios, window.entity_type, config)
    return CompositeScore(
        score=score,
        composite=composite,
        category_scores=categories,
        flagged_metrics=classify(ratios, window.entity_type, config),
        window=window,
    )


@pytest.fixture
def clock():
    return MockClock(datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def sender():
    mock = MagicMock()
    mock.send = AsyncMock(return_value=True)
    return mock


# ============================================================
# DECISION
# ============================================================

class TestShouldAlert:
    """Tests for RiskAlertingService.should_alert()."""

    def test_high_severity_alerts(self):
        service = RiskAlertingService()
        assert service.should_alert(_result(issue_rate=30.0))

    def test_medium_only_does_not_alert_by_default(self):
        service = RiskAlertingService()
        assert not service.should_alert(_result(issue_rate=20.0))

    def test_score_floor(self):
        service = RiskAlertingService(config=AlertingConfig(min_score_for_alert=5))
        assert service.should_alert(_result(issue_rate=20.0))
        assert not service.should_alert(_result())

    def test_high_severity_switch(self):
        service = RiskAlertingService(config=AlertingConfig(alert_on_high_severity=False))
        assert not service.should_alert(_result(issue_rate=30.0))


class TestBuildAlert:
    """Tests for alert content."""

    def test_alert_fields(self, clock):
        service = RiskAlertingService(clock=clock)
        alert = service.build_alert(_result(issue_rate=30.0, compliance_density=0.7))

        assert alert.severity == "HIGH"
        assert alert.entity_key == "company:co-1"
        assert alert.message == "High severity: issueRate"
        assert alert.timestamp == clock.now()
        assert set(alert.flagged_metrics) == {"issueRate", "compliance"}

    def test_telegram_message(self, clock):
        alert = RiskAlertingService(clock=clock).build_alert(_result(issue_rate=30.0))
        text = alert.to_telegram_message()

        assert "PERFORMANCE RISK ALERT" in text
        assert "co-1" in text
        assert "issueRate: 30.0" in text
        assert "2024-04-01 09:00:00 UTC" in text

    def test_message_without_details(self, clock):
        alert = RiskAlertingService(clock=clock).build_alert(_result(issue_rate=30.0))
        assert "Flagged" not in alert.to_telegram_message(include_details=False)


# ============================================================
# DELIVERY
# ============================================================

class TestProcessResult:
    """Tests for process_result()."""

    @pytest.mark.asyncio
    async def test_sends_once_per_interval(self, clock, sender):
        service = RiskAlertingService(senders=[sender], clock=clock)
        result = _result(issue_rate=30.0)

        first = await service.process_result(result)
        second = await service.process_result(result)
        clock.advance(hours=1)
        third = await service.process_result(result)

        assert first is not None
        assert second is None
        assert third is not None
        assert sender.send.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_is_per_entity(self, clock, sender):
        service = RiskAlertingService(senders=[sender], clock=clock)

        await service.process_result(_result("co-1", issue_rate=30.0))
        other = await service.process_result(_result("co-2", issue_rate=30.0))

        assert other is not None
        assert sender.send.await_count == 2

    @pytest.mark.asyncio
    async def test_no_alert_for_clean_result(self, sender):
        service = RiskAlertingService(senders=[sender])

        assert await service.process_result(_result()) is None
        sender.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_sender_does_not_block_others(self, clock, sender):
        broken = MagicMock()
        broken.send = AsyncMock(side_effect=RuntimeError("network down"))
        service = RiskAlertingService(senders=[broken, sender], clock=clock)

        alert = await service.process_result(_result(issue_rate=30.0))

        assert alert is not None
        sender.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_undelivered_alert_is_not_rate_limited(self, clock):
        refusing = MagicMock()
        refusing.send = AsyncMock(return_value=False)
        service = RiskAlertingService(senders=[refusing], clock=clock)
        result = _result(issue_rate=30.0)

        assert await service.process_result(result) is None
        assert await service.process_result(result) is None
        assert refusing.send.await_count == 2

    @pytest.mark.asyncio
    async def test_console_sender(self, clock, caplog):
        service = RiskAlertingService(senders=[ConsoleAlertSender()], clock=clock)

        with caplog.at_level("WARNING"):
            alert = await service.process_result(_result(issue_rate=30.0))

        assert alert is not None
        assert "RISK ALERT [HIGH] company:co-1" in caplog.text


class TestTelegramSender:
    """Tests for TelegramAlertSender with an injected client."""

    @pytest.mark.asyncio
    async def test_posts_to_bot_api(self, clock):
        client = MagicMock()
        client.post = AsyncMock(return_value=MagicMock(status_code=200))
        sender = TelegramAlertSender("TOKEN", "CHAT", client=client)
        alert = RiskAlertingService(clock=clock).build_alert(_result(issue_rate=30.0))

        assert await sender.send(alert) is True

        url = client.post.await_args.args[0]
        payload = client.post.await_args.kwargs["json"]
        assert url == "https://api.telegram.org/botTOKEN/sendMessage"
        assert payload["chat_id"] == "CHAT"
        assert payload["parse_mode"] == "Markdown"

    @pytest.mark.asyncio
    async def test_non_200_is_failure(self, clock):
        client = MagicMock()
        client.post = AsyncMock(return_value=MagicMock(status_code=403))
        sender = TelegramAlertSender("TOKEN", "CHAT", client=client)
        alert = RiskAlertingService(clock=clock).build_alert(_result(issue_rate=30.0))

        assert await sender.send(alert) is False

    @pytest.mark.asyncio
    async def test_http_error_is_failure(self, clock):
        client = MagicMock()
        client.post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        sender = TelegramAlertSender("TOKEN", "CHAT", client=client)
        alert = RiskAlertingService(clock=clock).build_alert(_result(issue_rate=30.0))

        assert await sender.send(alert) is False


class TestRateLimiter:
    """Tests for AlertRateLimiter."""

    def test_interval(self, clock):
        limiter = AlertRateLimiter(min_interval_seconds=60, clock=clock)

        assert limiter.should_send("agent:a1")
        limiter.record_sent("agent:a1")
        assert not limiter.should_send("agent:a1")

        clock.advance(seconds=60)
        assert limiter.should_send("agent:a1")

    def test_reset(self, clock):
        limiter = AlertRateLimiter(min_interval_seconds=60, clock=clock)
        limiter.record_sent("agent:a1")
        limiter.reset()

        assert limiter.should_send("agent:a1")


class TestFactories:
    """Tests for service construction from settings."""

    def test_console_only_without_telegram(self):
        service = create_alerting_service_from_settings(RuntimeSettings())
        assert service.sender_count == 1

    def test_adds_telegram_when_configured(self):
        settings = RuntimeSettings(telegram_bot_token="t", telegram_chat_id="c")
        assert create_alerting_service_from_settings(settings).sender_count == 2

    def test_telegram_disabled_in_config(self):
        settings = RuntimeSettings(telegram_bot_token="t", telegram_chat_id="c")
        service = create_alerting_service_from_settings(
            settings, AlertingConfig(telegram_enabled=False)
        )
        assert service.sender_count == 1
