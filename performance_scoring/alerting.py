"""
Performance Scoring - Alerting.

============================================================
PURPOSE
============================================================
Notifies operations staff when an agent or company scores badly.

Provides:
- Telegram notifications
- Alert formatting with the flagged metrics
- Rate limiting per entity

============================================================
ALERT PHILOSOPHY
============================================================
- Alert when any flagged metric is HIGH severity
- Optionally alert when the risk score reaches a floor
- One alert per entity per rate-limit interval

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

import httpx

from core.clock import ClockProtocol, SystemClock

from .config import AlertingConfig, RuntimeSettings
from .types import CompositeScore, FlagSeverity


logger = logging.getLogger(__name__)


# ============================================================
# ALERT MESSAGE DATACLASS
# ============================================================


@dataclass(frozen=True)
class RiskAlert:
    """Structured alert for one scored entity."""

    entity_type: str
    entity_id: str
    severity: str
    title: str
    message: str
    timestamp: datetime
    score: int
    flagged_metrics: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def entity_key(self) -> str:
        return f"{self.entity_type}:{self.entity_id}"

    def to_telegram_message(self, include_details: bool = True) -> str:
        """Format alert for Telegram (Markdown)."""
        emoji = "🔴" if self.severity == "HIGH" else "🟠"

        lines = [
            f"{emoji} *PERFORMANCE RISK ALERT*",
            "",
            f"*Entity:* {self.entity_type} `{self.entity_id}`",
            f"*Score:* {self.score}/100",
            f"*Time:* {self.timestamp.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        ]

        if include_details and self.flagged_metrics:
            lines.append("")
            lines.append("*Flagged:*")
            for name, flag in sorted(self.flagged_metrics.items()):
                lines.append(
                    f"  • {name}: {flag['current']} "
                    f"(threshold {flag['threshold']}, {flag['severity']})"
                )

        if include_details:
            lines.append("")
            lines.append(f"*Reason:* {self.message}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "severity": self.severity,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "score": self.score,
            "flagged_metrics": self.flagged_metrics,
            "context": self.context,
        }


# ============================================================
# ALERT SENDER PROTOCOL
# ============================================================


class AlertSender(Protocol):
    """Destination for alerts."""

    async def send(self, alert: RiskAlert) -> bool:
        """Return True if the alert was delivered."""
        ...


# ============================================================
# TELEGRAM ALERT SENDER
# ============================================================


class TelegramAlertSender:
    """
    Send alerts via the Telegram Bot API.

    The bot must already be a member of the target chat.
    """

    API_BASE = "https://api.telegram.org"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        include_details: bool = True,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._include_details = include_details
        self._timeout = timeout_seconds
        self._client = client

    async def send(self, alert: RiskAlert) -> bool:
        url = f"{self.API_BASE}/bot{self._bot_token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": alert.to_telegram_message(include_details=self._include_details),
            "parse_mode": "Markdown",
        }

        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, json=payload, timeout=self._timeout)
        except httpx.HTTPError as e:
            logger.error(f"Telegram alert failed for {alert.entity_key}: {e}")
            return False

        if response.status_code != 200:
            logger.warning(
                f"Telegram returned {response.status_code} for {alert.entity_key}"
            )
            return False
        return True


# ============================================================
# CONSOLE ALERT SENDER
# ============================================================


class ConsoleAlertSender:
    """Write alerts to the log (development and the CLI)."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    async def send(self, alert: RiskAlert) -> bool:
        self._log.warning(
            f"RISK ALERT [{alert.severity}] {alert.entity_key} "
            f"score={alert.score}/100: {alert.message}"
        )
        return True


# ============================================================
# RATE LIMITER
# ============================================================


class AlertRateLimiter:
    """
    Enforces a minimum interval between alerts for one entity.
    """

    def __init__(
        self,
        min_interval_seconds: float = 3600.0,
        clock: Optional[ClockProtocol] = None,
    ):
        self._min_interval = timedelta(seconds=min_interval_seconds)
        self._clock = clock or SystemClock()
        self._last_alerts: Dict[str, datetime] = {}

    def should_send(self, entity_key: str, now: Optional[datetime] = None) -> bool:
        now = now or self._clock.now()
        last_alert = self._last_alerts.get(entity_key)
        if last_alert is None:
            return True
        return (now - last_alert) >= self._min_interval

    def record_sent(self, entity_key: str, now: Optional[datetime] = None) -> None:
        self._last_alerts[entity_key] = now or self._clock.now()

    def reset(self) -> None:
        """Clear all rate limit state."""
        self._last_alerts.clear()


# ============================================================
# RISK ALERTING SERVICE
# ============================================================


class RiskAlertingService:
    """
    Decides whether a score warrants an alert and delivers it.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    1. Determine if alert should be sent
    2. Build alert messages
    3. Rate limit alerts per entity
    4. Send via configured senders

    ============================================================
    """

    def __init__(
        self,
        config: Optional[AlertingConfig] = None,
        senders: Optional[List[AlertSender]] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._config = config or AlertingConfig()
        self._senders: List[AlertSender] = list(senders or [])
        self._clock = clock or SystemClock()
        self._rate_limiter = AlertRateLimiter(
            min_interval_seconds=self._config.min_seconds_between_alerts,
            clock=self._clock,
        )

    def add_sender(self, sender: AlertSender) -> None:
        self._senders.append(sender)

    @property
    def sender_count(self) -> int:
        return len(self._senders)

    def should_alert(self, result: CompositeScore) -> bool:
        if self._config.alert_on_high_severity and result.has_high_severity:
            return True
        floor = self._config.min_score_for_alert
        return floor is not None and result.score >= floor

    def build_alert(self, result: CompositeScore) -> RiskAlert:
        severity = "HIGH" if result.has_high_severity else "MEDIUM"

        high = [
            name for name, flag in sorted(result.flagged_metrics.items())
            if flag.severity == FlagSeverity.HIGH
        ]
        if high:
            message = f"High severity: {', '.join(high)}"
        elif result.flagged_metrics:
            message = f"Flagged: {', '.join(result.flagged_names)}"
        else:
            message = f"Risk score at {result.score}"

        window = result.window
        entity_type = window.entity_type.value if window else "unknown"
        entity_id = window.entity_id if window else "unknown"

        return RiskAlert(
            entity_type=entity_type,
            entity_id=entity_id,
            severity=severity,
            title=f"Performance risk {severity}: {entity_type} {entity_id}",
            message=message,
            timestamp=self._clock.now(),
            score=result.score,
            flagged_metrics=result.to_dict()["flaggedMetrics"],
            context=window.to_dict() if window else {},
        )

    async def process_result(self, result: CompositeScore) -> Optional[RiskAlert]:
        """
        Send an alert for the result if it warrants one.

        Returns:
            The RiskAlert if at least one sender delivered it, else None
        """
        if not self.should_alert(result):
            return None

        alert = self.build_alert(result)

        if not self._rate_limiter.should_send(alert.entity_key):
            logger.debug(f"Alert for {alert.entity_key} suppressed by rate limit")
            return None

        sent = False
        for sender in self._senders:
            try:
                if await sender.send(alert):
                    sent = True
            except Exception as e:
                # One broken sender must not stop the others
                logger.error(
                    f"Alert sender {type(sender).__name__} raised: {e}",
                    exc_info=True,
                )

        if sent:
            self._rate_limiter.record_sent(alert.entity_key)
            return alert

        return None


# ============================================================
# FACTORY FUNCTIONS
# ============================================================


def create_telegram_alerting_service(
    bot_token: str,
    chat_id: str,
    config: Optional[AlertingConfig] = None,
) -> RiskAlertingService:
    service = RiskAlertingService(config=config)
    service.add_sender(TelegramAlertSender(
        bot_token=bot_token,
        chat_id=chat_id,
        include_details=config.telegram_include_details if config else True,
    ))
    return service


def create_console_alerting_service(
    config: Optional[AlertingConfig] = None,
) -> RiskAlertingService:
    service = RiskAlertingService(config=config)
    service.add_sender(ConsoleAlertSender())
    return service


def create_alerting_service_from_settings(
    settings: RuntimeSettings,
    config: Optional[AlertingConfig] = None,
) -> RiskAlertingService:
    """
    Console sender always; Telegram too when credentials are set
    and Telegram is enabled in the config.
    """
    config = config or AlertingConfig()
    service = create_console_alerting_service(config)
    if config.telegram_enabled and settings.telegram_configured:
        service.add_sender(TelegramAlertSender(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            include_details=config.telegram_include_details,
        ))
    return service
