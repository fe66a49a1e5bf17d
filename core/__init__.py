"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Injectable UTC clock
- exceptions: Custom exception hierarchy
- session_store: Keyed TTL session store (impersonation, WebAuthn challenges)
"""

from .exceptions import (
    Severity,
    ErrorClassification,
    FieldOpsException,
    ConfigurationError,
    InvalidConfigError,
    DataError,
    DataValidationError,
    AnalyticsError,
    InvalidWindowError,
    MetricExtractionError,
    ScoringError,
    AuditError,
    SessionError,
    SessionNotFoundError,
    SessionExpiredError,
    ImpersonationDeniedError,
)
from .clock import (
    ClockProtocol,
    SystemClock,
    MockClock,
    to_naive_utc,
    utcnow_naive,
)
from .session_store import (
    SessionEntry,
    TTLSessionStore,
    ImpersonationContext,
    ImpersonationService,
    ChallengeStore,
)


__all__ = [
    "Severity",
    "ErrorClassification",
    "FieldOpsException",
    "ConfigurationError",
    "InvalidConfigError",
    "DataError",
    "DataValidationError",
    "AnalyticsError",
    "InvalidWindowError",
    "MetricExtractionError",
    "ScoringError",
    "AuditError",
    "SessionError",
    "SessionNotFoundError",
    "SessionExpiredError",
    "ImpersonationDeniedError",
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "to_naive_utc",
    "utcnow_naive",
    "SessionEntry",
    "TTLSessionStore",
    "ImpersonationContext",
    "ImpersonationService",
    "ChallengeStore",
]
