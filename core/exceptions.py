"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception hierarchy for FieldOps analytics.

- Provides clear exception hierarchy
- Enables specific error handling
- Carries severity for alerting
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
FieldOpsException (base)
├── ConfigurationError
│   └── InvalidConfigError
├── DataError
│   └── DataValidationError
├── AnalyticsError
│   ├── InvalidWindowError
│   ├── MetricExtractionError
│   └── ScoringError
├── AuditError
└── SessionError
    ├── SessionNotFoundError
    ├── SessionExpiredError
    └── ImpersonationDeniedError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, the invocation cannot complete."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Caller can correct the input and call again."""

    TRANSIENT = "transient"
    """Temporary error, a caller-side retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class FieldOpsException(Exception):
    """
    Base exception for all FieldOps analytics errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - classification: for retry decisions made by the caller
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_retryable(self) -> bool:
        """Check if a caller-side retry may succeed."""
        return self.classification == ErrorClassification.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        base = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        return f"{base} | {ctx_str}" if ctx_str else base


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(FieldOpsException):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# DATA ERRORS
# ============================================================

class DataError(FieldOpsException):
    """Base class for data-related errors."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.RECOVERABLE


class DataValidationError(DataError):
    """A stored row could not be turned into a typed record."""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if record_type:
            context["record_type"] = record_type
        if record_id:
            context["record_id"] = record_id

        super().__init__(message, context=context, **kwargs)


# ============================================================
# ANALYTICS ERRORS
# ============================================================

class AnalyticsError(FieldOpsException):
    """Base class for scoring and metric errors."""

    default_severity = Severity.HIGH


class InvalidWindowError(AnalyticsError):
    """Entity type or window bounds are malformed."""

    default_severity = Severity.LOW
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        context: Dict[str, Any] = {}
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]
        super().__init__(message, context=context)


class MetricExtractionError(AnalyticsError):
    """
    Storage failure while reading raw records.

    Fatal for the invocation; the caller decides whether to retry.
    """

    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if entity_type:
            context["entity_type"] = entity_type
        if entity_id:
            context["entity_id"] = entity_id

        super().__init__(message, context=context, **kwargs)


class ScoringError(AnalyticsError):
    """Composite score could not be produced."""

    default_classification = ErrorClassification.NON_RECOVERABLE


# ============================================================
# AUDIT ERRORS
# ============================================================

class AuditError(FieldOpsException):
    """Audit event could not be recorded or queried."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT


# ============================================================
# SESSION ERRORS
# ============================================================

class SessionError(FieldOpsException):
    """Base class for session store errors."""

    default_severity = Severity.LOW


class SessionNotFoundError(SessionError):
    """No live session exists for the key."""

    def __init__(self, key: str):
        super().__init__(
            message=f"No active session for key: {key}",
            context={"key": key},
        )
        self.key = key


class SessionExpiredError(SessionError):
    """Session existed but its TTL elapsed."""

    def __init__(self, key: str, expired_at: datetime):
        super().__init__(
            message=f"Session {key} expired at {expired_at.isoformat()}",
            context={"key": key, "expired_at": expired_at.isoformat()},
        )
        self.key = key
        self.expired_at = expired_at


class ImpersonationDeniedError(SessionError):
    """User is not allowed to impersonate the requested role."""

    default_severity = Severity.MEDIUM

    def __init__(self, user_id: str, reason: str):
        super().__init__(
            message=f"Impersonation denied for {user_id}: {reason}",
            context={"user_id": user_id, "reason": reason},
        )
        self.user_id = user_id
        self.reason = reason
