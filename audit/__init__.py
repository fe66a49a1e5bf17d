"""
Audit Trail Package.

Records system actions with a per-event risk level and serves
administrator queries, compliance reports and exports.

Modules:
- logger: AuditLogger, sanitize_state, calculate_event_risk_level
- repository: AuditLogRepository
- reporting: AuditReportingService
- types: AUDIT_ACTIONS, ENTITY_TYPES, AuditQuery, AuditLogEntry
"""

from .types import (
    AUDIT_ACTIONS,
    ENTITY_TYPES,
    SECURITY_ACTIONS,
    AuditRiskLevel,
    AuditQuery,
    AuditLogEntry,
)
from .repository import AuditLogRepository
from .logger import (
    AuditLogger,
    sanitize_state,
    calculate_event_risk_level,
    REDACTED,
)
from .reporting import AuditReportingService


__all__ = [
    "AUDIT_ACTIONS",
    "ENTITY_TYPES",
    "SECURITY_ACTIONS",
    "AuditRiskLevel",
    "AuditQuery",
    "AuditLogEntry",
    "AuditLogRepository",
    "AuditLogger",
    "sanitize_state",
    "calculate_event_risk_level",
    "REDACTED",
    "AuditReportingService",
]
