"""
Audit Trail - Type Definitions.

Action and entity vocabularies, the query filter model and the
read-side entry DTO.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from core.clock import to_naive_utc


# =============================================================
# VOCABULARIES
# =============================================================

AUDIT_ACTIONS: Dict[str, str] = {
    "CREATED": "created",
    "UPDATED": "updated",
    "DELETED": "deleted",
    "ASSIGNED": "assigned",
    "UNASSIGNED": "unassigned",
    "APPROVED": "approved",
    "REJECTED": "rejected",
    "RESOLVED": "resolved",
    "ESCALATED": "escalated",
    "SCHEDULED": "scheduled",
    "STARTED": "started",
    "COMPLETED": "completed",
    "CANCELLED": "cancelled",
    "RESTORED": "restored",
}

ENTITY_TYPES: Dict[str, str] = {
    "WORK_ORDER": "work_order",
    "ISSUE": "issue",
    "USER_ACTION": "user_action",
    "APPROVAL": "approval",
    "ASSIGNMENT": "assignment",
    "PROJECT": "project",
}

# Substrings that mark an action as security relevant
SECURITY_ACTIONS = (
    "login",
    "logout",
    "authentication_failed",
    "authorization_denied",
    "role_changed",
    "impersonation_started",
    "impersonation_stopped",
    "password_changed",
    "account_locked",
    "account_unlocked",
    "permission_escalation",
    "sensitive_data_access",
)


class AuditRiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def from_points(cls, points: int) -> "AuditRiskLevel":
        if points >= 70:
            return cls.CRITICAL
        if points >= 40:
            return cls.HIGH
        if points >= 20:
            return cls.MEDIUM
        return cls.LOW


# =============================================================
# QUERY / ENTRY SCHEMAS
# =============================================================

class AuditQuery(BaseModel):
    """Filters for audit log listing. All filters are optional."""
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    action: Optional[str] = None
    performed_by: Optional[str] = None
    risk_level: Optional[AuditRiskLevel] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(default=100, ge=1, le=10000)
    offset: int = Field(default=0, ge=0)

    @field_validator("date_from", "date_to")
    @classmethod
    def normalize_bound(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Bounds compare against naive-UTC timestamps."""
        return to_naive_utc(v) if v is not None else v


def _load_json(text: Optional[str]) -> Any:
    if text is None or text == "":
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return text


class AuditLogEntry(BaseModel):
    """An audit_logs row with its JSON columns decoded."""
    id: str
    timestamp: datetime
    entity_type: str
    entity_id: str
    action: str
    performed_by: str
    previous_state: Any = None
    new_state: Any = None
    reason: Optional[str] = None
    metadata: Any = None
    risk_level: AuditRiskLevel = AuditRiskLevel.LOW
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Any) -> "AuditLogEntry":
        return cls(
            id=record.id,
            timestamp=record.timestamp,
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            action=record.action,
            performed_by=record.performed_by,
            previous_state=_load_json(record.previous_state),
            new_state=_load_json(record.new_state),
            reason=record.reason,
            metadata=_load_json(record.metadata_json),
            risk_level=record.risk_level or AuditRiskLevel.LOW.value,
            ip_address=record.ip_address,
            user_agent=record.user_agent,
            session_id=record.session_id,
        )

    def to_export_dict(self) -> Dict[str, Any]:
        """camelCase shape used by the JSON export."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "action": self.action,
            "performedBy": self.performed_by,
            "previousState": self.previous_state,
            "newState": self.new_state,
            "reason": self.reason,
            "metadata": self.metadata,
            "riskLevel": self.risk_level.value,
        }
