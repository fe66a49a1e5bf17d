"""
Audit Trail - Logger.

============================================================
PURPOSE
============================================================
Records system actions in audit_logs.

- Sensitive keys in state snapshots are redacted before storage
- Each event gets a risk level from an additive points rule
- High and critical events are echoed to the application log

============================================================
RISK POINTS
============================================================
    high-risk entity type           +20
    action contains high-risk word  +30
    action contains critical word   +50
    performed by operations director +15

    >= 70 critical, >= 40 high, >= 20 medium, else low

============================================================
ERROR POLICY
============================================================
log_event raises AuditError on failure. The log_*_action
helpers log the failure and return None so that a broken audit
write never aborts the business action that triggered it.

============================================================
"""

import copy
import json
import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, SystemClock, to_naive_utc
from core.exceptions import AuditError
from core.session_store import OPERATIONS_DIRECTOR_ROLE
from database.models import AuditLog
from storage.repositories.exceptions import RepositoryException

from .repository import AuditLogRepository
from .types import ENTITY_TYPES, AuditRiskLevel


logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

SENSITIVE_FIELDS = ("password", "passwordhash", "token", "secret", "key")

HIGH_RISK_ENTITIES = frozenset({"user", "company", "security", "permission", "role"})

HIGH_RISK_ACTIONS = (
    "delete",
    "create",
    "login_failed",
    "permission_denied",
    "role_changed",
    "impersonation",
    "data_export",
)

CRITICAL_ACTIONS = (
    "delete_user",
    "delete_company",
    "security_breach",
    "unauthorized_access",
    "data_breach",
)


# =============================================================
# PURE HELPERS
# =============================================================

def _is_sensitive(key: Any) -> bool:
    lowered = str(key).lower()
    return any(field in lowered for field in SENSITIVE_FIELDS)


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            k: REDACTED if _is_sensitive(k) else _redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def sanitize_state(state: Any) -> Any:
    """
    Deep copy of state with sensitive keys replaced by [REDACTED].

    A key is sensitive when its lowercased name contains password,
    token, secret or key. Falsy input is returned unchanged.
    """
    if not state:
        return state
    return _redact(copy.deepcopy(state))


def calculate_event_risk_level(
    entity_type: str,
    action: str,
    performed_by: str,
    metadata: Optional[Mapping[str, Any]] = None,
) -> AuditRiskLevel:
    points = 0
    action_lower = action.lower()

    if entity_type.lower() in HIGH_RISK_ENTITIES:
        points += 20
    if any(word in action_lower for word in HIGH_RISK_ACTIONS):
        points += 30
    if any(word in action_lower for word in CRITICAL_ACTIONS):
        points += 50
    if performed_by == OPERATIONS_DIRECTOR_ROLE or (
        isinstance(metadata, Mapping) and metadata.get("role") == OPERATIONS_DIRECTOR_ROLE
    ):
        points += 15

    return AuditRiskLevel.from_points(points)


def _dump(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str, sort_keys=True)


# =============================================================
# AUDIT LOGGER
# =============================================================

class AuditLogger:
    """
    Writes audit events through AuditLogRepository.

    By default rows are flushed into the caller's transaction.
    With autocommit=True every event is committed immediately.
    """

    def __init__(
        self,
        session: Session,
        clock: Optional[ClockProtocol] = None,
        autocommit: bool = False,
    ):
        self._repository = AuditLogRepository(session)
        self._clock = clock or SystemClock()
        self._autocommit = autocommit

    def log_event(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        performed_by: str,
        previous_state: Any = None,
        new_state: Any = None,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AuditLog:
        """
        Record one event.

        Raises:
            AuditError: If the row cannot be written
        """
        risk_level = calculate_event_risk_level(entity_type, action, performed_by, metadata)

        entry = AuditLog(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            performed_by=performed_by,
            previous_state=_dump(sanitize_state(previous_state)),
            new_state=_dump(sanitize_state(new_state)),
            reason=reason,
            metadata_json=_dump(sanitize_state(metadata)),
            risk_level=risk_level.value,
            ip_address=ip_address,
            user_agent=user_agent,
            session_id=session_id,
            timestamp=to_naive_utc(self._clock.now()),
        )

        try:
            self._repository.add_entry(entry)
            if self._autocommit:
                self._repository.commit()
        except RepositoryException as e:
            logger.error(
                f"Failed to log audit event {entity_type}:{entity_id} {action}: {e}",
                exc_info=True,
            )
            raise AuditError(
                f"Failed to log audit event: {e}",
                context={"entity_type": entity_type, "entity_id": str(entity_id), "action": action},
                cause=e,
            ) from e

        logger.info(
            f"Audit event {entity_type}:{entity_id} {action} "
            f"by {performed_by} [{risk_level.value}]"
        )
        if risk_level == AuditRiskLevel.CRITICAL:
            logger.error(
                f"CRITICAL AUDIT EVENT id={entry.id} {entity_type}:{entity_id} "
                f"action={action} by={performed_by}"
            )
        elif risk_level == AuditRiskLevel.HIGH:
            logger.warning(
                f"High-risk audit event id={entry.id} {entity_type}:{entity_id} action={action}"
            )
        return entry

    # ---------------------------------------------------------
    # Convenience helpers (never raise)
    # ---------------------------------------------------------

    def _safe_log(self, **kwargs: Any) -> Optional[AuditLog]:
        try:
            return self.log_event(**kwargs)
        except AuditError as e:
            logger.error(f"Audit write skipped: {e.to_log_format()}")
            return None

    def log_work_order_action(
        self,
        work_order_id: str,
        action: str,
        performed_by: str,
        previous_state: Any = None,
        new_state: Any = None,
        reason: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return self._safe_log(
            entity_type=ENTITY_TYPES["WORK_ORDER"],
            entity_id=work_order_id,
            action=action,
            performed_by=performed_by,
            previous_state=previous_state,
            new_state=new_state,
            reason=reason,
        )

    def log_issue_action(
        self,
        issue_id: str,
        action: str,
        performed_by: str,
        previous_state: Any = None,
        new_state: Any = None,
        reason: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return self._safe_log(
            entity_type=ENTITY_TYPES["ISSUE"],
            entity_id=issue_id,
            action=action,
            performed_by=performed_by,
            previous_state=previous_state,
            new_state=new_state,
            reason=reason,
        )

    def log_user_action(
        self,
        action: str,
        performed_by: str,
        metadata: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """User-level action; the user id doubles as the entity id."""
        return self._safe_log(
            entity_type=ENTITY_TYPES["USER_ACTION"],
            entity_id=performed_by,
            action=action,
            performed_by=performed_by,
            metadata=metadata,
            reason=reason,
        )

    def log_approval_action(
        self,
        approval_id: str,
        action: str,
        performed_by: str,
        previous_state: Any = None,
        new_state: Any = None,
        reason: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return self._safe_log(
            entity_type=ENTITY_TYPES["APPROVAL"],
            entity_id=approval_id,
            action=action,
            performed_by=performed_by,
            previous_state=previous_state,
            new_state=new_state,
            reason=reason,
        )

    def log_assignment_action(
        self,
        work_order_id: str,
        action: str,
        performed_by: str,
        previous_assignee: Optional[str] = None,
        new_assignee: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return self._safe_log(
            entity_type=ENTITY_TYPES["ASSIGNMENT"],
            entity_id=work_order_id,
            action=action,
            performed_by=performed_by,
            previous_state={"assignee": previous_assignee} if previous_assignee else None,
            new_state={"assignee": new_assignee} if new_assignee else None,
            reason=reason,
        )
