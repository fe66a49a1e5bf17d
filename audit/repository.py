"""
Audit Log Repository.

============================================================
PURPOSE
============================================================
Append and query access to the audit_logs table.

Rows are never updated or deleted through this repository.

============================================================
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import desc, func, or_, select
from sqlalchemy.orm import Session

from core.clock import to_naive_utc
from database.models import AuditLog
from storage.repositories.base import BaseRepository

from .types import AuditQuery, AuditRiskLevel


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for audit_logs."""

    def __init__(self, session: Session):
        super().__init__(session, AuditLog, "AuditLogRepository")

    # --------------------------------------------------------
    # WRITE
    # --------------------------------------------------------

    def add_entry(self, entry: AuditLog) -> AuditLog:
        return self._add(entry)

    def commit(self) -> None:
        self._commit()

    # --------------------------------------------------------
    # READ
    # --------------------------------------------------------

    def query(self, query: AuditQuery) -> List[AuditLog]:
        """Filtered listing, newest first, paginated."""
        stmt = select(AuditLog)

        if query.entity_type:
            stmt = stmt.where(AuditLog.entity_type == query.entity_type)
        if query.entity_id:
            stmt = stmt.where(AuditLog.entity_id == query.entity_id)
        if query.action:
            stmt = stmt.where(AuditLog.action == query.action)
        if query.performed_by:
            stmt = stmt.where(AuditLog.performed_by == query.performed_by)
        if query.risk_level:
            stmt = stmt.where(AuditLog.risk_level == query.risk_level.value)
        if query.date_from:
            stmt = stmt.where(AuditLog.timestamp >= query.date_from)
        if query.date_to:
            stmt = stmt.where(AuditLog.timestamp <= query.date_to)

        stmt = (
            stmt.order_by(desc(AuditLog.timestamp))
            .offset(query.offset)
            .limit(query.limit)
        )
        return self._execute_query(stmt, "query")

    def between(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[AuditLog]:
        """All rows in an inclusive time range, newest first."""
        stmt = select(AuditLog)
        if date_from is not None:
            stmt = stmt.where(AuditLog.timestamp >= to_naive_utc(date_from))
        if date_to is not None:
            stmt = stmt.where(AuditLog.timestamp <= to_naive_utc(date_to))
        stmt = stmt.order_by(desc(AuditLog.timestamp))
        return self._execute_query(stmt, "between")

    def security_events(
        self,
        since: datetime,
        security_actions: Sequence[str],
        user_id: Optional[str] = None,
    ) -> List[AuditLog]:
        """Security-relevant or high/critical rows since a time."""
        relevant = or_(
            *[AuditLog.action.contains(action) for action in security_actions],
            AuditLog.risk_level.in_(
                [AuditRiskLevel.HIGH.value, AuditRiskLevel.CRITICAL.value]
            ),
        )
        stmt = select(AuditLog).where(AuditLog.timestamp >= since).where(relevant)
        if user_id:
            stmt = stmt.where(AuditLog.performed_by == user_id)
        stmt = stmt.order_by(desc(AuditLog.timestamp))
        return self._execute_query(stmt, "security_events")

    def count(self) -> int:
        return self._count()

    def count_by_risk_level(self) -> Dict[str, int]:
        stmt = select(AuditLog.risk_level, func.count()).group_by(AuditLog.risk_level)
        rows = self._execute_rows(stmt, "count_by_risk_level")
        return {level: count for level, count in rows}

    def timestamp_bounds(self) -> Dict[str, Optional[datetime]]:
        stmt = select(func.min(AuditLog.timestamp), func.max(AuditLog.timestamp))
        rows = self._execute_rows(stmt, "timestamp_bounds")
        oldest, newest = rows[0] if rows else (None, None)
        return {"oldest": oldest, "newest": newest}
