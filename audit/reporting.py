"""
Audit Trail - Queries and Reports.

============================================================
PURPOSE
============================================================
Read-side views over audit_logs for administrators:

- Filtered admin listing
- Security trail for the last N hours
- Compliance report for a period
- JSON / CSV export
- Table statistics

============================================================
"""

import csv
import io
import json
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.clock import ClockProtocol, SystemClock, to_naive_utc
from core.exceptions import AuditError, ErrorClassification
from storage.repositories.exceptions import RepositoryException

from .repository import AuditLogRepository
from .types import SECURITY_ACTIONS, AuditLogEntry, AuditQuery, AuditRiskLevel


logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "csv")

CSV_HEADERS = [
    "timestamp",
    "entityType",
    "entityId",
    "action",
    "performedBy",
    "riskLevel",
    "reason",
    "metadata",
]

MAX_CRITICAL_IN_REPORT = 20


def _risk_distribution(entries: List[AuditLogEntry]) -> Dict[str, int]:
    distribution = {level.value: 0 for level in AuditRiskLevel}
    for entry in entries:
        distribution[entry.risk_level.value] += 1
    return distribution


def _top_users(entries: List[AuditLogEntry], limit: int = 10) -> List[Dict[str, Any]]:
    counts = Counter(entry.performed_by for entry in entries)
    return [
        {"userId": user_id, "activityCount": count}
        for user_id, count in counts.most_common(limit)
    ]


class AuditReportingService:
    """Administrator queries over the audit trail."""

    def __init__(
        self,
        session: Session,
        clock: Optional[ClockProtocol] = None,
    ):
        self._repository = AuditLogRepository(session)
        self._clock = clock or SystemClock()

    # ---------------------------------------------------------
    # Listing
    # ---------------------------------------------------------

    def get_audit_logs_for_admin(self, query: Optional[AuditQuery] = None) -> List[AuditLogEntry]:
        """
        Filtered audit entries, newest first.

        Raises:
            AuditError: On storage failure
        """
        query = query or AuditQuery()
        records = self._read(lambda: self._repository.query(query), "get_audit_logs_for_admin")
        return [AuditLogEntry.from_record(r) for r in records]

    def get_security_audit_trail(
        self,
        user_id: Optional[str] = None,
        hours: float = 24,
    ) -> List[AuditLogEntry]:
        """Security actions plus any high/critical event in the last `hours`."""
        since = to_naive_utc(self._clock.now()) - timedelta(hours=hours)
        records = self._read(
            lambda: self._repository.security_events(since, SECURITY_ACTIONS, user_id),
            "get_security_audit_trail",
        )
        return [AuditLogEntry.from_record(r) for r in records]

    # ---------------------------------------------------------
    # Reports
    # ---------------------------------------------------------

    def generate_compliance_report(
        self,
        date_from: datetime,
        date_to: datetime,
    ) -> Dict[str, Any]:
        """Summary of everything recorded in [date_from, date_to]."""
        start = to_naive_utc(date_from)
        end = to_naive_utc(date_to)
        records = self._read(
            lambda: self._repository.between(start, end),
            "generate_compliance_report",
        )
        entries = [AuditLogEntry.from_record(r) for r in records]

        critical = [e for e in entries if e.risk_level == AuditRiskLevel.CRITICAL]
        high = [e for e in entries if e.risk_level == AuditRiskLevel.HIGH]

        report = {
            "reportPeriod": {"from": start.isoformat(), "to": end.isoformat()},
            "summary": {
                "totalEvents": len(entries),
                "criticalEvents": len(critical),
                "highRiskEvents": len(high),
                "uniqueUsers": len({e.performed_by for e in entries}),
                "entityTypes": len({e.entity_type for e in entries}),
            },
            "riskDistribution": _risk_distribution(entries),
            "topUsers": _top_users(entries),
            "criticalEvents": [e.to_export_dict() for e in critical[:MAX_CRITICAL_IN_REPORT]],
            "securityEvents": [
                e.to_export_dict() for e in entries
                if "security" in e.action
                or "auth" in e.action
                or e.risk_level == AuditRiskLevel.CRITICAL
            ],
            "dataAccessEvents": [
                e.to_export_dict() for e in entries
                if "access" in e.action or "read" in e.action or "export" in e.action
            ],
        }

        logger.info(
            f"Compliance report {start.date()}..{end.date()}: "
            f"{len(entries)} events, {len(critical)} critical"
        )
        return report

    def export_audit_trail(
        self,
        format: str = "json",
        query: Optional[AuditQuery] = None,
    ) -> str:
        """
        Serialize entries as JSON or CSV.

        Without a query, exports the whole table newest first.

        Raises:
            AuditError: On an unknown format or storage failure
        """
        if format not in EXPORT_FORMATS:
            raise AuditError(
                f"Unsupported export format: {format}",
                context={"format": format},
                classification=ErrorClassification.RECOVERABLE,
            )

        if query is not None:
            entries = self.get_audit_logs_for_admin(query)
        else:
            records = self._read(lambda: self._repository.between(), "export_audit_trail")
            entries = [AuditLogEntry.from_record(r) for r in records]

        if format == "json":
            return json.dumps([e.to_export_dict() for e in entries], indent=2, default=str)

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for e in entries:
            writer.writerow([
                e.timestamp.isoformat(),
                e.entity_type,
                e.entity_id,
                e.action,
                e.performed_by,
                e.risk_level.value,
                e.reason or "",
                json.dumps(e.metadata or {}, default=str, sort_keys=True),
            ])
        return buffer.getvalue().rstrip("\n")

    def get_audit_statistics(self) -> Dict[str, Any]:
        def collect() -> Dict[str, Any]:
            by_level = self._repository.count_by_risk_level()
            bounds = self._repository.timestamp_bounds()
            return {
                "totalEntries": self._repository.count(),
                "oldestEntry": bounds["oldest"].isoformat() if bounds["oldest"] else None,
                "newestEntry": bounds["newest"].isoformat() if bounds["newest"] else None,
                "riskLevelDistribution": {
                    level.value: by_level.get(level.value, 0) for level in AuditRiskLevel
                },
            }

        return self._read(collect, "get_audit_statistics")

    # ---------------------------------------------------------

    def _read(self, fn, operation: str):
        try:
            return fn()
        except RepositoryException as e:
            raise AuditError(
                f"Audit query failed ({operation}): {e.message}",
                context={"operation": operation},
                cause=e,
            ) from e
