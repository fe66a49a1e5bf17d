"""
Performance Scoring - Metric Extractor.

============================================================
PURPOSE
============================================================
Reads the raw rows behind one MetricWindow and converts them
into validated samples.

============================================================
ENTITY SCOPING
============================================================
agent:
- work orders assigned to the agent
- feedback given to the agent
- issues on the agent's work orders or reported by the agent
- audit log rows performed by the agent

company:
- work orders of the company
- feedback on those work orders
- issues of the company
- audit log rows about those work orders or their assignments

Scoping by work order ignores the window; the window applies to
the timestamp of the row being read (created_at, or timestamp
for audit logs).

============================================================
ERRORS
============================================================
An unknown entity yields empty collections. A storage failure
raises MetricExtractionError wrapping the RepositoryException.

============================================================
"""

import logging
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from core.exceptions import DataValidationError, MetricExtractionError
from database.models import AuditLog, Feedback, Issue, WorkOrder
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import RepositoryException

from .types import (
    AuditLogSample,
    EntityType,
    FeedbackSample,
    IssueSample,
    MetricWindow,
    RawEventCollections,
    WorkOrderSample,
)


logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)

# Audit entity types that describe a company's work orders
COMPANY_AUDIT_ENTITY_TYPES = ("work_order", "assignment")


class MetricExtractor(BaseRepository[WorkOrder]):
    """
    Read-only access to the operational tables for scoring.

    Never writes. Safe to share a session with other readers.
    """

    def __init__(self, session: Session):
        super().__init__(session, WorkOrder, "MetricExtractor")

    # =========================================================
    # PUBLIC API
    # =========================================================

    def extract(self, window: MetricWindow) -> RawEventCollections:
        """
        Read every record in scope for the window.

        Raises:
            MetricExtractionError: If the underlying query fails or a
                row cannot be read as a sample
        """
        try:
            events = RawEventCollections(
                window=window,
                work_orders=tuple(self.work_orders_for(window)),
                feedback=tuple(self.feedback_for(window)),
                issues=tuple(self.issues_for(window)),
                audit_logs=tuple(self.audit_logs_for(window)),
            )
        except (RepositoryException, DataValidationError) as e:
            raise MetricExtractionError(
                f"Failed to extract metrics: {e.message}",
                entity_type=window.entity_type.value,
                entity_id=window.entity_id,
                cause=e,
            ) from e

        logger.debug(
            f"Extracted {events.counts()} for "
            f"{window.entity_type.value}:{window.entity_id}"
        )
        return events

    def work_orders_for(self, window: MetricWindow) -> List[WorkOrderSample]:
        stmt = select(WorkOrder).where(self._work_order_scope(window))
        stmt = self._apply_window(stmt, WorkOrder.created_at, window)
        return self._samples(stmt, WorkOrderSample, "work_orders_for")

    def feedback_for(self, window: MetricWindow) -> List[FeedbackSample]:
        if window.entity_type == EntityType.AGENT:
            scope = Feedback.given_to == window.entity_id
        else:
            scope = Feedback.work_order_id.in_(self._work_order_ids(window))
        stmt = select(Feedback).where(scope)
        stmt = self._apply_window(stmt, Feedback.created_at, window)
        return self._samples(stmt, FeedbackSample, "feedback_for")

    def issues_for(self, window: MetricWindow) -> List[IssueSample]:
        if window.entity_type == EntityType.AGENT:
            scope = or_(
                Issue.work_order_id.in_(self._work_order_ids(window)),
                Issue.reported_by_id == window.entity_id,
            )
        else:
            scope = Issue.company_id == window.entity_id
        stmt = select(Issue).where(scope)
        stmt = self._apply_window(stmt, Issue.created_at, window)
        return self._samples(stmt, IssueSample, "issues_for")

    def audit_logs_for(self, window: MetricWindow) -> List[AuditLogSample]:
        if window.entity_type == EntityType.AGENT:
            scope = AuditLog.performed_by == window.entity_id
        else:
            scope = (
                AuditLog.entity_type.in_(COMPANY_AUDIT_ENTITY_TYPES)
                & AuditLog.entity_id.in_(self._work_order_ids(window))
            )
        stmt = select(AuditLog).where(scope)
        stmt = self._apply_window(stmt, AuditLog.timestamp, window)
        return self._samples(stmt, AuditLogSample, "audit_logs_for")

    def count_active_agents(self, window: MetricWindow) -> int:
        """Distinct assignees on the company's work orders in the window."""
        stmt = (
            select(WorkOrder.assignee_id)
            .where(WorkOrder.company_id == window.entity_id)
            .where(WorkOrder.assignee_id.is_not(None))
            .distinct()
        )
        stmt = self._apply_window(stmt, WorkOrder.created_at, window)
        try:
            return len(self._execute_rows(stmt, "count_active_agents"))
        except RepositoryException as e:
            raise MetricExtractionError(
                f"Failed to count active agents: {e.message}",
                entity_type=window.entity_type.value,
                entity_id=window.entity_id,
                cause=e,
            ) from e

    # =========================================================
    # QUERY HELPERS
    # =========================================================

    def _work_order_scope(self, window: MetricWindow) -> Any:
        if window.entity_type == EntityType.AGENT:
            return WorkOrder.assignee_id == window.entity_id
        return WorkOrder.company_id == window.entity_id

    def _work_order_ids(self, window: MetricWindow) -> Any:
        return select(WorkOrder.id).where(self._work_order_scope(window))

    @staticmethod
    def _apply_window(stmt: Any, column: Any, window: MetricWindow) -> Any:
        start = window.start_datetime
        end = window.end_exclusive
        if start is not None:
            stmt = stmt.where(column >= start)
        if end is not None:
            stmt = stmt.where(column < end)
        return stmt

    def _samples(self, stmt: Any, sample_type: Type[S], operation: str) -> List[S]:
        samples = []
        for row in self._execute_query(stmt, operation):
            try:
                samples.append(sample_type.model_validate(row))
            except ValidationError as e:
                raise DataValidationError(
                    f"Invalid {sample_type.__name__} row: {e.error_count()} error(s)",
                    record_type=sample_type.__name__,
                    record_id=getattr(row, "id", None),
                    cause=e,
                ) from e
        return samples
