"""
Shared fixtures for the FieldOps analytics tests.

============================================================
PURPOSE
============================================================
- In-memory SQLite database with every table created
- Row factories for the operational tables
- A mock clock pinned to a known instant

============================================================
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.clock import MockClock
from database.engine import create_all_tables
from database.models import AuditLog, Feedback, Issue, WorkOrder


# ============================================================
# DATABASE
# ============================================================

@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    db_session = session_factory()
    yield db_session
    db_session.close()


# ============================================================
# CLOCK
# ============================================================

@pytest.fixture
def mock_clock():
    return MockClock(datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc))


# ============================================================
# ROW FACTORIES
# ============================================================

@pytest.fixture
def make_work_order(session) -> Callable[..., WorkOrder]:
    counter = {"n": 0}

    def _make(
        company_id: str = "co-1",
        assignee_id: str = "agent-1",
        created_at: datetime = datetime(2024, 3, 10, 9, 0),
        status: str = "completed",
        start_late_minutes: int = 0,
        finish_late_minutes: int = 0,
        **kwargs: Any,
    ) -> WorkOrder:
        counter["n"] += 1
        scheduled_start = created_at + timedelta(hours=1)
        scheduled_end = scheduled_start + timedelta(hours=2)
        fields = {
            "company_id": company_id,
            "assignee_id": assignee_id,
            "title": f"Job {counter['n']}",
            "status": status,
            "scheduled_start": scheduled_start,
            "scheduled_end": scheduled_end,
            "actual_start": scheduled_start + timedelta(minutes=start_late_minutes),
            "actual_end": scheduled_end + timedelta(minutes=finish_late_minutes),
            "created_at": created_at,
            "updated_at": created_at,
        }
        fields.update(kwargs)
        work_order = WorkOrder(**fields)
        session.add(work_order)
        session.flush()
        return work_order

    return _make


@pytest.fixture
def make_feedback(session) -> Callable[..., Feedback]:
    def _make(
        work_order: WorkOrder,
        stars: int,
        given_to: str = "agent-1",
        would_hire_again: Any = True,
        created_at: datetime = datetime(2024, 3, 11, 9, 0),
    ) -> Feedback:
        feedback = Feedback(
            work_order_id=work_order.id,
            given_by="client-1",
            given_to=given_to,
            stars=stars,
            would_hire_again=would_hire_again,
            created_at=created_at,
        )
        session.add(feedback)
        session.flush()
        return feedback

    return _make


@pytest.fixture
def make_issue(session) -> Callable[..., Issue]:
    def _make(
        work_order: WorkOrder,
        status: str = "open",
        reported_by_id: str = "reporter-1",
        created_at: datetime = datetime(2024, 3, 12, 9, 0),
    ) -> Issue:
        issue = Issue(
            work_order_id=work_order.id,
            company_id=work_order.company_id,
            reported_by_id=reported_by_id,
            title="Hazard on site",
            status=status,
            created_at=created_at,
        )
        session.add(issue)
        session.flush()
        return issue

    return _make


@pytest.fixture
def make_audit_log(session) -> Callable[..., AuditLog]:
    def _make(
        entity_id: str,
        performed_by: str = "agent-1",
        entity_type: str = "work_order",
        action: str = "updated",
        risk_level: str = "low",
        timestamp: datetime = datetime(2024, 3, 13, 9, 0),
    ) -> AuditLog:
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            performed_by=performed_by,
            risk_level=risk_level,
            timestamp=timestamp,
        )
        session.add(entry)
        session.flush()
        return entry

    return _make
