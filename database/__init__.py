"""
Database Package Initialization.

============================================================
DATABASE PERSISTENCE LAYER
============================================================

Engine/session management and the operational tables the
analytics read. Scoring snapshot tables live in
performance_scoring.models and register on the same Base.

REQUIRED:
- All transactions are explicit with commit/rollback
- Every failure raises

============================================================
"""

# Core engine and session management
from .engine import (
    # Declarative base
    Base,

    # Engine creation
    create_database_engine,
    get_engine,
    get_session_factory,
    reset_engine,

    # Session management
    get_session,
    get_db_session,
    transaction_scope,

    # Database initialization
    initialize_database,
    create_all_tables,
    verify_required_tables,
    REQUIRED_TABLES,

    # Exceptions
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)

# Operational ORM models
from .models import (
    WorkOrder,
    Feedback,
    Issue,
    AuditLog,
    generate_uuid,
    utc_now,
)


__all__ = [
    "Base",
    "create_database_engine",
    "get_engine",
    "get_session_factory",
    "reset_engine",
    "get_session",
    "get_db_session",
    "transaction_scope",
    "initialize_database",
    "create_all_tables",
    "verify_required_tables",
    "REQUIRED_TABLES",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
    "WorkOrder",
    "Feedback",
    "Issue",
    "AuditLog",
    "generate_uuid",
    "utc_now",
]
