"""
Storage Repositories.

Shared repository base class and the exception types every
repository raises.
"""

from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import (
    RepositoryException,
    RecordNotFoundError,
    DuplicateRecordError,
    IntegrityError,
    ConnectionError,
    QueryError,
    TransactionError,
    ValidationError,
)


__all__ = [
    "BaseRepository",
    "RepositoryException",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "IntegrityError",
    "ConnectionError",
    "QueryError",
    "TransactionError",
    "ValidationError",
]
