"""Generic record store: read, insert and update any mapped record type."""

from record_store.core.db import DatabaseSessionFactory, SessionFactory
from record_store.infrastructure.database import (
    Disposition,
    GenericRecordStore,
    RecordQuery,
    RelationRegistry,
    RelationshipOverride,
    SessionScope,
)
from record_store.shared.exceptions import (
    ConcurrencyError,
    NotFoundError,
    QueryError,
    RepositoryError,
    StoreConnectionError,
    ValidationError,
)

__all__ = [
    "ConcurrencyError",
    "DatabaseSessionFactory",
    "Disposition",
    "GenericRecordStore",
    "NotFoundError",
    "QueryError",
    "RecordQuery",
    "RelationRegistry",
    "RelationshipOverride",
    "RepositoryError",
    "SessionFactory",
    "SessionScope",
    "StoreConnectionError",
    "ValidationError",
]
