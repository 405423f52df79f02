"""Translation of SQLAlchemy failures into the record store's error taxonomy."""

from typing import Any

from sqlalchemy import inspect
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session

from record_store.shared.exceptions import (
    ConcurrencyError,
    NotFoundError,
    QueryError,
    RepositoryError,
    StoreConnectionError,
    ValidationError,
)

from .dispositions import identity_of


def _connection_lost(error: SQLAlchemyError) -> bool:
    return isinstance(error, DBAPIError) and error.connection_invalidated


def translate_read_error(error: SQLAlchemyError, record_type: type) -> RepositoryError:
    if _connection_lost(error):
        return StoreConnectionError(f"Connection lost during query: {str(error)}")
    return QueryError(
        f"Query against {record_type.__name__} failed: {str(error)}",
        record_type.__name__,
    )


def translate_write_error(
    error: SQLAlchemyError, record: Any, operation: str
) -> RepositoryError:
    record_type = type(record).__name__
    if isinstance(error, IntegrityError):
        return ValidationError(
            f"{record_type} violates a store constraint: {str(error.orig)}",
            record_type,
            {"operation": operation},
        )
    if _connection_lost(error):
        return StoreConnectionError(f"Connection lost during {operation}: {str(error)}")
    return RepositoryError(
        f"Database error during {operation}: {str(error)}",
        {"record_type": record_type},
    )


def translate_stale_update(
    error: StaleDataError, session: Session, record: Any
) -> RepositoryError:
    """
    Decide whether a zero-row UPDATE was a missing row or a lost race.

    Only versioned records can lose a race; for those the row is looked up
    again to tell the two apart. ``session`` must already be rolled back.
    """
    record_type = type(record)
    key = identity_of(record)
    mapper = inspect(record_type)

    if mapper.version_id_col is not None and key is not None:
        try:
            still_exists = session.get(record_type, key) is not None
        except SQLAlchemyError as lookup_error:
            raise translate_write_error(lookup_error, record, "update") from error
        if still_exists:
            return ConcurrencyError(record_type.__name__, key)

    return NotFoundError(record_type.__name__, key)
