"""
Record Store Exceptions

Every failure surfaced by the store is one of the errors below. The
underlying SQLAlchemy exception, when there is one, is chained as
``__cause__``.
"""

from enum import Enum


class ErrorType(str, Enum):
    """Error type enumeration for discriminated unions."""

    REPOSITORY = "repository"
    CONNECTION = "connection"
    QUERY = "query"
    VALIDATION = "validation"
    CONCURRENCY = "concurrency"
    NOT_FOUND = "not_found"


class DomainError(Exception):
    """Base class for all record store errors with type discrimination."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict[str, str | dict[str, str | int | bool | None]]:
        """Convert error to dictionary for API responses."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "details": self.details,
        }


class RepositoryError(DomainError):
    """Raised when the persistence layer fails for an unclassified reason."""

    def __init__(
        self,
        message: str,
        details: dict[str, str | int | bool | None] | None = None,
        error_type: ErrorType = ErrorType.REPOSITORY,
    ) -> None:
        super().__init__(message, error_type, details)


class StoreConnectionError(RepositoryError):
    """Raised when a session cannot be opened or the store is unreachable."""

    def __init__(
        self,
        message: str,
        connection: str | None = None,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        details = details or {}
        # Never echo credentials back to the caller
        details["connection"] = _redact(connection) if connection else None
        super().__init__(message, details, ErrorType.CONNECTION)


class QueryError(RepositoryError):
    """Raised when a predicate or inclusion plan does not fit the schema."""

    def __init__(
        self,
        message: str,
        record_type: str | None = None,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        self.record_type = record_type
        details = details or {}
        details["record_type"] = record_type
        super().__init__(message, details, ErrorType.QUERY)


class ValidationError(RepositoryError):
    """Raised when the store rejects a write because of a constraint."""

    def __init__(
        self,
        message: str,
        record_type: str | None = None,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        self.record_type = record_type
        details = details or {}
        details["record_type"] = record_type
        super().__init__(message, details, ErrorType.VALIDATION)


class ConcurrencyError(RepositoryError):
    """Raised when an update conflicts with a change made in the meantime."""

    def __init__(
        self,
        record_type: str,
        key: tuple | None = None,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        self.record_type = record_type
        self.key = key
        details = details or {}
        details.update({"record_type": record_type, "key": str(key)})
        super().__init__(
            f"{record_type} with key {key} was modified concurrently",
            details,
            ErrorType.CONCURRENCY,
        )


class NotFoundError(RepositoryError):
    """Raised when the row targeted by an update does not exist."""

    def __init__(
        self,
        record_type: str,
        key: tuple | None = None,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        self.record_type = record_type
        self.key = key
        details = details or {}
        details.update({"record_type": record_type, "key": str(key)})
        super().__init__(
            f"{record_type} with key {key} not found", details, ErrorType.NOT_FOUND
        )


def _redact(connection: str) -> str:
    scheme, sep, rest = connection.partition("://")
    if not sep or "@" not in rest:
        return connection
    return f"{scheme}://***@{rest.rsplit('@', 1)[1]}"
