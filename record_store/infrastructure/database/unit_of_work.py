"""
Session scope for a single store operation.

A ``SessionScope`` owns exactly one session from the moment it is entered
until it is exited. It is never shared between operations: each public
store call opens its own scope and the session is closed on every exit
path, whether the call succeeded or raised.
"""

from typing import Any

from sqlalchemy import inspect
from sqlalchemy.exc import ArgumentError, DBAPIError, SQLAlchemyError
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import Session

from record_store.core.db import DISPOSE_BIND, SessionFactory
from record_store.core.observability import get_logger
from record_store.shared.exceptions import RepositoryError, StoreConnectionError

logger = get_logger(__name__)


class SessionScope:
    """
    Scoped acquisition of a session with guaranteed release.

    Entering the scope opens a session through the factory and checks that
    a connection can actually be made, so an invalid descriptor or an
    unreachable store fails here with ``StoreConnectionError`` instead of
    somewhere in the middle of the operation.

    Records passed in by the caller stay readable after the scope is left,
    including when the commit fails: a failed commit restores their loaded
    attributes instead of leaving them expired.
    """

    def __init__(self, session_factory: SessionFactory, connection: str | None = None):
        """
        Initialize the scope.

        Args:
            session_factory: Factory that opens sessions against the store
            connection: Optional connection string; None selects the default store
        """
        self._session_factory = session_factory
        self._connection = connection
        self._session: Session | None = None

    def __enter__(self) -> "SessionScope":
        try:
            self._session = self._session_factory(self._connection)
        except (ArgumentError, ImportError, ValueError) as e:
            raise StoreConnectionError(
                f"Invalid connection descriptor: {str(e)}", self._connection
            ) from e
        except SQLAlchemyError as e:
            raise StoreConnectionError(
                f"Failed to open session: {str(e)}", self._connection
            ) from e

        try:
            # Sessions connect lazily; force it so failures surface on acquisition
            self._session.connection()
        except SQLAlchemyError as e:
            self._release()
            raise StoreConnectionError(
                f"Store is unreachable: {str(e)}", self._connection
            ) from e

        logger.debug("Session acquired", default_store=self._connection is None)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        try:
            if exc_type is not None:
                self.rollback()
        except RepositoryError as e:
            # The original exception is the one the caller needs to see
            logger.error("Rollback failed after error", error=str(e))
        finally:
            self._release()

    def commit(self) -> None:
        """
        Commit the current transaction.

        On failure the transaction is rolled back, every instance that took
        part is detached with the attribute values it had before the
        attempt, and the SQLAlchemy error is re-raised.
        """
        session = self.session
        snapshot = _snapshot(session)
        try:
            session.commit()
        except SQLAlchemyError:
            self.rollback()
            _restore(snapshot)
            raise

    def rollback(self) -> None:
        """
        Rollback the current transaction.

        Raises:
            RepositoryError: If rollback fails
        """
        if not self._session:
            raise RepositoryError("No active session to rollback")

        try:
            # Rollback expires everything still attached; caller-owned
            # records have to stay readable after the session is gone
            self._session.expunge_all()
            self._session.rollback()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to rollback transaction: {str(e)}") from e

    def _release(self) -> None:
        if self._session is not None:
            session = self._session
            try:
                session.close()
            finally:
                self._session = None
                if session.info.get(DISPOSE_BIND) and session.bind is not None:
                    session.bind.dispose()
                logger.debug("Session released")

    @property
    def session(self) -> Session:
        """
        Get the current database session.

        Raises:
            RepositoryError: If no active session
        """
        if not self._session:
            raise RepositoryError("No active database session")
        return self._session


def _snapshot(session: Session) -> list[tuple[Any, dict[str, Any]]]:
    instances = list(session.identity_map.values()) + list(session.new)
    snapshot = []
    for instance in instances:
        state = inspect(instance)
        values = {
            key: value for key, value in state.dict.items() if key in state.manager
        }
        snapshot.append((instance, values))
    return snapshot


def _restore(snapshot: list[tuple[Any, dict[str, Any]]]) -> None:
    for instance, values in snapshot:
        for key, value in values.items():
            set_committed_value(instance, key, value)
