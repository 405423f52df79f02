"""
Database connectivity check.

Opens a session exactly the way a store operation does and runs a trivial
statement, so a healthy result means the next ``get``/``add``/``update``
can reach its store.
"""

import time
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from record_store.core.db import SessionFactory
from record_store.core.observability import get_logger
from record_store.infrastructure.database.unit_of_work import SessionScope
from record_store.shared.exceptions import RepositoryError

logger = get_logger(__name__)


def check_connectivity(
    session_factory: SessionFactory, connection: str | None = None
) -> dict[str, Any]:
    """Check basic database connectivity."""
    logger.info("Checking database connectivity")

    result: dict[str, Any] = {
        "test_name": "connectivity",
        "status": "unknown",
        "message": "",
        "details": {},
        "execution_time_ms": 0,
    }

    start_time = time.time()

    try:
        with SessionScope(session_factory, connection) as scope:
            scope.session.execute(text("SELECT 1"))

        result.update(
            {
                "status": "healthy",
                "message": "Database connection successful",
            }
        )
    except (RepositoryError, SQLAlchemyError) as e:
        result.update(
            {
                "status": "unhealthy",
                "message": f"Database connection failed: {str(e)}",
                "details": {"error_type": type(e).__name__},
            }
        )

    result["execution_time_ms"] = round((time.time() - start_time) * 1000, 2)
    return result
