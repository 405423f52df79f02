"""
Engine and session factory configuration.

The store never discovers its session type on its own: whoever owns a
``GenericRecordStore`` hands it a ``SessionFactory``. ``DatabaseSessionFactory``
is the implementation used in production, bound to the database configured
in settings.
"""

import threading
from typing import Any, Protocol

from sqlalchemy import Engine, event
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import Session, create_engine

from record_store.core.config import Settings, normalize_database_url, settings

# Session.info flag: the bind was made for this session alone and is
# disposed together with it
DISPOSE_BIND = "record_store.dispose_bind"


class SessionFactory(Protocol):
    """Opens a new session bound to the store named by ``connection``."""

    def __call__(self, connection: str | None = None) -> Session: ...


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # SQLite ignores FOREIGN KEY constraints unless asked on every connection
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_store_engine(
    url: str,
    *,
    echo: bool = False,
    pooled: bool = True,
    config: Settings = settings,
) -> Engine:
    """
    Create an engine for ``url``.

    Args:
        url: Database URL; bare ``postgres://`` URLs are routed through psycopg
        echo: Log every statement
        pooled: When False the engine holds no idle connections, which is
            what single-call engines for explicit connection strings need

    Returns:
        Configured SQLAlchemy engine
    """
    url = normalize_database_url(url)

    if url.startswith("sqlite"):
        engine_kwargs: dict[str, Any] = {
            "connect_args": {"check_same_thread": False},
        }
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
        elif not pooled:
            engine_kwargs["poolclass"] = NullPool
        engine = create_engine(url, echo=echo, **engine_kwargs)
        _enable_sqlite_foreign_keys(engine)
        return engine

    engine_kwargs = {
        "pool_pre_ping": config.DATABASE_POOL_PRE_PING,
        "connect_args": {"connect_timeout": config.DATABASE_CONNECT_TIMEOUT},
    }
    if pooled:
        engine_kwargs.update(
            {
                "pool_recycle": config.DATABASE_POOL_RECYCLE,
                "pool_size": config.DATABASE_POOL_SIZE,
                "max_overflow": config.DATABASE_MAX_OVERFLOW,
            }
        )
    else:
        engine_kwargs["poolclass"] = NullPool

    return create_engine(url, echo=echo, **engine_kwargs)


class DatabaseSessionFactory:
    """
    Default session factory.

    Sessions for the default store share one pooled engine. A call that
    names its own connection string gets an unpooled engine of its own,
    so nothing outlives the call that asked for it.
    """

    def __init__(self, engine: Engine | None = None, config: Settings = settings):
        self._config = config
        self._engine = engine
        self._engine_lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            with self._engine_lock:
                if self._engine is None:
                    self._engine = create_store_engine(
                        self._config.SQLALCHEMY_DATABASE_URI,
                        echo=self._config.DATABASE_ECHO,
                        config=self._config,
                    )
        return self._engine

    def __call__(self, connection: str | None = None) -> Session:
        if connection is None:
            bind = self.engine
        else:
            bind = create_store_engine(
                connection,
                echo=self._config.DATABASE_ECHO,
                pooled=False,
                config=self._config,
            )
        # Store-assigned values must stay readable once the session is closed
        session = Session(bind, expire_on_commit=False)
        if connection is not None:
            session.info[DISPOSE_BIND] = True
        return session
