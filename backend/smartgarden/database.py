"""Connection pool shared by every data-access operation.

The pool is an owned resource with an explicit lifecycle: ``init_pool`` at
startup, ``close_pool`` (drain + dispose) at shutdown. Tests build their own
``ConnectionPool`` and swap it in through the ``get_pool`` dependency.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.pool import QueuePool

from smartgarden.config import Settings
from smartgarden.errors import ConnectivityFailure

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def build_engine(
    database_url: str,
    pool_min: int = 1,
    pool_max: int = 3,
    pool_timeout: int = 60,
) -> Engine:
    """Create the SQLAlchemy engine backing a ``ConnectionPool``."""
    connect_args = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=pool_min,
        max_overflow=pool_max - pool_min,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class ConnectionPool:
    """Bounded pool handing out one connection per logical operation."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._closing = False
        self._in_use = 0
        self._idle = threading.Condition()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionPool":
        engine = build_engine(
            settings.database_url,
            pool_min=settings.pool_min,
            pool_max=settings.pool_max,
            pool_timeout=settings.pool_timeout,
        )
        return cls(engine)

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def closed(self) -> bool:
        return self._closing

    @contextmanager
    def acquire(self) -> Iterator[Connection]:
        with self._idle:
            if self._closing:
                raise ConnectivityFailure("Connection pool is closed")
            self._in_use += 1

        try:
            try:
                connection = self.engine.connect()
            except PoolTimeoutError as exc:
                raise ConnectivityFailure("Timed out waiting for a database connection") from exc
            except OperationalError as exc:
                raise ConnectivityFailure(f"Unable to connect to database: {exc.orig}") from exc

            try:
                yield connection
            finally:
                try:
                    connection.close()
                except Exception:
                    logger.exception("Failed to release database connection")
        finally:
            with self._idle:
                self._in_use -= 1
                self._idle.notify_all()

    def ping(self) -> None:
        with self.acquire() as connection:
            connection.execute(text("SELECT 1"))

    def drain(self, grace_seconds: float = 10) -> None:
        """Stop new checkouts, give in-flight work ``grace_seconds``, then dispose."""
        with self._idle:
            already_closing = self._closing
            self._closing = True
            if not already_closing:
                logger.info("Draining connection pool (%s in use)", self._in_use)
            finished = self._idle.wait_for(lambda: self._in_use == 0, timeout=grace_seconds)
            if not finished:
                logger.warning(
                    "Grace period of %ss elapsed with %s connection(s) still in use",
                    grace_seconds,
                    self._in_use,
                )
        self.engine.dispose()
        logger.info("Connection pool closed")


_pool: Optional[ConnectionPool] = None
_drain_grace_seconds: float = 10


def init_pool(settings: Settings) -> ConnectionPool:
    global _pool, _drain_grace_seconds
    if _pool is not None and not _pool.closed:
        return _pool
    _pool = ConnectionPool.from_settings(settings)
    _drain_grace_seconds = settings.pool_drain_grace_seconds
    logger.info(
        "Connection pool started (min=%s, max=%s)", settings.pool_min, settings.pool_max
    )
    return _pool


def get_pool() -> ConnectionPool:
    """FastAPI dependency returning the process-wide pool."""
    if _pool is None:
        raise ConnectivityFailure("Connection pool has not been initialised")
    return _pool


def close_pool() -> None:
    global _pool
    if _pool is None:
        return
    _pool.drain(_drain_grace_seconds)
    _pool = None
