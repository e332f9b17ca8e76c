# idealplots/db/session.py
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
)

from idealplots.core.config import Settings, settings
from idealplots.core.exceptions import (
    EngineError,
    FatalError,
    OperationTimeoutError,
    PoolClosedError,
    TransientError,
    is_transient_dbapi_error,
    translate_integrity_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
Operation = Callable[..., Awaitable[T]]


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    pysqlite's own transaction handling breaks SAVEPOINT; take it over and
    switch foreign key enforcement on.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """
    Process-wide connection pool and transaction runner.

    Lifecycle:
    1. `init()` creates the engine and proves connectivity, retrying up to
       `max_reconnect_attempts` times before raising FatalError.
    2. `run(operation, ...)` executes one workflow operation as a single
       transaction under the wall-clock budget, retrying Transient failures.
    3. `close()` drains and disposes the pool; afterwards every call raises
       PoolClosedError.
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 5,
        acquire_timeout: float = 30.0,
        idle_timeout: int = 180,
        connect_args: Optional[dict] = None,
        echo: bool = False,
        operation_timeout: float = 5.0,
        retry_attempts: int = 3,
        retry_backoff: float = 2.0,
        max_reconnect_attempts: int = 5,
        shutdown_timeout: float = 30.0,
    ):
        self.url = url
        self.pool_size = pool_size
        self.acquire_timeout = acquire_timeout
        self.idle_timeout = idle_timeout
        self.connect_args = connect_args or {}
        self.echo = echo
        self.operation_timeout = operation_timeout
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.max_reconnect_attempts = max_reconnect_attempts
        self.shutdown_timeout = shutdown_timeout

        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[sessionmaker] = None
        self._closed = False

    @classmethod
    def from_settings(cls, config: Settings) -> "Database":
        return cls(
            config.sqlalchemy_url,
            pool_size=config.pool_size,
            acquire_timeout=config.pool_acquire_timeout,
            idle_timeout=config.pool_idle_timeout,
            connect_args=config.connect_args(),
            echo=config.db_echo,
            operation_timeout=config.operation_timeout_seconds,
            retry_attempts=config.transient_retry_attempts,
            retry_backoff=config.transient_retry_backoff_seconds,
            max_reconnect_attempts=config.db_max_reconnect_attempts,
            shutdown_timeout=config.shutdown_timeout_seconds,
        )

    @property
    def is_ready(self) -> bool:
        return self.engine is not None and not self._closed

    # --- Lifecycle ---
    async def init(self) -> None:
        if self._closed:
            raise PoolClosedError("Database pool has been closed")
        if self.engine is not None:
            return

        self.engine = create_async_engine(
            self.url,
            echo=self.echo,
            future=True,
            pool_size=self.pool_size,
            max_overflow=0,
            pool_timeout=self.acquire_timeout,
            pool_recycle=self.idle_timeout,
            pool_pre_ping=True,
            connect_args=self.connect_args,
        )
        if self.engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(self.engine)

        self.session_factory = sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_reconnect_attempts),
                wait=wait_exponential(multiplier=0.5, max=10),
                retry=retry_if_exception_type((OSError, OperationalError, DBAPIError)),
                before_sleep=before_sleep_log(logger, logging.WARNING),
            ):
                with attempt:
                    async with self.engine.connect() as conn:
                        await conn.execute(text("SELECT 1"))
        except RetryError as exc:
            await self.engine.dispose()
            self.engine = None
            raise FatalError(
                f"Could not connect to the database after {self.max_reconnect_attempts} attempts"
            ) from exc

        logger.info(
            "Database pool ready (dialect=%s, pool_size=%s)", self.engine.dialect.name, self.pool_size
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.engine is None:
            return
        try:
            await asyncio.wait_for(self.engine.dispose(), timeout=self.shutdown_timeout)
            logger.info("Database pool closed")
        except asyncio.TimeoutError as exc:
            raise FatalError("Database pool did not drain within the shutdown timeout") from exc

    def _ensure_open(self) -> None:
        if self._closed:
            raise PoolClosedError("Database pool has been closed")
        if self.session_factory is None:
            raise FatalError("Database pool has not been initialised")

    # --- Sessions ---
    def session(self) -> AsyncSession:
        """A bare session for read paths that manage their own scope."""
        self._ensure_open()
        return self.session_factory()

    async def run(self, operation: Operation, *args: Any, **kwargs: Any) -> T:
        """
        Run `operation(session, *args, **kwargs)` as one ACID transaction.

        Commit on return, roll back on any exception. Integrity errors are
        translated to engine errors; transient failures are retried with
        2s/4s/6s backoff before surfacing; exceeding the operation budget
        raises OperationTimeoutError.
        """
        self._ensure_open()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts + 1),
            wait=wait_incrementing(start=self.retry_backoff, increment=self.retry_backoff),
            retry=retry_if_exception_type(TransientError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._run_with_budget(operation, *args, **kwargs)

    async def _run_with_budget(self, operation: Operation, *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.wait_for(
                self._transaction(operation, *args, **kwargs), timeout=self.operation_timeout
            )
        except asyncio.TimeoutError as exc:
            name = getattr(operation, "__qualname__", repr(operation))
            logger.error("Operation %s exceeded %.1fs budget", name, self.operation_timeout)
            raise OperationTimeoutError(
                f"Operation exceeded {self.operation_timeout:g}s budget"
            ) from exc

    async def _transaction(self, operation: Operation, *args: Any, **kwargs: Any) -> T:
        self._ensure_open()
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    return await operation(session, *args, **kwargs)
            except EngineError:
                raise
            except IntegrityError as exc:
                raise translate_integrity_error(exc) from exc
            except DBAPIError as exc:
                if is_transient_dbapi_error(exc):
                    raise TransientError(str(exc.orig)) from exc
                raise


database = Database.from_settings(settings)


# Dependency for FastAPI
def get_database() -> Database:
    return database
