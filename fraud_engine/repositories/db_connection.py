"""
Database connection helpers for the SQL record store

- Connection pooling via SQLAlchemy (QueuePool for MySQL)
- Retry logic with exponential backoff for transient connection errors
"""

import logging
import time
from functools import wraps

import pymysql
from sqlalchemy import create_engine, exc
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool, StaticPool

from config import DATABASE

logger = logging.getLogger(__name__)

MAX_DELAY = 10.0

RETRYABLE_EXCEPTIONS = (
    pymysql.err.OperationalError,
    pymysql.err.InterfaceError,
    ConnectionError,
    TimeoutError,
)


def is_transient(error: BaseException, retryable_exceptions: tuple = RETRYABLE_EXCEPTIONS) -> bool:
    """
    True for connection-class failures worth retrying.

    SQLAlchemy wraps driver errors, so the driver exception in `orig` decides;
    SQLite's OperationalError (missing table, locked file) is not retried.
    """
    if isinstance(error, exc.DBAPIError):
        return bool(error.connection_invalidated) or isinstance(error.orig, retryable_exceptions)
    return isinstance(error, retryable_exceptions)


def with_retry(
    max_retries: int = DATABASE.MAX_RETRIES,
    base_delay: float = DATABASE.RETRY_BASE_DELAY,
    max_delay: float = MAX_DELAY,
    retryable_exceptions: tuple = RETRYABLE_EXCEPTIONS,
):
    """
    Decorator for retrying database operations with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay between retries (doubles each time)
        max_delay: Maximum delay between retries
        retryable_exceptions: Driver exceptions that trigger retry, matched
            directly or as the `orig` of a SQLAlchemy DBAPIError
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not is_transient(e, retryable_exceptions):
                        raise
                    last_exception = e

                    if attempt < max_retries:
                        delay = min(base_delay * (2**attempt), max_delay)
                        logger.warning(
                            f"Database operation failed (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                            f"Retrying in {delay:.1f}s..."
                        )
                        time.sleep(delay)
                    else:
                        logger.error(
                            f"Database operation failed after {max_retries + 1} attempts: {e}"
                        )

            raise last_exception

        return wrapper

    return decorator


def create_store_engine(url: str) -> Engine:
    """
    Create a SQLAlchemy engine for the record store.

    MySQL URLs get a pre-pinged QueuePool; SQLite (tests, local runs) uses
    SQLAlchemy's default pool, or one shared connection for in-memory URLs.
    """
    if url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            future=True,
        )
    elif url.startswith("sqlite"):
        engine = create_engine(url, future=True)
    else:
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=DATABASE.POOL_SIZE,
            max_overflow=DATABASE.MAX_OVERFLOW,
            pool_recycle=DATABASE.POOL_RECYCLE,
            pool_pre_ping=True,
            echo=False,
        )
        logger.info(
            f"SQLAlchemy engine created with pooling "
            f"(pool_size={DATABASE.POOL_SIZE}, max_overflow={DATABASE.MAX_OVERFLOW})"
        )
    return engine
