# Overview: Unit-of-work, locking and retry primitives shared by write services.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

# PostgreSQL SQLSTATEs for serialization failure and deadlock
_RETRYABLE_SQLSTATES = {"40001", "40P01"}
_RETRYABLE_MESSAGES = ("database is locked", "deadlock", "could not serialize")


class StockDecrementConflict(Exception):
    """A conditional stock decrement matched no row; another writer got there first."""
    def __init__(self, product_id: int, quantity: int):
        super().__init__(f"Conditional decrement of product {product_id} by {quantity} matched no row")
        self.product_id = product_id
        self.quantity = quantity


def is_concurrency_conflict(exc: BaseException) -> bool:
    """True for failures caused by a competing writer, which are safe to retry."""
    if isinstance(exc, (StaleDataError, StockDecrementConflict)):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if sqlstate in _RETRYABLE_SQLSTATES:
            return True
        message = str(orig).lower()
        return any(fragment in message for fragment in _RETRYABLE_MESSAGES)
    return False


@contextmanager
def unit_of_work():
    """
    Commit everything done inside the block, or nothing.

    Any exception, including KeyboardInterrupt or a cancelled request
    (GeneratorExit), rolls the session back before propagating.
    """
    try:
        yield db.session
        db.session.commit()
    except BaseException:
        db.session.rollback()
        raise


def begin_write_transaction() -> None:
    """
    Take the database write lock at the start of a unit of work.

    SQLite has no row locks, so BEGIN IMMEDIATE serializes writers instead:
    a competing transaction waits for the busy timeout rather than reading
    a snapshot it cannot safely write back. Other dialects rely on
    lock_for_update().
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_connection = db.session.connection().connection.dbapi_connection
    if not dbapi_connection.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_if=is_concurrency_conflict):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Only exceptions for which retry_if() is true are retried; everything
    else propagates on the first occurrence. The session is rolled back
    before each new attempt.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return func()
        except Exception as exc:
            if not retry_if(exc):
                raise
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Giving up after %d attempts: %s", attempts, exc.__class__.__name__
                )
                raise
            current_app.logger.warning(
                "Concurrency conflict (%s), retrying attempt %d/%d",
                exc.__class__.__name__, attempt + 2, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
