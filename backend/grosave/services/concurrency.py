# Overview: Service-layer operations for concurrency; encapsulates business logic and database work.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write():
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, so reservations serialize on the whole
    database instead of racing between their reads and their writes.

    A read-only transaction left open by earlier work in the request (the
    auth check reloading the user, say) is closed first so the lock is
    always taken. Unflushed changes are never committed here; with those
    pending the lock is left to the first write.
    """
    if db.engine.dialect.name != "sqlite":
        return

    session = db.session()
    if session.in_transaction():
        if session.new or session.dirty or session.deleted:
            return
        session.commit()
    session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on: tuple = ()):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts), plus any extra exception types in
    `retry_on` (e.g. IntegrityError from losing a unique-key insert race).
    Any other exception rolls back the session and propagates.
    """
    retryable = (OperationalError, StaleDataError) + tuple(retry_on)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retryable as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
