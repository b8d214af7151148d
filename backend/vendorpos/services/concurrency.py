# Overview: Service-layer helpers for locking, write transactions and retry on contention.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite, begin_write_transaction() provides the serialization instead.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the current unit of work holding the database write lock.

    SQLite only takes its write lock on the first DML statement, so two
    checkouts could both read stock before either writes. BEGIN IMMEDIATE
    takes the lock up front. Other dialects rely on lock_for_update().
    """
    if db.engine.dialect.name != "sqlite":
        return
    if not current_app.config.get("SQLITE_BEGIN_IMMEDIATE", True):
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    if dbapi_conn.in_transaction:
        # an earlier write in this unit of work already holds the lock
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The session is rolled back before
    every retry so each attempt starts from committed state.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
