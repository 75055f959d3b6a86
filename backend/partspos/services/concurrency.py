# Overview: Transaction and locking helpers shared by every ledger-mutating service.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def begin_write() -> None:
    """
    Open the write transaction for a ledger operation.

    SQLite ignores SELECT ... FOR UPDATE, so there we take the database write
    lock up front with BEGIN IMMEDIATE; concurrent writers queue on the busy
    timeout instead of interleaving read-compute-write sequences. Other
    databases rely on the row locks taken by lock_for_update().
    """
    if db.engine.dialect.name != "sqlite":
        return
    conn = db.session.connection()
    # An earlier flush in this session already holds the write lock; SQLite cannot nest BEGIN
    if conn.connection.dbapi_connection.in_transaction:
        return
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    populate_existing() refreshes rows already in the identity map so the
    locked read is the value we compute from.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic version conflicts). Intended for callers of the ledger
    services: the services themselves never retry, and `func` must start a
    fresh attempt (new document ids) each time it is called.
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


@contextmanager
def write_transaction():
    """
    One all-or-nothing unit of ledger work.

    Opens the write transaction, commits when the block finishes and rolls
    back on any exception (which is re-raised unchanged). Nothing inside the
    block may commit on its own.
    """
    try:
        begin_write()
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
