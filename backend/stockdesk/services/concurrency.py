# Overview: Service-layer operations for concurrency; transaction, locking and retry helpers.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class StoreUnavailableError(Exception):
    """Raised when the database times out, is unreachable, or a write lost an optimistic-lock race."""
    code = "UNAVAILABLE"
    http_status = 503

    def __init__(self, message: str = "Store temporarily unavailable", details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write():
    """
    Open the current transaction as a writer.

    SQLite would otherwise start a deferred transaction and fail with
    "database is locked" when two readers try to upgrade at once; BEGIN
    IMMEDIATE takes the write lock up front so concurrent writers queue on
    the busy timeout instead.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def single_transaction():
    """
    Run a block as one all-or-nothing write transaction, without retries.

    Any exception rolls the whole block back. Lock timeouts, connectivity
    failures and optimistic-lock conflicts surface as StoreUnavailableError
    so callers never see a half-applied write and nothing is replayed here.
    """
    try:
        begin_write()
        yield
        db.session.commit()
    except (OperationalError, StaleDataError) as exc:
        db.session.rollback()
        raise StoreUnavailableError(details={"reason": exc.__class__.__name__}) from exc
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Only for operations whose every attempt
    starts from a clean transaction and is safe to replay.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise StoreUnavailableError(details={"reason": exc.__class__.__name__}) from exc
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
