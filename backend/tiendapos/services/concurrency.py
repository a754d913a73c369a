# Overview: Service-layer operations for concurrency; transactions, row locks and retry.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyError, PersistenceError, PosError
from ..extensions import db


TRANSIENT_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write():
    """
    Serialize writers on SQLite by taking the database write lock up front.

    Other databases rely on lock_for_update and conditional updates instead.
    """
    if db.engine.dialect.name != "sqlite":
        return
    connection = db.session.connection()
    raw = connection.connection.driver_connection
    if not raw.in_transaction:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=TRANSIENT_ERRORS):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts) by default.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=TRANSIENT_ERRORS):
    """
    Run `func` as one unit of work: commit on success, roll back on any failure.

    Business errors propagate unchanged. Storage errors that survive the
    retries surface as ConcurrencyError (stale rows) or PersistenceError.
    Nothing partial is ever committed.
    """
    def _op():
        result = func()
        db.session.commit()
        return result

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base, retry_on=retry_on)
    except PosError:
        db.session.rollback()
        raise
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrencyError("Record changed concurrently; retry the operation") from exc
    except IntegrityError as exc:
        db.session.rollback()
        raise ConcurrencyError(
            "Conflicting concurrent write; retry the operation",
            details={"error": exc.__class__.__name__},
        ) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(
            "Storage operation failed",
            details={"error": exc.__class__.__name__},
        ) from exc
    except Exception:
        db.session.rollback()
        raise
