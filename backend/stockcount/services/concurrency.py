# Overview: Service-layer helpers for concurrency; retries, row locks and dialect upserts.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def upsert_insert(model):
    """
    Dialect-specific INSERT construct supporting ON CONFLICT clauses.

    Both SQLite and PostgreSQL run INSERT ... ON CONFLICT DO UPDATE as a
    single atomic statement, which is what keeps concurrent merges of the
    same key from producing duplicates or lost updates.
    """
    dialect = db.session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise RuntimeError(f"Upsert is not supported for database dialect {dialect!r}")
    return insert(model)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
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


def run_and_commit(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func and commit its work as one unit, retrying the whole unit.

    A retried commit alone would commit nothing after the rollback, so the
    operation is replayed together with its commit.
    """
    def _op():
        result = func()
        db.session.commit()
        return result
    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
