# Overview: Unit-of-work helpers; every mutating ledger operation commits through run_atomic.

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


def run_atomic(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run `func` and commit its writes as one database transaction.

    `func` must do all validation before its first write and must not commit.
    Any exception rolls the session back so nothing is partially applied.
    OperationalError (locks) and StaleDataError (optimistic version_id
    conflicts) are retried with exponential backoff; everything else,
    including domain errors, propagates after the rollback.
    """
    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
