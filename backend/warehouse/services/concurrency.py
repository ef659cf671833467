# Overview: Transaction helpers shared by the stock-mutating services.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Take row locks on the lots/products a mutation is about to rewrite.

    Two shippers depleting the same (product, variant key) are serialized on
    these rows. SQLite ignores SELECT ... FOR UPDATE (the database file lock
    serializes writers there); PostgreSQL and MySQL honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run `func` and retry it on lock timeouts and optimistic-lock conflicts.

    OperationalError covers deadlocks and busy databases; StaleDataError is
    raised when a version_id check fails on flush. The session is rolled back
    before each retry, so `func` must redo all of its work from scratch. The
    last failure propagates once `attempts` runs are used up.
    """
    attempts = max(1, attempts)
    failures = 0
    while True:
        try:
            return func()
        except RETRYABLE_ERRORS:
            db.session.rollback()
            failures += 1
            if failures >= attempts:
                raise
            time.sleep(backoff_base * (2 ** (failures - 1)))
