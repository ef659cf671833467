"""
Retry helper used by every stock mutation.
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from warehouse.services.concurrency import run_with_retry


def test_conflict_is_retried_until_it_succeeds(db_session):
    calls = []

    def _op():
        calls.append(1)
        if len(calls) < 3:
            raise StaleDataError("version mismatch")
        return "done"

    assert run_with_retry(_op, backoff_base=0) == "done"
    assert len(calls) == 3


def test_last_conflict_propagates_after_all_attempts(db_session):
    calls = []

    def _op():
        calls.append(1)
        raise StaleDataError(f"version mismatch #{len(calls)}")

    with pytest.raises(StaleDataError, match="#2"):
        run_with_retry(_op, attempts=2, backoff_base=0)
    assert len(calls) == 2


def test_other_errors_are_not_retried(db_session):
    calls = []

    def _op():
        calls.append(1)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        run_with_retry(_op, backoff_base=0)
    assert calls == [1]
