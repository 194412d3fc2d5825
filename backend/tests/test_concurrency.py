"""
Conflict retry and atomic commit helpers.
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from stockroom.models import Item
from stockroom.services import item_service
from stockroom.services.concurrency import run_atomic, run_with_retry


def _flaky(failures):
    """Callable that raises each error in `failures` once, then returns 'ok'."""
    calls = []

    def func():
        calls.append(len(calls) + 1)
        if len(calls) <= len(failures):
            raise failures[len(calls) - 1]
        return "ok"

    return func, calls


class TestRunWithRetry:
    def test_stale_data_retried_until_success(self, db_session):
        func, calls = _flaky([StaleDataError("version mismatch"), StaleDataError("version mismatch")])
        assert run_with_retry(func, backoff_base=0) == "ok"
        assert len(calls) == 3

    def test_locked_database_retried(self, db_session):
        func, calls = _flaky([OperationalError("UPDATE items", {}, Exception("database is locked"))])
        assert run_with_retry(func, backoff_base=0) == "ok"
        assert len(calls) == 2

    def test_last_conflict_propagates(self, db_session, caplog):
        func, calls = _flaky([StaleDataError("v1"), StaleDataError("v2"), StaleDataError("v3")])
        with caplog.at_level(logging.ERROR, logger="stockroom.services.concurrency"):
            with pytest.raises(StaleDataError, match="v3"):
                run_with_retry(func, backoff_base=0)
        assert len(calls) == 3
        assert "Giving up after 3" in caplog.text

    def test_other_errors_not_retried(self, db_session):
        func, calls = _flaky([ValueError("bad input")])
        with pytest.raises(ValueError):
            run_with_retry(func, backoff_base=0)
        assert len(calls) == 1

    def test_attempts_must_be_positive(self, db_session):
        with pytest.raises(ValueError):
            run_with_retry(lambda: None, attempts=0)


class TestRunAtomic:
    def test_conflict_reruns_unit_from_scratch(self, db_session):
        calls = []

        def unit():
            calls.append(1)
            db_session.add(Item(code=f"C{len(calls)}", name="Kopi", category="Minuman"))
            db_session.flush()
            if len(calls) == 1:
                raise StaleDataError("version mismatch")
            return len(calls)

        assert run_atomic(unit, backoff_base=0) == 2
        assert [i.code for i in item_service.list_items("code")] == ["C2"]

    def test_failure_commits_nothing(self, db_session):
        def unit():
            db_session.add(Item(code="C1", name="Kopi", category="Minuman"))
            db_session.flush()
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            run_atomic(unit)
        assert db_session.query(Item).count() == 0
