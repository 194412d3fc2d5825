# Overview: Transaction helpers shared by every writer; row locks, conflict retry and atomic commit.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)

# Lock waits / deadlocks, and Item.version_id mismatches
RETRYABLE_ERRORS = (OperationalError, StaleDataError)

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.1


def lock_for_update(query):
    """
    Row lock for the read half of a read-then-write on items or movements.

    SQLite ignores SELECT ... FOR UPDATE; there Item.version_id turns a lost
    update into StaleDataError, which run_atomic retries.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = DEFAULT_ATTEMPTS, backoff_base: float = DEFAULT_BACKOFF_SECONDS):
    """
    Call func until it returns or fails with something other than a
    concurrency conflict. Each conflict rolls the session back and waits
    backoff_base * 2**n before the next try; the last one propagates.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                logger.error("Giving up after %d conflicting attempts: %s", attempts, exc)
                raise
            logger.warning("Concurrency conflict on attempt %d/%d, retrying: %s", attempt, attempts, exc)
            time.sleep(backoff_base * (2 ** (attempt - 1)))


def run_atomic(func, *, attempts: int = DEFAULT_ATTEMPTS, backoff_base: float = DEFAULT_BACKOFF_SECONDS):
    """
    Run func and commit everything it staged as one DB transaction.

    Any exception rolls the whole unit back before it propagates, so a
    ledger write never lands without its quantity adjustment (or the
    reverse). Concurrency conflicts re-run func from scratch.
    """
    def _unit():
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_unit, attempts=attempts, backoff_base=backoff_base)
