# Overview: Service-layer helpers for transaction retry and optimistic-lock translation.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError


def run_with_retry(session, func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on transient lock failures.

    Retries on OperationalError (deadlocks, "database is locked"). Optimistic
    locking conflicts (StaleDataError) are NOT retried here: the caller acted on
    a stale version and must re-read, so they surface as ConflictError.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def commit_with_retry(session, *, attempts: int = 3, backoff_base: float = 0.1):
    """Commit the session with retry handling."""
    def _op():
        with stale_as_conflict(session):
            session.commit()
    return run_with_retry(session, _op, attempts=attempts, backoff_base=backoff_base)


@contextmanager
def stale_as_conflict(session, message: str = "Entry was modified concurrently; reload and retry"):
    """Translate an optimistic-lock loss into ConflictError, rolling back first."""
    try:
        yield
    except StaleDataError as exc:
        session.rollback()
        raise ConflictError(message) from exc
