# Overview: Unit-of-work boundary for ledger operations: row locks plus bounded retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The optimistic version columns cover SQLite.
    """
    return query.with_for_update()


def _retry_settings(attempts, backoff_base):
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF_SECONDS", 0.1)
    return max(1, int(attempts)), float(backoff_base)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute one unit of work.

    `func` does its writes and commits itself. Any exception rolls the
    session back so nothing partially applies. OperationalError (locks,
    deadlocks) and StaleDataError (optimistic version conflicts) are retried
    with exponential backoff; once the attempts run out they surface as the
    retryable ConcurrencyConflict.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Concurrency conflict after %s attempts: %s", attempts, exc.__class__.__name__
                )
                raise ConcurrencyConflict(
                    "Concurrent update conflict; retry the operation",
                    {"attempts": attempts, "cause": exc.__class__.__name__},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
