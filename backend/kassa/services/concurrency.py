# Overview: Service-layer transaction helpers; every engine operation runs through run_with_retry.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError

from ..errors import StoreUnavailableError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the BEGIN IMMEDIATE
    transaction already holds the database write lock.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work as one all-or-nothing transaction.

    ``func`` must do its reads and writes through db.session and commit at the
    end. Any exception rolls the session back before propagating, so no
    partial sale, return or debt state survives a failure. OperationalError
    (lock contention past the busy timeout) is retried with exponential
    backoff and surfaces as StoreUnavailableError once attempts run out.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Store unavailable after %d attempts: %s", attempts, exc)
                raise StoreUnavailableError(
                    "Store is busy or unavailable",
                    details={"attempts": attempts, "reason": str(exc.orig) if exc.orig else str(exc)},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
