# Overview: Row locking and retry helpers for the collaborator services.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for stock mutations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    InventoryRecord.version_id covers SQLite via StaleDataError.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception propagates at once.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
