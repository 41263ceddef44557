# Overview: Retry and locking helpers for read-modify-write operations.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking to a query.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id
    columns on Cart and Product are what catch concurrent writers.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Run a read-modify-write operation, retrying on concurrency failures.

    func must re-read everything it writes: after a StaleDataError
    (optimistic lock lost) or OperationalError (database locked) the
    session is rolled back and func runs again from scratch.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "Concurrent update detected (%s), retrying %d/%d",
                type(exc).__name__, attempt + 1, attempts - 1,
            )
            time.sleep(backoff_base * (2 ** attempt))
