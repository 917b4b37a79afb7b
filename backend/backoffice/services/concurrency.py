# Overview: Unit-of-work helpers shared by every service that writes stock or sales.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_unit() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


def begin_write_unit() -> None:
    """
    Open the write side of a unit of work on the current session.

    - SQLite: BEGIN IMMEDIATE takes the RESERVED lock now, so concurrent
      writers queue on the busy timeout instead of failing at commit.
    - PostgreSQL: bound every statement in this transaction by the
      configured commit timeout; on expiry the unit aborts and rolls back.
    """
    dialect = db.engine.dialect.name
    if dialect == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        timeout_ms = int(current_app.config.get("POS_COMMIT_TIMEOUT_SECONDS", 10)) * 1000
        db.session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError.
    The session is rolled back before each retry so every attempt starts
    from a clean unit. Any other exception propagates untouched.
    """
    if attempts is None:
        attempts = int(current_app.config.get("POS_COMMIT_RETRY_ATTEMPTS", 3))
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
