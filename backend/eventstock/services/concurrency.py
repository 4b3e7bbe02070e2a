# Overview: Transaction boundary, locking and retry helpers for stock-affecting operations.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Store unavailable or constraint violated; surfaced as a generic failure."""


def begin_write_transaction() -> None:
    """
    Open the write transaction before any stock read.

    SQLite ignores SELECT ... FOR UPDATE, so take the database write lock up
    front (BEGIN IMMEDIATE). Concurrent writers then queue on the busy
    timeout instead of failing to upgrade a read lock mid-transaction.
    Other backends rely on lock_for_update() row locks.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, see begin_write_transaction().
    """
    return query.with_for_update()


def expire_cached(model, pk) -> None:
    """Drop a stale identity-map copy after a Core UPDATE touched its row."""
    obj = db.session.identity_map.get(Session.identity_key(model, pk))
    if obj is not None:
        db.session.expire(obj)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a unit of work that commits (or raises) as a whole.

    - OperationalError (locks, deadlocks) and StaleDataError (optimistic
      version conflicts) roll back and retry with exponential backoff.
    - Any other SQLAlchemyError rolls back and becomes PersistenceError.
    - Domain errors roll back and propagate unchanged, so a failed operation
      never leaves a partial debit or a row without its debit.
    """
    if attempts is None:
        attempts = current_app.config.get("RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.exception("Giving up after %d attempts", attempts)
                raise PersistenceError("Database is busy, please retry") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Persistence failure")
            raise PersistenceError("Database error") from exc
        except Exception:
            db.session.rollback()
            raise
