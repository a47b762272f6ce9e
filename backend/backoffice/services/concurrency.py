# Overview: Transaction boundaries and row locking for stock-affecting writes.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations and refresh the
    identity map with what the locked read returns.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; write_transaction() takes the
    database write lock up front there instead.
    """
    return query.with_for_update().populate_existing()


def _begin_immediate_if_sqlite() -> None:
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.driver_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def write_transaction():
    """
    One request-scoped atomic unit: commit on success, roll back on any error.

    Reads that inform the decision must happen inside the block so that they
    see the locked, current row. No retry: a failed transaction is surfaced.
    """
    _begin_immediate_if_sqlite()
    try:
        yield db.session
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError("Record was modified concurrently; reload and try again") from exc
    except Exception:
        db.session.rollback()
        raise
