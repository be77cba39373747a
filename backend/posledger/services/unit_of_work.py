# Overview: Transaction boundary shared by every public service operation.

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import LedgerError, StorageError
from ..extensions import db
"""
posledger Atomicity Invariants (authoritative)

- Every public service operation runs inside exactly one unit_of_work().
- Helpers that write (stock_service.apply_stock_delta etc.) only flush;
  they never commit and never open their own unit.
- Any exception inside the block rolls back every write of the unit.
- Database failures surface as StorageError; nothing is retried here.
  Postings are not idempotent, so retrying is the caller's decision.
"""


@contextmanager
def unit_of_work():
    """
    Single atomic unit of work around the Flask-SQLAlchemy session.

    Commits on clean exit, rolls back on any exception.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except LedgerError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.warning("Unit of work rolled back: %s", exc)
        raise StorageError("Storage failure; no changes were applied") from exc
    except Exception:
        session.rollback()
        raise


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def guarded_status_flip(model, entity_id: int, *, from_statuses, to_status: str, **values) -> bool:
    """
    Compare-and-set a status column inside the current unit of work.

    Issues UPDATE ... WHERE id = :id AND status IN (:from_statuses) and
    reports whether a row changed. Two concurrent callers can never both
    win, even on backends that ignore FOR UPDATE.
    """
    stmt = (
        update(model)
        .where(model.id == entity_id, model.status.in_(list(from_statuses)))
        .values(status=to_status, **values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return bool(result.rowcount)
