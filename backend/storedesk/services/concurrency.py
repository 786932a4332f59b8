# Overview: Transaction helpers shared by every write path in the service layer.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConflictError, TransportError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Optimistic version_id columns cover SQLite.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute one unit of work as a single transaction.

    - StaleDataError (optimistic lock lost to a concurrent writer): roll back
      and re-run the whole unit, up to `attempts` times, then raise
      ConflictError.
    - IntegrityError: roll back and raise ConflictError.
    - OperationalError / other DBAPI errors: roll back and raise
      TransportError. Transport retry belongs to the driver, not here.
    - Anything else: roll back and re-raise unchanged.

    `func` is expected to commit on success.
    """
    for attempt in range(attempts):
        try:
            return func()
        except StaleDataError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Concurrent update not resolved after %d attempts", attempts)
                raise ConflictError(
                    "Concurrent update, retry the operation",
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.info("Concurrent update detected, retrying (attempt %d)", attempt + 2)
            time.sleep(backoff_base * (2 ** attempt))
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError(
                "Write violates a uniqueness or reference constraint",
                details={"reason": str(exc.orig)},
            ) from exc
        except DBAPIError as exc:
            db.session.rollback()
            raise TransportError(
                "Database unavailable or rejected the write",
                details={"reason": str(getattr(exc, "orig", exc))},
            ) from exc
        except Exception:
            db.session.rollback()
            raise
