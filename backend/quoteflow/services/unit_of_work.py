"""Transaction runner for ledger mutations.

Runs a unit of work, commits it, and retries when the optimistic version
check on a ledger row fails.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from quoteflow.core.config import settings
from quoteflow.core.exceptions import (
    ConcurrentModificationError,
    InvoicingError,
    LedgerConsistencyError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def rollback(db: Session, operation: str) -> None:
    """Roll back the session; a failed rollback is fatal."""
    try:
        db.rollback()
    except SQLAlchemyError as e:
        logger.critical(
            "Rollback failed during %s; ledger state requires operator review", operation
        )
        raise LedgerConsistencyError(f"Rollback failed during {operation}") from e


def run_atomically(
    db: Session,
    work: Callable[[], T],
    operation: str,
    max_attempts: int | None = None,
) -> T:
    """Run ``work`` and commit, retrying on version conflicts.

    Domain errors roll back and propagate unchanged. Other database errors
    roll back and surface as ``PersistenceError``.
    """
    attempts = max_attempts or settings.LEDGER_MAX_RETRIES

    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.commit()
            return result
        except StaleDataError:
            rollback(db, operation)
            logger.warning(
                "Concurrent modification during %s (attempt %d/%d)", operation, attempt, attempts
            )
        except InvoicingError:
            rollback(db, operation)
            raise
        except SQLAlchemyError as e:
            rollback(db, operation)
            logger.error("Database error during %s: %s", operation, e)
            raise PersistenceError(f"Failed to persist {operation}") from e
        except Exception:
            rollback(db, operation)
            raise

    raise ConcurrentModificationError(
        f"{operation} conflicted with concurrent updates {attempts} times; try again"
    )
