"""
Unité de travail transactionnelle.

Toutes les opérations du ledger passent par `UnitOfWork.run(fn)` :
    - fn(db) est exécutée, puis commit
    - erreur métier        -> rollback + propagation
    - conflit de concurrence -> rollback + ré-exécution complète de fn
      (depuis la lecture, jamais depuis le milieu), dans la limite de max_retries
    - store indisponible   -> rollback + StoreUnavailable

Les opérations elles-mêmes ne font jamais commit : flush uniquement.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from stockledger.app.core.config import settings
from stockledger.services.errors import ConcurrencyConflict, StockError, StoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}
UNIQUE_VIOLATION_SQLSTATE = "23505"


def _sqlstate(exc: Exception) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_conflict(exc: OperationalError) -> bool:
    if _sqlstate(exc) in RETRYABLE_SQLSTATES:
        return True
    # SQLite : verrou d'écriture concurrent
    return "database is locked" in str(getattr(exc, "orig", exc))


def is_unique_violation(exc: IntegrityError) -> bool:
    if _sqlstate(exc) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    return "UNIQUE constraint failed" in str(getattr(exc, "orig", exc))


class UnitOfWork:
    def __init__(self, db: Session, *, max_retries: int | None = None):
        self.db = db
        self.max_retries = settings.max_transaction_retries if max_retries is None else max_retries

    def run(self, fn: Callable[[Session], T]) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                result = fn(self.db)
                self.db.commit()
                return result
            except StockError as exc:
                self.db.rollback()
                if not exc.retryable or isinstance(exc, (ConcurrencyConflict, StoreUnavailable)):
                    raise
                self._retry_or_give_up(attempt, exc)
            except IntegrityError as exc:
                self.db.rollback()
                # Requête concurrente sur la même clé d'idempotence / la même ligne unique
                if not is_unique_violation(exc):
                    raise
                self._retry_or_give_up(attempt, exc)
            except OperationalError as exc:
                self.db.rollback()
                if not is_conflict(exc):
                    logger.error("Store unavailable: %s", exc.orig if exc.orig is not None else exc)
                    raise StoreUnavailable() from exc
                self._retry_or_give_up(attempt, exc)
            except Exception:
                self.db.rollback()
                raise

    def _retry_or_give_up(self, attempt: int, exc: Exception) -> None:
        if attempt > self.max_retries:
            logger.warning("Giving up after %d attempts: %s", attempt, exc)
            raise ConcurrencyConflict(attempt) from exc
        logger.warning("Conflict on attempt %d, retrying unit of work: %s", attempt, exc)
