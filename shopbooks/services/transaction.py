from sqlalchemy.orm import Session
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from typing import Callable, Optional, TypeVar
import logging
import time

from shopbooks.config import get_settings
from shopbooks.services.exceptions import ConflictError, LedgerError, PersistenceError

logger = logging.getLogger(__name__)

settings = get_settings()

T = TypeVar("T")


class TransactionCoordinator:
    """
    Atomic boundary for every operation that touches stock and a ledger record.

    CONCURRENCY STRATEGY:
    =====================
    Each unit of work reads the rows it needs with SELECT FOR UPDATE and
    writes them back through versioned UPDATEs (``version_id_col`` on Product
    and Debt). Depending on the backing store this means:

    1. PostgreSQL: the row lock serializes concurrent writers, so the second
       transaction re-reads committed stock and fails its own check.
    2. SQLite (no FOR UPDATE): the versioned UPDATE matches zero rows when
       another writer got there first, raising StaleDataError.

    Either way a lost race never produces a partial write. Write conflicts
    (stale versions, deadlocks, lock timeouts, serialization failures) roll
    the whole unit back and re-run it from the first read, so the retry sees
    fresh committed state. After ``max_attempts`` the caller gets a
    ConflictError and may retry the whole operation.
    """

    def __init__(
        self,
        db: Session,
        max_attempts: Optional[int] = None,
        backoff: Optional[float] = None,
    ):
        self.db = db
        self.max_attempts = max_attempts or settings.LEDGER_MAX_ATTEMPTS
        self.backoff = settings.LEDGER_RETRY_BACKOFF if backoff is None else backoff

    def run_atomic(self, operation: Callable[[], T], name: str = "Ledger operation") -> T:
        """
        Run ``operation`` and commit its writes as one unit.

        ``operation`` must do all of its reads through the session so a retry
        starts from committed state; it must not commit on its own.

        Args:
            operation: Zero-argument callable performing reads and writes
            name: Human readable operation name for logs and errors

        Returns:
            Whatever ``operation`` returned

        Raises:
            LedgerError: Domain failures raised by ``operation``, unchanged
            ConflictError: If every attempt lost to a concurrent writer
            PersistenceError: If the store rejected the write or is unreachable
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = operation()
                self.db.commit()
                return result

            except LedgerError:
                self.db.rollback()
                raise
            except (StaleDataError, OperationalError) as e:
                self.db.rollback()
                if isinstance(e, DBAPIError) and e.connection_invalidated:
                    logger.error(f"{name} failed, database connection lost: {e}")
                    raise PersistenceError(f"{name} failed: database unavailable") from e

                logger.warning(
                    f"{name} hit a write conflict (attempt {attempt}/{self.max_attempts}): {e}"
                )
                if attempt < self.max_attempts:
                    time.sleep(self.backoff * (2 ** (attempt - 1)))
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"{name} rejected by the database: {e}")
                raise PersistenceError(f"{name} failed: {e.__class__.__name__}") from e
            except Exception:
                self.db.rollback()
                raise

        raise ConflictError(name, self.max_attempts)
