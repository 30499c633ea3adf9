"""
StockRecordStore -- atomic read-modify-write access to stock records.

Responsibility:
    Load a stock record under a row lock, hand it to a mutator, recompute
    the total and flush, all inside a savepoint of the caller's transaction.

Concurrency:
    - PostgreSQL: ``SELECT ... FOR UPDATE`` serializes writers per record;
      readers and writers of other records proceed in parallel.
    - SQLite: the engine opens every transaction with BEGIN IMMEDIATE, so
      writers are already serialized when the row is read.
    - Both: ``StockRecord.version`` is a version_id_col. A flush against a
      stale version raises StaleDataError; the savepoint is rolled back and
      the read-modify-write is retried up to ``max_attempts`` times before
      ConcurrentUpdateError is raised.

Business validation belongs to the mutator (StockLedgerService). The store
only guarantees that ``total_quantity`` is recomputed before every flush.
"""

from collections.abc import Callable, Iterable
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from relief_kernel.exceptions import (
    ConcurrentUpdateError,
    DuplicateStockItemError,
    StockItemNotFoundError,
)
from relief_kernel.logging_config import get_logger
from relief_kernel.models.stock import StockRecord

logger = get_logger("services.stock_store")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def name_key(item_name: str) -> str:
    return " ".join(item_name.split()).lower()


class StockRecordStore:
    """Persistence for StockRecord rows. No business rules live here."""

    def __init__(self, session: Session, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session = session
        self._max_attempts = max_attempts

    def get(self, item_id: UUID) -> StockRecord:
        record = self._session.get(StockRecord, item_id, populate_existing=True)
        if record is None:
            raise StockItemNotFoundError(str(item_id))
        return record

    def get_by_name(self, item_name: str) -> StockRecord | None:
        return self._session.execute(
            select(StockRecord).where(StockRecord.name_key == name_key(item_name))
        ).scalar_one_or_none()

    def _load_for_update(self, item_id: UUID) -> StockRecord:
        record = self._session.execute(
            select(StockRecord)
            .where(StockRecord.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise StockItemNotFoundError(str(item_id))
        return record

    def lock_many(self, item_ids: Iterable[UUID]) -> dict[UUID, StockRecord]:
        """Lock several records in ascending id order.

        A fixed order means two multi-record operations can never wait on
        each other in a cycle.
        """
        ids = sorted(set(item_ids), key=str)
        if not ids:
            return {}
        rows = self._session.execute(
            select(StockRecord)
            .where(StockRecord.id.in_(ids))
            .order_by(StockRecord.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        found = {row.id: row for row in rows}
        for item_id in ids:
            if item_id not in found:
                raise StockItemNotFoundError(str(item_id))
        return found

    def create(self, record: StockRecord) -> StockRecord:
        """Insert a new record. A duplicate name raises DuplicateStockItemError."""
        record.name_key = name_key(record.item_name)
        record.recalculate_total()
        savepoint = self._session.begin_nested()
        try:
            self._session.add(record)
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateStockItemError(record.item_name) from None
        savepoint.commit()
        return record

    def update(
        self,
        item_id: UUID,
        mutator: Callable[[StockRecord], T],
    ) -> tuple[StockRecord, T]:
        """
        Apply ``mutator`` to the locked record and persist the result.

        Returns the record and whatever the mutator returned. Errors raised
        by the mutator roll back the savepoint and propagate unchanged.

        Raises:
            StockItemNotFoundError: No record with this id.
            ConcurrentUpdateError: Version conflicts on every attempt.
        """
        for attempt in range(1, self._max_attempts + 1):
            savepoint = self._session.begin_nested()
            try:
                record = self._load_for_update(item_id)
                result = mutator(record)
                record.recalculate_total()
                self._session.flush()
            except StaleDataError:
                savepoint.rollback()
                logger.warning(
                    "stock_record_version_conflict",
                    extra={
                        "item_id": str(item_id),
                        "attempt": attempt,
                        "max_attempts": self._max_attempts,
                    },
                )
                continue
            except Exception:
                savepoint.rollback()
                raise
            savepoint.commit()
            return record, result

        logger.error(
            "stock_record_update_exhausted",
            extra={"item_id": str(item_id), "attempts": self._max_attempts},
        )
        raise ConcurrentUpdateError("StockRecord", str(item_id), self._max_attempts)
