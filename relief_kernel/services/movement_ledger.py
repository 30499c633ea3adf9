"""
MovementLedger -- append-only writer for stock movements.

``append`` must be called while the item's record is held by
StockRecordStore.update, so the movement is flushed in the same savepoint
as the balance change it describes. It assigns the next per-item sequence
number and stamps the record's ``last_movement_at``.

Existing movements are never touched; reads go through MovementSelector.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from relief_kernel.domain.dtos import QuantitySnapshot
from relief_kernel.domain.values import Location, MovementType
from relief_kernel.exceptions import InvalidFieldError, NonPositiveQuantityError
from relief_kernel.logging_config import get_logger
from relief_kernel.models.movement import StockMovement
from relief_kernel.models.stock import StockRecord

logger = get_logger("services.movement_ledger")


class MovementLedger:

    def __init__(self, session: Session):
        self._session = session

    def append(
        self,
        record: StockRecord,
        movement_type: MovementType,
        quantity: int,
        from_location: Location,
        to_location: Location,
        performed_by: UUID,
        performed_at: datetime,
        reference_id: str,
        snapshot: QuantitySnapshot,
        counter_snapshot: QuantitySnapshot | None = None,
        notes: str | None = None,
        request_id: UUID | None = None,
    ) -> StockMovement:
        """Validate and stage one movement for ``record``."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise NonPositiveQuantityError(quantity)
        if min(snapshot.before, snapshot.after) < 0:
            raise InvalidFieldError("snapshot", "quantities cannot be negative")
        if not reference_id:
            raise InvalidFieldError("reference_id", "is required")

        record.movement_count += 1
        record.last_movement_at = performed_at

        movement = StockMovement(
            stock_record_id=record.id,
            item_seq=record.movement_count,
            movement_type=MovementType(movement_type).value,
            quantity=quantity,
            unit=record.unit,
            from_kind=from_location.kind.value,
            from_shelter_id=from_location.shelter_id,
            from_name=from_location.display_name,
            to_kind=to_location.kind.value,
            to_shelter_id=to_location.shelter_id,
            to_name=to_location.display_name,
            performed_by=performed_by,
            performed_at=performed_at,
            reference_id=reference_id,
            snapshot_before=snapshot.before,
            snapshot_after=snapshot.after,
            counter_before=counter_snapshot.before if counter_snapshot else None,
            counter_after=counter_snapshot.after if counter_snapshot else None,
            notes=notes,
            request_id=request_id,
        )
        self._session.add(movement)

        logger.debug(
            "movement_appended",
            extra={
                "item_id": str(record.id),
                "item_seq": movement.item_seq,
                "movement_type": movement.movement_type,
                "quantity": quantity,
                "reference_id": reference_id,
            },
        )
        return movement
