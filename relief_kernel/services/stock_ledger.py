"""
StockLedgerService -- the quantity-changing operations of the kernel.

Responsibility:
    Receive, dispense, transfer and adjust stock for one item, plus item
    initialization and maintenance. Every mutation follows the same shape:

        validate arguments -> lock record -> check preconditions ->
        compute new quantities -> write record -> append one movement

    and the record write and movement append are flushed together inside
    one savepoint of the caller's transaction (StockRecordStore.update).

Architecture position:
    Kernel > Services. Called by RequestWorkflowService and the access
    boundary (relief_services.gateway). Never commits.

Invariants enforced:
    - Conservation: the store recomputes total_quantity before every flush.
    - Non-negativity: availability is checked before any field is written;
      a shortfall raises InsufficientStockError with the available amount.
    - Transfer neutrality: a transfer debits and credits the same quantity
      on two sides of one record.
    - Audit completeness: each successful mutation appends exactly one
      movement; an adjustment to the same quantity appends none and leaves
      the record untouched.

Failure modes:
    - InvalidInputError subclasses for malformed arguments (raised before
      any database access).
    - StockItemNotFoundError, ShelterNotFoundError, ShelterStockNotFoundError.
    - InsufficientStockError when the source side holds too little.
    - InactiveStockItemError when receiving into a disabled item.
    - ConcurrentUpdateError when version conflicts exhaust the retries.
"""

from uuid import UUID

from relief_kernel.domain.clock import Clock
from relief_kernel.domain.dtos import (
    AdjustResult,
    DispenseResult,
    InitializeResult,
    QuantitySnapshot,
    ReceiveResult,
    StockRecordView,
    TransferResult,
)
from relief_kernel.domain.references import (
    ADJUST_PREFIX,
    DISPENSE_PREFIX,
    INITIAL_STOCK_PREFIX,
    RECEIVE_PREFIX,
    TRANSFER_PREFIX,
    movement_reference,
)
from relief_kernel.domain.status import (
    DEFAULT_CRITICAL_LEVEL,
    DEFAULT_MIN_STOCK_LEVEL,
    needs_restock_alert,
    validate_thresholds,
)
from relief_kernel.domain.values import Location, MovementType, StockCategory, StockSide
from relief_kernel.exceptions import (
    DuplicateStockItemError,
    InactiveStockItemError,
    InsufficientStockError,
    InvalidFieldError,
    NegativeQuantityError,
    NonPositiveQuantityError,
    SameSideTransferError,
    ShelterStockNotFoundError,
)
from relief_kernel.logging_config import get_logger
from relief_kernel.models.movement import StockMovement
from relief_kernel.models.stock import StockRecord
from relief_kernel.services.base import BaseService
from relief_kernel.services.movement_ledger import MovementLedger
from relief_kernel.services.shelter_service import ShelterService
from relief_kernel.services.stock_store import DEFAULT_MAX_ATTEMPTS, StockRecordStore

logger = get_logger("services.stock_ledger")

INITIAL_STOCK_LABEL = "Initial Stock"


def _require_whole_number(field: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldError(field, "must be a whole number")
    return value


def _require_quantity(quantity) -> int:
    _require_whole_number("quantity", quantity)
    if quantity <= 0:
        raise NonPositiveQuantityError(quantity)
    return quantity


def _require_text(field: str, value: str | None) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidFieldError(field, "is required")
    return text


class StockLedgerService(BaseService):
    """
    Receive, dispense, transfer and adjust stock.

    Args:
        session: Caller-owned session; this service only flushes.
        clock: Time source for movement and entry timestamps.
        max_update_attempts: Compare-and-swap retries per record update.
        default_min_stock_level / default_critical_level: Thresholds for
            new items when the caller supplies none.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        max_update_attempts: int = DEFAULT_MAX_ATTEMPTS,
        default_min_stock_level: int = DEFAULT_MIN_STOCK_LEVEL,
        default_critical_level: int = DEFAULT_CRITICAL_LEVEL,
    ):
        super().__init__(session, clock)
        validate_thresholds(default_min_stock_level, default_critical_level)
        self._store = StockRecordStore(session, max_attempts=max_update_attempts)
        self._movements = MovementLedger(session)
        self._shelters = ShelterService(session, self.clock)
        self._default_min_stock_level = default_min_stock_level
        self._default_critical_level = default_critical_level

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _location_for(self, side: StockSide) -> Location:
        if side.is_provincial:
            return Location.provincial()
        shelter = self._shelters.require(side.shelter_id)
        return Location.shelter(shelter.id, shelter.name)

    @staticmethod
    def _require_entry(record: StockRecord, side: StockSide) -> None:
        if not record.has_entry(side):
            raise ShelterStockNotFoundError(str(record.id), str(side.shelter_id))

    @staticmethod
    def _require_available(
        record: StockRecord,
        side: StockSide,
        location: Location,
        quantity: int,
    ) -> int:
        available = record.quantity_at(side)
        if available < quantity:
            raise InsufficientStockError(
                item_id=str(record.id),
                side=location.display_name,
                requested=quantity,
                available=available,
                item_name=record.item_name,
            )
        return available

    # ------------------------------------------------------------------
    # Item lifecycle
    # ------------------------------------------------------------------

    def initialize_item(
        self,
        item_name: str,
        category: StockCategory | str,
        unit: str,
        performed_by: UUID,
        initial_quantity: int = 0,
        min_stock_level: int | None = None,
        critical_level: int | None = None,
        supplier: str | None = None,
        notes: str | None = None,
    ) -> InitializeResult:
        """
        Create a stock record, optionally seeded with provincial stock.

        A positive ``initial_quantity`` is recorded as an INIT-tagged receive
        movement from the supplier (or "Initial Stock") into the provincial
        pool and counts toward ``total_received``.
        """
        name = _require_text("item_name", item_name)
        parsed_category = StockCategory.parse(category)
        unit_label = _require_text("unit", unit)
        min_level = self._default_min_stock_level if min_stock_level is None else min_stock_level
        crit_level = self._default_critical_level if critical_level is None else critical_level
        validate_thresholds(min_level, crit_level)
        _require_whole_number("initial_quantity", initial_quantity)
        if initial_quantity < 0:
            raise NegativeQuantityError(initial_quantity)
        if self._store.get_by_name(name) is not None:
            raise DuplicateStockItemError(name)

        now = self.clock.now()
        with self.session.begin_nested():
            record = self._store.create(
                StockRecord(
                    item_name=name,
                    category=parsed_category.value,
                    unit=unit_label,
                    provincial_quantity=0,
                    total_received=0,
                    total_dispensed=0,
                    min_stock_level=min_level,
                    critical_level=crit_level,
                    is_active=True,
                    movement_count=0,
                    created_by_id=performed_by,
                )
            )

            movement: StockMovement | None = None
            if initial_quantity > 0:
                source = Location.external((supplier or "").strip() or INITIAL_STOCK_LABEL)

                def seed(rec: StockRecord) -> StockMovement:
                    rec.set_quantity(StockSide.provincial(), initial_quantity, now)
                    rec.total_received += initial_quantity
                    return self._movements.append(
                        rec,
                        MovementType.RECEIVE,
                        initial_quantity,
                        source,
                        Location.provincial(),
                        performed_by,
                        now,
                        movement_reference(INITIAL_STOCK_PREFIX, now),
                        QuantitySnapshot(0, initial_quantity),
                        notes=notes or INITIAL_STOCK_LABEL,
                    )

                record, movement = self._store.update(record.id, seed)

        logger.info(
            "stock_item_initialized",
            extra={
                "item_id": str(record.id),
                "item_name": name,
                "category": parsed_category.value,
                "initial_quantity": initial_quantity,
            },
        )
        return InitializeResult(
            record=record.to_dto(),
            movement=movement.to_dto() if movement is not None else None,
        )

    def update_thresholds(
        self,
        item_id: UUID,
        min_stock_level: int,
        critical_level: int,
        performed_by: UUID,
    ) -> StockRecordView:
        validate_thresholds(min_stock_level, critical_level)

        def mutate(record: StockRecord) -> None:
            record.min_stock_level = min_stock_level
            record.critical_level = critical_level
            record.updated_by_id = performed_by

        record, _ = self._store.update(item_id, mutate)
        logger.info(
            "stock_thresholds_updated",
            extra={
                "item_id": str(item_id),
                "min_stock_level": min_stock_level,
                "critical_level": critical_level,
            },
        )
        return record.to_dto()

    def set_active(self, item_id: UUID, active: bool, performed_by: UUID) -> StockRecordView:
        """Soft-disable or re-enable an item. Balances are left as they are."""

        def mutate(record: StockRecord) -> None:
            record.is_active = active
            record.updated_by_id = performed_by

        record, _ = self._store.update(item_id, mutate)
        logger.info(
            "stock_item_activation_changed",
            extra={"item_id": str(item_id), "is_active": active},
        )
        return record.to_dto()

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def receive(
        self,
        item_id: UUID,
        destination: StockSide,
        quantity: int,
        source_label: str,
        performed_by: UUID,
        notes: str | None = None,
        reference_id: str | None = None,
    ) -> ReceiveResult:
        """Take stock in from outside the system. No upper bound applies."""
        qty = _require_quantity(quantity)
        source = Location.external(_require_text("source_label", source_label))
        destination_location = self._location_for(destination)
        now = self.clock.now()
        reference = reference_id or movement_reference(RECEIVE_PREFIX, now)

        def mutate(record: StockRecord) -> StockMovement:
            if not record.is_active:
                raise InactiveStockItemError(str(record.id))
            before = record.quantity_at(destination)
            after = before + qty
            record.set_quantity(destination, after, now)
            record.total_received += qty
            return self._movements.append(
                record,
                MovementType.RECEIVE,
                qty,
                source,
                destination_location,
                performed_by,
                now,
                reference,
                QuantitySnapshot(before, after),
                notes=notes,
            )

        record, movement = self._store.update(item_id, mutate)
        logger.info(
            "stock_received",
            extra={
                "item_id": str(item_id),
                "destination": str(destination),
                "quantity": qty,
                "reference_id": reference,
                "total_quantity": record.total_quantity,
            },
        )
        return ReceiveResult(record.to_dto(), movement.to_dto())

    def dispense(
        self,
        item_id: UUID,
        shelter_id: UUID,
        quantity: int,
        recipient_label: str,
        performed_by: UUID,
        notes: str | None = None,
    ) -> DispenseResult:
        """
        Hand stock from a shelter to beneficiaries.

        ``alert`` on the result is set when the shelter's remaining quantity
        is at or below the item's minimum stock level.
        """
        qty = _require_quantity(quantity)
        recipient = Location.beneficiary(_require_text("recipient_label", recipient_label))
        side = StockSide.shelter(shelter_id)
        shelter_location = self._location_for(side)
        now = self.clock.now()
        reference = movement_reference(DISPENSE_PREFIX, now)

        def mutate(record: StockRecord) -> tuple[StockMovement, bool]:
            self._require_entry(record, side)
            before = self._require_available(record, side, shelter_location, qty)
            after = before - qty
            record.set_quantity(side, after, now)
            record.total_dispensed += qty
            movement = self._movements.append(
                record,
                MovementType.DISPENSE,
                qty,
                shelter_location,
                recipient,
                performed_by,
                now,
                reference,
                QuantitySnapshot(before, after),
                notes=notes,
            )
            return movement, needs_restock_alert(after, record.min_stock_level)

        record, (movement, alert) = self._store.update(item_id, mutate)
        logger.info(
            "stock_dispensed",
            extra={
                "item_id": str(item_id),
                "shelter_id": str(shelter_id),
                "quantity": qty,
                "remaining": movement.snapshot_after,
                "alert": alert,
            },
        )
        return DispenseResult(record.to_dto(), movement.to_dto(), alert)

    def transfer(
        self,
        item_id: UUID,
        from_side: StockSide,
        to_side: StockSide,
        quantity: int,
        performed_by: UUID,
        notes: str | None = None,
        request_id: UUID | None = None,
        reference_id: str | None = None,
    ) -> TransferResult:
        """
        Move stock between the provincial pool and shelters of one item.

        The movement's snapshot is the source side; the destination side's
        before/after is kept as its counter snapshot. A destination shelter
        without an entry gets one; an existing entry is incremented in place.
        """
        qty = _require_quantity(quantity)
        if from_side == to_side:
            raise SameSideTransferError(str(from_side))
        from_location = self._location_for(from_side)
        to_location = self._location_for(to_side)
        now = self.clock.now()
        reference = reference_id or movement_reference(TRANSFER_PREFIX, now)

        def mutate(record: StockRecord) -> StockMovement:
            self._require_entry(record, from_side)
            source_before = self._require_available(record, from_side, from_location, qty)
            destination_before = record.quantity_at(to_side)
            record.set_quantity(from_side, source_before - qty, now)
            record.set_quantity(to_side, destination_before + qty, now)
            return self._movements.append(
                record,
                MovementType.TRANSFER,
                qty,
                from_location,
                to_location,
                performed_by,
                now,
                reference,
                QuantitySnapshot(source_before, source_before - qty),
                counter_snapshot=QuantitySnapshot(destination_before, destination_before + qty),
                notes=notes,
                request_id=request_id,
            )

        record, movement = self._store.update(item_id, mutate)
        logger.info(
            "stock_transferred",
            extra={
                "item_id": str(item_id),
                "from_side": str(from_side),
                "to_side": str(to_side),
                "quantity": qty,
                "reference_id": reference,
                "request_id": str(request_id) if request_id else None,
            },
        )
        return TransferResult(record.to_dto(), movement.to_dto())

    def adjust(
        self,
        item_id: UUID,
        side: StockSide,
        new_quantity: int,
        performed_by: UUID,
        notes: str | None = None,
    ) -> AdjustResult:
        """
        Administrative correction: set one side to ``new_quantity``.

        Appends an adjust movement for the absolute difference, tagged from
        the adjustment sink on an increase and to it on a decrease. Setting
        the same quantity changes nothing and appends nothing.
        """
        _require_whole_number("new_quantity", new_quantity)
        if new_quantity < 0:
            raise NegativeQuantityError(new_quantity)
        location = self._location_for(side)
        now = self.clock.now()
        reference = movement_reference(ADJUST_PREFIX, now)

        def mutate(record: StockRecord) -> StockMovement | None:
            before = record.quantity_at(side)
            diff = new_quantity - before
            if diff == 0:
                return None
            record.set_quantity(side, new_quantity, now)
            sink = Location.adjustment()
            from_location, to_location = (sink, location) if diff > 0 else (location, sink)
            return self._movements.append(
                record,
                MovementType.ADJUST,
                abs(diff),
                from_location,
                to_location,
                performed_by,
                now,
                reference,
                QuantitySnapshot(before, new_quantity),
                notes=notes,
            )

        record, movement = self._store.update(item_id, mutate)
        logger.info(
            "stock_adjusted",
            extra={
                "item_id": str(item_id),
                "side": str(side),
                "new_quantity": new_quantity,
                "changed": movement is not None,
            },
        )
        return AdjustResult(record.to_dto(), movement.to_dto() if movement is not None else None)
