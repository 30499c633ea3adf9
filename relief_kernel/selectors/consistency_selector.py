"""
Ledger consistency audit.

Replays an item's movements from an empty state and compares the result
with the stored record: provincial and shelter balances, the stored total,
and the lifetime received/dispensed counters. The counters are otherwise
never checked against the ledger, so this is the reconciliation path for
them.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select

from relief_kernel.domain.values import LocationKind, MovementType
from relief_kernel.exceptions import StockItemNotFoundError
from relief_kernel.logging_config import get_logger
from relief_kernel.models.movement import StockMovement
from relief_kernel.models.stock import StockRecord
from relief_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.consistency")


@dataclass(frozen=True)
class ConsistencyReport:
    item_id: UUID
    movement_count: int
    discrepancies: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies


class ConsistencySelector(BaseSelector):

    def verify_item(self, item_id: UUID) -> ConsistencyReport:
        record = self.session.get(StockRecord, item_id, populate_existing=True)
        if record is None:
            raise StockItemNotFoundError(str(item_id))
        movements = self.session.execute(
            select(StockMovement)
            .where(StockMovement.stock_record_id == item_id)
            .order_by(StockMovement.item_seq)
        ).scalars().all()

        problems: list[str] = []
        provincial = 0
        shelters: dict[UUID, int] = defaultdict(int)
        received = dispensed = 0

        for expected_seq, movement in enumerate(movements, start=1):
            if movement.item_seq != expected_seq:
                problems.append(f"movement sequence gap at #{expected_seq} (found #{movement.item_seq})")
            qty = movement.quantity
            if movement.from_kind == LocationKind.PROVINCIAL.value:
                provincial -= qty
            elif movement.from_kind == LocationKind.SHELTER.value:
                shelters[movement.from_shelter_id] -= qty
            if movement.to_kind == LocationKind.PROVINCIAL.value:
                provincial += qty
            elif movement.to_kind == LocationKind.SHELTER.value:
                shelters[movement.to_shelter_id] += qty
            if movement.movement_type == MovementType.RECEIVE.value:
                received += qty
            elif movement.movement_type == MovementType.DISPENSE.value:
                dispensed += qty

        if provincial != record.provincial_quantity:
            problems.append(
                f"provincial quantity {record.provincial_quantity} != replayed {provincial}"
            )
        stored_shelters = {sid: e.quantity for sid, e in record.shelter_stocks.items()}
        for shelter_id in set(stored_shelters) | set(shelters):
            stored = stored_shelters.get(shelter_id, 0)
            replayed = shelters.get(shelter_id, 0)
            if stored != replayed:
                problems.append(f"shelter {shelter_id} quantity {stored} != replayed {replayed}")
        expected_total = record.provincial_quantity + sum(stored_shelters.values())
        if record.total_quantity != expected_total:
            problems.append(f"total quantity {record.total_quantity} != sum of sides {expected_total}")
        if record.total_received != received:
            problems.append(f"total received {record.total_received} != replayed {received}")
        if record.total_dispensed != dispensed:
            problems.append(f"total dispensed {record.total_dispensed} != replayed {dispensed}")
        if record.movement_count != len(movements):
            problems.append(f"movement count {record.movement_count} != ledger {len(movements)}")

        report = ConsistencyReport(item_id, len(movements), tuple(problems))
        if not report.is_consistent:
            logger.warning(
                "ledger_inconsistency_detected",
                extra={"item_id": str(item_id), "discrepancies": list(problems)},
            )
        return report

    def verify_all(self) -> list[ConsistencyReport]:
        """Reports for every item, inconsistent ones included."""
        ids = self.session.execute(select(StockRecord.id).order_by(StockRecord.item_name)).scalars().all()
        return [self.verify_item(item_id) for item_id in ids]
