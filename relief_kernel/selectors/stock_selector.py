"""Current balances per item and per shelter."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from relief_kernel.domain.dtos import StockRecordView
from relief_kernel.domain.status import derive_status
from relief_kernel.domain.values import StockCategory, StockStatus
from relief_kernel.exceptions import StockItemNotFoundError
from relief_kernel.models.stock import ShelterStock, StockRecord
from relief_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ShelterHolding:
    """One item as seen from one shelter."""

    item_id: UUID
    item_name: str
    category: StockCategory
    unit: str
    quantity: int
    last_updated: datetime
    status: StockStatus


class StockSelector(BaseSelector):

    def get(self, item_id: UUID) -> StockRecordView:
        record = self.session.get(StockRecord, item_id, populate_existing=True)
        if record is None:
            raise StockItemNotFoundError(str(item_id))
        return record.to_dto()

    def list_records(
        self,
        category: StockCategory | str | None = None,
        include_inactive: bool = False,
        name_contains: str | None = None,
    ) -> list[StockRecordView]:
        stmt = select(StockRecord).order_by(StockRecord.item_name)
        if category is not None:
            stmt = stmt.where(StockRecord.category == StockCategory.parse(category).value)
        if not include_inactive:
            stmt = stmt.where(StockRecord.is_active.is_(True))
        if name_contains:
            stmt = stmt.where(StockRecord.name_key.contains(name_contains.strip().lower()))
        records = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalars().all()
        return [r.to_dto() for r in records]

    def shelter_holdings(self, shelter_id: UUID) -> list[ShelterHolding]:
        """Every item the shelter has an entry for, including zero balances."""
        rows = self.session.execute(
            select(StockRecord, ShelterStock)
            .join(ShelterStock, ShelterStock.stock_record_id == StockRecord.id)
            .where(ShelterStock.shelter_id == shelter_id)
            .order_by(StockRecord.item_name)
            .execution_options(populate_existing=True)
        ).all()
        return [
            ShelterHolding(
                item_id=record.id,
                item_name=record.item_name,
                category=StockCategory(record.category),
                unit=record.unit,
                quantity=entry.quantity,
                last_updated=entry.last_updated,
                status=derive_status(entry.quantity, record.min_stock_level, record.critical_level),
            )
            for record, entry in rows
        ]
