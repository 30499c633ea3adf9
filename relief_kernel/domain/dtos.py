"""
Frozen data transfer objects returned by services and selectors.

ORM models never leave the kernel; callers receive these immutable views.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from uuid import UUID

from relief_kernel.domain.request_lifecycle import (
    DeliveryStatus,
    RequestStatus,
    approval_rate,
)
from relief_kernel.domain.status import derive_status
from relief_kernel.domain.values import (
    Location,
    MovementType,
    StockCategory,
    StockSide,
    StockStatus,
)


@dataclass(frozen=True)
class ShelterStockLine:
    shelter_id: UUID
    quantity: int
    last_updated: datetime


@dataclass(frozen=True)
class StockRecordView:
    """Point-in-time view of one item's balances and counters."""

    item_id: UUID
    item_name: str
    category: StockCategory
    unit: str
    provincial_quantity: int
    shelter_stocks: tuple[ShelterStockLine, ...]
    total_quantity: int
    total_received: int
    total_dispensed: int
    min_stock_level: int
    critical_level: int
    is_active: bool
    last_movement_at: datetime | None
    movement_count: int
    version: int

    @property
    def status(self) -> StockStatus:
        return derive_status(self.total_quantity, self.min_stock_level, self.critical_level)

    @property
    def shelter_quantities(self) -> Mapping[UUID, int]:
        return MappingProxyType({s.shelter_id: s.quantity for s in self.shelter_stocks})

    def shelter_entry(self, shelter_id: UUID) -> ShelterStockLine | None:
        for line in self.shelter_stocks:
            if line.shelter_id == shelter_id:
                return line
        return None

    def quantity_at(self, side: StockSide) -> int:
        if side.is_provincial:
            return self.provincial_quantity
        entry = self.shelter_entry(side.shelter_id)
        return entry.quantity if entry is not None else 0

    def shelter_status(self, shelter_id: UUID) -> StockStatus:
        """Status of the shelter's own holding against the item thresholds."""
        return derive_status(
            self.quantity_at(StockSide.shelter(shelter_id)),
            self.min_stock_level,
            self.critical_level,
        )


@dataclass(frozen=True)
class QuantitySnapshot:
    before: int
    after: int


@dataclass(frozen=True)
class MovementView:
    movement_id: UUID
    item_id: UUID
    item_seq: int
    movement_type: MovementType
    quantity: int
    unit: str
    from_location: Location
    to_location: Location
    performed_by: UUID
    performed_at: datetime
    reference_id: str
    snapshot: QuantitySnapshot
    counter_snapshot: QuantitySnapshot | None = None
    notes: str | None = None
    request_id: UUID | None = None

    def touches_shelter(self, shelter_id: UUID) -> bool:
        return self.from_location.touches(shelter_id) or self.to_location.touches(shelter_id)


@dataclass(frozen=True)
class ShelterView:
    shelter_id: UUID
    code: str
    name: str
    capacity: int | None
    status: str


@dataclass(frozen=True)
class RequestLineView:
    item_id: UUID
    item_name: str
    requested_quantity: int
    unit: str
    reason: str | None
    approved_quantity: int | None = None


@dataclass(frozen=True)
class ApprovedItem:
    item_id: UUID
    approved_quantity: int


@dataclass(frozen=True)
class StockRequestView:
    request_id: UUID
    request_number: str
    shelter_id: UUID
    requested_by: UUID
    requested_at: datetime
    status: RequestStatus
    items: tuple[RequestLineView, ...]
    delivery_status: DeliveryStatus
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    admin_notes: str | None = None
    delivered_at: datetime | None = None
    notes: str | None = None

    @property
    def approved_items(self) -> tuple[ApprovedItem, ...]:
        """Granted quantities; empty unless the request is approved or partial."""
        if self.status not in (RequestStatus.APPROVED, RequestStatus.PARTIAL):
            return ()
        return tuple(
            ApprovedItem(line.item_id, line.approved_quantity or 0) for line in self.items
        )

    @property
    def approval_rate(self) -> float:
        return approval_rate(
            self.status,
            [line.approved_quantity or 0 for line in self.items],
            [line.requested_quantity for line in self.items],
        )


# Operation results


@dataclass(frozen=True)
class ReceiveResult:
    record: StockRecordView
    movement: MovementView


@dataclass(frozen=True)
class DispenseResult:
    record: StockRecordView
    movement: MovementView
    alert: bool
    """The shelter quantity is now at or below the item's minimum level."""


@dataclass(frozen=True)
class TransferResult:
    record: StockRecordView
    movement: MovementView


@dataclass(frozen=True)
class AdjustResult:
    record: StockRecordView
    movement: MovementView | None
    """None when the new quantity equals the old one."""


@dataclass(frozen=True)
class InitializeResult:
    record: StockRecordView
    movement: MovementView | None


@dataclass(frozen=True)
class RequestWarning:
    item_id: UUID
    item_name: str
    requested: int
    available: int

    @property
    def message(self) -> str:
        return f"Provincial stock insufficient (available: {self.available})"


@dataclass(frozen=True)
class RequestCreated:
    request: StockRequestView
    warnings: tuple[RequestWarning, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ApprovalResult:
    request: StockRequestView
    movements: tuple[MovementView, ...]


# Inputs


@dataclass(frozen=True)
class RequestItemSpec:
    """One line of a new stock request as submitted by shelter staff."""

    item_id: UUID
    requested_quantity: int
    reason: str | None = None
