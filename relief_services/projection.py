"""
Role-based projections applied to query results at the service boundary.

Pure functions over kernel DTOs: admins receive the full record view, staff
a view of their own shelter's holding, and viewers or anonymous callers
only the aggregate a public dashboard may show.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from relief_kernel.domain.dtos import MovementView, StockRecordView
from relief_kernel.domain.values import StockCategory, StockStatus
from relief_services.access import Identity, Role

UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class PublicStockView:
    item_name: str
    category: StockCategory
    total_quantity: int
    unit: str
    status: StockStatus


@dataclass(frozen=True)
class ShelterStockView:
    """An item as seen by staff of one shelter."""

    item_name: str
    category: StockCategory
    total_quantity: int
    unit: str
    status: StockStatus
    shelter_quantity: int
    last_updated: datetime | None
    shelter_status: str  # a StockStatus value, or "unavailable" without an entry


def project_stock(
    view: StockRecordView,
    identity: Identity | None,
) -> StockRecordView | ShelterStockView | PublicStockView:
    if identity is not None and identity.role is Role.ADMIN:
        return view
    if identity is not None and identity.role is Role.STAFF:
        entry = view.shelter_entry(identity.assigned_shelter_id)
        if entry is None:
            return ShelterStockView(
                item_name=view.item_name,
                category=view.category,
                total_quantity=view.total_quantity,
                unit=view.unit,
                status=view.status,
                shelter_quantity=0,
                last_updated=None,
                shelter_status=UNAVAILABLE,
            )
        return ShelterStockView(
            item_name=view.item_name,
            category=view.category,
            total_quantity=view.total_quantity,
            unit=view.unit,
            status=view.status,
            shelter_quantity=entry.quantity,
            last_updated=entry.last_updated,
            shelter_status=view.shelter_status(identity.assigned_shelter_id).value,
        )
    return PublicStockView(
        item_name=view.item_name,
        category=view.category,
        total_quantity=view.total_quantity,
        unit=view.unit,
        status=view.status,
    )


def project_stock_list(
    views: Iterable[StockRecordView],
    identity: Identity | None,
) -> list[StockRecordView | ShelterStockView | PublicStockView]:
    return [project_stock(v, identity) for v in views]


def project_movements(
    movements: Iterable[MovementView],
    identity: Identity,
) -> list[MovementView]:
    """Admins and viewers see every movement; staff only those touching their shelter."""
    if identity.role is Role.STAFF:
        return [m for m in movements if m.touches_shelter(identity.assigned_shelter_id)]
    return list(movements)
