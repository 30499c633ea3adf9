"""Movement history queries. Newest first; pure projections."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select

from relief_kernel.domain.dtos import MovementView
from relief_kernel.domain.values import MovementType
from relief_kernel.models.movement import StockMovement
from relief_kernel.selectors.base import BaseSelector

MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class MovementFilter:
    """
    Criteria for movement queries. Unset fields do not filter.

    ``shelter_id`` matches movements with the shelter on either side.
    ``start`` is inclusive, ``end`` exclusive.
    """

    item_id: UUID | None = None
    shelter_id: UUID | None = None
    movement_types: tuple[MovementType, ...] = field(default_factory=tuple)
    start: datetime | None = None
    end: datetime | None = None
    performed_by: UUID | None = None
    request_id: UUID | None = None
    limit: int = 100
    offset: int = 0


class MovementSelector(BaseSelector):

    @staticmethod
    def _apply(stmt: Select, criteria: MovementFilter) -> Select:
        if criteria.item_id is not None:
            stmt = stmt.where(StockMovement.stock_record_id == criteria.item_id)
        if criteria.shelter_id is not None:
            stmt = stmt.where(
                or_(
                    StockMovement.from_shelter_id == criteria.shelter_id,
                    StockMovement.to_shelter_id == criteria.shelter_id,
                )
            )
        if criteria.movement_types:
            stmt = stmt.where(
                StockMovement.movement_type.in_(
                    [MovementType(t).value for t in criteria.movement_types]
                )
            )
        if criteria.start is not None:
            stmt = stmt.where(StockMovement.performed_at >= criteria.start)
        if criteria.end is not None:
            stmt = stmt.where(StockMovement.performed_at < criteria.end)
        if criteria.performed_by is not None:
            stmt = stmt.where(StockMovement.performed_by == criteria.performed_by)
        if criteria.request_id is not None:
            stmt = stmt.where(StockMovement.request_id == criteria.request_id)
        return stmt

    def query(self, criteria: MovementFilter | None = None) -> list[MovementView]:
        criteria = criteria or MovementFilter()
        limit = max(1, min(criteria.limit, MAX_PAGE_SIZE))
        stmt = self._apply(select(StockMovement), criteria).order_by(
            StockMovement.performed_at.desc(),
            StockMovement.item_seq.desc(),
            StockMovement.id,
        )
        rows = self.session.execute(
            stmt.limit(limit).offset(max(0, criteria.offset))
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def count(self, criteria: MovementFilter | None = None) -> int:
        stmt = self._apply(select(func.count()).select_from(StockMovement), criteria or MovementFilter())
        return self.session.execute(stmt).scalar_one()

    def for_item(self, item_id: UUID) -> list[MovementView]:
        """Every movement of one item in ledger order (oldest first)."""
        rows = self.session.execute(
            select(StockMovement)
            .where(StockMovement.stock_record_id == item_id)
            .order_by(StockMovement.item_seq)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def for_request(self, request_id: UUID) -> list[MovementView]:
        return self.query(MovementFilter(request_id=request_id, limit=MAX_PAGE_SIZE))
