"""
Module: relief_kernel.models.stock
Responsibility: ORM persistence for per-item stock records and their
    per-shelter holdings.

Architecture position: Kernel > Models. May import from db/ and domain/.

Invariants enforced:
    - Non-negativity: CHECK constraints on every quantity column.
    - One entry per (item, shelter): UNIQUE(stock_record_id, shelter_id);
      the ORM exposes the entries as a dict keyed by shelter id.
    - Conservation: total_quantity is only ever written by
      recalculate_total(), called by StockRecordStore.update before flush.
    - Serialized writes: ``version`` is SQLAlchemy's version_id_col, so an
      UPDATE against a stale version raises StaleDataError.

Failure modes:
    - IntegrityError if a CHECK or UNIQUE constraint is violated (a service
      bug; validation happens before mutation).
    - StaleDataError on a concurrent update that slipped past the row lock.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, attribute_keyed_dict, mapped_column, relationship

from relief_kernel.db.base import Base, TrackedBase, UUIDString
from relief_kernel.domain.dtos import ShelterStockLine, StockRecordView
from relief_kernel.domain.values import StockCategory, StockSide


class StockRecord(TrackedBase):
    """One row per distinct relief item."""

    __tablename__ = "stock_records"

    __table_args__ = (
        CheckConstraint("provincial_quantity >= 0", name="ck_stock_provincial_non_negative"),
        CheckConstraint("total_quantity >= 0", name="ck_stock_total_non_negative"),
        CheckConstraint("total_received >= 0", name="ck_stock_received_non_negative"),
        CheckConstraint("total_dispensed >= 0", name="ck_stock_dispensed_non_negative"),
        CheckConstraint(
            "critical_level > 0 AND critical_level < min_stock_level",
            name="ck_stock_thresholds",
        ),
        CheckConstraint(
            "category IN ('food', 'medicine', 'clothing', 'other')",
            name="ck_stock_category",
        ),
        Index("idx_stock_category", "category"),
    )

    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Lower-cased name; enforces case-insensitive uniqueness
    name_key: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)

    provincial_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    total_quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    total_received: Mapped[int] = mapped_column(nullable=False, default=0)
    total_dispensed: Mapped[int] = mapped_column(nullable=False, default=0)

    min_stock_level: Mapped[int] = mapped_column(nullable=False)
    critical_level: Mapped[int] = mapped_column(nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_movement_at: Mapped[datetime | None] = mapped_column(nullable=True)
    # Number of movements written for this item; the next movement's item_seq
    movement_count: Mapped[int] = mapped_column(nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    shelter_stocks: Mapped[dict[UUID, ShelterStock]] = relationship(
        collection_class=attribute_keyed_dict("shelter_id"),
        back_populates="stock_record",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def quantity_at(self, side: StockSide) -> int:
        if side.is_provincial:
            return self.provincial_quantity
        entry = self.shelter_stocks.get(side.shelter_id)
        return entry.quantity if entry is not None else 0

    def has_entry(self, side: StockSide) -> bool:
        return side.is_provincial or side.shelter_id in self.shelter_stocks

    def set_quantity(self, side: StockSide, quantity: int, at: datetime) -> None:
        """Write one side's quantity, creating the shelter entry on first use."""
        if side.is_provincial:
            self.provincial_quantity = quantity
            return
        entry = self.shelter_stocks.get(side.shelter_id)
        if entry is None:
            self.shelter_stocks[side.shelter_id] = ShelterStock(
                shelter_id=side.shelter_id,
                quantity=quantity,
                last_updated=at,
            )
        else:
            entry.quantity = quantity
            entry.last_updated = at

    def recalculate_total(self) -> int:
        self.total_quantity = self.provincial_quantity + sum(
            entry.quantity for entry in self.shelter_stocks.values()
        )
        return self.total_quantity

    def to_dto(self) -> StockRecordView:
        return StockRecordView(
            item_id=self.id,
            item_name=self.item_name,
            category=StockCategory(self.category),
            unit=self.unit,
            provincial_quantity=self.provincial_quantity,
            shelter_stocks=tuple(
                ShelterStockLine(e.shelter_id, e.quantity, e.last_updated)
                for e in sorted(self.shelter_stocks.values(), key=lambda e: str(e.shelter_id))
            ),
            total_quantity=self.total_quantity,
            total_received=self.total_received,
            total_dispensed=self.total_dispensed,
            min_stock_level=self.min_stock_level,
            critical_level=self.critical_level,
            is_active=self.is_active,
            last_movement_at=self.last_movement_at,
            movement_count=self.movement_count,
            version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"<StockRecord {self.item_name} provincial={self.provincial_quantity} "
            f"total={self.total_quantity} v{self.version}>"
        )


class ShelterStock(Base):
    """Quantity of one item held at one shelter."""

    __tablename__ = "shelter_stocks"

    __table_args__ = (
        UniqueConstraint("stock_record_id", "shelter_id", name="uq_shelter_stock_item_shelter"),
        CheckConstraint("quantity >= 0", name="ck_shelter_stock_non_negative"),
        Index("idx_shelter_stock_shelter", "shelter_id"),
    )

    stock_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_records.id", ondelete="RESTRICT"),
        nullable=False,
    )
    shelter_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("shelters.id", ondelete="RESTRICT"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(nullable=False)

    stock_record: Mapped[StockRecord] = relationship(back_populates="shelter_stocks")
