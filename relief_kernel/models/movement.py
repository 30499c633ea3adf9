"""
Module: relief_kernel.models.movement
Responsibility: ORM persistence for the movement ledger, the append-only
    audit trail of every quantity change.

Architecture position: Kernel > Models. May import from db/ and domain/.

Invariants enforced:
    - Append-only: UPDATE and DELETE are refused by ORM listeners
      (relief_kernel.db.immutability).
    - quantity > 0: the record stores a magnitude; direction comes from the
      from/to locations.
    - Location tags: shelter endpoints carry a shelter id, others do not.
    - UNIQUE(stock_record_id, item_seq): per-item movement numbering has no
      duplicates, so each committed mutation owns exactly one slot.

Audit relevance:
    ``snapshot_before``/``snapshot_after`` are the affected side's quantity
    around the movement (the source side for transfers, the shelter for
    dispenses, the destination for receives). Transfers additionally keep
    the destination's before/after in ``counter_before``/``counter_after``.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from relief_kernel.db.base import Base, UUIDString
from relief_kernel.domain.dtos import MovementView, QuantitySnapshot
from relief_kernel.domain.values import Location, LocationKind, MovementType

_LOCATION_KINDS = "('provincial', 'shelter', 'external', 'beneficiary', 'adjustment')"


class StockMovement(Base):
    __tablename__ = "stock_movements"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
        CheckConstraint(
            "movement_type IN ('receive', 'transfer', 'dispense', 'adjust')",
            name="ck_movement_type",
        ),
        CheckConstraint(f"from_kind IN {_LOCATION_KINDS}", name="ck_movement_from_kind"),
        CheckConstraint(f"to_kind IN {_LOCATION_KINDS}", name="ck_movement_to_kind"),
        CheckConstraint(
            "(from_kind = 'shelter') = (from_shelter_id IS NOT NULL)",
            name="ck_movement_from_shelter_tag",
        ),
        CheckConstraint(
            "(to_kind = 'shelter') = (to_shelter_id IS NOT NULL)",
            name="ck_movement_to_shelter_tag",
        ),
        UniqueConstraint("stock_record_id", "item_seq", name="uq_movement_item_seq"),
        Index("idx_movement_item_performed", "stock_record_id", "performed_at"),
        Index("idx_movement_performed", "performed_at"),
        Index("idx_movement_from_shelter", "from_shelter_id"),
        Index("idx_movement_to_shelter", "to_shelter_id"),
        Index("idx_movement_request", "request_id"),
    )

    stock_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_records.id", ondelete="RESTRICT"),
        nullable=False,
    )
    item_seq: Mapped[int] = mapped_column(nullable=False)
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)

    from_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    from_shelter_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("shelters.id", ondelete="RESTRICT"), nullable=True
    )
    from_name: Mapped[str] = mapped_column(String(200), nullable=False)
    to_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    to_shelter_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("shelters.id", ondelete="RESTRICT"), nullable=True
    )
    to_name: Mapped[str] = mapped_column(String(200), nullable=False)

    performed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    performed_at: Mapped[datetime] = mapped_column(nullable=False)
    reference_id: Mapped[str] = mapped_column(String(64), nullable=False)

    snapshot_before: Mapped[int] = mapped_column(nullable=False)
    snapshot_after: Mapped[int] = mapped_column(nullable=False)
    counter_before: Mapped[int | None] = mapped_column(nullable=True)
    counter_after: Mapped[int | None] = mapped_column(nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("stock_requests.id", ondelete="RESTRICT"), nullable=True
    )

    @property
    def from_location(self) -> Location:
        return Location(LocationKind(self.from_kind), self.from_name, self.from_shelter_id)

    @property
    def to_location(self) -> Location:
        return Location(LocationKind(self.to_kind), self.to_name, self.to_shelter_id)

    def to_dto(self) -> MovementView:
        counter = None
        if self.counter_before is not None and self.counter_after is not None:
            counter = QuantitySnapshot(self.counter_before, self.counter_after)
        return MovementView(
            movement_id=self.id,
            item_id=self.stock_record_id,
            item_seq=self.item_seq,
            movement_type=MovementType(self.movement_type),
            quantity=self.quantity,
            unit=self.unit,
            from_location=self.from_location,
            to_location=self.to_location,
            performed_by=self.performed_by,
            performed_at=self.performed_at,
            reference_id=self.reference_id,
            snapshot=QuantitySnapshot(self.snapshot_before, self.snapshot_after),
            counter_snapshot=counter,
            notes=self.notes,
            request_id=self.request_id,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.movement_type} {self.quantity} "
            f"{self.from_kind}->{self.to_kind} #{self.item_seq}>"
        )
