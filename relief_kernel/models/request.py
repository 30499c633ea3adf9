"""
Module: relief_kernel.models.request
Responsibility: ORM persistence for shelter replenishment requests.

Invariants enforced:
    - Review happens once: status values limited by CHECK; terminal review
      fields are frozen by ORM listeners (relief_kernel.db.immutability).
    - Line quantities: requested_quantity > 0 and, once set,
      0 <= approved_quantity <= requested_quantity.
    - One line per item: UNIQUE(request_id, stock_record_id).
    - ``version`` is the version_id_col, so two reviewers racing on the same
      request cannot both write.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from relief_kernel.db.base import Base, UUIDString
from relief_kernel.domain.dtos import RequestLineView, StockRequestView
from relief_kernel.domain.request_lifecycle import DeliveryStatus, RequestStatus


class StockRequest(Base):
    __tablename__ = "stock_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'partial', 'rejected')",
            name="ck_request_status",
        ),
        CheckConstraint(
            "delivery_status IN ('pending', 'in_transit', 'delivered')",
            name="ck_request_delivery_status",
        ),
        Index("idx_request_shelter_status", "shelter_id", "status"),
        Index("idx_request_requested_at", "requested_at"),
    )

    request_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    shelter_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shelters.id", ondelete="RESTRICT"), nullable=False
    )
    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    reviewed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    delivery_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    lines: Mapped[list[StockRequestLine]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="StockRequestLine.line_no",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self) -> StockRequestView:
        return StockRequestView(
            request_id=self.id,
            request_number=self.request_number,
            shelter_id=self.shelter_id,
            requested_by=self.requested_by,
            requested_at=self.requested_at,
            status=RequestStatus(self.status),
            items=tuple(line.to_dto() for line in self.lines),
            delivery_status=DeliveryStatus(self.delivery_status),
            reviewed_by=self.reviewed_by,
            reviewed_at=self.reviewed_at,
            admin_notes=self.admin_notes,
            delivered_at=self.delivered_at,
            notes=self.notes,
        )


class StockRequestLine(Base):
    __tablename__ = "stock_request_lines"

    __table_args__ = (
        UniqueConstraint("request_id", "stock_record_id", name="uq_request_line_item"),
        UniqueConstraint("request_id", "line_no", name="uq_request_line_no"),
        CheckConstraint("requested_quantity > 0", name="ck_request_line_requested_positive"),
        CheckConstraint(
            "approved_quantity IS NULL OR "
            "(approved_quantity >= 0 AND approved_quantity <= requested_quantity)",
            name="ck_request_line_approved_range",
        ),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stock_requests.id", ondelete="CASCADE"), nullable=False
    )
    line_no: Mapped[int] = mapped_column(nullable=False)
    stock_record_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stock_records.id", ondelete="RESTRICT"), nullable=False
    )
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    requested_quantity: Mapped[int] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    approved_quantity: Mapped[int | None] = mapped_column(nullable=True)

    request: Mapped[StockRequest] = relationship(back_populates="lines")

    def to_dto(self) -> RequestLineView:
        return RequestLineView(
            item_id=self.stock_record_id,
            item_name=self.item_name,
            requested_quantity=self.requested_quantity,
            unit=self.unit,
            reason=self.reason,
            approved_quantity=self.approved_quantity,
        )
