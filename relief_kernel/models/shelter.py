"""
Module: relief_kernel.models.shelter
Responsibility: Registry of shelters that can hold stock.

Shelters are referenced by id from shelter stock entries, movements and
requests. They are never deleted; closing a shelter sets its status.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from relief_kernel.db.base import TrackedBase
from relief_kernel.domain.dtos import ShelterView


class Shelter(TrackedBase):
    __tablename__ = "shelters"

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'full')",
            name="ck_shelter_status",
        ),
        CheckConstraint(
            "capacity IS NULL OR capacity >= 0",
            name="ck_shelter_capacity",
        ),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    capacity: Mapped[int | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    def to_dto(self) -> ShelterView:
        return ShelterView(
            shelter_id=self.id,
            code=self.code,
            name=self.name,
            capacity=self.capacity,
            status=self.status,
        )
