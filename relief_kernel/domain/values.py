"""
Value objects and enumerations for the stock ledger.

Architecture position: Kernel > Domain. Pure values, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from relief_kernel.exceptions import InvalidFieldError, InvalidLocationError


class StockCategory(str, Enum):
    FOOD = "food"
    MEDICINE = "medicine"
    CLOTHING = "clothing"
    OTHER = "other"

    @classmethod
    def parse(cls, value: StockCategory | str) -> StockCategory:
        try:
            return cls(value)
        except ValueError:
            raise InvalidFieldError(
                "category", f"must be one of {[c.value for c in cls]}"
            ) from None


class StockStatus(str, Enum):
    """Derived stock status, ordered from most to least urgent."""

    OUT_OF_STOCK = "outOfStock"
    CRITICAL = "critical"
    LOW = "low"
    SUFFICIENT = "sufficient"

    @property
    def urgency(self) -> int:
        return _STATUS_URGENCY[self]


_STATUS_URGENCY = {
    StockStatus.OUT_OF_STOCK: 0,
    StockStatus.CRITICAL: 1,
    StockStatus.LOW: 2,
    StockStatus.SUFFICIENT: 3,
}


class MovementType(str, Enum):
    RECEIVE = "receive"
    TRANSFER = "transfer"
    DISPENSE = "dispense"
    ADJUST = "adjust"


class LocationKind(str, Enum):
    PROVINCIAL = "provincial"
    SHELTER = "shelter"
    EXTERNAL = "external"
    BENEFICIARY = "beneficiary"
    ADJUSTMENT = "adjustment"


class ShelterStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    FULL = "full"


PROVINCIAL_DISPLAY_NAME = "Provincial Warehouse"


@dataclass(frozen=True)
class StockSide:
    """
    One of the two places an item can be held: the provincial pool or a
    shelter. ``shelter_id is None`` means provincial.
    """

    shelter_id: UUID | None = None

    @classmethod
    def provincial(cls) -> StockSide:
        return cls(None)

    @classmethod
    def shelter(cls, shelter_id: UUID) -> StockSide:
        return cls(shelter_id)

    @property
    def is_provincial(self) -> bool:
        return self.shelter_id is None

    def __str__(self) -> str:
        return "provincial" if self.shelter_id is None else f"shelter:{self.shelter_id}"


@dataclass(frozen=True)
class Location:
    """
    Tagged movement endpoint.

    Shelter locations carry a shelter id; every other kind must not.
    """

    kind: LocationKind
    display_name: str
    shelter_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.kind == LocationKind.SHELTER and self.shelter_id is None:
            raise InvalidLocationError(self.kind.value, "shelter location needs a shelter id")
        if self.kind != LocationKind.SHELTER and self.shelter_id is not None:
            raise InvalidLocationError(self.kind.value, "only shelter locations carry a shelter id")
        if not self.display_name or not self.display_name.strip():
            raise InvalidLocationError(self.kind.value, "display name is required")

    @classmethod
    def provincial(cls) -> Location:
        return cls(LocationKind.PROVINCIAL, PROVINCIAL_DISPLAY_NAME)

    @classmethod
    def shelter(cls, shelter_id: UUID, display_name: str) -> Location:
        return cls(LocationKind.SHELTER, display_name, shelter_id)

    @classmethod
    def external(cls, label: str) -> Location:
        return cls(LocationKind.EXTERNAL, label)

    @classmethod
    def beneficiary(cls, label: str) -> Location:
        return cls(LocationKind.BENEFICIARY, label)

    @classmethod
    def adjustment(cls, label: str = "Stock adjustment") -> Location:
        return cls(LocationKind.ADJUSTMENT, label)

    def touches(self, shelter_id: UUID) -> bool:
        return self.kind == LocationKind.SHELTER and self.shelter_id == shelter_id
