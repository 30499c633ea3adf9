"""ORM models. Importing this package registers every table on Base.metadata."""

from relief_kernel.models.movement import StockMovement
from relief_kernel.models.request import StockRequest, StockRequestLine
from relief_kernel.models.sequence import SequenceCounter
from relief_kernel.models.shelter import Shelter
from relief_kernel.models.stock import ShelterStock, StockRecord

__all__ = [
    "SequenceCounter",
    "Shelter",
    "ShelterStock",
    "StockMovement",
    "StockRecord",
    "StockRequest",
    "StockRequestLine",
]
