"""
Stock status derivation.

Pure functions of quantities and thresholds. Status is never stored; it is
recomputed every time a record is read, so it cannot drift from the numbers
it summarizes.
"""

from relief_kernel.domain.values import StockStatus
from relief_kernel.exceptions import InvalidThresholdsError

DEFAULT_MIN_STOCK_LEVEL = 10
DEFAULT_CRITICAL_LEVEL = 5


def derive_status(quantity: int, min_stock_level: int, critical_level: int) -> StockStatus:
    """Classify a quantity against an item's thresholds.

    outOfStock at zero, critical at or below critical_level, low at or below
    min_stock_level, otherwise sufficient.
    """
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= critical_level:
        return StockStatus.CRITICAL
    if quantity <= min_stock_level:
        return StockStatus.LOW
    return StockStatus.SUFFICIENT


def needs_restock_alert(quantity_after: int, min_stock_level: int) -> bool:
    """True when a shelter quantity has fallen to or below the minimum level."""
    return quantity_after <= min_stock_level


def validate_thresholds(min_stock_level: int, critical_level: int) -> None:
    """Raise InvalidThresholdsError unless 0 < critical_level < min_stock_level."""
    if (
        isinstance(min_stock_level, bool)
        or isinstance(critical_level, bool)
        or not isinstance(min_stock_level, int)
        or not isinstance(critical_level, int)
        or critical_level <= 0
        or min_stock_level <= 0
        or critical_level >= min_stock_level
    ):
        raise InvalidThresholdsError(min_stock_level, critical_level)
