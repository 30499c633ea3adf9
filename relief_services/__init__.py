"""
relief_services -- access boundary over the relief kernel.

Identity checks, role projections and the ``StockGateway`` facade that
turns kernel errors into typed ``OperationResult`` values.
"""

from relief_services.access import (
    Identity,
    Role,
    StockAction,
    check_stock_action,
    require_stock_action,
)
from relief_services.gateway import OperationResult, OperationStatus, StockGateway

__all__ = [
    "Identity",
    "OperationResult",
    "OperationStatus",
    "Role",
    "StockAction",
    "StockGateway",
    "check_stock_action",
    "require_stock_action",
]
