"""Human-readable reference strings for movements and requests."""

from datetime import datetime
from uuid import uuid4

from relief_kernel.domain.values import MovementType

RECEIVE_PREFIX = "RCV"
DISPENSE_PREFIX = "DSP"
TRANSFER_PREFIX = "TRF"
ADJUST_PREFIX = "ADJ"
INITIAL_STOCK_PREFIX = "INIT"
REQUEST_PREFIX = "REQ"

MOVEMENT_PREFIXES: dict[MovementType, str] = {
    MovementType.RECEIVE: RECEIVE_PREFIX,
    MovementType.DISPENSE: DISPENSE_PREFIX,
    MovementType.TRANSFER: TRANSFER_PREFIX,
    MovementType.ADJUST: ADJUST_PREFIX,
}


def movement_reference(prefix: str, at: datetime) -> str:
    """``{PREFIX}-YYYYMMDD-XXXXX``. Not guaranteed unique."""
    return f"{prefix}-{at:%Y%m%d}-{uuid4().hex[:5].upper()}"


def request_number(at: datetime, sequence: int) -> str:
    """``REQ-YYYYMMDD-NNNNN`` from a monotonic per-system sequence."""
    return f"{REQUEST_PREFIX}-{at:%Y%m%d}-{sequence:05d}"
