"""
Stock request lifecycle.

Two independent state machines:

* Review: ``pending`` -> ``approved`` | ``partial`` | ``rejected``. The three
  outcomes are terminal; a reviewed request can never be reviewed again.
* Delivery: ``pending`` until approval moves a granted request to
  ``in_transit``; the shelter then marks it ``delivered``. Never gates ledger
  operations.

``REQUEST_TRANSITIONS`` and ``DELIVERY_TRANSITIONS`` are the only legal edges.
"""

from collections.abc import Sequence
from enum import Enum


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PARTIAL = "partial"
    REJECTED = "rejected"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({
        RequestStatus.APPROVED,
        RequestStatus.PARTIAL,
        RequestStatus.REJECTED,
    }),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.PARTIAL: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.APPROVED,
    RequestStatus.PARTIAL,
    RequestStatus.REJECTED,
})

GRANTED_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.APPROVED,
    RequestStatus.PARTIAL,
})

DELIVERY_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset(),
    DeliveryStatus.IN_TRANSIT: frozenset({DeliveryStatus.DELIVERED}),
    DeliveryStatus.DELIVERED: frozenset(),
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in REQUEST_TRANSITIONS[current]


def can_advance_delivery(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    return target in DELIVERY_TRANSITIONS[current]


def review_outcome(approved: Sequence[int], requested: Sequence[int]) -> RequestStatus:
    """APPROVED when every line is granted in full, otherwise PARTIAL."""
    if all(a == r for a, r in zip(approved, requested, strict=True)):
        return RequestStatus.APPROVED
    return RequestStatus.PARTIAL


def approval_rate(
    status: RequestStatus,
    approved: Sequence[int],
    requested: Sequence[int],
) -> float:
    """Percentage of the requested quantity that was granted.

    Pending and rejected requests rate 0.
    """
    if status not in GRANTED_REQUEST_STATUSES:
        return 0.0
    total_requested = sum(requested)
    if total_requested == 0:
        return 0.0
    return sum(approved) / total_requested * 100
