"""
Typed exception hierarchy for the relief kernel.

Every error carries a machine-readable ``code`` class attribute and its
context as structured attributes. The human-readable message is rendered
from ``relief_kernel.messages`` so the presentation layer can swap in
localized text keyed by the same code.

Hierarchy::

    ReliefKernelError
    |
    +-- NotFoundError
    |   +-- StockItemNotFoundError
    |   +-- ShelterNotFoundError
    |   +-- ShelterStockNotFoundError
    |   +-- StockRequestNotFoundError
    |
    +-- InvalidInputError
    |   +-- NonPositiveQuantityError
    |   +-- NegativeQuantityError
    |   +-- SameSideTransferError
    |   +-- InvalidThresholdsError
    |   +-- InvalidFieldError
    |   +-- DuplicateStockItemError
    |   +-- DuplicateShelterCodeError
    |   +-- InactiveStockItemError
    |   +-- InvalidLocationError
    |   +-- MalformedIdentityError
    |   +-- EmptyRequestError
    |   +-- DuplicateRequestLineError
    |   +-- UnknownRequestLineError
    |   +-- ApprovedQuantityOutOfRangeError
    |   +-- NothingApprovedError
    |
    +-- InsufficientStockError
    |
    +-- AlreadyProcessedError
    |   +-- RequestAlreadyReviewedError
    |   +-- InvalidDeliveryTransitionError
    |
    +-- ConflictError
    |   +-- ConcurrentUpdateError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AccessDeniedError

Handling pattern at the access boundary::

    try:
        result = ledger.dispense(...)
    except InsufficientStockError as e:
        respond(code=e.code, available=e.available, requested=e.requested)
    except ReliefKernelError as e:
        respond(code=e.code, **e.details)

All validation errors are raised before any row is modified.
"""

from typing import Any

from relief_kernel.messages import render_message


class ReliefKernelError(Exception):
    """
    Base exception for all relief kernel errors.

    Subclasses set ``code`` and assign their structured attributes before
    calling ``super().__init__()`` so the default message can be rendered.
    """

    code: str = "RELIEF_KERNEL_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or render_message(self.code, self.details))

    @property
    def details(self) -> dict[str, Any]:
        """Structured context attributes, suitable for logs and API payloads."""
        return {k: v for k, v in vars(self).items() if not k.startswith("_")}


# Not found


class NotFoundError(ReliefKernelError):
    """Base exception for absent items, shelters, entries and requests."""

    code: str = "NOT_FOUND"


class StockItemNotFoundError(NotFoundError):
    code: str = "STOCK_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__()


class ShelterNotFoundError(NotFoundError):
    code: str = "SHELTER_NOT_FOUND"

    def __init__(self, shelter_id: str):
        self.shelter_id = shelter_id
        super().__init__()


class ShelterStockNotFoundError(NotFoundError):
    """The shelter has never held the item (no entry in the record)."""

    code: str = "SHELTER_STOCK_NOT_FOUND"

    def __init__(self, item_id: str, shelter_id: str):
        self.item_id = item_id
        self.shelter_id = shelter_id
        super().__init__()


class StockRequestNotFoundError(NotFoundError):
    code: str = "STOCK_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__()


# Invalid input


class InvalidInputError(ReliefKernelError):
    """Base exception for malformed arguments."""

    code: str = "INVALID_INPUT"


class NonPositiveQuantityError(InvalidInputError):
    code: str = "NON_POSITIVE_QUANTITY"

    def __init__(self, quantity: Any):
        self.quantity = quantity
        super().__init__()


class NegativeQuantityError(InvalidInputError):
    code: str = "NEGATIVE_QUANTITY"

    def __init__(self, quantity: Any):
        self.quantity = quantity
        super().__init__()


class SameSideTransferError(InvalidInputError):
    code: str = "SAME_SIDE_TRANSFER"

    def __init__(self, side: str):
        self.side = side
        super().__init__()


class InvalidThresholdsError(InvalidInputError):
    code: str = "INVALID_THRESHOLDS"

    def __init__(self, min_stock_level: int, critical_level: int):
        self.min_stock_level = min_stock_level
        self.critical_level = critical_level
        super().__init__()


class InvalidFieldError(InvalidInputError):
    code: str = "INVALID_FIELD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__()


class DuplicateStockItemError(InvalidInputError):
    code: str = "DUPLICATE_STOCK_ITEM"

    def __init__(self, item_name: str):
        self.item_name = item_name
        super().__init__()


class DuplicateShelterCodeError(InvalidInputError):
    code: str = "DUPLICATE_SHELTER_CODE"

    def __init__(self, shelter_code: str):
        self.shelter_code = shelter_code
        super().__init__()


class InactiveStockItemError(InvalidInputError):
    """Receive and new requests are refused for disabled items."""

    code: str = "STOCK_ITEM_INACTIVE"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__()


class InvalidLocationError(InvalidInputError):
    code: str = "INVALID_LOCATION"

    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__()


class MalformedIdentityError(InvalidInputError):
    code: str = "MALFORMED_IDENTITY"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__()


class EmptyRequestError(InvalidInputError):
    code: str = "EMPTY_REQUEST"


class DuplicateRequestLineError(InvalidInputError):
    code: str = "DUPLICATE_REQUEST_LINE"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__()


class UnknownRequestLineError(InvalidInputError):
    code: str = "UNKNOWN_REQUEST_LINE"

    def __init__(self, request_id: str, item_id: str):
        self.request_id = request_id
        self.item_id = item_id
        super().__init__()


class ApprovedQuantityOutOfRangeError(InvalidInputError):
    code: str = "APPROVED_QUANTITY_OUT_OF_RANGE"

    def __init__(self, item_id: str, approved_quantity: int, requested_quantity: int):
        self.item_id = item_id
        self.approved_quantity = approved_quantity
        self.requested_quantity = requested_quantity
        super().__init__()


class NothingApprovedError(InvalidInputError):
    code: str = "NOTHING_APPROVED"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__()


# Stock


class InsufficientStockError(ReliefKernelError):
    """
    The source side holds less than the requested quantity.

    ``available`` is always populated so callers can show
    "requested X, only Y available".
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        side: str,
        requested: int,
        available: int,
        item_name: str | None = None,
    ):
        self.item_id = item_id
        self.item_name = item_name or item_id
        self.side = side
        self.requested = requested
        self.available = available
        super().__init__()


# Workflow


class AlreadyProcessedError(ReliefKernelError):
    """Base exception for request state machine violations."""

    code: str = "ALREADY_PROCESSED"


class RequestAlreadyReviewedError(AlreadyProcessedError):
    code: str = "REQUEST_ALREADY_REVIEWED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__()


class InvalidDeliveryTransitionError(AlreadyProcessedError):
    code: str = "INVALID_DELIVERY_TRANSITION"

    def __init__(self, request_id: str, current_status: str, target_status: str):
        self.request_id = request_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__()


# Concurrency


class ConflictError(ReliefKernelError):
    """Base exception for concurrent modification that could not be resolved."""

    code: str = "CONFLICT"


class ConcurrentUpdateError(ConflictError):
    """Compare-and-swap retries were exhausted."""

    code: str = "CONCURRENT_UPDATE"

    def __init__(self, entity_type: str, entity_id: str, attempts: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.attempts = attempts
        super().__init__()


# Immutability


class ImmutabilityError(ReliefKernelError):
    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Movements are immutable once written. Reviewed requests keep their
    review outcome; only delivery tracking may change.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__()


# Access


class AccessDeniedError(ReliefKernelError):
    """The caller's role or shelter assignment does not permit the action."""

    code: str = "FORBIDDEN"

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__()
