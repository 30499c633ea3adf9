"""
User-facing message catalog keyed by error code.

Every ReliefKernelError subclass declares a ``code``. The presentation layer
may look the code up in its own translation tables; the templates here are
the default English rendering and use the exception's structured attributes
as format fields.
"""

from collections.abc import Mapping
from typing import Any

MESSAGES: Mapping[str, str] = {
    # Generic categories
    "RELIEF_KERNEL_ERROR": "The operation could not be completed",
    "NOT_FOUND": "The requested record was not found",
    "INVALID_INPUT": "The submitted data is invalid",
    "ALREADY_PROCESSED": "This record has already been processed",
    "CONFLICT": "The record was changed by someone else, please retry",
    "IMMUTABILITY_ERROR": "This record can no longer be changed",
    "STORAGE_ERROR": "The stock database is temporarily unavailable",
    # Not found
    "STOCK_ITEM_NOT_FOUND": "Stock item {item_id} was not found",
    "SHELTER_NOT_FOUND": "Shelter {shelter_id} was not found",
    "SHELTER_STOCK_NOT_FOUND": (
        "Shelter {shelter_id} holds no stock of item {item_id}"
    ),
    "STOCK_REQUEST_NOT_FOUND": "Stock request {request_id} was not found",
    # Invalid input
    "NON_POSITIVE_QUANTITY": "Quantity must be greater than zero (got {quantity})",
    "NEGATIVE_QUANTITY": "Quantity cannot be negative (got {quantity})",
    "SAME_SIDE_TRANSFER": "Source and destination are the same ({side})",
    "INVALID_THRESHOLDS": (
        "Critical level ({critical_level}) must be positive and below "
        "the minimum stock level ({min_stock_level})"
    ),
    "INVALID_FIELD": "Invalid value for {field}: {reason}",
    "DUPLICATE_STOCK_ITEM": "A stock item named '{item_name}' already exists",
    "DUPLICATE_SHELTER_CODE": "A shelter with code '{shelter_code}' already exists",
    "STOCK_ITEM_INACTIVE": "Stock item {item_id} is disabled",
    "INVALID_LOCATION": "Invalid {kind} location: {reason}",
    "MALFORMED_IDENTITY": "Caller identity is malformed: {reason}",
    "EMPTY_REQUEST": "A stock request needs at least one item",
    "DUPLICATE_REQUEST_LINE": "Item {item_id} appears more than once in the request",
    "UNKNOWN_REQUEST_LINE": "Item {item_id} is not part of request {request_id}",
    "APPROVED_QUANTITY_OUT_OF_RANGE": (
        "Approved quantity {approved_quantity} for item {item_id} must be "
        "between 0 and {requested_quantity}"
    ),
    "NOTHING_APPROVED": (
        "Request {request_id} approves no quantity; reject it instead"
    ),
    # Stock
    "INSUFFICIENT_STOCK": (
        "Insufficient stock of {item_name} at {side}: "
        "requested {requested}, only {available} available"
    ),
    # Workflow
    "REQUEST_ALREADY_REVIEWED": (
        "Request {request_id} has already been {status}"
    ),
    "INVALID_DELIVERY_TRANSITION": (
        "Request {request_id} cannot move from {current_status} to {target_status}"
    ),
    # Concurrency / immutability / access
    "CONCURRENT_UPDATE": (
        "{entity_type} {entity_id} kept changing; gave up after {attempts} attempts"
    ),
    "IMMUTABILITY_VIOLATION": "{entity_type} {entity_id} is immutable: {reason}",
    "FORBIDDEN": "Action '{action}' is not allowed: {reason}",
}


def render_message(code: str, fields: Mapping[str, Any] | None = None) -> str:
    """Render the default message for ``code``.

    Unknown codes fall back to the generic kernel message. Missing format
    fields leave the template unformatted rather than raising.
    """
    template = MESSAGES.get(code, MESSAGES["RELIEF_KERNEL_ERROR"])
    try:
        return template.format(**(fields or {}))
    except (KeyError, IndexError):
        return template
