"""
Module: relief_kernel.db.immutability
Responsibility: ORM event listeners that make the audit trail append-only.

Rules:
    - StockMovement: never updated, never deleted.
    - StockRequest: never deleted. Once reviewed (approved, partial,
      rejected) its review fields are frozen; delivery tracking may still
      advance.
    - StockRequestLine: approved_quantity is frozen once the parent request
      has been reviewed.
    - StockRecord / ShelterStock: never deleted once any movement exists;
      items are soft-disabled instead.

The listeners guard the ORM path. Raw SQL issued outside the ORM (test
cleanup, migrations) is not intercepted.
"""

from sqlalchemy import event, inspect

from relief_kernel.domain.request_lifecycle import RequestStatus, TERMINAL_REQUEST_STATUSES
from relief_kernel.exceptions import ImmutabilityViolationError
from relief_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_FROZEN_REVIEW_FIELDS = ("status", "reviewed_by", "reviewed_at", "admin_notes", "shelter_id")


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _persisted_value(target, attr: str):
    """Value of ``attr`` as last loaded from the database."""
    history = inspect(target).attrs[attr].history
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return getattr(target, attr)


def _was_reviewed(request) -> bool:
    return RequestStatus(_persisted_value(request, "status")) in TERMINAL_REQUEST_STATUSES


def _check_movement_update(mapper, connection, target):
    _blocked("StockMovement", target.id, "UPDATE", "Movements are immutable once recorded")


def _check_movement_delete(mapper, connection, target):
    _blocked("StockMovement", target.id, "DELETE", "Movements can never be deleted")


def _check_request_update(mapper, connection, target):
    if not _was_reviewed(target):
        return
    state = inspect(target)
    changed = [f for f in _FROZEN_REVIEW_FIELDS if state.attrs[f].history.has_changes()]
    if changed:
        _blocked(
            "StockRequest",
            target.id,
            "UPDATE",
            f"Reviewed request fields are frozen: {', '.join(changed)}",
        )


def _check_request_delete(mapper, connection, target):
    _blocked("StockRequest", target.id, "DELETE", "Requests can never be deleted")


def _check_request_line_update(mapper, connection, target):
    if not inspect(target).attrs.approved_quantity.history.has_changes():
        return
    if target.request is not None and _was_reviewed(target.request):
        _blocked(
            "StockRequestLine",
            target.id,
            "UPDATE",
            "Approved quantities are frozen once the request is reviewed",
        )


def _check_stock_record_delete(mapper, connection, target):
    if target.movement_count:
        _blocked(
            "StockRecord",
            target.id,
            "DELETE",
            "Items with movements are deactivated, never deleted",
        )


def _check_shelter_stock_delete(mapper, connection, target):
    _blocked(
        "ShelterStock",
        target.id,
        "DELETE",
        "Shelter entries are kept at zero, never deleted",
    )


_LISTENERS: list[tuple[str, str, object]] = [
    ("StockMovement", "before_update", _check_movement_update),
    ("StockMovement", "before_delete", _check_movement_delete),
    ("StockRequest", "before_update", _check_request_update),
    ("StockRequest", "before_delete", _check_request_delete),
    ("StockRequestLine", "before_update", _check_request_line_update),
    ("StockRecord", "before_delete", _check_stock_record_delete),
    ("ShelterStock", "before_delete", _check_shelter_stock_delete),
]


def _models() -> dict[str, type]:
    from relief_kernel import models

    return {name: getattr(models, name) for name, _, _ in _LISTENERS}


def register_immutability_listeners() -> None:
    """Install the listeners. Idempotent; call once at startup."""
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)
    logger.debug("immutability_listeners_registered", extra={"count": len(_LISTENERS)})


def unregister_immutability_listeners() -> None:
    """Remove the listeners. Only for tests that need to bypass them."""
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
