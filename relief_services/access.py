"""
relief_services.access -- Role checks at the stock operation boundary.

Responsibility:
    Decide whether a caller identity may perform a stock action, optionally
    scoped to a shelter.  The kernel stays actor-agnostic: it records
    ``performed_by`` ids but never consults roles.

Rules:
    - admin: every action, any shelter.
    - staff: receive, dispense, create requests and mark deliveries for the
      assigned shelter only.  Never transfer, adjust, review requests or
      manage items and shelters; stock reaches a shelter from the provincial
      warehouse through the request workflow.
    - viewer: read only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from relief_kernel.exceptions import AccessDeniedError, MalformedIdentityError


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    VIEWER = "viewer"


class StockAction(str, Enum):
    RECEIVE = "receive"
    DISPENSE = "dispense"
    TRANSFER = "transfer"
    ADJUST = "adjust"
    MANAGE_ITEMS = "manage_items"
    CREATE_REQUEST = "create_request"
    APPROVE_REQUEST = "approve_request"
    REJECT_REQUEST = "reject_request"
    MARK_DELIVERED = "mark_delivered"
    MANAGE_SHELTERS = "manage_shelters"
    VIEW = "view"


# Actions staff may perform, each limited to their assigned shelter.
STAFF_SHELTER_ACTIONS: frozenset[StockAction] = frozenset({
    StockAction.RECEIVE,
    StockAction.DISPENSE,
    StockAction.CREATE_REQUEST,
    StockAction.MARK_DELIVERED,
})


@dataclass(frozen=True)
class Identity:
    """Caller identity supplied by the presentation layer."""

    user_id: UUID
    role: Role
    assigned_shelter_id: UUID | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.user_id, UUID):
            raise MalformedIdentityError("user_id must be a UUID")
        try:
            role = Role(self.role)
        except ValueError:
            raise MalformedIdentityError(f"unknown role {self.role!r}") from None
        object.__setattr__(self, "role", role)
        if self.assigned_shelter_id is not None and not isinstance(self.assigned_shelter_id, UUID):
            raise MalformedIdentityError("assigned_shelter_id must be a UUID")
        if role is Role.STAFF and self.assigned_shelter_id is None:
            raise MalformedIdentityError("staff identity requires an assigned shelter")

    @classmethod
    def from_claims(cls, claims: dict) -> Identity:
        """Build an identity from a ``{userId, role, assignedShelterId?}`` mapping."""
        try:
            user_id = UUID(str(claims["userId"]))
            shelter_raw = claims.get("assignedShelterId")
            shelter_id = UUID(str(shelter_raw)) if shelter_raw else None
        except (KeyError, ValueError, TypeError) as exc:
            raise MalformedIdentityError(f"invalid claims: {exc}") from None
        return cls(user_id=user_id, role=claims.get("role"), assigned_shelter_id=shelter_id)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role is Role.STAFF


def check_stock_action(
    identity: Identity,
    action: StockAction,
    shelter_id: UUID | None = None,
) -> tuple[bool, str]:
    """Check whether ``identity`` may perform ``action`` at ``shelter_id``.

    Args:
        identity: Validated caller identity.
        action: The stock action being attempted.
        shelter_id: Shelter the action touches; None for provincial or
            shelter-independent actions.

    Returns:
        (allowed, reason). reason is empty when allowed.
    """
    if identity.role is Role.ADMIN:
        return (True, "")

    if action is StockAction.VIEW:
        return (True, "")

    if identity.role is Role.VIEWER:
        return (False, f"viewer role cannot {action.value}")

    if action not in STAFF_SHELTER_ACTIONS:
        return (False, f"staff role cannot {action.value}")
    if shelter_id is None:
        return (False, f"staff may only {action.value} at their assigned shelter")
    if shelter_id != identity.assigned_shelter_id:
        return (False, f"staff may only {action.value} at their assigned shelter")
    return (True, "")


def require_stock_action(
    identity: Identity,
    action: StockAction,
    shelter_id: UUID | None = None,
) -> None:
    """Raise ``AccessDeniedError`` unless ``check_stock_action`` allows the action."""
    allowed, reason = check_stock_action(identity, action, shelter_id)
    if not allowed:
        raise AccessDeniedError(str(identity.user_id), action.value, reason)
