"""Role checks and caller identity validation."""

from uuid import uuid4

import pytest

from relief_kernel.exceptions import AccessDeniedError, MalformedIdentityError
from relief_services.access import (
    STAFF_SHELTER_ACTIONS,
    Identity,
    Role,
    StockAction,
    check_stock_action,
    require_stock_action,
)

HOME = uuid4()
ELSEWHERE = uuid4()

ADMIN = Identity(uuid4(), Role.ADMIN)
STAFF = Identity(uuid4(), Role.STAFF, HOME)
VIEWER = Identity(uuid4(), Role.VIEWER)


class TestIdentity:

    def test_role_coerced_from_string(self):
        assert Identity(uuid4(), "viewer").role is Role.VIEWER

    def test_unknown_role(self):
        with pytest.raises(MalformedIdentityError):
            Identity(uuid4(), "superuser")

    def test_user_id_must_be_uuid(self):
        with pytest.raises(MalformedIdentityError):
            Identity("not-a-uuid", Role.ADMIN)

    def test_staff_requires_shelter(self):
        with pytest.raises(MalformedIdentityError):
            Identity(uuid4(), Role.STAFF)

    def test_from_claims(self):
        user_id = uuid4()
        identity = Identity.from_claims(
            {"userId": str(user_id), "role": "staff", "assignedShelterId": str(HOME)}
        )
        assert identity == Identity(user_id, Role.STAFF, HOME)
        assert identity.is_staff and not identity.is_admin

    @pytest.mark.parametrize(
        "claims",
        [
            {"role": "admin"},
            {"userId": "nope", "role": "admin"},
            {"userId": str(uuid4()), "role": "staff", "assignedShelterId": "garbage"},
            {"userId": str(uuid4())},
        ],
    )
    def test_bad_claims(self, claims):
        with pytest.raises(MalformedIdentityError):
            Identity.from_claims(claims)


class TestCheckStockAction:

    @pytest.mark.parametrize("action", list(StockAction))
    def test_admin_may_do_everything(self, action):
        assert check_stock_action(ADMIN, action, ELSEWHERE) == (True, "")

    @pytest.mark.parametrize("action", list(StockAction))
    def test_viewer_only_views(self, action):
        allowed, reason = check_stock_action(VIEWER, action)
        assert allowed is (action is StockAction.VIEW)
        assert bool(reason) is not allowed

    @pytest.mark.parametrize("action", sorted(STAFF_SHELTER_ACTIONS, key=lambda a: a.value))
    def test_staff_at_own_shelter(self, action):
        assert check_stock_action(STAFF, action, HOME) == (True, "")
        allowed, reason = check_stock_action(STAFF, action, ELSEWHERE)
        assert not allowed
        assert "assigned shelter" in reason
        assert not check_stock_action(STAFF, action)[0]

    @pytest.mark.parametrize(
        "action",
        [a for a in StockAction if a not in STAFF_SHELTER_ACTIONS and a is not StockAction.VIEW],
    )
    def test_staff_never_manages(self, action):
        allowed, reason = check_stock_action(STAFF, action, HOME)
        assert not allowed
        assert reason == f"staff role cannot {action.value}"

    def test_staff_may_view(self):
        assert check_stock_action(STAFF, StockAction.VIEW) == (True, "")


class TestRequireStockAction:

    def test_raises_with_details(self):
        with pytest.raises(AccessDeniedError) as exc_info:
            require_stock_action(VIEWER, StockAction.DISPENSE, HOME)
        assert exc_info.value.code == "FORBIDDEN"
        assert exc_info.value.details["action"] == "dispense"

    def test_allowed_is_silent(self):
        require_stock_action(STAFF, StockAction.DISPENSE, HOME)
