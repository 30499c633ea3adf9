"""Error codes, structured details and the message catalog."""

import inspect

import pytest

import relief_kernel.exceptions as exc_module
from relief_kernel.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    NonPositiveQuantityError,
    ReliefKernelError,
    RequestAlreadyReviewedError,
)
from relief_kernel.messages import MESSAGES, render_message


def _error_classes():
    return [
        cls
        for _, cls in inspect.getmembers(exc_module, inspect.isclass)
        if issubclass(cls, ReliefKernelError)
    ]


class TestErrorCodes:

    @pytest.mark.parametrize("cls", _error_classes(), ids=lambda c: c.__name__)
    def test_every_code_has_a_message(self, cls):
        assert cls.code in MESSAGES

    def test_codes_are_unique_per_leaf(self):
        codes = [cls.code for cls in _error_classes()]
        assert len(codes) == len(set(codes))


class TestInsufficientStock:

    def test_carries_available_and_requested(self):
        err = InsufficientStockError(
            item_id="i-1", side="Shelter A", requested=100, available=15, item_name="Water"
        )
        assert err.available == 15
        assert err.requested == 100
        assert "requested 100, only 15 available" in str(err)

    def test_is_not_invalid_input(self):
        err = InsufficientStockError(item_id="i-1", side="x", requested=2, available=1)
        assert not isinstance(err, InvalidInputError)


class TestDetails:

    def test_details_are_structured_attributes(self):
        err = RequestAlreadyReviewedError("r-1", "approved")
        assert err.details == {"request_id": "r-1", "status": "approved"}
        assert err.code == "REQUEST_ALREADY_REVIEWED"

    def test_message_rendered_from_catalog(self):
        err = NonPositiveQuantityError(0)
        assert str(err) == "Quantity must be greater than zero (got 0)"


class TestRenderMessage:

    def test_unknown_code_falls_back(self):
        assert render_message("NO_SUCH_CODE") == MESSAGES["RELIEF_KERNEL_ERROR"]

    def test_missing_fields_leave_template(self):
        assert render_message("STOCK_ITEM_NOT_FOUND", {}) == MESSAGES["STOCK_ITEM_NOT_FOUND"]
