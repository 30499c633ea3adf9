"""
StockGateway: authorization, typed results and transaction handling.

Gateway sessions come from ``bound_session_factory`` so every commit stays
inside the test's outer transaction.
"""

from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from relief_kernel.domain.dtos import RequestItemSpec
from relief_kernel.domain.request_lifecycle import DeliveryStatus, RequestStatus
from relief_kernel.exceptions import StockItemNotFoundError
from relief_kernel.selectors.movement_selector import MovementFilter
from relief_services import Identity, OperationResult, OperationStatus, Role, StockGateway
from relief_services.projection import PublicStockView, ShelterStockView


@pytest.fixture
def gateway(bound_session_factory, clock):
    return StockGateway(bound_session_factory, clock)


@pytest.fixture
def admin():
    return Identity(uuid4(), Role.ADMIN)


@pytest.fixture
def viewer():
    return Identity(uuid4(), Role.VIEWER)


@pytest.fixture
def north(gateway, admin):
    return gateway.register_shelter(admin, "NORTH", "North Gym", capacity=120).value


@pytest.fixture
def south(gateway, admin):
    return gateway.register_shelter(admin, "SOUTH", "South Hall").value


@pytest.fixture
def staff(north):
    return Identity(uuid4(), Role.STAFF, north.shelter_id)


@pytest.fixture
def water(gateway, admin, north):
    item = gateway.initialize_item(admin, "Water", "food", "bottles", initial_quantity=100).value
    gateway.transfer(admin, item.record.item_id, 30, to_shelter_id=north.shelter_id)
    return item.record


class TestResults:

    def test_success(self, gateway, admin, water, north, stock_selector):
        result = gateway.dispense(admin, water.item_id, north.shelter_id, 10, "Families")
        assert result.is_success
        assert result.status is OperationStatus.OK
        assert result.value.record.shelter_quantities[north.shelter_id] == 20
        assert stock_selector.get(water.item_id).total_quantity == 90

    def test_not_found(self, gateway, admin, north):
        result = gateway.dispense(admin, uuid4(), north.shelter_id, 1, "Families")
        assert result.status is OperationStatus.NOT_FOUND
        assert result.error_code == "STOCK_ITEM_NOT_FOUND"
        assert not result.is_success

    def test_invalid_input(self, gateway, admin, water):
        result = gateway.receive(admin, water.item_id, 0, "Donor")
        assert result.status is OperationStatus.INVALID_INPUT
        assert result.error_code == "NON_POSITIVE_QUANTITY"

    def test_insufficient_stock_reports_available(self, gateway, admin, water, north, stock_selector):
        result = gateway.dispense(admin, water.item_id, north.shelter_id, 31, "Families")
        assert result.status is OperationStatus.INSUFFICIENT_STOCK
        assert result.details["requested"] == 31
        assert result.details["available"] == 30
        assert "30" in result.message
        assert stock_selector.get(water.item_id).shelter_quantities[north.shelter_id] == 30

    def test_forbidden(self, gateway, viewer, water, north, stock_selector):
        result = gateway.dispense(viewer, water.item_id, north.shelter_id, 1, "Families")
        assert result.status is OperationStatus.FORBIDDEN
        assert result.details["action"] == "dispense"
        assert stock_selector.get(water.item_id).total_quantity == 100

    def test_already_processed(self, gateway, admin, staff, water, north):
        created = gateway.create_request(staff, north.shelter_id, [RequestItemSpec(water.item_id, 5)])
        request_id = created.value.request.request_id
        assert gateway.reject_request(admin, request_id).is_success
        result = gateway.approve_request(admin, request_id)
        assert result.status is OperationStatus.ALREADY_PROCESSED
        assert result.error_code == "REQUEST_ALREADY_REVIEWED"

    def test_storage_error(self, admin, clock, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'ledger.db'}")
        result = StockGateway(sessionmaker(bind=engine), clock).overview(admin)
        assert result.status is OperationStatus.STORAGE_ERROR
        assert result.error_code == "STORAGE_ERROR"
        assert result.message
        engine.dispose()

    def test_details_are_json_friendly(self):
        result = OperationResult.from_error(StockItemNotFoundError(str(uuid4())))
        assert isinstance(result.details["item_id"], str)

    def test_rejected_operation_logged(self, gateway, viewer, water, north, captured_logs):
        gateway.dispense(viewer, water.item_id, north.shelter_id, 1, "Families")
        rejected = [r for r in captured_logs() if r["message"] == "operation_rejected"]
        assert rejected
        assert rejected[-1]["operation"] == "dispense"
        assert rejected[-1]["error_code"] == "FORBIDDEN"
        assert rejected[-1]["correlation_id"]


class TestStaffScope:

    def test_staff_dispense_own_shelter(self, gateway, staff, water, north):
        assert gateway.dispense(staff, water.item_id, north.shelter_id, 5, "Families").is_success

    def test_staff_cannot_touch_other_shelter(self, gateway, admin, staff, water, south):
        gateway.transfer(admin, water.item_id, 10, to_shelter_id=south.shelter_id)
        result = gateway.dispense(staff, water.item_id, south.shelter_id, 5, "Families")
        assert result.status is OperationStatus.FORBIDDEN

    def test_staff_cannot_transfer_or_adjust(self, gateway, staff, water, north):
        assert gateway.transfer(staff, water.item_id, 1, to_shelter_id=north.shelter_id).status is (
            OperationStatus.FORBIDDEN
        )
        assert gateway.adjust(staff, water.item_id, 50, shelter_id=north.shelter_id).status is (
            OperationStatus.FORBIDDEN
        )

    def test_staff_receive_into_own_shelter(self, gateway, staff, water, north):
        result = gateway.receive(staff, water.item_id, 12, "Church donation", shelter_id=north.shelter_id)
        assert result.is_success
        assert result.value.record.shelter_quantities[north.shelter_id] == 42

    def test_staff_cannot_receive_provincially(self, gateway, staff, water):
        assert gateway.receive(staff, water.item_id, 12, "Donor").status is OperationStatus.FORBIDDEN

    def test_staff_stock_view(self, gateway, staff, water):
        view = gateway.get_stock(staff, water.item_id).value
        assert isinstance(view, ShelterStockView)
        assert view.shelter_quantity == 30

    def test_anonymous_stock_view(self, gateway, water):
        view = gateway.get_stock(None, water.item_id).value
        assert isinstance(view, PublicStockView)

    def test_movements_narrowed(self, gateway, admin, staff, water, south):
        gateway.transfer(admin, water.item_id, 10, to_shelter_id=south.shelter_id)
        movements = gateway.list_movements(staff, MovementFilter(shelter_id=south.shelter_id)).value
        assert len(movements) == 1
        assert movements[0].to_location.shelter_id == staff.assigned_shelter_id
        assert len(gateway.list_movements(admin).value) == 3

    def test_viewer_reads_history(self, gateway, viewer, water):
        assert len(gateway.list_movements(viewer).value) == 2

    def test_requests_scoped(self, gateway, admin, staff, water, north, south):
        gateway.create_request(staff, north.shelter_id, [RequestItemSpec(water.item_id, 5)])
        other = gateway.create_request(admin, south.shelter_id, [RequestItemSpec(water.item_id, 5)])

        listed = gateway.list_requests(staff).value
        assert [r.shelter_id for r in listed] == [north.shelter_id]
        hidden = gateway.get_request(staff, other.value.request.request_id)
        assert hidden.status is OperationStatus.FORBIDDEN
        assert len(gateway.list_requests(admin).value) == 2

    def test_request_for_other_shelter_forbidden(self, gateway, staff, water, south):
        result = gateway.create_request(staff, south.shelter_id, [RequestItemSpec(water.item_id, 5)])
        assert result.status is OperationStatus.FORBIDDEN

    def test_invalid_status_filter(self, gateway, admin):
        assert gateway.list_requests(admin, status="lost").status is OperationStatus.INVALID_INPUT

    def test_shelter_activity_scope(self, gateway, staff, north, south):
        assert gateway.shelter_activity(staff, north.shelter_id).is_success
        assert gateway.shelter_activity(staff, south.shelter_id).status is OperationStatus.FORBIDDEN

    def test_shelter_activity_unknown_shelter(self, gateway, admin):
        assert gateway.shelter_activity(admin, uuid4()).status is OperationStatus.NOT_FOUND


class TestRequestFlow:

    def test_create_approve_deliver(self, gateway, admin, staff, water, north, stock_selector):
        created = gateway.create_request(
            staff, north.shelter_id, [RequestItemSpec(water.item_id, 50, "new arrivals")]
        )
        assert created.is_success
        assert created.value.warnings == ()
        request_id = created.value.request.request_id

        approved = gateway.approve_request(admin, request_id, {water.item_id: 40})
        assert approved.is_success
        assert approved.value.request.status is RequestStatus.PARTIAL
        record = stock_selector.get(water.item_id)
        assert record.provincial_quantity == 30
        assert record.shelter_quantities[north.shelter_id] == 70

        assert approved.value.request.delivery_status is DeliveryStatus.IN_TRANSIT
        delivered = gateway.mark_delivered(staff, request_id)
        assert delivered.value.delivery_status is DeliveryStatus.DELIVERED
        assert gateway.mark_delivered(staff, request_id).status is OperationStatus.ALREADY_PROCESSED

    def test_pending_request_cannot_be_delivered(self, gateway, staff, water, north):
        created = gateway.create_request(staff, north.shelter_id, [RequestItemSpec(water.item_id, 5)])
        result = gateway.mark_delivered(staff, created.value.request.request_id)
        assert result.status is OperationStatus.ALREADY_PROCESSED
        assert result.error_code == "INVALID_DELIVERY_TRANSITION"

    def test_staff_cannot_review(self, gateway, staff, water, north):
        created = gateway.create_request(staff, north.shelter_id, [RequestItemSpec(water.item_id, 5)])
        result = gateway.approve_request(staff, created.value.request.request_id)
        assert result.status is OperationStatus.FORBIDDEN

    def test_shortfall_leaves_request_pending(self, gateway, admin, staff, water, north):
        created = gateway.create_request(staff, north.shelter_id, [RequestItemSpec(water.item_id, 90)])
        assert created.value.warnings[0].available == 70
        request_id = created.value.request.request_id

        result = gateway.approve_request(admin, request_id, {water.item_id: 90})
        assert result.status is OperationStatus.INSUFFICIENT_STOCK
        assert result.details["available"] == 70
        assert gateway.get_request(admin, request_id).value.status is RequestStatus.PENDING


class TestAnalytics:

    def test_turnover_period_validated(self, gateway, admin):
        assert gateway.turnover(admin, 14).status is OperationStatus.INVALID_INPUT
        assert gateway.turnover(admin, 30).is_success

    def test_staff_alerts_are_shelter_scoped(self, gateway, admin, staff, water, north):
        gateway.initialize_item(admin, "Rice", "food", "kg", initial_quantity=100)
        alerts = gateway.stock_alerts(staff).value
        assert [a.item_name for a in alerts] == ["Rice"]
        assert gateway.stock_alerts(admin).value == []

    def test_overview_open_to_anonymous(self, gateway, water):
        overview = gateway.overview(None).value
        assert overview.total_quantity == 100

    def test_consistency_admin_only(self, gateway, admin, staff, water):
        reports = gateway.verify_consistency(admin).value
        assert all(r.is_consistent for r in reports)
        assert gateway.verify_consistency(staff).status is OperationStatus.FORBIDDEN

    def test_inactive_items_listed_for_admin_only(self, gateway, admin, viewer, water):
        gateway.set_item_active(admin, water.item_id, False)
        assert gateway.list_stock(viewer, include_inactive=True).value == []
        assert len(gateway.list_stock(admin, include_inactive=True).value) == 1
