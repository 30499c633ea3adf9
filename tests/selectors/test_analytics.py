"""AnalyticsSelector: alerts, totals, turnover, trends and shelter rollups."""

from uuid import uuid4

import pytest

from relief_kernel.domain.values import StockCategory, StockSide, StockStatus
from relief_kernel.selectors.analytics_selector import (
    ANALYTICS_PERIODS,
    ItemQuantity,
    average_days_in_stock,
)


def _dispense(ledger, item_id, shelter_id, quantity, actor):
    return ledger.dispense(item_id, shelter_id, quantity, "Families at gym", actor)


class TestAverageDaysInStock:

    def test_nothing_dispensed(self):
        assert average_days_in_stock(100, 0, 100) == 0.0

    def test_estimate(self):
        # average holding (100 + 60) / 2 = 80; 365 / (40 / 80) = 730
        assert average_days_in_stock(100, 40, 60) == pytest.approx(730.0)

    def test_empty_holding(self):
        assert average_days_in_stock(0, 5, 0) == 0.0


class TestStockAlerts:

    def test_orders_by_urgency(self, make_item, analytics):
        make_item("Water", quantity=50)
        make_item("Rice", quantity=8, unit="kg")
        make_item("Bandages", quantity=3, category="medicine", unit="rolls")
        make_item("Soap", quantity=0, category="other", unit="bars")

        alerts = analytics.stock_alerts()
        assert [(a.item_name, a.status) for a in alerts] == [
            ("Soap", StockStatus.OUT_OF_STOCK),
            ("Bandages", StockStatus.CRITICAL),
            ("Rice", StockStatus.LOW),
        ]

    def test_inactive_items_excluded(self, ledger, make_item, analytics, test_actor_id):
        soap = make_item("Soap", quantity=0, category="other", unit="bars")
        ledger.set_active(soap.item_id, False, test_actor_id)
        assert analytics.stock_alerts() == []

    def test_shelter_alerts_count_missing_entries_as_zero(
        self, make_item, make_shelter, stock_shelter, analytics
    ):
        water = make_item("Water", quantity=100)
        make_item("Rice", quantity=100, unit="kg")
        shelter = make_shelter()
        stock_shelter(water.item_id, shelter.shelter_id, 7)

        alerts = analytics.shelter_alerts(shelter.shelter_id)
        assert [(a.item_name, a.quantity, a.status) for a in alerts] == [
            ("Rice", 0, StockStatus.OUT_OF_STOCK),
            ("Water", 7, StockStatus.LOW),
        ]


class TestTotalsAndOverview:

    def test_totals_by_category(self, make_item, analytics):
        make_item("Water", quantity=40)
        make_item("Rice", quantity=60, unit="kg")
        make_item("Bandages", quantity=25, category="medicine", unit="rolls")

        totals = analytics.totals_by_category()
        assert set(totals) == set(StockCategory)
        assert totals[StockCategory.FOOD].item_count == 2
        assert totals[StockCategory.FOOD].quantity == 100
        assert totals[StockCategory.MEDICINE].quantity == 25
        assert totals[StockCategory.CLOTHING].item_count == 0

    def test_overview(
        self, ledger, make_item, make_shelter, stock_shelter, analytics, test_actor_id
    ):
        water = make_item("Water", quantity=100)
        make_item("Rice", quantity=4, unit="kg")
        make_item("Blankets", quantity=0, category="clothing", unit="pcs")
        shelter = make_shelter()
        stock_shelter(water.item_id, shelter.shelter_id, 30)
        _dispense(ledger, water.item_id, shelter.shelter_id, 10, test_actor_id)

        overview = analytics.overview()
        assert overview.total_items == 3
        assert overview.total_quantity == 94
        assert overview.total_received == 104
        assert overview.total_dispensed == 10
        assert overview.low_stock_count == 1
        assert overview.out_of_stock_count == 1


class TestTurnover:

    @pytest.fixture
    def flow(self, ledger, make_item, make_shelter, stock_shelter, clock, test_actor_id):
        water = make_item("Water", quantity=100)
        shelter = make_shelter()
        stock_shelter(water.item_id, shelter.shelter_id, 50)
        clock.advance(60)
        _dispense(ledger, water.item_id, shelter.shelter_id, 20, test_actor_id)
        return water

    def test_window_totals(self, flow, analytics):
        report = analytics.turnover(7)
        assert report.received == 100
        assert report.dispensed == 20
        assert report.average_stock == pytest.approx(80.0)
        assert report.turnover_rate == pytest.approx(0.25)
        assert report.avg_days_in_stock == pytest.approx(28.0)
        assert report.top_received == (ItemQuantity("Water", 100),)
        assert report.top_dispensed == (ItemQuantity("Water", 20),)
        assert report.category_distribution[StockCategory.FOOD] == 80

    def test_old_movements_fall_out_of_short_window(self, flow, analytics, clock):
        clock.advance_days(8)
        week = analytics.turnover(7)
        assert (week.received, week.dispensed) == (0, 0)
        assert week.turnover_rate == 0.0
        assert week.avg_days_in_stock == 7
        month = analytics.turnover(30)
        assert month.dispensed == 20

    @pytest.mark.parametrize("days", ANALYTICS_PERIODS)
    def test_window_bounds(self, analytics, clock, days):
        report = analytics.turnover(days)
        assert report.end == clock.now()
        assert (report.end - report.start).days == days

    def test_unsupported_period(self, analytics):
        with pytest.raises(ValueError):
            analytics.turnover(14)


class TestDispenseTrend:

    def test_buckets_by_day_and_category(
        self, ledger, make_item, make_shelter, stock_shelter, clock, test_actor_id, analytics
    ):
        water = make_item("Water", quantity=100)
        gauze = make_item("Gauze", quantity=100, category="medicine", unit="rolls")
        shelter = make_shelter()
        stock_shelter(water.item_id, shelter.shelter_id, 50)
        stock_shelter(gauze.item_id, shelter.shelter_id, 50)
        _dispense(ledger, water.item_id, shelter.shelter_id, 6, test_actor_id)
        clock.advance_days(2)
        _dispense(ledger, water.item_id, shelter.shelter_id, 4, test_actor_id)
        _dispense(ledger, gauze.item_id, shelter.shelter_id, 3, test_actor_id)

        trend = analytics.dispense_trend(7)
        assert len(trend) == 7
        assert trend[-1].day == clock.now().date()
        assert trend[-1].quantities[StockCategory.FOOD] == 4
        assert trend[-1].quantities[StockCategory.MEDICINE] == 3
        assert trend[-3].quantities[StockCategory.FOOD] == 6
        assert sum(day.quantities[StockCategory.CLOTHING] for day in trend) == 0


class TestShelterRollups:

    def test_summary_statuses(self, make_item, make_shelter, stock_shelter, analytics):
        items = [make_item(name, quantity=100, unit="units") for name in ("Water", "Rice", "Soap")]
        hot = make_shelter("SH-A")
        tight = make_shelter("SH-B")
        calm = make_shelter("SH-C")
        stock_shelter(items[0].item_id, hot.shelter_id, 3)
        for item in items:
            stock_shelter(item.item_id, tight.shelter_id, 8)
        stock_shelter(items[0].item_id, calm.shelter_id, 40)
        stock_shelter(items[1].item_id, calm.shelter_id, 9)

        by_code = {s.shelter_code: s for s in analytics.shelter_summaries()}
        assert by_code["SH-A"].status == "critical"
        assert by_code["SH-A"].critical_count == 1
        assert by_code["SH-B"].status == "tight"
        assert by_code["SH-B"].low_count == 3
        assert by_code["SH-C"].status == "normal"
        assert by_code["SH-C"].total_items == 2
        assert by_code["SH-C"].total_quantity == 49

    def test_tight_threshold_configurable(self, make_item, make_shelter, stock_shelter, analytics):
        water = make_item("Water", quantity=100)
        shelter = make_shelter()
        stock_shelter(water.item_id, shelter.shelter_id, 8)
        assert analytics.shelter_summaries(tight_low_count=1)[0].status == "tight"

    def test_inactive_shelters_skipped(self, shelters, make_shelter, analytics, test_actor_id):
        open_shelter = make_shelter("SH-A")
        closed = make_shelter("SH-B")
        shelters.set_status(closed.shelter_id, "inactive", test_actor_id)
        assert [s.shelter_id for s in analytics.shelter_summaries()] == [open_shelter.shelter_id]

    def test_shelter_activity(
        self, ledger, make_item, make_shelter, stock_shelter, clock, analytics, test_actor_id
    ):
        water = make_item("Water", quantity=100)
        shelter = make_shelter()
        stock_shelter(water.item_id, shelter.shelter_id, 20)
        clock.advance_days(1)
        ledger.receive(
            water.item_id, StockSide.shelter(shelter.shelter_id), 10, "Red Cross", test_actor_id
        )
        _dispense(ledger, water.item_id, shelter.shelter_id, 25, test_actor_id)
        _dispense(ledger, water.item_id, shelter.shelter_id, 1, test_actor_id)

        activity = analytics.shelter_activity(shelter.shelter_id)
        assert activity.items_held == 1
        assert activity.total_quantity == 4
        assert activity.critical_count == 1
        assert activity.received_today == 1
        assert activity.dispensed_today == 2
        assert len(activity.daily) == 7
        assert activity.daily[-2].received_count == 1
        assert activity.daily[-2].dispensed_count == 0

    def test_activity_for_unknown_shelter_is_empty(self, analytics):
        activity = analytics.shelter_activity(uuid4())
        assert activity.items_held == 0
        assert all(d.received_count == 0 for d in activity.daily)
