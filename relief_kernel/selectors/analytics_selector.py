"""
Module: relief_kernel.selectors.analytics_selector
Responsibility: Read-side rollups over stock records and the movement
    ledger: alerts, category totals, overview, turnover, dispense trends,
    shelter summaries and shelter activity.

Nothing here mutates. Status values are derived on read from quantities
and thresholds, never loaded from storage.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select

from relief_kernel.domain.clock import Clock, SystemClock
from relief_kernel.domain.status import derive_status
from relief_kernel.domain.values import (
    MovementType,
    ShelterStatus,
    StockCategory,
    StockStatus,
)
from relief_kernel.models.movement import StockMovement
from relief_kernel.models.shelter import Shelter
from relief_kernel.models.stock import StockRecord
from relief_kernel.selectors.base import BaseSelector

ANALYTICS_PERIODS = (7, 30, 90)
TOP_ITEMS = 5
DEFAULT_TIGHT_LOW_COUNT = 3


@dataclass(frozen=True)
class StockAlert:
    item_id: UUID
    item_name: str
    category: StockCategory
    unit: str
    quantity: int
    min_stock_level: int
    critical_level: int
    status: StockStatus


@dataclass(frozen=True)
class CategoryTotals:
    item_count: int
    quantity: int


@dataclass(frozen=True)
class StockOverview:
    total_items: int
    total_quantity: int
    total_received: int
    total_dispensed: int
    by_category: dict[StockCategory, CategoryTotals]
    low_stock_count: int
    out_of_stock_count: int


@dataclass(frozen=True)
class ItemQuantity:
    item_name: str
    quantity: int


@dataclass(frozen=True)
class TurnoverReport:
    period_days: int
    start: datetime
    end: datetime
    received: int
    dispensed: int
    average_stock: float
    turnover_rate: float
    avg_days_in_stock: float
    top_received: tuple[ItemQuantity, ...]
    top_dispensed: tuple[ItemQuantity, ...]
    category_distribution: dict[StockCategory, int]


@dataclass(frozen=True)
class DailyCategoryQuantity:
    day: date
    quantities: dict[StockCategory, int]


@dataclass(frozen=True)
class ShelterSummary:
    shelter_id: UUID
    shelter_code: str
    shelter_name: str
    capacity: int | None
    total_items: int
    total_quantity: int
    low_count: int
    critical_count: int
    status: str
    """``critical`` if any item is critical, ``tight`` at the low-count
    threshold, otherwise ``normal``."""


@dataclass(frozen=True)
class DailyActivity:
    day: date
    received_count: int
    dispensed_count: int


@dataclass(frozen=True)
class ShelterActivity:
    shelter_id: UUID
    items_held: int
    total_quantity: int
    low_count: int
    critical_count: int
    received_today: int
    dispensed_today: int
    daily: tuple[DailyActivity, ...]


def average_days_in_stock(total_received: int, total_dispensed: int, current: int) -> float:
    """Lifetime days-in-stock estimate: 365 / (dispensed / average holding)."""
    if total_dispensed <= 0:
        return 0.0
    average_holding = (total_received + current) / 2
    if average_holding <= 0:
        return 0.0
    return 365 / (total_dispensed / average_holding)


def _empty_by_category() -> dict[StockCategory, int]:
    return {category: 0 for category in StockCategory}


def _top(quantities: dict[str, int]) -> tuple[ItemQuantity, ...]:
    ranked = sorted(quantities.items(), key=lambda kv: (-kv[1], kv[0]))
    return tuple(ItemQuantity(name, qty) for name, qty in ranked[:TOP_ITEMS])


class AnalyticsSelector(BaseSelector):

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self.clock = clock or SystemClock()

    def _records(self, include_inactive: bool = False) -> list[StockRecord]:
        stmt = select(StockRecord).order_by(StockRecord.item_name)
        if not include_inactive:
            stmt = stmt.where(StockRecord.is_active.is_(True))
        return list(
            self.session.execute(stmt.execution_options(populate_existing=True)).scalars().all()
        )

    @staticmethod
    def _alert(record: StockRecord, quantity: int) -> StockAlert:
        return StockAlert(
            item_id=record.id,
            item_name=record.item_name,
            category=StockCategory(record.category),
            unit=record.unit,
            quantity=quantity,
            min_stock_level=record.min_stock_level,
            critical_level=record.critical_level,
            status=derive_status(quantity, record.min_stock_level, record.critical_level),
        )

    # ------------------------------------------------------------------
    # Alerts and totals
    # ------------------------------------------------------------------

    def stock_alerts(self) -> list[StockAlert]:
        """Items not at sufficient level, most urgent first."""
        alerts = [self._alert(r, r.total_quantity) for r in self._records()]
        alerts = [a for a in alerts if a.status != StockStatus.SUFFICIENT]
        return sorted(alerts, key=lambda a: (a.status.urgency, a.item_name))

    def shelter_alerts(self, shelter_id: UUID) -> list[StockAlert]:
        """Per-shelter alerts; an item the shelter never held counts as zero."""
        alerts = []
        for record in self._records():
            entry = record.shelter_stocks.get(shelter_id)
            alert = self._alert(record, entry.quantity if entry is not None else 0)
            if alert.status != StockStatus.SUFFICIENT:
                alerts.append(alert)
        return sorted(alerts, key=lambda a: (a.status.urgency, a.item_name))

    def totals_by_category(self) -> dict[StockCategory, CategoryTotals]:
        counts = _empty_by_category()
        quantities = _empty_by_category()
        for record in self._records():
            category = StockCategory(record.category)
            counts[category] += 1
            quantities[category] += record.total_quantity
        return {c: CategoryTotals(counts[c], quantities[c]) for c in StockCategory}

    def overview(self) -> StockOverview:
        records = self._records()
        statuses = [
            derive_status(r.total_quantity, r.min_stock_level, r.critical_level) for r in records
        ]
        return StockOverview(
            total_items=len(records),
            total_quantity=sum(r.total_quantity for r in records),
            total_received=sum(r.total_received for r in records),
            total_dispensed=sum(r.total_dispensed for r in records),
            by_category=self.totals_by_category(),
            low_stock_count=sum(1 for s in statuses if s in (StockStatus.LOW, StockStatus.CRITICAL)),
            out_of_stock_count=sum(1 for s in statuses if s == StockStatus.OUT_OF_STOCK),
        )

    # ------------------------------------------------------------------
    # Movement analytics
    # ------------------------------------------------------------------

    def turnover(self, period_days: int = 7) -> TurnoverReport:
        """
        Flow over the last ``period_days`` days.

        turnover_rate = dispensed in window / average current stock per item;
        avg_days_in_stock = period_days / turnover_rate (or period_days when
        the rate is zero).
        """
        if period_days not in ANALYTICS_PERIODS:
            raise ValueError(f"period_days must be one of {ANALYTICS_PERIODS}")
        end = self.clock.now()
        start = end - timedelta(days=period_days)

        rows = self.session.execute(
            select(
                StockRecord.item_name,
                StockMovement.movement_type,
                func.sum(StockMovement.quantity),
            )
            .join(StockRecord, StockRecord.id == StockMovement.stock_record_id)
            .where(
                StockMovement.performed_at >= start,
                StockMovement.performed_at <= end,
                StockMovement.movement_type.in_(
                    [MovementType.RECEIVE.value, MovementType.DISPENSE.value]
                ),
            )
            .group_by(StockRecord.item_name, StockMovement.movement_type)
        ).all()

        received_by_item: dict[str, int] = defaultdict(int)
        dispensed_by_item: dict[str, int] = defaultdict(int)
        for item_name, movement_type, quantity in rows:
            target = received_by_item if movement_type == MovementType.RECEIVE.value else dispensed_by_item
            target[item_name] += int(quantity)

        records = self._records(include_inactive=True)
        average_stock = (
            sum(r.total_quantity for r in records) / len(records) if records else 0.0
        )
        dispensed = sum(dispensed_by_item.values())
        turnover_rate = dispensed / average_stock if average_stock > 0 else 0.0
        distribution = _empty_by_category()
        for record in records:
            distribution[StockCategory(record.category)] += record.total_quantity

        return TurnoverReport(
            period_days=period_days,
            start=start,
            end=end,
            received=sum(received_by_item.values()),
            dispensed=dispensed,
            average_stock=average_stock,
            turnover_rate=turnover_rate,
            avg_days_in_stock=period_days / (turnover_rate or 1),
            top_received=_top(received_by_item),
            top_dispensed=_top(dispensed_by_item),
            category_distribution=distribution,
        )

    def dispense_trend(self, days: int = 7) -> list[DailyCategoryQuantity]:
        """Dispensed quantity per category per day, oldest day first."""
        today = self.clock.now().date()
        first_day = today - timedelta(days=days - 1)
        start = datetime.combine(first_day, datetime.min.time(), tzinfo=self.clock.now().tzinfo)

        rows = self.session.execute(
            select(StockMovement.performed_at, StockRecord.category, StockMovement.quantity)
            .join(StockRecord, StockRecord.id == StockMovement.stock_record_id)
            .where(
                StockMovement.movement_type == MovementType.DISPENSE.value,
                StockMovement.performed_at >= start,
            )
        ).all()

        buckets = {first_day + timedelta(days=i): _empty_by_category() for i in range(days)}
        for performed_at, category, quantity in rows:
            day = performed_at.date()
            if day in buckets:
                buckets[day][StockCategory(category)] += quantity
        return [DailyCategoryQuantity(day, quantities) for day, quantities in sorted(buckets.items())]

    # ------------------------------------------------------------------
    # Shelters
    # ------------------------------------------------------------------

    def _shelter_counts(self, records: list[StockRecord], shelter_id: UUID) -> tuple[int, int, int, int]:
        items = quantity = low = critical = 0
        for record in records:
            entry = record.shelter_stocks.get(shelter_id)
            if entry is None or entry.quantity <= 0:
                continue
            items += 1
            quantity += entry.quantity
            if entry.quantity <= record.critical_level:
                critical += 1
            elif entry.quantity <= record.min_stock_level:
                low += 1
        return items, quantity, low, critical

    def shelter_summaries(self, tight_low_count: int = DEFAULT_TIGHT_LOW_COUNT) -> list[ShelterSummary]:
        """One summary per active shelter, ordered by shelter code."""
        shelters = self.session.execute(
            select(Shelter).where(Shelter.status == ShelterStatus.ACTIVE.value).order_by(Shelter.code)
        ).scalars().all()
        records = self._records(include_inactive=True)

        summaries = []
        for shelter in shelters:
            items, quantity, low, critical = self._shelter_counts(records, shelter.id)
            if critical > 0:
                status = "critical"
            elif low >= tight_low_count:
                status = "tight"
            else:
                status = "normal"
            summaries.append(
                ShelterSummary(
                    shelter_id=shelter.id,
                    shelter_code=shelter.code,
                    shelter_name=shelter.name,
                    capacity=shelter.capacity,
                    total_items=items,
                    total_quantity=quantity,
                    low_count=low,
                    critical_count=critical,
                    status=status,
                )
            )
        return summaries

    def shelter_activity(self, shelter_id: UUID, days: int = 7) -> ShelterActivity:
        """
        Stats for shelter staff: current holdings plus daily counts of
        inbound movements (receives and transfers in) and dispenses.
        """
        items, quantity, low, critical = self._shelter_counts(
            self._records(include_inactive=True), shelter_id
        )
        today = self.clock.now().date()
        first_day = today - timedelta(days=days - 1)
        start = datetime.combine(first_day, datetime.min.time(), tzinfo=self.clock.now().tzinfo)

        inbound = self.session.execute(
            select(StockMovement.performed_at).where(
                StockMovement.to_shelter_id == shelter_id,
                StockMovement.movement_type.in_(
                    [MovementType.RECEIVE.value, MovementType.TRANSFER.value]
                ),
                StockMovement.performed_at >= start,
            )
        ).scalars().all()
        dispensed = self.session.execute(
            select(StockMovement.performed_at).where(
                StockMovement.from_shelter_id == shelter_id,
                StockMovement.movement_type == MovementType.DISPENSE.value,
                StockMovement.performed_at >= start,
            )
        ).scalars().all()

        received_by_day: dict[date, int] = defaultdict(int)
        dispensed_by_day: dict[date, int] = defaultdict(int)
        for at in inbound:
            received_by_day[at.date()] += 1
        for at in dispensed:
            dispensed_by_day[at.date()] += 1

        daily = tuple(
            DailyActivity(day, received_by_day[day], dispensed_by_day[day])
            for day in (first_day + timedelta(days=i) for i in range(days))
        )
        return ShelterActivity(
            shelter_id=shelter_id,
            items_held=items,
            total_quantity=quantity,
            low_count=low,
            critical_count=critical,
            received_today=received_by_day[today],
            dispensed_today=dispensed_by_day[today],
            daily=daily,
        )
