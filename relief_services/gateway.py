"""
relief_services.gateway -- Typed-result facade over the stock ledger kernel.

Responsibility:
    The single in-process entrypoint used by the presentation layer.  Each
    method opens its own session, binds the log context, authorizes the
    caller, runs one kernel operation, commits, and returns an
    ``OperationResult``.

Contract:
    - Kernel errors and storage errors never cross this boundary as
      exceptions; they become a result carrying a status, the kernel error
      code, a default message and the structured error details.
    - Any other exception is a defect: the session is rolled back and the
      exception propagates.
    - A failed operation leaves no partial writes; the whole session is
      rolled back.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from relief_config.schema import LedgerSettings
from relief_kernel.domain.clock import Clock, SystemClock
from relief_kernel.domain.dtos import RequestItemSpec, StockRequestView
from relief_kernel.domain.request_lifecycle import RequestStatus
from relief_kernel.domain.values import ShelterStatus, StockCategory, StockSide
from relief_kernel.exceptions import (
    AccessDeniedError,
    AlreadyProcessedError,
    ConflictError,
    ImmutabilityError,
    InsufficientStockError,
    InvalidFieldError,
    InvalidInputError,
    NotFoundError,
    ReliefKernelError,
)
from relief_kernel.logging_config import LogContext, get_logger
from relief_kernel.messages import render_message
from relief_kernel.selectors.analytics_selector import ANALYTICS_PERIODS, AnalyticsSelector
from relief_kernel.selectors.consistency_selector import ConsistencySelector
from relief_kernel.selectors.movement_selector import MovementFilter, MovementSelector
from relief_kernel.selectors.request_selector import RequestSelector
from relief_kernel.selectors.stock_selector import StockSelector
from relief_kernel.services.request_workflow import RequestWorkflowService
from relief_kernel.services.shelter_service import ShelterService
from relief_kernel.services.stock_ledger import StockLedgerService
from relief_services.access import Identity, Role, StockAction, require_stock_action
from relief_services.projection import project_movements, project_stock, project_stock_list

logger = get_logger("services.gateway")

T = TypeVar("T")


class OperationStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    INSUFFICIENT_STOCK = "insufficient_stock"
    ALREADY_PROCESSED = "already_processed"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    STORAGE_ERROR = "storage_error"


# Checked in order; InsufficientStockError is not an InvalidInputError.
_STATUS_BY_ERROR: tuple[tuple[type[ReliefKernelError], OperationStatus], ...] = (
    (NotFoundError, OperationStatus.NOT_FOUND),
    (InsufficientStockError, OperationStatus.INSUFFICIENT_STOCK),
    (InvalidInputError, OperationStatus.INVALID_INPUT),
    (AlreadyProcessedError, OperationStatus.ALREADY_PROCESSED),
    (ConflictError, OperationStatus.CONFLICT),
    (ImmutabilityError, OperationStatus.CONFLICT),
    (AccessDeniedError, OperationStatus.FORBIDDEN),
)


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one gateway call."""

    status: OperationStatus
    value: Any = None
    error_code: str | None = None
    message: str | None = None
    details: Mapping[str, Any] = dataclasses.field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.OK

    @classmethod
    def ok(cls, value: Any) -> OperationResult:
        return cls(status=OperationStatus.OK, value=value)

    @classmethod
    def from_error(cls, error: ReliefKernelError) -> OperationResult:
        status = OperationStatus.CONFLICT
        for error_type, mapped in _STATUS_BY_ERROR:
            if isinstance(error, error_type):
                status = mapped
                break
        return cls(
            status=status,
            error_code=error.code,
            message=str(error),
            details={k: _jsonable(v) for k, v in error.details.items()},
        )

    @classmethod
    def storage_error(cls) -> OperationResult:
        return cls(
            status=OperationStatus.STORAGE_ERROR,
            error_code="STORAGE_ERROR",
            message=render_message("STORAGE_ERROR", {}),
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value


def _side(shelter_id: UUID | None) -> StockSide:
    return StockSide.provincial() if shelter_id is None else StockSide.shelter(shelter_id)


class StockGateway:
    """
    One method per stock operation, each in its own transaction.

    Args:
        session_factory: ``sessionmaker`` bound to the ledger database.
        clock: Time source passed to every kernel service.
        settings: Ledger policy and analytics defaults.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._settings = settings or LedgerSettings.with_defaults()

    # ------------------------------------------------------------------
    # Transaction runner
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        identity: Identity | None,
        fn: Callable[[Session], T],
        **context: Any,
    ) -> OperationResult:
        correlation_id = str(uuid4())
        actor_id = str(identity.user_id) if identity is not None else None
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=actor_id,
            operation=operation,
            **context,
        ):
            t0 = time.monotonic()
            session = self._session_factory()
            try:
                value = fn(session)
                session.commit()
            except ReliefKernelError as exc:
                session.rollback()
                logger.warning(
                    "operation_rejected",
                    extra={
                        "error_code": exc.code,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                return OperationResult.from_error(exc)
            except StaleDataError:
                session.rollback()
                logger.warning("operation_conflict", exc_info=True)
                return OperationResult(
                    status=OperationStatus.CONFLICT,
                    error_code="CONFLICT",
                    message=render_message("CONFLICT", {}),
                )
            except SQLAlchemyError:
                session.rollback()
                logger.error("operation_storage_failed", exc_info=True)
                return OperationResult.storage_error()
            except Exception:
                session.rollback()
                logger.error("operation_failed", exc_info=True)
                raise
            finally:
                session.close()

            logger.info(
                "operation_completed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
            )
            return OperationResult.ok(value)

    def _ledger(self, session: Session) -> StockLedgerService:
        policy = self._settings.ledger
        return StockLedgerService(
            session,
            self._clock,
            max_update_attempts=policy.max_update_attempts,
            default_min_stock_level=policy.default_min_stock_level,
            default_critical_level=policy.default_critical_level,
        )

    def _workflow(self, session: Session) -> RequestWorkflowService:
        return RequestWorkflowService(
            session,
            self._clock,
            ledger=self._ledger(session),
            max_update_attempts=self._settings.ledger.max_update_attempts,
        )

    # ------------------------------------------------------------------
    # Shelters and items
    # ------------------------------------------------------------------

    def register_shelter(
        self,
        identity: Identity,
        code: str,
        name: str,
        capacity: int | None = None,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.MANAGE_SHELTERS)
            return ShelterService(session, self._clock).register(
                code, name, identity.user_id, capacity=capacity
            )

        return self._run("register_shelter", identity, run)

    def set_shelter_status(
        self,
        identity: Identity,
        shelter_id: UUID,
        status: ShelterStatus | str,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.MANAGE_SHELTERS)
            return ShelterService(session, self._clock).set_status(
                shelter_id, status, identity.user_id
            )

        return self._run("set_shelter_status", identity, run, shelter_id=shelter_id)

    def initialize_item(
        self,
        identity: Identity,
        item_name: str,
        category: StockCategory | str,
        unit: str,
        initial_quantity: int = 0,
        min_stock_level: int | None = None,
        critical_level: int | None = None,
        supplier: str | None = None,
        notes: str | None = None,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.MANAGE_ITEMS)
            return self._ledger(session).initialize_item(
                item_name=item_name,
                category=category,
                unit=unit,
                performed_by=identity.user_id,
                initial_quantity=initial_quantity,
                min_stock_level=min_stock_level,
                critical_level=critical_level,
                supplier=supplier,
                notes=notes,
            )

        return self._run("initialize_item", identity, run)

    def update_thresholds(
        self,
        identity: Identity,
        item_id: UUID,
        min_stock_level: int,
        critical_level: int,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.MANAGE_ITEMS)
            return self._ledger(session).update_thresholds(
                item_id, min_stock_level, critical_level, identity.user_id
            )

        return self._run("update_thresholds", identity, run, item_id=item_id)

    def set_item_active(self, identity: Identity, item_id: UUID, active: bool) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.MANAGE_ITEMS)
            return self._ledger(session).set_active(item_id, active, identity.user_id)

        return self._run("set_item_active", identity, run, item_id=item_id)

    # ------------------------------------------------------------------
    # Stock movements
    # ------------------------------------------------------------------

    def receive(
        self,
        identity: Identity,
        item_id: UUID,
        quantity: int,
        source_label: str,
        shelter_id: UUID | None = None,
        notes: str | None = None,
    ) -> OperationResult:
        """Receive into a shelter, or into the provincial pool when ``shelter_id`` is None."""
        def run(session: Session):
            require_stock_action(identity, StockAction.RECEIVE, shelter_id)
            return self._ledger(session).receive(
                item_id, _side(shelter_id), quantity, source_label, identity.user_id, notes=notes
            )

        return self._run("receive", identity, run, item_id=item_id, shelter_id=shelter_id)

    def dispense(
        self,
        identity: Identity,
        item_id: UUID,
        shelter_id: UUID,
        quantity: int,
        recipient_label: str,
        notes: str | None = None,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.DISPENSE, shelter_id)
            return self._ledger(session).dispense(
                item_id, shelter_id, quantity, recipient_label, identity.user_id, notes=notes
            )

        return self._run("dispense", identity, run, item_id=item_id, shelter_id=shelter_id)

    def transfer(
        self,
        identity: Identity,
        item_id: UUID,
        quantity: int,
        from_shelter_id: UUID | None = None,
        to_shelter_id: UUID | None = None,
        notes: str | None = None,
    ) -> OperationResult:
        """A ``None`` shelter id on either side names the provincial pool."""
        def run(session: Session):
            require_stock_action(identity, StockAction.TRANSFER)
            return self._ledger(session).transfer(
                item_id,
                _side(from_shelter_id),
                _side(to_shelter_id),
                quantity,
                identity.user_id,
                notes=notes,
            )

        return self._run("transfer", identity, run, item_id=item_id)

    def adjust(
        self,
        identity: Identity,
        item_id: UUID,
        new_quantity: int,
        shelter_id: UUID | None = None,
        notes: str | None = None,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.ADJUST, shelter_id)
            return self._ledger(session).adjust(
                item_id, _side(shelter_id), new_quantity, identity.user_id, notes=notes
            )

        return self._run("adjust", identity, run, item_id=item_id, shelter_id=shelter_id)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(
        self,
        identity: Identity,
        shelter_id: UUID,
        items: Sequence[RequestItemSpec],
        notes: str | None = None,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.CREATE_REQUEST, shelter_id)
            return self._workflow(session).create(shelter_id, identity.user_id, items, notes=notes)

        return self._run("create_request", identity, run, shelter_id=shelter_id)

    def approve_request(
        self,
        identity: Identity,
        request_id: UUID,
        approved_quantities: Mapping[UUID, int] | None = None,
        admin_notes: str | None = None,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.APPROVE_REQUEST)
            return self._workflow(session).approve(
                request_id,
                identity.user_id,
                approved_quantities=approved_quantities,
                admin_notes=admin_notes,
            )

        return self._run("approve_request", identity, run, request_id=request_id)

    def reject_request(
        self,
        identity: Identity,
        request_id: UUID,
        admin_notes: str | None = None,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.REJECT_REQUEST)
            return self._workflow(session).reject(
                request_id, identity.user_id, admin_notes=admin_notes
            )

        return self._run("reject_request", identity, run, request_id=request_id)

    def mark_delivered(self, identity: Identity, request_id: UUID) -> OperationResult:
        def run(session: Session):
            request = RequestSelector(session).get(request_id)
            require_stock_action(identity, StockAction.MARK_DELIVERED, request.shelter_id)
            return self._workflow(session).mark_delivered(request_id, identity.user_id)

        return self._run("mark_delivered", identity, run, request_id=request_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_stock(self, identity: Identity | None, item_id: UUID) -> OperationResult:
        def run(session: Session):
            return project_stock(StockSelector(session).get(item_id), identity)

        return self._run("get_stock", identity, run, item_id=item_id)

    def list_stock(
        self,
        identity: Identity | None,
        category: StockCategory | str | None = None,
        include_inactive: bool = False,
        name_contains: str | None = None,
    ) -> OperationResult:
        def run(session: Session):
            parsed = StockCategory.parse(category) if category is not None else None
            show_inactive = include_inactive and identity is not None and identity.is_admin
            views = StockSelector(session).list_records(
                category=parsed,
                include_inactive=show_inactive,
                name_contains=name_contains,
            )
            return project_stock_list(views, identity)

        return self._run("list_stock", identity, run)

    def list_movements(
        self,
        identity: Identity,
        criteria: MovementFilter | None = None,
    ) -> OperationResult:
        """Staff queries are narrowed to movements touching their shelter."""
        def run(session: Session):
            require_stock_action(identity, StockAction.VIEW)
            narrowed = criteria or MovementFilter()
            if identity.role is Role.STAFF:
                narrowed = dataclasses.replace(
                    narrowed, shelter_id=identity.assigned_shelter_id
                )
            return project_movements(MovementSelector(session).query(narrowed), identity)

        return self._run("list_movements", identity, run)

    def _require_request_visible(self, identity: Identity, request: StockRequestView) -> None:
        if identity.role is Role.STAFF and request.shelter_id != identity.assigned_shelter_id:
            raise AccessDeniedError(
                str(identity.user_id),
                StockAction.VIEW.value,
                "staff may only view requests of their assigned shelter",
            )

    def get_request(self, identity: Identity, request_id: UUID) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.VIEW)
            request = RequestSelector(session).get(request_id)
            self._require_request_visible(identity, request)
            return request

        return self._run("get_request", identity, run, request_id=request_id)

    def list_requests(
        self,
        identity: Identity,
        shelter_id: UUID | None = None,
        status: RequestStatus | str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.VIEW)
            scope = identity.assigned_shelter_id if identity.role is Role.STAFF else shelter_id
            try:
                parsed = RequestStatus(status) if status is not None else None
            except ValueError:
                raise InvalidFieldError(
                    "status", f"must be one of {[s.value for s in RequestStatus]}"
                ) from None
            return RequestSelector(session).list_requests(
                shelter_id=scope, status=parsed, limit=limit, offset=offset
            )

        return self._run("list_requests", identity, run)

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def _analytics(self, session: Session) -> AnalyticsSelector:
        return AnalyticsSelector(session, self._clock)

    def stock_alerts(self, identity: Identity) -> OperationResult:
        """Staff see alerts for their own shelter's holdings."""
        def run(session: Session):
            require_stock_action(identity, StockAction.VIEW)
            if identity.role is Role.STAFF:
                return self._analytics(session).shelter_alerts(identity.assigned_shelter_id)
            return self._analytics(session).stock_alerts()

        return self._run("stock_alerts", identity, run)

    def overview(self, identity: Identity | None) -> OperationResult:
        def run(session: Session):
            return self._analytics(session).overview()

        return self._run("overview", identity, run)

    def totals_by_category(self, identity: Identity | None) -> OperationResult:
        def run(session: Session):
            return self._analytics(session).totals_by_category()

        return self._run("totals_by_category", identity, run)

    def turnover(self, identity: Identity, period_days: int = 7) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.VIEW)
            if period_days not in ANALYTICS_PERIODS:
                raise InvalidFieldError("period_days", f"must be one of {list(ANALYTICS_PERIODS)}")
            return self._analytics(session).turnover(period_days)

        return self._run("turnover", identity, run)

    def dispense_trend(self, identity: Identity, days: int | None = None) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.VIEW)
            window = days if days is not None else self._settings.analytics.trend_days
            if window <= 0:
                raise InvalidFieldError("days", "must be positive")
            return self._analytics(session).dispense_trend(window)

        return self._run("dispense_trend", identity, run)

    def shelter_summaries(self, identity: Identity) -> OperationResult:
        def run(session: Session):
            require_stock_action(identity, StockAction.VIEW)
            return self._analytics(session).shelter_summaries(
                tight_low_count=self._settings.analytics.shelter_tight_low_count
            )

        return self._run("shelter_summaries", identity, run)

    def shelter_activity(self, identity: Identity, shelter_id: UUID) -> OperationResult:
        def run(session: Session):
            if identity.role is Role.STAFF and shelter_id != identity.assigned_shelter_id:
                raise AccessDeniedError(
                    str(identity.user_id),
                    StockAction.VIEW.value,
                    "staff may only view activity of their assigned shelter",
                )
            require_stock_action(identity, StockAction.VIEW)
            ShelterService(session, self._clock).require(shelter_id)
            return self._analytics(session).shelter_activity(
                shelter_id, days=self._settings.analytics.trend_days
            )

        return self._run("shelter_activity", identity, run, shelter_id=shelter_id)

    def verify_consistency(self, identity: Identity) -> OperationResult:
        """Replay every item's movements against its stored balances (admin only)."""
        def run(session: Session):
            require_stock_action(identity, StockAction.MANAGE_ITEMS)
            return ConsistencySelector(session).verify_all()

        return self._run("verify_consistency", identity, run)
