"""
RequestWorkflowService -- shelter replenishment requests.

Responsibility:
    Create requests, review them (reject or approve, fully or partially)
    and track delivery. Approval turns every granted line into a
    provincial -> shelter transfer through StockLedgerService.

Architecture position:
    Kernel > Services. Flushes only; the caller commits.

Invariants enforced:
    - Single review: only ``pending`` requests can be approved or rejected.
      The request row is locked for the review, so two reviewers cannot
      both succeed; the loser sees RequestAlreadyReviewedError.
    - All-or-nothing approval: every involved stock record is locked in
      id order, every line is checked against provincial stock, and only
      then are the transfers applied, all inside one savepoint. Any error
      rolls the savepoint back, leaving the request pending and no
      transfer applied.
    - Creation never touches stock; shortfalls only produce warnings.

Failure modes:
    - StockRequestNotFoundError, ShelterNotFoundError, StockItemNotFoundError.
    - EmptyRequestError, DuplicateRequestLineError, NonPositiveQuantityError,
      InactiveStockItemError on create.
    - RequestAlreadyReviewedError on a second review.
    - UnknownRequestLineError, ApprovedQuantityOutOfRangeError,
      NothingApprovedError for bad approval input.
    - InsufficientStockError naming the first line provincial stock cannot
      cover.
    - InvalidDeliveryTransitionError for delivery updates out of order.
"""

from collections.abc import Mapping, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from relief_kernel.domain.clock import Clock
from relief_kernel.domain.dtos import (
    ApprovalResult,
    RequestCreated,
    RequestItemSpec,
    RequestWarning,
    StockRequestView,
)
from relief_kernel.domain.references import request_number
from relief_kernel.domain.request_lifecycle import (
    DeliveryStatus,
    GRANTED_REQUEST_STATUSES,
    RequestStatus,
    can_advance_delivery,
    can_transition,
    review_outcome,
)
from relief_kernel.domain.values import PROVINCIAL_DISPLAY_NAME, StockSide
from relief_kernel.exceptions import (
    ApprovedQuantityOutOfRangeError,
    ConcurrentUpdateError,
    DuplicateRequestLineError,
    EmptyRequestError,
    InactiveStockItemError,
    InsufficientStockError,
    InvalidDeliveryTransitionError,
    InvalidFieldError,
    NonPositiveQuantityError,
    NothingApprovedError,
    RequestAlreadyReviewedError,
    StockRequestNotFoundError,
    UnknownRequestLineError,
)
from relief_kernel.logging_config import get_logger
from relief_kernel.models.request import StockRequest, StockRequestLine
from relief_kernel.services.base import BaseService
from relief_kernel.services.sequence_service import SequenceService
from relief_kernel.services.shelter_service import ShelterService
from relief_kernel.services.stock_ledger import StockLedgerService
from relief_kernel.services.stock_store import DEFAULT_MAX_ATTEMPTS, StockRecordStore

logger = get_logger("services.request_workflow")


class RequestWorkflowService(BaseService):

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        ledger: StockLedgerService | None = None,
        max_update_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        super().__init__(session, clock)
        self._ledger = ledger or StockLedgerService(
            session, self.clock, max_update_attempts=max_update_attempts
        )
        self._store = StockRecordStore(session, max_attempts=max_update_attempts)
        self._sequence = SequenceService(session)
        self._shelters = ShelterService(session, self.clock)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_for_update(self, request_id: UUID) -> StockRequest:
        request = self.session.execute(
            select(StockRequest)
            .where(StockRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise StockRequestNotFoundError(str(request_id))
        return request

    def _flush_review(self, request: StockRequest) -> None:
        try:
            self.session.flush()
        except StaleDataError:
            raise ConcurrentUpdateError("StockRequest", str(request.id), 1) from None

    @staticmethod
    def _require_pending(request: StockRequest, target: RequestStatus) -> None:
        if not can_transition(RequestStatus(request.status), target):
            logger.warning(
                "request_already_reviewed",
                extra={
                    "request_id": str(request.id),
                    "status": request.status,
                    "attempted": target.value,
                },
            )
            raise RequestAlreadyReviewedError(str(request.id), request.status)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        shelter_id: UUID,
        requested_by: UUID,
        items: Sequence[RequestItemSpec],
        notes: str | None = None,
    ) -> RequestCreated:
        """Store a pending request. Stock quantities are not touched."""
        if not items:
            raise EmptyRequestError()
        seen: set[UUID] = set()
        for wanted in items:
            if wanted.item_id in seen:
                raise DuplicateRequestLineError(str(wanted.item_id))
            seen.add(wanted.item_id)
            if isinstance(wanted.requested_quantity, bool) or not isinstance(
                wanted.requested_quantity, int
            ):
                raise InvalidFieldError("requested_quantity", "must be a whole number")
            if wanted.requested_quantity <= 0:
                raise NonPositiveQuantityError(wanted.requested_quantity)

        self._shelters.require(shelter_id)
        now = self.clock.now()

        lines: list[StockRequestLine] = []
        warnings: list[RequestWarning] = []
        for line_no, wanted in enumerate(items, start=1):
            record = self._store.get(wanted.item_id)
            if not record.is_active:
                raise InactiveStockItemError(str(record.id))
            if wanted.requested_quantity > record.provincial_quantity:
                warnings.append(
                    RequestWarning(
                        item_id=record.id,
                        item_name=record.item_name,
                        requested=wanted.requested_quantity,
                        available=record.provincial_quantity,
                    )
                )
            lines.append(
                StockRequestLine(
                    line_no=line_no,
                    stock_record_id=record.id,
                    item_name=record.item_name,
                    requested_quantity=wanted.requested_quantity,
                    unit=record.unit,
                    reason=wanted.reason,
                )
            )

        number = request_number(now, self._sequence.next_value(SequenceService.STOCK_REQUEST))
        request = StockRequest(
            request_number=number,
            shelter_id=shelter_id,
            requested_by=requested_by,
            requested_at=now,
            notes=notes,
            status=RequestStatus.PENDING.value,
            delivery_status=DeliveryStatus.PENDING.value,
            lines=lines,
        )
        self.session.add(request)
        self.session.flush()

        logger.info(
            "stock_request_created",
            extra={
                "request_id": str(request.id),
                "request_number": number,
                "shelter_id": str(shelter_id),
                "line_count": len(lines),
                "warning_count": len(warnings),
            },
        )
        return RequestCreated(request.to_dto(), tuple(warnings))

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def reject(
        self,
        request_id: UUID,
        reviewed_by: UUID,
        admin_notes: str | None = None,
    ) -> StockRequestView:
        with self.session.begin_nested():
            request = self._load_for_update(request_id)
            self._require_pending(request, RequestStatus.REJECTED)
            request.status = RequestStatus.REJECTED.value
            request.reviewed_by = reviewed_by
            request.reviewed_at = self.clock.now()
            request.admin_notes = admin_notes
            self._flush_review(request)

        logger.info(
            "stock_request_rejected",
            extra={"request_id": str(request_id), "request_number": request.request_number},
        )
        return request.to_dto()

    def approve(
        self,
        request_id: UUID,
        reviewed_by: UUID,
        approved_quantities: Mapping[UUID, int] | None = None,
        admin_notes: str | None = None,
    ) -> ApprovalResult:
        """
        Grant a pending request, fully or partially.

        ``approved_quantities`` maps item id to the granted quantity
        (0..requested). Lines left out default to the full request, capped
        at the provincial quantity on hand.
        """
        approved_quantities = dict(approved_quantities or {})

        with self.session.begin_nested():
            request = self._load_for_update(request_id)
            self._require_pending(request, RequestStatus.APPROVED)

            line_items = {line.stock_record_id for line in request.lines}
            for item_id in approved_quantities:
                if item_id not in line_items:
                    raise UnknownRequestLineError(str(request.id), str(item_id))

            records = self._store.lock_many(line_items)

            plan: list[tuple[StockRequestLine, int]] = []
            for line in request.lines:
                available = records[line.stock_record_id].provincial_quantity
                if line.stock_record_id in approved_quantities:
                    granted = approved_quantities[line.stock_record_id]
                    if (
                        isinstance(granted, bool)
                        or not isinstance(granted, int)
                        or not 0 <= granted <= line.requested_quantity
                    ):
                        raise ApprovedQuantityOutOfRangeError(
                            str(line.stock_record_id), granted, line.requested_quantity
                        )
                else:
                    granted = min(line.requested_quantity, available)
                plan.append((line, granted))

            if not any(granted for _, granted in plan):
                raise NothingApprovedError(str(request.id))

            for line, granted in plan:
                available = records[line.stock_record_id].provincial_quantity
                if granted > available:
                    logger.warning(
                        "stock_request_approval_short",
                        extra={
                            "request_id": str(request.id),
                            "item_id": str(line.stock_record_id),
                            "requested": granted,
                            "available": available,
                        },
                    )
                    raise InsufficientStockError(
                        item_id=str(line.stock_record_id),
                        side=PROVINCIAL_DISPLAY_NAME,
                        requested=granted,
                        available=available,
                        item_name=line.item_name,
                    )

            destination = StockSide.shelter(request.shelter_id)
            movements = []
            for line, granted in plan:
                if granted > 0:
                    result = self._ledger.transfer(
                        line.stock_record_id,
                        StockSide.provincial(),
                        destination,
                        granted,
                        reviewed_by,
                        notes=f"Approved stock request {request.request_number}",
                        request_id=request.id,
                        reference_id=request.request_number,
                    )
                    movements.append(result.movement)
                line.approved_quantity = granted

            outcome = review_outcome(
                [granted for _, granted in plan],
                [line.requested_quantity for line, _ in plan],
            )
            request.status = outcome.value
            request.reviewed_by = reviewed_by
            request.reviewed_at = self.clock.now()
            request.admin_notes = admin_notes
            request.delivery_status = DeliveryStatus.IN_TRANSIT.value
            self._flush_review(request)

        logger.info(
            "stock_request_approved",
            extra={
                "request_id": str(request_id),
                "request_number": request.request_number,
                "status": outcome.value,
                "transfer_count": len(movements),
            },
        )
        return ApprovalResult(request.to_dto(), tuple(movements))

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def advance_delivery(
        self,
        request_id: UUID,
        target: DeliveryStatus,
        performed_by: UUID,
    ) -> StockRequestView:
        """Move delivery tracking forward; only granted requests are tracked."""
        target = DeliveryStatus(target)
        with self.session.begin_nested():
            request = self._load_for_update(request_id)
            current = DeliveryStatus(request.delivery_status)
            if (
                RequestStatus(request.status) not in GRANTED_REQUEST_STATUSES
                or not can_advance_delivery(current, target)
            ):
                raise InvalidDeliveryTransitionError(
                    str(request.id), current.value, target.value
                )
            request.delivery_status = target.value
            if target == DeliveryStatus.DELIVERED:
                request.delivered_at = self.clock.now()
            self._flush_review(request)

        logger.info(
            "stock_request_delivery_updated",
            extra={
                "request_id": str(request_id),
                "from_status": current.value,
                "to_status": target.value,
                "performed_by": str(performed_by),
            },
        )
        return request.to_dto()

    def mark_delivered(self, request_id: UUID, performed_by: UUID) -> StockRequestView:
        return self.advance_delivery(request_id, DeliveryStatus.DELIVERED, performed_by)
