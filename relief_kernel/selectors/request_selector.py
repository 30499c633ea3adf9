"""Stock request lookups."""

from uuid import UUID

from sqlalchemy import select

from relief_kernel.domain.dtos import StockRequestView
from relief_kernel.domain.request_lifecycle import RequestStatus
from relief_kernel.exceptions import StockRequestNotFoundError
from relief_kernel.models.request import StockRequest
from relief_kernel.selectors.base import BaseSelector


class RequestSelector(BaseSelector):

    def get(self, request_id: UUID) -> StockRequestView:
        request = self.session.get(StockRequest, request_id, populate_existing=True)
        if request is None:
            raise StockRequestNotFoundError(str(request_id))
        return request.to_dto()

    def get_by_number(self, request_number: str) -> StockRequestView:
        request = self.session.execute(
            select(StockRequest).where(StockRequest.request_number == request_number)
        ).scalar_one_or_none()
        if request is None:
            raise StockRequestNotFoundError(request_number)
        return request.to_dto()

    def list_requests(
        self,
        shelter_id: UUID | None = None,
        status: RequestStatus | str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[StockRequestView]:
        """Newest first."""
        stmt = select(StockRequest).order_by(
            StockRequest.requested_at.desc(), StockRequest.request_number.desc()
        )
        if shelter_id is not None:
            stmt = stmt.where(StockRequest.shelter_id == shelter_id)
        if status is not None:
            stmt = stmt.where(StockRequest.status == RequestStatus(status).value)
        rows = self.session.execute(
            stmt.limit(max(1, limit)).offset(max(0, offset))
        ).scalars().all()
        return [row.to_dto() for row in rows]
