"""ShelterService -- registration and status of shelters."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from relief_kernel.domain.dtos import ShelterView
from relief_kernel.domain.values import ShelterStatus
from relief_kernel.exceptions import (
    DuplicateShelterCodeError,
    InvalidFieldError,
    ShelterNotFoundError,
)
from relief_kernel.logging_config import get_logger
from relief_kernel.models.shelter import Shelter
from relief_kernel.services.base import BaseService

logger = get_logger("services.shelter")


class ShelterService(BaseService):

    def register(
        self,
        code: str,
        name: str,
        created_by: UUID,
        capacity: int | None = None,
    ) -> ShelterView:
        code = (code or "").strip().upper()
        name = (name or "").strip()
        if not code:
            raise InvalidFieldError("code", "is required")
        if not name:
            raise InvalidFieldError("name", "is required")
        if capacity is not None and capacity < 0:
            raise InvalidFieldError("capacity", "cannot be negative")

        shelter = Shelter(
            code=code,
            name=name,
            capacity=capacity,
            status=ShelterStatus.ACTIVE.value,
            created_by_id=created_by,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(shelter)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateShelterCodeError(code) from None
        savepoint.commit()

        logger.info(
            "shelter_registered",
            extra={"shelter_id": str(shelter.id), "code": code},
        )
        return shelter.to_dto()

    def require(self, shelter_id: UUID) -> Shelter:
        shelter = self.session.get(Shelter, shelter_id)
        if shelter is None:
            raise ShelterNotFoundError(str(shelter_id))
        return shelter

    def set_status(
        self,
        shelter_id: UUID,
        status: ShelterStatus | str,
        updated_by: UUID,
    ) -> ShelterView:
        try:
            new_status = ShelterStatus(status)
        except ValueError:
            raise InvalidFieldError(
                "status", f"must be one of {[s.value for s in ShelterStatus]}"
            ) from None
        shelter = self.require(shelter_id)
        old_status = shelter.status
        shelter.status = new_status.value
        shelter.updated_by_id = updated_by
        self.session.flush()
        logger.info(
            "shelter_status_changed",
            extra={
                "shelter_id": str(shelter_id),
                "from_status": old_status,
                "to_status": new_status.value,
            },
        )
        return shelter.to_dto()

    def find_by_code(self, code: str) -> ShelterView | None:
        shelter = self.session.execute(
            select(Shelter).where(Shelter.code == code.strip().upper())
        ).scalar_one_or_none()
        return shelter.to_dto() if shelter is not None else None
