"""
In-memory implementation of RequestRepository.
"""

import logging
import uuid
from typing import List, Optional

from pharmacy.domain import MedicationRequest, RequestStatus, UrgencyLevel
from pharmacy.repositories import RequestRepository, UnitOfWork

from .unit_of_work import active_tables

logger = logging.getLogger(__name__)


class MemoryRequestRepository(RequestRepository):
    async def generate_request_id(self) -> str:
        return str(uuid.uuid4())

    async def get(
        self, uow: UnitOfWork, request_id: str
    ) -> Optional[MedicationRequest]:
        request = active_tables(uow).requests.get(request_id)
        return request.model_copy(deep=True) if request else None

    async def get_for_update(
        self, uow: UnitOfWork, request_id: str
    ) -> Optional[MedicationRequest]:
        # The memory unit of work already holds the database lock.
        return await self.get(uow, request_id)

    async def save(self, uow: UnitOfWork, request: MedicationRequest) -> None:
        active_tables(uow).requests[request.request_id] = request.model_copy(
            deep=True
        )
        logger.debug(
            "Saved request to memory",
            extra={
                "request_id": request.request_id,
                "status": request.status.value,
            },
        )

    async def list_requests(
        self,
        uow: UnitOfWork,
        user_id: Optional[str] = None,
        pharmacy_id: Optional[str] = None,
        status: Optional[RequestStatus] = None,
        urgency: Optional[UrgencyLevel] = None,
    ) -> List[MedicationRequest]:
        matches = [
            request.model_copy(deep=True)
            for request in active_tables(uow).requests.values()
            if (user_id is None or request.user_id == user_id)
            and (pharmacy_id is None or request.pharmacy_id == pharmacy_id)
            and (status is None or request.status == status)
            and (urgency is None or request.urgency == urgency)
        ]
        return sorted(matches, key=lambda r: r.requested_at, reverse=True)
