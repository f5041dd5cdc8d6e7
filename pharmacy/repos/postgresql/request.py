"""
PostgreSQL implementation of RequestRepository.
"""

import logging
import uuid
from typing import Any, List, Optional

from pharmacy.domain import MedicationRequest, RequestStatus, UrgencyLevel
from pharmacy.repositories import RequestRepository, UnitOfWork

from .unit_of_work import active_connection

logger = logging.getLogger(__name__)


class PostgreSQLRequestRepository(RequestRepository):
    """
    PostgreSQL implementation of RequestRepository.
    Requests are stored as JSON documents in ``medication_requests``.
    """

    async def generate_request_id(self) -> str:
        """Generate a unique request ID using uuid4"""
        return str(uuid.uuid4())

    async def get(
        self, uow: UnitOfWork, request_id: str
    ) -> Optional[MedicationRequest]:
        row = await active_connection(uow).fetchrow(
            """
            SELECT request_data
            FROM medication_requests
            WHERE request_id = $1
            """,
            request_id,
        )
        return (
            MedicationRequest.model_validate_json(row["request_data"])
            if row
            else None
        )

    async def get_for_update(
        self, uow: UnitOfWork, request_id: str
    ) -> Optional[MedicationRequest]:
        row = await active_connection(uow).fetchrow(
            """
            SELECT request_data
            FROM medication_requests
            WHERE request_id = $1
            FOR UPDATE
            """,
            request_id,
        )
        return (
            MedicationRequest.model_validate_json(row["request_data"])
            if row
            else None
        )

    async def save(self, uow: UnitOfWork, request: MedicationRequest) -> None:
        query = """
            INSERT INTO medication_requests (
                request_id, user_id, pharmacy_id, status, urgency,
                requested_at, request_data
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (request_id)
            DO UPDATE SET
                status = EXCLUDED.status,
                urgency = EXCLUDED.urgency,
                request_data = EXCLUDED.request_data
        """
        await active_connection(uow).execute(
            query,
            request.request_id,
            request.user_id,
            request.pharmacy_id,
            request.status.value,
            request.urgency.value,
            request.requested_at,
            request.model_dump_json(),
        )
        logger.debug(
            "Saved request to PostgreSQL",
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
        conditions: List[str] = []
        params: List[Any] = []
        for column, value in (
            ("user_id", user_id),
            ("pharmacy_id", pharmacy_id),
            ("status", status.value if status else None),
            ("urgency", urgency.value if urgency else None),
        ):
            if value is not None:
                params.append(value)
                conditions.append(f"{column} = ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await active_connection(uow).fetch(
            f"""
            SELECT request_data
            FROM medication_requests
            {where}
            ORDER BY requested_at DESC
            """,
            *params,
        )
        return [
            MedicationRequest.model_validate_json(row["request_data"])
            for row in rows
        ]
