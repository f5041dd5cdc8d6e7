"""
Medication requests API router.

Routes defined at root level, mounted with the '/requests' prefix:

- POST / - submit a request (patients)
- GET / - list requests visible to the caller (paginated)
- GET /{request_id} - fetch one request
- PATCH /{request_id} - edit a pending request (owner)
- PATCH /{request_id}/status - move a request along its lifecycle (staff)
- POST /{request_id}/cancel - cancel a request
"""

import logging
from typing import Optional, cast

from fastapi import APIRouter, Depends
from fastapi_pagination import Page, paginate

from pharmacy.api.dependencies import (
    get_actor,
    get_medication_request_use_case,
)
from pharmacy.api.requests import UpdateRequestStatusRequest
from pharmacy.domain import (
    Actor,
    CreateMedicationRequest,
    MedicationRequest,
    RequestStatus,
    UpdateMedicationRequest,
    UrgencyLevel,
)
from pharmacy.usecase import MedicationRequestUseCase

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=MedicationRequest, status_code=201)
async def submit_request(
    body: CreateMedicationRequest,
    actor: Actor = Depends(get_actor),
    use_case: MedicationRequestUseCase = Depends(
        get_medication_request_use_case
    ),
) -> MedicationRequest:
    return await use_case.submit_request(actor, body)


@router.get("", response_model=Page[MedicationRequest])
async def list_requests(
    status: Optional[RequestStatus] = None,
    urgency: Optional[UrgencyLevel] = None,
    user_id: Optional[str] = None,
    pharmacy_id: Optional[str] = None,
    actor: Actor = Depends(get_actor),
    use_case: MedicationRequestUseCase = Depends(
        get_medication_request_use_case
    ),
) -> Page[MedicationRequest]:
    requests = await use_case.list_requests(
        actor,
        user_id=user_id,
        pharmacy_id=pharmacy_id,
        status=status,
        urgency=urgency,
    )
    logger.debug("Requests listed", extra={"count": len(requests)})
    return cast(Page[MedicationRequest], paginate(requests))


@router.get("/{request_id}", response_model=MedicationRequest)
async def get_request(
    request_id: str,
    actor: Actor = Depends(get_actor),
    use_case: MedicationRequestUseCase = Depends(
        get_medication_request_use_case
    ),
) -> MedicationRequest:
    return await use_case.get_request(actor, request_id)


@router.patch("/{request_id}", response_model=MedicationRequest)
async def update_request(
    request_id: str,
    body: UpdateMedicationRequest,
    actor: Actor = Depends(get_actor),
    use_case: MedicationRequestUseCase = Depends(
        get_medication_request_use_case
    ),
) -> MedicationRequest:
    return await use_case.update_request(actor, request_id, body)


@router.patch("/{request_id}/status", response_model=MedicationRequest)
async def update_request_status(
    request_id: str,
    body: UpdateRequestStatusRequest,
    actor: Actor = Depends(get_actor),
    use_case: MedicationRequestUseCase = Depends(
        get_medication_request_use_case
    ),
) -> MedicationRequest:
    return await use_case.update_request_status(
        actor,
        request_id,
        body.status,
        notes=body.notes,
        estimated_availability=body.estimated_availability,
    )


@router.post("/{request_id}/cancel", response_model=MedicationRequest)
async def cancel_request(
    request_id: str,
    actor: Actor = Depends(get_actor),
    use_case: MedicationRequestUseCase = Depends(
        get_medication_request_use_case
    ),
) -> MedicationRequest:
    return await use_case.cancel_request(actor, request_id)
