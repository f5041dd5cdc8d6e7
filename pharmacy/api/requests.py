"""
Pydantic models for API requests.
These define the contract between the API and external clients.

Inputs that are also use-case inputs (CreateOrderRequest,
CreateMedicationRequest, UpdateOrderDetails, UpdateMedicationRequest) live
in pharmacy.domain; this module only holds the bodies of endpoints that
take plain arguments.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from pharmacy.domain import OrderStatus, PaymentMethod, RequestStatus


class CancelOrderRequest(BaseModel):
    """Request model for cancelling an order."""

    reason: Optional[str] = None


class ProcessPaymentRequest(BaseModel):
    payment_method: PaymentMethod


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    location: Optional[str] = None
    notes: Optional[str] = None


class AssignDeliveryPartnerRequest(BaseModel):
    delivery_partner_id: str

    @field_validator("delivery_partner_id")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Delivery partner id is required")
        return v.strip()


class UpdateRequestStatusRequest(BaseModel):
    status: RequestStatus
    notes: Optional[str] = None
    estimated_availability: Optional[datetime] = None
