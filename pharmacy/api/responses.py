"""
Pydantic models for API responses.

Orders and requests are returned as their domain models; these cover the
remaining endpoints.
"""

from datetime import datetime

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime


class InvoiceResponse(BaseModel):
    order_id: str
    order_number: str
    invoice_url: str


class ErrorResponse(BaseModel):
    error: str
    detail: str
