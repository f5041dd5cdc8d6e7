"""Minio-backed implementations."""

from .payment_gateway import MinioPaymentGateway

__all__ = ["MinioPaymentGateway"]
