"""
Minio-backed simulated payment gateway.

Intents and refunds are persisted as JSON objects so that their state
survives process restarts and can be inspected in the Minio console. The
gateway semantics are the same as MemoryPaymentGateway.
"""

import io
import logging
import secrets
from decimal import Decimal
from typing import Dict, Optional

from minio import Minio  # type: ignore[import-untyped]
from minio.error import S3Error  # type: ignore[import-untyped]
from pydantic import BaseModel

from pharmacy.domain import PaymentIntent, Refund, to_minor_units
from pharmacy.errors import PaymentGatewayError
from pharmacy.repositories import PaymentGateway

logger = logging.getLogger(__name__)


class MinioPaymentGateway(PaymentGateway):
    """
    Minio implementation of PaymentGateway. Every Minio failure surfaces as
    PaymentGatewayError.
    """

    def __init__(
        self,
        endpoint: str,
        access_key: str = "minioadmin",
        secret_key: str = "minioadmin",
        intents_bucket: str = "payment-intents",
        refunds_bucket: str = "refunds",
    ):
        logger.debug(
            "Initializing MinioPaymentGateway",
            extra={"minio_endpoint": endpoint},
        )
        self.client = Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=False,
        )
        self.intents_bucket = intents_bucket
        self.refunds_bucket = refunds_bucket
        self._ensure_bucket_exists(self.intents_bucket)
        self._ensure_bucket_exists(self.refunds_bucket)

    def _ensure_bucket_exists(self, bucket_name: str) -> None:
        try:
            if not self.client.bucket_exists(bucket_name):
                logger.info(
                    "Creating payment gateway bucket",
                    extra={"bucket_name": bucket_name},
                )
                self.client.make_bucket(bucket_name)
        except S3Error as e:
            logger.error(
                "Failed to create payment gateway bucket",
                extra={"bucket_name": bucket_name, "error": str(e)},
            )
            raise

    def _put(self, bucket_name: str, object_name: str, obj: BaseModel) -> None:
        payload = obj.model_dump_json().encode("utf-8")
        try:
            self.client.put_object(
                bucket_name=bucket_name,
                object_name=object_name,
                data=io.BytesIO(payload),
                length=len(payload),
                content_type="application/json",
            )
        except S3Error as e:
            logger.error(
                "Failed to persist payment gateway object",
                extra={
                    "bucket": bucket_name,
                    "object_name": object_name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise PaymentGatewayError(
                f"Could not store {object_name}: {e}"
            ) from e
        except Exception as e:
            logger.error(
                "Unexpected error persisting payment gateway object",
                extra={
                    "bucket": bucket_name,
                    "object_name": object_name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise PaymentGatewayError(
                f"Could not store {object_name}: {e}"
            ) from e

    def _get_intent(self, intent_id: str) -> PaymentIntent:
        try:
            response = self.client.get_object(
                bucket_name=self.intents_bucket, object_name=intent_id
            )
            try:
                data = response.read()
            finally:
                response.close()
                response.release_conn()
        except S3Error as e:
            if getattr(e, "code", None) == "NoSuchKey":
                raise PaymentGatewayError(
                    f"Payment intent {intent_id} not found"
                ) from e
            logger.error(
                "Error retrieving payment intent from Minio",
                extra={"intent_id": intent_id, "error": str(e)},
                exc_info=True,
            )
            raise PaymentGatewayError(
                f"Could not load payment intent {intent_id}: {e}"
            ) from e
        except Exception as e:
            logger.error(
                "Unexpected error retrieving payment intent from Minio",
                extra={
                    "intent_id": intent_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise PaymentGatewayError(
                f"Could not load payment intent {intent_id}: {e}"
            ) from e
        return PaymentIntent.model_validate_json(data.decode("utf-8"))

    async def create_intent(
        self, amount: Decimal, currency: str, metadata: Dict[str, str]
    ) -> PaymentIntent:
        intent_id = f"pi_{secrets.token_hex(12)}"
        intent = PaymentIntent(
            id=intent_id,
            amount=to_minor_units(amount),
            currency=currency,
            metadata=dict(metadata),
            client_secret=f"{intent_id}_secret_{secrets.token_hex(8)}",
        )
        self._put(self.intents_bucket, intent.id, intent)
        logger.info(
            "Payment intent created in Minio",
            extra={
                "intent_id": intent.id,
                "amount": str(amount),
                "currency": currency,
                "bucket": self.intents_bucket,
            },
        )
        return intent

    async def confirm_intent(self, intent_id: str) -> PaymentIntent:
        intent = self._get_intent(intent_id)
        if intent.status == "canceled":
            raise PaymentGatewayError(
                "Cannot confirm a canceled payment intent"
            )
        if intent.status == "succeeded":
            raise PaymentGatewayError("Payment intent has already succeeded")

        intent.status = "succeeded"
        self._put(self.intents_bucket, intent.id, intent)
        logger.info(
            "Payment intent confirmed in Minio", extra={"intent_id": intent_id}
        )
        return intent

    async def create_refund(
        self, intent_id: str, amount: Optional[int] = None
    ) -> Refund:
        intent = self._get_intent(intent_id)
        if intent.status != "succeeded":
            raise PaymentGatewayError(
                "Can only refund a succeeded payment intent"
            )

        refund = Refund(
            id=f"re_{secrets.token_hex(12)}",
            payment_intent_id=intent_id,
            amount=intent.amount if amount is None else amount,
        )
        self._put(self.refunds_bucket, refund.id, refund)
        logger.info(
            "Refund created in Minio",
            extra={
                "refund_id": refund.id,
                "intent_id": intent_id,
                "amount": refund.amount,
            },
        )
        return refund
