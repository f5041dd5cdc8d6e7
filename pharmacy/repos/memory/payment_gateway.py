"""
In-memory payment gateway that behaves like the Stripe test mode: intents
are created in ``requires_confirmation``, confirmed once into
``succeeded``, and only succeeded intents can be refunded.
"""

import asyncio
import logging
import secrets
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set

from pharmacy.domain import PaymentIntent, Refund, to_minor_units
from pharmacy.errors import PaymentGatewayError
from pharmacy.repositories import PaymentGateway

logger = logging.getLogger(__name__)


class MemoryPaymentGateway(PaymentGateway):
    """
    Args:
        fail_on: Operation names (``create_intent``, ``confirm_intent``,
            ``create_refund``) that raise PaymentGatewayError
        latency: Seconds to sleep before each call
    """

    def __init__(
        self, fail_on: Iterable[str] = (), latency: float = 0.0
    ) -> None:
        self.fail_on: Set[str] = set(fail_on)
        self.latency = latency
        self.intents: Dict[str, PaymentIntent] = {}
        self.refunds: Dict[str, Refund] = {}
        self.calls: List[str] = []

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self.latency:
            await asyncio.sleep(self.latency)
        if operation in self.fail_on:
            logger.warning(
                "Simulated payment gateway failure",
                extra={"operation": operation},
            )
            raise PaymentGatewayError(f"Simulated failure in {operation}")

    async def create_intent(
        self, amount: Decimal, currency: str, metadata: Dict[str, str]
    ) -> PaymentIntent:
        await self._enter("create_intent")
        intent_id = f"pi_{secrets.token_hex(12)}"
        intent = PaymentIntent(
            id=intent_id,
            amount=to_minor_units(amount),
            currency=currency,
            metadata=dict(metadata),
            client_secret=f"{intent_id}_secret_{secrets.token_hex(8)}",
        )
        self.intents[intent.id] = intent
        logger.info(
            "Payment intent created",
            extra={
                "intent_id": intent.id,
                "amount": str(amount),
                "currency": currency,
            },
        )
        return intent.model_copy()

    async def confirm_intent(self, intent_id: str) -> PaymentIntent:
        await self._enter("confirm_intent")
        intent = self.intents.get(intent_id)
        if intent is None:
            raise PaymentGatewayError(f"Payment intent {intent_id} not found")
        if intent.status == "canceled":
            raise PaymentGatewayError(
                "Cannot confirm a canceled payment intent"
            )
        if intent.status == "succeeded":
            raise PaymentGatewayError("Payment intent has already succeeded")

        intent.status = "succeeded"
        logger.info("Payment intent confirmed", extra={"intent_id": intent_id})
        return intent.model_copy()

    async def create_refund(
        self, intent_id: str, amount: Optional[int] = None
    ) -> Refund:
        await self._enter("create_refund")
        intent = self.intents.get(intent_id)
        if intent is None:
            raise PaymentGatewayError(f"Payment intent {intent_id} not found")
        if intent.status != "succeeded":
            raise PaymentGatewayError(
                "Can only refund a succeeded payment intent"
            )

        refund = Refund(
            id=f"re_{secrets.token_hex(12)}",
            payment_intent_id=intent_id,
            amount=intent.amount if amount is None else amount,
        )
        self.refunds[refund.id] = refund
        logger.info(
            "Refund created",
            extra={
                "refund_id": refund.id,
                "intent_id": intent_id,
                "amount": refund.amount,
            },
        )
        return refund.model_copy()
