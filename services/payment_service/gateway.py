"""Payment processor port and its Stripe adapter.

Checkout and webhook handling depend only on ``PaymentGateway``; the Stripe
SDK is touched in this module alone. Tests swap in their own gateway through
FastAPI's dependency overrides on ``get_payment_gateway``.
"""
import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import stripe
import structlog

from shared.config.settings import (
    PAYMENT_PROCESSOR_TIMEOUT_SECONDS,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
)
from shared.errors import (
    PaymentProcessorError,
    PaymentProcessorUnavailable,
    WebhookSignatureInvalid,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    client_secret: str
    status: Optional[str] = None


class PaymentGateway(ABC):
    """Abstract payment processor interface."""

    @abstractmethod
    async def create_intent(
        self,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
        timeout: Optional[float] = None,
    ) -> PaymentIntent:
        """Create (or, for a repeated idempotency key, return) a payment intent."""
        ...

    @abstractmethod
    async def retrieve_intent(self, intent_id: str, timeout: Optional[float] = None) -> PaymentIntent:
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: Optional[str]) -> dict[str, Any]:
        """Verify a webhook signature and return the decoded event."""
        ...


class StripeGateway(PaymentGateway):
    def __init__(self, secret_key: str = STRIPE_SECRET_KEY, webhook_secret: str = STRIPE_WEBHOOK_SECRET):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    def _require_key(self) -> str:
        if not self.secret_key:
            raise PaymentProcessorUnavailable("Stripe is not configured")
        return self.secret_key

    async def _call(self, operation: str, fn, timeout: Optional[float], **kwargs):
        # The SDK is blocking; run it off the event loop and bound the wait
        timeout = PAYMENT_PROCESSOR_TIMEOUT_SECONDS if timeout is None else timeout
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, **kwargs), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("payment_processor_timeout", operation=operation, timeout=timeout)
            raise PaymentProcessorUnavailable("Payment processor timed out")
        except stripe.StripeError as e:
            logger.error("payment_processor_failed", operation=operation, error=str(e),
                         error_type=type(e).__name__)
            raise PaymentProcessorError(
                "Payment processor request failed", details={"processor_code": e.code}
            )

    async def create_intent(
        self,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
        timeout: Optional[float] = None,
    ) -> PaymentIntent:
        intent = await self._call(
            "create_intent",
            stripe.PaymentIntent.create,
            timeout,
            api_key=self._require_key(),
            idempotency_key=idempotency_key,
            amount=amount_cents,
            currency=currency.lower(),
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
        )
        return PaymentIntent(intent_id=intent.id, client_secret=intent.client_secret, status=intent.status)

    async def retrieve_intent(self, intent_id: str, timeout: Optional[float] = None) -> PaymentIntent:
        intent = await self._call(
            "retrieve_intent",
            stripe.PaymentIntent.retrieve,
            timeout,
            id=intent_id,
            api_key=self._require_key(),
        )
        return PaymentIntent(intent_id=intent.id, client_secret=intent.client_secret, status=intent.status)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> dict[str, Any]:
        if not self.webhook_secret:
            raise PaymentProcessorUnavailable("Stripe webhook secret is not configured")
        if not signature:
            raise WebhookSignatureInvalid("Missing Stripe-Signature header")

        # CRITICAL: verify the signature BEFORE trusting the payload
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            raise WebhookSignatureInvalid()
        except ValueError as e:
            raise WebhookSignatureInvalid("Webhook payload is not valid JSON", details={"error": str(e)})

        return json.loads(payload)


def get_payment_gateway() -> PaymentGateway:
    return StripeGateway()
