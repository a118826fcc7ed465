from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.repository import OrderRepository, WebhookOutcome
from shared.errors import ValidationError
from shared.observability import ecomm_webhook_events_total

logger = structlog.get_logger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
PAYMENT_CANCELED = "payment_intent.canceled"

HANDLED_EVENT_TYPES = frozenset({PAYMENT_SUCCEEDED, PAYMENT_FAILED, PAYMENT_CANCELED})


def _parse_order_id(raw: Any) -> int:
    if isinstance(raw, bool):
        raw = None
    try:
        order_id = int(str(raw).strip())
    except (TypeError, ValueError):
        order_id = 0
    if order_id <= 0:
        raise ValidationError(
            "metadata.orderId is missing or invalid", details={"field": "metadata.orderId"}
        )
    return order_id


def _failure_reason(intent: dict[str, Any]) -> str:
    error = intent.get("last_payment_error") or {}
    return str(error.get("message") or error.get("code") or "payment_failed")


class WebhookReconciler:
    """Applies verified payment processor events to orders."""

    @staticmethod
    async def handle_event(db: AsyncSession, event: dict[str, Any]) -> WebhookOutcome:
        event_type = event.get("type") or "unknown"
        event_id: Optional[str] = event.get("id")
        intent = (event.get("data") or {}).get("object") or {}

        if event_type not in HANDLED_EVENT_TYPES:
            logger.info("webhook_ignored", event_id=event_id, type=event_type)
            ecomm_webhook_events_total.labels(type=event_type, outcome=WebhookOutcome.IGNORED.value).inc()
            return WebhookOutcome.IGNORED

        order_id = _parse_order_id((intent.get("metadata") or {}).get("orderId"))
        intent_id = intent.get("id")
        if not intent_id:
            raise ValidationError("Payment intent id is missing from the event", details={"field": "data.object.id"})

        meta: dict[str, Any] = {"event_type": event_type}
        if event_id:
            meta["event_id"] = event_id

        if event_type == PAYMENT_SUCCEEDED:
            outcome = await OrderRepository.mark_paid(db, order_id, intent_id, meta=meta)
        else:
            if event_type == PAYMENT_FAILED:
                meta["reason"] = _failure_reason(intent)
            else:
                meta["reason"] = str(intent.get("cancellation_reason") or "canceled")
            outcome = await OrderRepository.mark_cancelled(db, order_id, intent_id, meta=meta)

        ecomm_webhook_events_total.labels(type=event_type, outcome=outcome.value).inc()
        logger.info(
            "webhook_processed",
            event_id=event_id,
            type=event_type,
            order_id=order_id,
            payment_intent_id=intent_id,
            outcome=outcome.value,
        )
        return outcome
