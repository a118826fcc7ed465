"""
Payment endpoints.

create-intent is called by the storefront with the shopper's JWT. The webhook
is called by Stripe and is authenticated by its signature alone, so it reads
the raw request body before anything parses it.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import get_current_user

from .gateway import PaymentGateway, get_payment_gateway
from .schemas import CreateIntentRequest, CreateIntentResponse, WebhookAck
from .service import PaymentService
from .webhook import WebhookReconciler

router = APIRouter()
public_router = APIRouter()


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "payment", "status": "running"}


@router.post("/create-intent", response_model=CreateIntentResponse, status_code=status.HTTP_201_CREATED)
async def create_intent(
    body: CreateIntentRequest,
    response: Response,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    result = await PaymentService.create_intent(db, gateway, user_id, body.session_id)
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return CreateIntentResponse(order_id=result.order_id, client_secret=result.client_secret)


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    payload = await request.body()
    event = gateway.construct_event(payload, stripe_signature)
    await WebhookReconciler.handle_event(db, event)
    # Handled and ignored events are both acknowledged so Stripe stops retrying
    return WebhookAck()
