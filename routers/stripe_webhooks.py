# routers/stripe_webhooks.py

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool

from core.logging_config import logger
from core.stripe_helpers import StripePaymentGateway
from dependencies.services import get_grant_access_engine, get_payment_gateway
from models.access_request import ReconcileResult
from services.grant_access import GrantAccessEngine

router = APIRouter(
    prefix="/webhooks/stripe",
    tags=["Webhooks"],
)


# -----------------------------------------------------
# POST /webhooks/stripe/payments
# Grant access payment events
# -----------------------------------------------------
@router.post("/payments", response_model=ReconcileResult)
async def handle_stripe_payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    gateway: StripePaymentGateway = Depends(get_payment_gateway),
    engine: GrantAccessEngine = Depends(get_grant_access_engine),
):
    """
    Verifies the signature (400 when invalid), then always acknowledges
    with 200: unmatched and unknown events are logged, not rejected, so
    Stripe does not retry them forever.
    """
    body = await request.body()

    event = gateway.parse_webhook(body, stripe_signature)
    payment_event = gateway.classify(event)

    logger.info(f"Stripe webhook received: {payment_event.event_type} ({payment_event.event_id})")

    return await run_in_threadpool(engine.reconcile_webhook_event, payment_event)
