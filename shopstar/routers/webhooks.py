# shopstar/routers/webhooks.py
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from shopstar.core.payment_gateway import (
    PaymentGateway,
    WebhookSignatureError,
    get_payment_gateway,
)
from shopstar.database import get_session
from shopstar.services.order_service import OrderService, get_order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    gateway: PaymentGateway | None = Depends(get_payment_gateway),
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
) -> dict[str, bool]:
    """
    Receive payment events from Stripe.

    The raw body is required for signature verification, so the payload
    is read directly instead of being parsed into a schema.
    """
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stripe not configured",
        )

    payload = await request.body()
    try:
        event = gateway.construct_webhook_event(payload, stripe_signature or "")
    except WebhookSignatureError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook Error: {e}",
        )

    # DB work and email sends block, keep them off the event loop
    await run_in_threadpool(service.handle_webhook_event, session, event)
    return {"received": True}
