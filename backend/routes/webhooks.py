"""Webhook Routes - payment provider (Stripe) events.

POST /api/webhooks/payment - Stripe webhook endpoint
POST /api/webhooks/stripe - Alias (Stripe may be configured with this URL)

400 when the Stripe-Signature header is missing or invalid (nothing is
written); 200 for every verified event, including ones that could not be
reconciled (logged and audited instead).
"""
from fastapi import APIRouter, Depends, Header, Request
from database import get_database, get_transaction_factory
from services.payment_reconciliation import PaymentReconciliationHandler
from services.stripe_webhook_service import StripeWebhookService
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def get_webhook_service(
    db=Depends(get_database),
    transaction=Depends(get_transaction_factory),
) -> StripeWebhookService:
    return StripeWebhookService(db, PaymentReconciliationHandler(db, transaction))


async def _handle_stripe_webhook(request: Request, stripe_signature: str, service: StripeWebhookService):
    payload = await request.body()
    message, details = await service.process_webhook(payload=payload, signature=stripe_signature)
    return {"received": True, "message": message, "details": details}


@router.post("/payment")
async def payment_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    service: StripeWebhookService = Depends(get_webhook_service),
):
    return await _handle_stripe_webhook(request, stripe_signature, service)


@router.post("/stripe")
async def stripe_webhook_alias(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    service: StripeWebhookService = Depends(get_webhook_service),
):
    """Alias for /api/webhooks/payment"""
    return await _handle_stripe_webhook(request, stripe_signature, service)
