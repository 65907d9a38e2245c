"""Payment Routes - start a Stripe Checkout payment for a project.

POST /api/payment-intents
    body: {projectId, amount (cents), paymentOption?: "full" | "deposit"}
"""
from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from database import get_database
from middleware import client_route_guard
from models import PaymentOption
from services.stripe_service import StripeService
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["payments"])


class PaymentIntentRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_id: str = Field(min_length=1)
    amount: int = Field(gt=0, description="Amount in cents")
    payment_option: PaymentOption = PaymentOption.FULL


def get_stripe_service(db=Depends(get_database)) -> StripeService:
    return StripeService(db)


@router.post("/payment-intents")
async def create_payment_intent(
    body: PaymentIntentRequest,
    origin: Optional[str] = Header(None),
    current_user: dict = Depends(client_route_guard),
    service: StripeService = Depends(get_stripe_service),
):
    """Create a Checkout Session and its PENDING Payment. Redirects go back to the caller's origin."""
    return await service.create_payment_intent(
        current_user,
        body.project_id,
        body.amount,
        payment_option=body.payment_option,
        origin_url=origin,
    )
