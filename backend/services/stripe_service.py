"""Stripe Service - payment initiation for submitted projects.

Creates a Stripe Checkout Session (one-time payment) and the matching
PENDING Payment row. The session id is the key the webhook later uses to
reconcile the Payment.

Key Principles:
- Amounts arrive in cents and are stored as dollars (Decimal)
- Metadata carries project_id/user_id/payment_id for webhook tracing
- Stripe failures surface as ExternalProviderError (never retried here)
"""
import stripe
import os
import logging
from decimal import Decimal
from typing import Optional, Dict, Any
from pymongo.errors import PyMongoError

from models import Payment, PaymentOption, AuditAction
from services.pricing import deposit_amount
from services.project_lifecycle import is_authorized
from utils.audit import create_audit_log
from utils.errors import ExternalProviderError, Forbidden, InternalError, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

# Initialize Stripe (prefer STRIPE_SECRET_KEY; fallback STRIPE_API_KEY)
stripe.api_key = (os.getenv("STRIPE_SECRET_KEY") or os.getenv("STRIPE_API_KEY") or "").strip()

CURRENCY = "usd"


def _cents_to_dollars(amount_cents: int) -> Decimal:
    return (Decimal(amount_cents) / Decimal(100)).quantize(Decimal("0.01"))


def resolve_redirect_base(origin_url: Optional[str]) -> str:
    """Origin header, else FRONTEND_ORIGIN. Must be an http(s) base URL."""
    base = (origin_url or os.getenv("FRONTEND_ORIGIN") or "").strip().rstrip("/")
    if not base.startswith("http://") and not base.startswith("https://"):
        raise ValidationFailed(
            [{"field": "origin", "message": "Redirect base URL must be http or https"}],
            message="Invalid redirect base URL",
        )
    return base


def payment_quote(project: Dict) -> Dict[str, Any]:
    """Full and deposit amounts (cents) for a project's estimated cost."""
    total = int(project.get("estimated_cost") or 0)
    return {
        "project_id": project["project_id"],
        "currency": CURRENCY,
        "estimated_cost": total,
        "options": {
            PaymentOption.FULL.value: total * 100,
            PaymentOption.DEPOSIT.value: deposit_amount(total) * 100,
        },
    }


class StripeService:
    """Stripe payment operations."""

    def __init__(self, db):
        self.db = db

    async def create_payment_intent(
        self,
        actor: Dict,
        project_id: str,
        amount_cents: int,
        payment_option: PaymentOption = PaymentOption.FULL,
        origin_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Start a payment for a project.

        Args:
            actor: Authenticated user (owner of the project or admin)
            project_id: ProjectForm id
            amount_cents: Positive amount in cents
            payment_option: full or deposit (recorded on the Payment)
            origin_url: Base URL for success/cancel redirects

        Returns:
            Dict with payment_id, session_id, checkout_url and client_secret
        """
        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
            raise ValidationFailed([{"field": "amount", "message": "Amount must be a positive number of cents"}])

        project = await self.db.project_forms.find_one({"project_id": project_id}, {"_id": 0})
        if not project:
            raise NotFound("Project not found")
        if not is_authorized(actor, project):
            raise Forbidden()

        if not (stripe.api_key or "").strip():
            raise ExternalProviderError("stripe", "STRIPE_SECRET_KEY or STRIPE_API_KEY is not set")

        base = resolve_redirect_base(origin_url)
        payment_option = PaymentOption(payment_option)
        payment = Payment(
            project_form_id=project_id,
            amount=_cents_to_dollars(amount_cents),
            currency=CURRENCY,
            payment_option=payment_option,
        )
        metadata = {
            "project_id": project_id,
            "user_id": actor["user_id"],
            "payment_id": payment.payment_id,
            "payment_option": payment_option.value,
        }

        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                payment_method_types=["card"],
                client_reference_id=project_id,
                customer_email=actor.get("email"),
                line_items=[{
                    "price_data": {
                        "currency": CURRENCY,
                        "product_data": {
                            "name": project.get("business_name") or "Website project",
                            "description": f"Project {project_id} ({payment_option.value} payment)",
                        },
                        "unit_amount": amount_cents,
                    },
                    "quantity": 1,
                }],
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                success_url=f"{base}/thank-you?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base}/payment?projectId={project_id}",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout error for project {project_id}: {e}")
            raise ExternalProviderError("stripe", str(e)) from e

        payment.stripe_session_id = session.id
        payment_intent = getattr(session, "payment_intent", None)
        if isinstance(payment_intent, str):
            payment.payment_intent_id = payment_intent

        try:
            await self.db.payments.insert_one(payment.to_document())
        except PyMongoError as e:
            logger.error(
                f"PAYMENT_RECORD_FAILED session_id={session.id} payment_id={payment.payment_id} "
                f"project_id={project_id}: {e}"
            )
            self._expire_orphan_session(session.id)
            raise InternalError("Payment could not be recorded") from e

        await create_audit_log(
            self.db,
            action=AuditAction.PAYMENT_INITIATED,
            actor_id=actor["user_id"],
            actor_role=actor.get("role"),
            resource_type="payment",
            resource_id=payment.payment_id,
            metadata={
                "project_id": project_id,
                "amount": str(payment.amount),
                "payment_option": payment_option.value,
                "session_id": session.id,
            },
        )
        logger.info(f"Checkout session created for project {project_id}: {session.id}")

        return {
            "payment_id": payment.payment_id,
            "session_id": session.id,
            "checkout_url": getattr(session, "url", None),
            "client_secret": getattr(session, "client_secret", None),
            "amount": str(payment.amount),
            "status": payment.status.value,
        }

    def _expire_orphan_session(self, session_id: str):
        """Expire a session whose Payment row was never written so it cannot be paid."""
        try:
            stripe.checkout.Session.expire(session_id)
            logger.info(f"Expired orphan checkout session {session_id}")
        except stripe.StripeError as e:
            logger.error(f"Could not expire orphan checkout session {session_id}: {e}")
