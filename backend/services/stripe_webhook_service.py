"""Stripe Webhook Service - verified, idempotent intake of payment events.

Key Principles:
1. Signature verification: a bad or missing signature stops before any write
2. Idempotency: an event id already PROCESSED is acknowledged and skipped
3. Reconciliation is delegated to PaymentReconciliationHandler
4. Audit logging: failed events are audited

Events Handled:
- checkout.session.completed
- payment_intent.payment_failed
(everything else is acknowledged as a no-op)
"""
import stripe
import os
import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Tuple
from pymongo.errors import DuplicateKeyError
from models import AuditAction, PaymentEvent, PaymentEventStatus
from services.payment_reconciliation import (
    PaymentReconciliationHandler, MalformedEventError, ReconcileError, get_field, parse_event,
)
from utils.audit import create_audit_log
from utils.errors import WebhookPayloadError, WebhookSignatureError

logger = logging.getLogger(__name__)


def _get_webhook_secret() -> str:
    return (os.getenv("STRIPE_WEBHOOK_SECRET") or "").strip()


def _unsigned_webhooks_allowed() -> bool:
    return (os.getenv("ENVIRONMENT") or "").strip().lower() == "development"


def _extract_safe_data(event) -> Dict[str, Any]:
    """Safe subset of event data for the ledger (no secrets, no card data)."""
    obj = get_field(get_field(event, "data"), "object")
    return {
        "id": get_field(event, "id"),
        "type": get_field(event, "type"),
        "created": get_field(event, "created"),
        "livemode": get_field(event, "livemode"),
        "object_id": get_field(obj, "id"),
        "object_type": get_field(obj, "object"),
    }


class StripeWebhookService:
    """Webhook boundary in front of the reconciliation handler."""

    def __init__(self, db, handler: PaymentReconciliationHandler):
        self.db = db
        self.handler = handler

    # =========================================================================
    # Signature verification
    # =========================================================================

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """Verify and parse. Raises WebhookSignatureError / WebhookPayloadError."""
        webhook_secret = _get_webhook_secret()
        if not webhook_secret:
            if not _unsigned_webhooks_allowed():
                logger.error("STRIPE_WEBHOOK_SECRET not set - rejecting webhook")
                raise WebhookSignatureError()
            logger.warning("STRIPE_WEBHOOK_SECRET not set - skipping signature verification (development)")
            try:
                return json.loads(payload)
            except ValueError as e:
                raise WebhookPayloadError() from e

        if not signature:
            logger.error("Webhook rejected: missing Stripe-Signature header")
            raise WebhookSignatureError()
        try:
            return stripe.Webhook.construct_event(payload, signature, webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.error("Webhook signature verification failed: %s", e)
            raise WebhookSignatureError() from e
        except ValueError as e:
            logger.error("Webhook parse error: %s", e)
            raise WebhookPayloadError() from e

    # =========================================================================
    # Event Processing Entry Point
    # =========================================================================

    async def process_webhook(self, payload: bytes, signature: Optional[str]) -> Tuple[str, Dict]:
        """
        Main webhook entry point.

        Returns:
            (message, details) once the event is accepted
        """
        event = self.construct_event(payload, signature)

        event_id = get_field(event, "id")
        event_type = get_field(event, "type")
        logger.info(
            "WEBHOOK_RECEIVED event_id=%s event_type=%s livemode=%s",
            event_id, event_type, get_field(event, "livemode"),
        )
        if not event_id or not event_type:
            raise WebhookPayloadError("Event id and type are required")

        # Redelivery check
        existing = await self.db.payment_events.find_one({"event_id": event_id}, {"_id": 0})
        if existing and existing.get("status") == PaymentEventStatus.PROCESSED.value:
            logger.info(f"Event {event_id} already processed - skipping")
            return "Already processed", {"event_id": event_id}

        record = PaymentEvent(event_id=event_id, type=event_type).model_dump(mode="json")
        record["received_at"] = datetime.now(timezone.utc)
        record["raw_minimal"] = _extract_safe_data(event)
        if existing:
            await self.db.payment_events.update_one({"event_id": event_id}, {"$set": record})
        else:
            try:
                await self.db.payment_events.insert_one(record)
            except DuplicateKeyError:
                logger.info(f"Event {event_id} duplicate insert (race) - skipping")
                return "Already processed", {"event_id": event_id}

        try:
            result = await self.handler.reconcile(parse_event(event))
        except MalformedEventError as e:
            await self._mark(event_id, PaymentEventStatus.FAILED, str(e))
            logger.error("WEBHOOK_MALFORMED event_id=%s event_type=%s error=%s", event_id, event_type, e)
            raise WebhookPayloadError() from e
        except ReconcileError as e:
            await self._mark(event_id, PaymentEventStatus.FAILED, str(e))
            logger.error(
                "WEBHOOK_PROCESSING_FAILED event_id=%s event_type=%s error=%s",
                event_id, event_type, str(e),
            )
            await create_audit_log(
                self.db,
                action=AuditAction.PAYMENT_EVENT_FAILED,
                resource_type="payment_event",
                resource_id=event_id,
                metadata={"event_type": event_type, "error": str(e), "error_type": type(e).__name__},
            )
            # Structurally valid event: acknowledged so the provider stops redelivering
            return "Event logged with error", {"event_id": event_id, "error": type(e).__name__}
        except Exception as e:
            await self._mark(event_id, PaymentEventStatus.FAILED, str(e))
            logger.exception("WEBHOOK_PROCESSING_FAILED event_id=%s event_type=%s", event_id, event_type)
            raise

        await self._mark(event_id, PaymentEventStatus.PROCESSED)
        logger.info("WEBHOOK_PROCESSED_OK event_id=%s event_type=%s changed=%s", event_id, event_type, result.changed)
        return "Processed", {"event_id": event_id, **result.to_dict()}

    async def _mark(self, event_id: str, status: PaymentEventStatus, error: Optional[str] = None):
        await self.db.payment_events.update_one(
            {"event_id": event_id},
            {"$set": {
                "status": status.value,
                "processed_at": datetime.now(timezone.utc),
                "error": error,
            }},
        )
