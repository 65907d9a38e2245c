"""Payment Reconciliation - apply verified payment-provider events to Payment/ProjectForm state.

The caller (webhook boundary) has already verified the event signature.

Events:
- checkout.session.completed -> Payment PAID (+ payment_intent_id) and its
  ProjectForm IN_PROGRESS, both inside one transaction
- payment_intent.payment_failed -> Payment FAILED
- anything else -> no-op, still a success

Redelivered events are no-ops: a Payment already PAID (same intent) or
already FAILED is left untouched and no error is raised.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Union
from models import PaymentStatus, ProjectStatus, AuditAction
from utils.audit import create_audit_log

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_FAILED = "payment_intent.payment_failed"


# =============================================================================
# Event variants
# =============================================================================

@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    session_id: str
    payment_intent_id: Optional[str] = None
    project_id: Optional[str] = None  # From session metadata; informational only


@dataclass(frozen=True)
class PaymentFailed:
    event_id: str
    payment_intent_id: str
    payment_id: Optional[str] = None  # From payment_intent metadata when present


@dataclass(frozen=True)
class UnknownEvent:
    event_id: str
    event_type: str


ProviderEvent = Union[CheckoutCompleted, PaymentFailed, UnknownEvent]


class MalformedEventError(ValueError):
    """A known event kind is missing the fields needed to reconcile it."""


def get_field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _id_of(value: Any) -> Optional[str]:
    # Expanded objects carry their id; plain references are the id itself
    if isinstance(value, str) or value is None:
        return value
    return get_field(value, "id")


def parse_event(event: Mapping) -> ProviderEvent:
    """Map a provider event payload to its typed variant."""
    event_id = get_field(event, "id") or ""
    event_type = get_field(event, "type") or ""
    obj = get_field(get_field(event, "data"), "object") or {}
    metadata = get_field(obj, "metadata") or {}

    if event_type == CHECKOUT_COMPLETED:
        session_id = get_field(obj, "id")
        if not session_id:
            raise MalformedEventError(f"{event_type} without session id")
        return CheckoutCompleted(
            event_id=event_id,
            session_id=session_id,
            payment_intent_id=_id_of(get_field(obj, "payment_intent")),
            project_id=get_field(metadata, "project_id") or get_field(metadata, "projectId"),
        )

    if event_type == PAYMENT_FAILED:
        intent_id = get_field(obj, "id")
        if not intent_id:
            raise MalformedEventError(f"{event_type} without payment_intent id")
        return PaymentFailed(
            event_id=event_id,
            payment_intent_id=intent_id,
            payment_id=get_field(metadata, "payment_id"),
        )

    return UnknownEvent(event_id=event_id, event_type=event_type)


# =============================================================================
# Results and errors
# =============================================================================

@dataclass
class ReconcileResult:
    event_type: str
    handled: bool
    changed: bool = False
    payment_id: Optional[str] = None
    project_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "handled": self.handled,
            "changed": self.changed,
            "payment_id": self.payment_id,
            "project_id": self.project_id,
        }


class ReconcileError(Exception):
    """Event could not be applied; nothing was left partially applied."""


class PaymentNotFound(ReconcileError):
    pass


class ProjectNotFound(ReconcileError):
    pass


# =============================================================================
# Handler
# =============================================================================

class PaymentReconciliationHandler:
    """
    Args:
        db: Database handle
        transaction: zero-arg factory returning an async context manager that
            yields a session; writes made with that session commit or abort together
    """

    def __init__(self, db, transaction: Callable):
        self.db = db
        self.transaction = transaction

    async def reconcile(self, event: ProviderEvent) -> ReconcileResult:
        if isinstance(event, CheckoutCompleted):
            result = await self._checkout_completed(event)
        elif isinstance(event, PaymentFailed):
            result = await self._payment_failed(event)
        else:
            logger.info(f"Unhandled payment event type: {event.event_type}")
            return ReconcileResult(event_type=event.event_type, handled=False)

        if result.changed:
            await create_audit_log(
                self.db,
                action=AuditAction.PAYMENT_RECONCILED,
                resource_type="payment",
                resource_id=result.payment_id,
                metadata={"event_id": event.event_id, **result.to_dict()},
            )
        return result

    async def _checkout_completed(self, event: CheckoutCompleted) -> ReconcileResult:
        now = datetime.now(timezone.utc)
        async with self.transaction() as session:
            payment = await self.db.payments.find_one(
                {"stripe_session_id": event.session_id}, {"_id": 0}, session=session
            )
            if not payment:
                raise PaymentNotFound(f"No payment for checkout session {event.session_id}")

            project_id = payment["project_form_id"]
            if event.project_id and event.project_id != project_id:
                logger.warning(
                    f"Session {event.session_id} metadata project {event.project_id} "
                    f"differs from payment's project {project_id}; using the payment's"
                )

            already_applied = payment.get("status") == PaymentStatus.PAID.value and (
                not event.payment_intent_id or payment.get("payment_intent_id") == event.payment_intent_id
            )
            if already_applied:
                logger.info(f"Payment {payment['payment_id']} already PAID - skipping")
                return ReconcileResult(
                    event_type=CHECKOUT_COMPLETED, handled=True, changed=False,
                    payment_id=payment["payment_id"], project_id=project_id,
                )

            payment_update = {"status": PaymentStatus.PAID.value, "updated_at": now}
            if event.payment_intent_id:
                payment_update["payment_intent_id"] = event.payment_intent_id
            await self.db.payments.update_one(
                {"payment_id": payment["payment_id"]},
                {"$set": payment_update},
                session=session,
            )

            project_result = await self.db.project_forms.update_one(
                {"project_id": project_id},
                {"$set": {"status": ProjectStatus.IN_PROGRESS.value, "updated_at": now}},
                session=session,
            )
            if project_result.matched_count == 0:
                # Aborts the transaction, so the payment update above is discarded
                raise ProjectNotFound(f"Project {project_id} for payment {payment['payment_id']} not found")

        logger.info(f"Payment {payment['payment_id']} PAID; project {project_id} IN_PROGRESS")
        return ReconcileResult(
            event_type=CHECKOUT_COMPLETED, handled=True, changed=True,
            payment_id=payment["payment_id"], project_id=project_id,
        )

    async def _payment_failed(self, event: PaymentFailed) -> ReconcileResult:
        payment = await self.db.payments.find_one({"payment_intent_id": event.payment_intent_id}, {"_id": 0})
        if not payment and event.payment_id:
            # Failure before checkout completion: intent id not recorded yet
            payment = await self.db.payments.find_one({"payment_id": event.payment_id}, {"_id": 0})
        if not payment:
            raise PaymentNotFound(f"No payment for payment_intent {event.payment_intent_id}")

        unchanged = ReconcileResult(
            event_type=PAYMENT_FAILED, handled=True, changed=False,
            payment_id=payment["payment_id"], project_id=payment.get("project_form_id"),
        )
        status = payment.get("status")
        if status in (PaymentStatus.FAILED.value, PaymentStatus.PAID.value):
            # A declined attempt can arrive after the checkout that succeeded
            logger.info(f"Payment {payment['payment_id']} already {status} - ignoring failure event {event.event_id}")
            return unchanged

        update = await self.db.payments.update_one(
            {"payment_id": payment["payment_id"], "status": {"$ne": PaymentStatus.PAID.value}},
            {"$set": {
                "status": PaymentStatus.FAILED.value,
                "payment_intent_id": event.payment_intent_id,
                "updated_at": datetime.now(timezone.utc),
            }},
        )
        if update.matched_count == 0:
            logger.info(f"Payment {payment['payment_id']} became PAID concurrently - ignoring failure event")
            return unchanged
        logger.info(f"Payment {payment['payment_id']} FAILED (intent {event.payment_intent_id})")
        return ReconcileResult(
            event_type=PAYMENT_FAILED, handled=True, changed=True,
            payment_id=payment["payment_id"], project_id=payment.get("project_form_id"),
        )
