"""
Webhook boundary tests: signature gate, redelivery ledger, reconcile errors
acknowledged (logged + audited), unknown events ignored.
Payloads are signed with the test secret the same way Stripe signs them.
"""
import json

import pytest

from conftest import sign
from services.payment_reconciliation import PaymentReconciliationHandler
from services.stripe_webhook_service import StripeWebhookService
from support.memory_db import MemoryDatabase
from utils.errors import WebhookPayloadError, WebhookSignatureError

PROJECT_ID = "proj-hook-1"
PAYMENT_ID = "pay-hook-1"
SESSION_ID = "cs_test_hook_1"


def checkout_event(event_id="evt_hook_1", session_id=SESSION_ID) -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "livemode": False,
        "data": {"object": {
            "id": session_id,
            "object": "checkout.session",
            "payment_intent": "pi_hook_1",
            "metadata": {"project_id": PROJECT_ID, "payment_id": PAYMENT_ID},
        }},
    })


def _seeded_db() -> MemoryDatabase:
    db = MemoryDatabase()
    db.project_forms.add({"project_id": PROJECT_ID, "user_id": "user-1", "status": "SUBMITTED"})
    db.payments.add({
        "payment_id": PAYMENT_ID,
        "project_form_id": PROJECT_ID,
        "amount": "3000.00",
        "stripe_session_id": SESSION_ID,
        "status": "PENDING",
    })
    return db


def _service(db) -> StripeWebhookService:
    return StripeWebhookService(db, PaymentReconciliationHandler(db, db.transaction))


class TestSignature:

    @pytest.mark.asyncio
    async def test_bad_signature_rejected_before_any_write(self, webhook_secret):
        db = _seeded_db()
        payload = checkout_event()
        with pytest.raises(WebhookSignatureError):
            await _service(db).process_webhook(payload.encode(), sign(payload, "whsec_wrong"))
        assert db.payments.all()[0]["status"] == "PENDING"
        assert db.payment_events.all() == []

    @pytest.mark.asyncio
    async def test_missing_signature_rejected(self, webhook_secret):
        db = _seeded_db()
        with pytest.raises(WebhookSignatureError):
            await _service(db).process_webhook(checkout_event().encode(), None)
        assert db.payment_events.all() == []

    @pytest.mark.asyncio
    async def test_tampered_payload_rejected(self, webhook_secret):
        db = _seeded_db()
        signature = sign(checkout_event(), webhook_secret)
        tampered = checkout_event(session_id="cs_other")
        with pytest.raises(WebhookSignatureError):
            await _service(db).process_webhook(tampered.encode(), signature)

    @pytest.mark.asyncio
    async def test_no_secret_outside_development_is_rejected(self, monkeypatch):
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "production")
        with pytest.raises(WebhookSignatureError):
            await _service(_seeded_db()).process_webhook(checkout_event().encode(), None)

    @pytest.mark.asyncio
    async def test_no_secret_in_development_skips_verification(self, monkeypatch):
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "development")
        db = _seeded_db()
        message, _ = await _service(db).process_webhook(checkout_event().encode(), None)
        assert message == "Processed"
        assert db.payments.all()[0]["status"] == "PAID"

    @pytest.mark.asyncio
    async def test_signed_garbage_is_invalid_payload(self, webhook_secret):
        payload = "not json"
        with pytest.raises(WebhookPayloadError):
            await _service(_seeded_db()).process_webhook(payload.encode(), sign(payload, webhook_secret))


class TestProcessing:

    @pytest.mark.asyncio
    async def test_checkout_completed_reconciles_and_records_event(self, webhook_secret):
        db = _seeded_db()
        payload = checkout_event()
        message, details = await _service(db).process_webhook(payload.encode(), sign(payload, webhook_secret))

        assert message == "Processed"
        assert details["changed"] is True
        assert db.payments.all()[0]["status"] == "PAID"
        assert db.payments.all()[0]["payment_intent_id"] == "pi_hook_1"
        assert db.project_forms.all()[0]["status"] == "IN_PROGRESS"
        ledger = db.payment_events.all()
        assert len(ledger) == 1
        assert ledger[0]["event_id"] == "evt_hook_1"
        assert ledger[0]["status"] == "PROCESSED"
        assert ledger[0]["raw_minimal"]["object_id"] == SESSION_ID

    @pytest.mark.asyncio
    async def test_redelivered_event_is_skipped(self, webhook_secret):
        db = _seeded_db()
        service = _service(db)
        payload = checkout_event()
        await service.process_webhook(payload.encode(), sign(payload, webhook_secret))
        await db.project_forms.update_one({"project_id": PROJECT_ID}, {"$set": {"status": "COMPLETED"}})

        message, _ = await service.process_webhook(payload.encode(), sign(payload, webhook_secret))
        assert message == "Already processed"
        assert db.project_forms.all()[0]["status"] == "COMPLETED"
        assert len(db.payment_events.all()) == 1

    @pytest.mark.asyncio
    async def test_same_session_under_new_event_id_is_a_no_op(self, webhook_secret):
        db = _seeded_db()
        service = _service(db)
        first = checkout_event("evt_a")
        second = checkout_event("evt_b")
        await service.process_webhook(first.encode(), sign(first, webhook_secret))
        message, details = await service.process_webhook(second.encode(), sign(second, webhook_secret))

        assert message == "Processed"
        assert details["changed"] is False
        assert len(db.audit_logs.all({"action": "PAYMENT_RECONCILED"})) == 1

    @pytest.mark.asyncio
    async def test_reconcile_error_is_acknowledged_and_audited(self, webhook_secret):
        db = _seeded_db()
        payload = checkout_event(session_id="cs_unknown")
        message, details = await _service(db).process_webhook(payload.encode(), sign(payload, webhook_secret))

        assert message == "Event logged with error"
        assert details["error"] == "PaymentNotFound"
        assert db.payments.all()[0]["status"] == "PENDING"
        assert db.payment_events.all()[0]["status"] == "FAILED"
        audit = db.audit_logs.all({"action": "PAYMENT_EVENT_FAILED"})
        assert len(audit) == 1 and audit[0]["resource_id"] == "evt_hook_1"

    @pytest.mark.asyncio
    async def test_failed_event_is_retried_on_redelivery(self, webhook_secret):
        db = _seeded_db()
        service = _service(db)
        payload = checkout_event(session_id="cs_late")
        await service.process_webhook(payload.encode(), sign(payload, webhook_secret))
        # The payment row shows up later (e.g. replica lag); redelivery applies it
        await db.payments.update_one({"payment_id": PAYMENT_ID}, {"$set": {"stripe_session_id": "cs_late"}})

        message, _ = await service.process_webhook(payload.encode(), sign(payload, webhook_secret))
        assert message == "Processed"
        assert db.payments.all()[0]["status"] == "PAID"
        assert db.payment_events.all()[0]["status"] == "PROCESSED"

    @pytest.mark.asyncio
    async def test_unknown_event_type_is_a_no_op(self, webhook_secret):
        db = _seeded_db()
        payload = json.dumps({"id": "evt_other", "object": "event", "type": "customer.created",
                              "data": {"object": {"id": "cus_1", "object": "customer"}}})
        message, details = await _service(db).process_webhook(payload.encode(), sign(payload, webhook_secret))

        assert message == "Processed"
        assert details["handled"] is False
        assert db.payments.all()[0]["status"] == "PENDING"
