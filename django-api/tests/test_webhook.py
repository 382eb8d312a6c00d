"""API tests for the gateway event endpoint.

Run with: pytest tests/test_webhook.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from checkout.models import CartItem, CheckoutTransaction, TicketPurchase
from tests.fakes import signed_event

EVENTS_SECRET = "test_events_secret"
VENUE = timezone(timedelta(hours=-5))


@pytest.fixture
def checkout_settings(settings):
    settings.CHECKOUT = {**settings.CHECKOUT, "WOMPI_EVENTS_SECRET": EVENTS_SECRET, "WEBHOOK_STRICT": True}
    return settings


@pytest.fixture
def pending(session_client, general_ticket, fake_gateway, notifier, checkout_settings):
    """A card checkout waiting for the gateway's verdict."""
    night = datetime.now(VENUE).date() + timedelta(days=3)
    session_client.post(
        "/api/cart/items",
        {"itemType": "ticket", "ticketId": str(general_ticket.id), "date": night.isoformat(), "quantity": 2},
        format="json",
    )
    session_client.post(
        "/api/checkout/initiate",
        {
            "email": "ana@example.com",
            "paymentMethod": "NEQUI",
            "paymentData": {"phone_number": "3001234567"},
        },
        format="json",
    )
    return CheckoutTransaction.objects.get()


def post_event(client, event):
    return client.post("/api/checkout/webhook", event, format="json")


@pytest.mark.django_db
class TestWebhook:
    """Tests for POST /api/checkout/webhook."""

    def test_approved_fulfils(self, api_client, pending):
        event = signed_event(pending.provider_reference, "APPROVED", pending.provider_transaction_id, EVENTS_SECRET)

        response = post_event(api_client, event)

        assert response.status_code == 200
        assert response.data == {"outcome": "fulfilled"}
        pending.refresh_from_db()
        assert pending.payment_status == "APPROVED"
        assert pending.processed_at is not None
        assert TicketPurchase.objects.count() == 2
        assert not CartItem.objects.exists()

    def test_replay_is_unchanged(self, api_client, pending):
        event = signed_event(pending.provider_reference, "APPROVED", pending.provider_transaction_id, EVENTS_SECRET)
        post_event(api_client, event)

        response = post_event(api_client, event)
        assert response.data == {"outcome": "unchanged"}
        assert TicketPurchase.objects.count() == 2

    def test_declined(self, api_client, pending):
        event = signed_event(pending.provider_reference, "DECLINED", pending.provider_transaction_id, EVENTS_SECRET)

        assert post_event(api_client, event).data == {"outcome": "updated"}
        pending.refresh_from_db()
        assert pending.payment_status == "DECLINED"
        assert not TicketPurchase.objects.exists()

    def test_invalid_checksum_rejected(self, api_client, pending):
        event = signed_event(pending.provider_reference, "APPROVED", pending.provider_transaction_id, "wrong")

        response = post_event(api_client, event)
        assert response.status_code == 403
        assert response.data["error"]["code"] == "SIGNATURE_MISMATCH"
        pending.refresh_from_db()
        assert pending.payment_status == "PENDING"

    def test_invalid_checksum_acknowledged_when_lenient(self, api_client, pending, checkout_settings):
        checkout_settings.CHECKOUT = {**checkout_settings.CHECKOUT, "WEBHOOK_STRICT": False}
        event = signed_event(pending.provider_reference, "APPROVED", pending.provider_transaction_id, "wrong")

        response = post_event(api_client, event)
        assert response.status_code == 200
        assert response.data == {"outcome": "invalid_signature"}

    def test_unknown_reference(self, api_client, checkout_settings, db):
        event = signed_event("cart_missing", "APPROVED", "123", EVENTS_SECRET)
        assert post_event(api_client, event).data == {"outcome": "ignored"}

    def test_other_event_type(self, api_client, pending):
        event = signed_event(
            pending.provider_reference,
            "APPROVED",
            pending.provider_transaction_id,
            EVENTS_SECRET,
            event="nequi_token.updated",
        )
        assert post_event(api_client, event).data == {"outcome": "ignored"}
