"""Tests for management commands.

Run with: pytest tests/test_commands.py -v
"""

from datetime import datetime, timedelta, timezone
from io import StringIO

import pytest
from django.core.management import call_command

from checkout import container
from checkout.domain import OwnerKey
from checkout.models import CartItem

VENUE = timezone(timedelta(hours=-5))


def add_ticket(client, ticket):
    night = datetime.now(VENUE).date() + timedelta(days=3)
    client.post(
        "/api/cart/items",
        {"itemType": "ticket", "ticketId": str(ticket.id), "date": night.isoformat(), "quantity": 1},
        format="json",
    )


def age_cart(minutes):
    CartItem.objects.update(updated_at=datetime.now(timezone.utc) - timedelta(minutes=minutes))


@pytest.mark.django_db
class TestClearOldCarts:
    """Tests for the clear_old_carts command."""

    def test_clears_stale_carts(self, session_client, general_ticket):
        add_ticket(session_client, general_ticket)
        age_cart(45)
        out = StringIO()

        call_command("clear_old_carts", stdout=out)

        assert "session:session-abc" in out.getvalue()
        assert "Cleared 1 cart(s) older than 30 minutes" in out.getvalue()
        assert not CartItem.objects.exists()

    def test_keeps_recent_carts(self, session_client, general_ticket):
        add_ticket(session_client, general_ticket)
        out = StringIO()

        call_command("clear_old_carts", stdout=out)

        assert "Cleared 0 cart(s)" in out.getvalue()
        assert CartItem.objects.count() == 1

    def test_dry_run(self, session_client, general_ticket):
        add_ticket(session_client, general_ticket)
        age_cart(45)
        out = StringIO()

        call_command("clear_old_carts", "--dry-run", stdout=out)

        assert "Would clear 1 cart(s)" in out.getvalue()
        assert CartItem.objects.count() == 1

    def test_custom_age(self, session_client, general_ticket):
        add_ticket(session_client, general_ticket)
        age_cart(45)
        out = StringIO()

        call_command("clear_old_carts", "--minutes", "60", stdout=out)

        assert "Cleared 0 cart(s) older than 60 minutes" in out.getvalue()

    def test_skips_carts_under_checkout(self, session_client, general_ticket):
        add_ticket(session_client, general_ticket)
        age_cart(45)
        container.get_lock_store().acquire(OwnerKey.for_session("session-abc"), "txn-1")

        call_command("clear_old_carts", stdout=StringIO())

        assert CartItem.objects.count() == 1
