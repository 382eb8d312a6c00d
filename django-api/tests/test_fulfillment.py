"""Unit tests for FulfillmentService.

Run with: pytest tests/test_fulfillment.py -v
"""

from dataclasses import replace
from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest

from checkout.domain import (
    ConflictError,
    Money,
    NotFoundError,
    OwnerKey,
    PaymentMethod,
    PaymentStatus,
    TransactionId,
)
from checkout.notifications import InvoiceEmail, MenuEmail, RecordingNotifier, TicketEmail
from checkout.services import CheckoutRequest
from tests.fakes import (
    CheckoutEnv,
    make_event,
    make_event_ticket,
    make_general_ticket,
    make_menu_item,
)

MONDAY = date(2026, 3, 2)
FRIDAY = date(2026, 3, 6)
OWNER = OwnerKey.for_session("abc")


class ExplodingNotifier(RecordingNotifier):
    def send_ticket(self, email):
        raise RuntimeError("smtp down")


@pytest.fixture
def env() -> CheckoutEnv:
    return CheckoutEnv()


def checkout_pending(env: CheckoutEnv):
    """Start a bank-transfer checkout and return the stored transaction."""
    request = CheckoutRequest(email="ana@example.com", payment_method=PaymentMethod.BANCOLOMBIA_TRANSFER)
    result = env.checkout.initiate(OWNER, request)
    return env.transactions.get(result.transaction_id)


def approve(env: CheckoutEnv, transaction) -> None:
    env.transactions.update_status(transaction.id, PaymentStatus.APPROVED)


class TestTicketPurchases:
    """One purchase row per ticket unit."""

    @pytest.fixture
    def transaction(self, env):
        cover = env.catalog.add(make_general_ticket(env.club, dynamic_pricing_enabled=False))
        env.cart.add_ticket(OWNER, cover.id, FRIDAY, 3)
        transaction = checkout_pending(env)
        approve(env, transaction)
        return transaction

    def test_one_row_per_unit(self, env, transaction):
        assert env.fulfillment.fulfill(transaction.id)

        purchases = env.transactions.list_ticket_purchases(transaction.id)
        assert [(p.sequence_index, p.sequence_total) for p in purchases] == [(1, 3), (2, 3), (3, 3)]
        assert len({p.id for p in purchases}) == 3
        assert all(p.date == FRIDAY for p in purchases)
        assert all(p.buyer_email == "ana@example.com" for p in purchases)

    def test_general_cover_commission(self, env, transaction):
        env.fulfillment.fulfill(transaction.id)

        purchase = env.transactions.list_ticket_purchases(transaction.id)[0]
        assert purchase.price_at_checkout == Decimal("20000")
        assert purchase.club_receives == Decimal("20000")
        assert purchase.platform_fee_rate == Decimal("0.05")
        assert purchase.platform_fee == Decimal("1000")
        assert not purchase.dynamic_pricing_was_applied

    def test_each_unit_gets_its_own_qr(self, env, transaction):
        env.fulfillment.fulfill(transaction.id)

        for purchase in env.transactions.list_ticket_purchases(transaction.id):
            payload = env.qr.decode(purchase.qr_payload)
            assert payload["t"] == "ticket"
            assert payload["i"] == str(purchase.id)
            assert payload["c"] == str(env.club.id)
            assert payload["ts"] == int(env.clock.now.timestamp())

    def test_marks_processed_without_menu_qr(self, env, transaction):
        env.fulfillment.fulfill(transaction.id)

        stored = env.transactions.get(transaction.id)
        assert stored.processed_at == env.clock.now
        assert stored.qr_payload is None

    def test_second_run_is_noop(self, env, transaction):
        assert env.fulfillment.fulfill(transaction.id)
        assert not env.fulfillment.fulfill(transaction.id)

        assert len(env.transactions.ticket_purchases) == 3
        assert len(env.notifier.of_type(TicketEmail)) == 3


class TestEventTickets:
    @pytest.fixture
    def event_ticket(self, env):
        event = env.catalog.add(make_event(env.club, MONDAY, open_at=time(12, 0)))
        return env.catalog.add(make_event_ticket(env.club, event, dynamic_pricing_enabled=False))

    def test_event_commission_rate(self, env, event_ticket):
        env.cart.add_ticket(OWNER, event_ticket.id, MONDAY, 1)
        transaction = checkout_pending(env)
        approve(env, transaction)
        env.fulfillment.fulfill(transaction.id)

        (purchase,) = env.transactions.list_ticket_purchases(transaction.id)
        assert purchase.event_id == event_ticket.event_id
        assert purchase.platform_fee_rate == Decimal("0.10")
        assert purchase.platform_fee == Decimal("5000")

    def test_prices_as_of_checkout(self, env, event_ticket):
        """Approval after the event started still fulfils at the checkout price."""
        env.cart.add_ticket(OWNER, event_ticket.id, MONDAY, 1)
        transaction = checkout_pending(env)
        env.clock.advance(hours=4)
        approve(env, transaction)

        assert env.fulfillment.fulfill(transaction.id)
        (purchase,) = env.transactions.list_ticket_purchases(transaction.id)
        assert purchase.price_at_checkout == Decimal("50000")


class TestMenuPurchases:
    @pytest.fixture
    def transaction(self, env):
        cover = env.catalog.add(make_general_ticket(env.club, dynamic_pricing_enabled=False))
        drink = env.catalog.add(make_menu_item(env.club, dynamic_pricing_enabled=False))
        env.cart.add_ticket(OWNER, cover.id, FRIDAY, 1)
        env.cart.add_menu_item(OWNER, drink.id, None, FRIDAY, 2)
        transaction = checkout_pending(env)
        approve(env, transaction)
        return transaction

    def test_one_row_per_line(self, env, transaction):
        env.fulfillment.fulfill(transaction.id)

        (purchase,) = env.transactions.list_menu_purchases(transaction.id)
        assert purchase.quantity == 2
        assert purchase.price_at_checkout == Decimal("10000")
        assert purchase.club_receives == Decimal("20000")
        assert purchase.platform_fee_rate == Decimal("0.025")
        assert purchase.platform_fee == Decimal("500")

    def test_single_menu_qr_on_transaction(self, env, transaction):
        env.fulfillment.fulfill(transaction.id)

        stored = env.transactions.get(transaction.id)
        payload = env.qr.decode(stored.qr_payload)
        assert payload["t"] == "menu"
        assert payload["i"] == str(transaction.id)


class TestNotifications:
    @pytest.fixture
    def transaction(self, env):
        cover = env.catalog.add(make_general_ticket(env.club, dynamic_pricing_enabled=False))
        drink = env.catalog.add(make_menu_item(env.club, dynamic_pricing_enabled=False))
        env.cart.add_ticket(OWNER, cover.id, FRIDAY, 2)
        env.cart.add_menu_item(OWNER, drink.id, None, FRIDAY, 1)
        transaction = checkout_pending(env)
        approve(env, transaction)
        return transaction

    def test_emails_sent(self, env, transaction):
        env.fulfillment.fulfill(transaction.id)

        tickets = env.notifier.of_type(TicketEmail)
        assert [(t.sequence_index, t.sequence_total) for t in tickets] == [(1, 2), (2, 2)]
        assert all(t.club_name == env.club.name for t in tickets)

        (menu,) = env.notifier.of_type(MenuEmail)
        assert menu.total == Decimal("10000")
        assert menu.qr_payload == env.transactions.get(transaction.id).qr_payload

        (invoice,) = env.notifier.of_type(InvoiceEmail)
        assert invoice.total_paid == transaction.fees.total_paid
        assert invoice.payment_method == "BANCOLOMBIA_TRANSFER"
        assert len(invoice.lines) == 2

    def test_notifier_failure_does_not_undo_fulfillment(self, env, transaction):
        env.notifier = ExplodingNotifier()

        assert env.fulfillment.fulfill(transaction.id)
        assert env.transactions.get(transaction.id).is_processed
        assert len(env.transactions.ticket_purchases) == 2


class TestPreconditions:
    def test_unknown_transaction(self, env):
        with pytest.raises(NotFoundError):
            env.fulfillment.fulfill(TransactionId(uuid4()))

    def test_pending_transaction_refused(self, env):
        cover = env.catalog.add(make_general_ticket(env.club, dynamic_pricing_enabled=False))
        env.cart.add_ticket(OWNER, cover.id, FRIDAY, 1)
        transaction = checkout_pending(env)

        with pytest.raises(ConflictError):
            env.fulfillment.fulfill(transaction.id)
        assert env.transactions.ticket_purchases == []


class TestPriceSnapshot:
    """Catalog edits after initiation do not reach the purchase rows."""

    def test_ticket_price_change_after_initiate(self, env):
        cover = env.catalog.add(make_general_ticket(env.club, dynamic_pricing_enabled=False))
        env.cart.add_ticket(OWNER, cover.id, FRIDAY, 2)
        transaction = checkout_pending(env)
        env.catalog.add(replace(cover, price=Money(Decimal("35000"))))
        approve(env, transaction)

        env.fulfillment.fulfill(transaction.id)

        purchases = env.transactions.list_ticket_purchases(transaction.id)
        assert [p.price_at_checkout for p in purchases] == [Decimal("20000"), Decimal("20000")]
        assert sum(p.club_receives for p in purchases) == transaction.fees.ticket_subtotal

    def test_menu_price_change_after_initiate(self, env):
        cover = env.catalog.add(make_general_ticket(env.club, dynamic_pricing_enabled=False))
        drink = env.catalog.add(make_menu_item(env.club, dynamic_pricing_enabled=False))
        env.cart.add_ticket(OWNER, cover.id, FRIDAY, 1)
        env.cart.add_menu_item(OWNER, drink.id, None, FRIDAY, 3)
        transaction = checkout_pending(env)
        env.catalog.add(replace(drink, price=Money(Decimal("15000")), is_active=False))
        approve(env, transaction)

        env.fulfillment.fulfill(transaction.id)

        (purchase,) = env.transactions.list_menu_purchases(transaction.id)
        assert purchase.price_at_checkout == Decimal("10000")
        assert purchase.club_receives == transaction.fees.menu_subtotal
