"""Unit tests for CheckoutService: initiation, confirmation and gateway events.

Run with: pytest tests/test_checkout_service.py -v
"""

import hashlib
from datetime import date, time, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from checkout.domain import (
    ConflictError,
    CustomerInfo,
    ErrorCode,
    GatewayCommunicationError,
    LockedError,
    NotFoundError,
    OwnerKey,
    OwnershipError,
    PaymentDeclinedError,
    PaymentMethod,
    PaymentStatus,
    PricingUnavailableError,
    ValidationError,
    allocate,
)
from checkout.notifications import InvoiceEmail, TicketEmail
from checkout.services import CheckoutRequest, WebhookOutcome
from tests.fakes import (
    CheckoutEnv,
    make_event,
    make_event_ticket,
    make_free_ticket,
    make_general_ticket,
    signed_event,
)

MONDAY = date(2026, 3, 2)
FRIDAY = date(2026, 3, 6)
OWNER = OwnerKey.for_session("abc")
OTHER = OwnerKey.for_user("42")

CARD = {
    "number": "4242424242424242",
    "cvc": "123",
    "exp_month": "12",
    "exp_year": "29",
    "card_holder": "Ana Gomez",
}


def card_request(**kwargs) -> CheckoutRequest:
    return CheckoutRequest(
        email="ana@example.com",
        payment_method=PaymentMethod.CARD,
        payment_data=CARD,
        customer=CustomerInfo(full_name="Ana Gomez", legal_id="1020304050", legal_id_type="CC"),
        **kwargs,
    )


@pytest.fixture
def env() -> CheckoutEnv:
    return CheckoutEnv()


@pytest.fixture
def filled_cart(env):
    """Two fixed-price covers for Friday: 40000 in club prices."""
    cover = env.catalog.add(make_general_ticket(env.club, dynamic_pricing_enabled=False))
    env.cart.add_ticket(OWNER, cover.id, FRIDAY, 2)
    return cover


def transaction_of(env, result):
    return env.transactions.get(result.transaction_id)


class TestInitiateValidation:
    """Checks that run before any transaction is created."""

    def test_empty_cart(self, env):
        with pytest.raises(ValidationError) as excinfo:
            env.checkout.initiate(OWNER, card_request())
        assert excinfo.value.code is ErrorCode.EMPTY_CART

    def test_stale_cart(self, env, filled_cart):
        env.clock.advance(minutes=31)
        with pytest.raises(ValidationError) as excinfo:
            env.checkout.initiate(OWNER, card_request())
        assert excinfo.value.code is ErrorCode.CART_EXPIRED

    def test_already_locked(self, env, filled_cart):
        env.locks.acquire(OWNER, "someone-else")
        with pytest.raises(LockedError):
            env.checkout.initiate(OWNER, card_request())
        assert env.transactions.transactions == {}

    def test_payment_method_required(self, env, filled_cart):
        with pytest.raises(ValidationError, match="Payment method is required"):
            env.checkout.initiate(OWNER, CheckoutRequest(email="ana@example.com"))

    def test_card_data_required(self, env, filled_cart):
        request = CheckoutRequest(
            email="ana@example.com",
            payment_method=PaymentMethod.CARD,
            payment_data={"number": "4242424242424242"},
        )
        with pytest.raises(ValidationError, match="Missing payment data: cvc"):
            env.checkout.initiate(OWNER, request)

    def test_expired_line_blocks_checkout(self):
        env = CheckoutEnv(cart_max_age=timedelta(hours=6))
        event = env.catalog.add(make_event(env.club, MONDAY, open_at=time(12, 0)))
        ticket = env.catalog.add(make_event_ticket(env.club, event))
        env.cart.add_ticket(OWNER, ticket.id, MONDAY, 1)
        env.clock.advance(hours=4)

        with pytest.raises(PricingUnavailableError):
            env.checkout.initiate(OWNER, card_request())
        assert not env.locks.is_locked(OWNER)


class TestBelowMinimum:
    def test_below_minimum_total(self):
        env = CheckoutEnv(minimum_total=Decimal("100000"))
        cover = env.catalog.add(make_general_ticket(env.club, dynamic_pricing_enabled=False))
        env.cart.add_ticket(OWNER, cover.id, FRIDAY, 1)

        with pytest.raises(ValidationError) as excinfo:
            env.checkout.initiate(OWNER, card_request())
        assert excinfo.value.code is ErrorCode.BELOW_MINIMUM


class TestCardCheckout:
    """Card payments: tokenize, create payment source, create transaction."""

    def test_pending_payment_holds_lock(self, env, filled_cart):
        result = env.checkout.initiate(OWNER, card_request())
        transaction = transaction_of(env, result)
        expected = allocate(Decimal("40000"), Decimal("0"), is_event_ticket=False)

        assert result.status is PaymentStatus.PENDING
        assert result.total_paid == expected.total_paid
        assert not result.is_free_checkout
        assert result.redirect_url is None
        assert transaction.fees == expected
        assert transaction.provider_transaction_id.startswith("fake_txn_")
        assert transaction.provider_reference.startswith("cart_")
        assert transaction.payment_provider == "fake"
        assert env.locks.get(OWNER).transaction_id == transaction.provider_transaction_id
        assert len(env.cart.list_items(OWNER)) == 1

    def test_gateway_calls_and_signature(self, env, filled_cart):
        result = env.checkout.initiate(OWNER, card_request(installments=3))
        transaction = transaction_of(env, result)

        assert [call["method"] for call in env.gateway.calls] == [
            "get_acceptance_tokens",
            "tokenize_card",
            "create_payment_source",
            "create_transaction",
        ]
        payload = env.gateway.calls_to("create_transaction")[0]["payload"]
        raw = f"{transaction.provider_reference}{payload['amount_in_cents']}COP{env.integrity_secret}"
        assert payload["signature"] == hashlib.sha256(raw.encode()).hexdigest()
        assert payload["amount_in_cents"] == transaction.fees.amount_in_cents
        assert payload["payment_method"] == {"type": "CARD", "installments": 3}
        assert payload["payment_source_id"].startswith("src_fake_")
        assert payload["acceptance_token"] == "fake_acceptance"

    def test_card_number_not_sent_to_transaction(self, env, filled_cart):
        env.checkout.initiate(OWNER, card_request())
        payload = env.gateway.calls_to("create_transaction")[0]["payload"]
        assert "4242424242424242" not in str(payload)

    def test_mutations_refused_while_pending(self, env, filled_cart):
        env.checkout.initiate(OWNER, card_request())
        with pytest.raises(LockedError):
            env.cart.add_ticket(OWNER, filled_cart.id, FRIDAY, 1)

    def test_immediate_approval_fulfils(self, env, filled_cart):
        env.gateway.configure(initial_status="APPROVED")
        result = env.checkout.initiate(OWNER, card_request())
        transaction = transaction_of(env, result)

        assert result.status is PaymentStatus.APPROVED
        assert transaction.is_processed
        assert len(env.transactions.list_ticket_purchases(transaction.id)) == 2
        assert env.cart.list_items(OWNER) == []
        assert not env.locks.is_locked(OWNER)

    def test_declined_on_creation(self, env, filled_cart):
        env.gateway.configure(initial_status="DECLINED")
        with pytest.raises(PaymentDeclinedError):
            env.checkout.initiate(OWNER, card_request())

        (transaction,) = env.transactions.transactions.values()
        assert transaction.payment_status is PaymentStatus.DECLINED
        assert not env.locks.is_locked(OWNER)
        assert env.cart.list_items(OWNER) != []

    def test_gateway_unreachable(self, env, filled_cart):
        env.gateway.configure(unreachable=True)
        with pytest.raises(GatewayCommunicationError):
            env.checkout.initiate(OWNER, card_request())

        (transaction,) = env.transactions.transactions.values()
        assert transaction.payment_status is PaymentStatus.PENDING
        assert not env.locks.is_locked(OWNER)


class TestOtherMethods:
    def test_pse_returns_bank_redirect(self, env, filled_cart):
        env.gateway.configure(async_url="https://bank.example/pay/123")
        request = CheckoutRequest(
            email="ana@example.com",
            payment_method=PaymentMethod.PSE,
            payment_data={"user_legal_id": "1020304050", "financial_institution_code": "1007"},
            customer=CustomerInfo(full_name="Ana Gomez", phone_number="3001234567"),
        )
        result = env.checkout.initiate(OWNER, request)

        assert result.redirect_url == "https://bank.example/pay/123"
        payload = env.gateway.calls_to("create_transaction")[0]["payload"]
        assert payload["payment_method"]["type"] == "PSE"
        assert payload["customer_data"]["full_name"] == "Ana Gomez"

    def test_async_url_missing_falls_back_to_none(self, env, filled_cart):
        request = CheckoutRequest(email="ana@example.com", payment_method=PaymentMethod.BANCOLOMBIA_TRANSFER)
        result = env.checkout.initiate(OWNER, request)
        assert result.redirect_url is None
        assert result.status is PaymentStatus.PENDING

    def test_nequi_has_no_redirect(self, env, filled_cart):
        env.gateway.configure(async_url="https://bank.example/unused")
        request = CheckoutRequest(
            email="ana@example.com",
            payment_method=PaymentMethod.NEQUI,
            payment_data={"phone_number": "3001234567"},
        )
        result = env.checkout.initiate(OWNER, request)
        assert result.redirect_url is None
        assert env.gateway.calls_to("poll_transaction_for_async_url") == []


class TestFreeCheckout:
    """A zero total skips the gateway entirely."""

    def test_free_checkout_fulfils_immediately(self, env):
        free = env.catalog.add(make_free_ticket(env.club, FRIDAY))
        env.cart.add_ticket(OWNER, free.id, FRIDAY, 2)

        result = env.checkout.initiate(OWNER, CheckoutRequest(email="ana@example.com"))
        transaction = transaction_of(env, result)

        assert result.is_free_checkout
        assert result.status is PaymentStatus.APPROVED
        assert result.total_paid == Decimal("0")
        assert transaction.payment_provider == "free"
        assert transaction.is_processed
        assert env.gateway.calls == []
        assert env.cart.list_items(OWNER) == []
        assert not env.locks.is_locked(OWNER)
        assert len(env.notifier.of_type(TicketEmail)) == 2
        assert env.notifier.of_type(InvoiceEmail) == []


class TestConfirm:
    """Tests for CheckoutService.confirm."""

    @pytest.fixture
    def pending(self, env, filled_cart):
        return env.checkout.initiate(OWNER, card_request())

    def test_approved(self, env, pending):
        result = env.checkout.confirm(OWNER, str(pending.transaction_id))

        assert result.success
        assert result.status is PaymentStatus.APPROVED
        assert transaction_of(env, pending).is_processed
        assert env.cart.list_items(OWNER) == []
        assert not env.locks.is_locked(OWNER)

    def test_confirm_twice_is_idempotent(self, env, pending):
        env.checkout.confirm(OWNER, str(pending.transaction_id))
        again = env.checkout.confirm(OWNER, str(pending.transaction_id))

        assert again.success
        assert again.message == "Transaction already processed"
        assert len(env.transactions.ticket_purchases) == 2

    def test_still_pending(self, env, pending):
        env.gateway.configure(final_status="PENDING")
        result = env.checkout.confirm(OWNER, str(pending.transaction_id))

        assert not result.success
        assert result.status is PaymentStatus.PENDING
        assert env.locks.is_locked(OWNER)

    def test_declined_releases_lock(self, env, pending):
        env.gateway.configure(final_status="DECLINED")
        result = env.checkout.confirm(OWNER, str(pending.transaction_id))

        assert not result.success
        assert transaction_of(env, pending).payment_status is PaymentStatus.DECLINED
        assert not env.locks.is_locked(OWNER)
        with pytest.raises(ConflictError):
            env.checkout.confirm(OWNER, str(pending.transaction_id))

    def test_late_decline_keeps_newer_lock(self, env, pending):
        env.locks.release(OWNER)
        env.locks.acquire(OWNER, "newer-checkout")
        env.gateway.configure(final_status="DECLINED")

        env.checkout.confirm(OWNER, str(pending.transaction_id))

        assert env.locks.get(OWNER).transaction_id == "newer-checkout"

    def test_gateway_unreachable(self, env, pending):
        env.gateway.configure(unreachable=True)
        with pytest.raises(GatewayCommunicationError) as excinfo:
            env.checkout.confirm(OWNER, str(pending.transaction_id))
        assert excinfo.value.retryable
        assert transaction_of(env, pending).payment_status is PaymentStatus.PENDING

    def test_other_owner(self, env, pending):
        with pytest.raises(OwnershipError):
            env.checkout.confirm(OTHER, str(pending.transaction_id))

    def test_invalid_id(self, env):
        with pytest.raises(ValidationError):
            env.checkout.confirm(OWNER, "not-a-uuid")

    def test_unknown_id(self, env):
        with pytest.raises(NotFoundError):
            env.checkout.confirm(OWNER, str(uuid4()))


class TestGatewayEvents:
    """Tests for CheckoutService.handle_gateway_event."""

    @pytest.fixture
    def pending(self, env, filled_cart):
        result = env.checkout.initiate(OWNER, card_request())
        return transaction_of(env, result)

    def event_for(self, env, transaction, status, **kwargs):
        return signed_event(
            transaction.provider_reference,
            status,
            transaction.provider_transaction_id,
            env.events_secret,
            **kwargs,
        )

    def test_invalid_checksum(self, env, pending):
        event = self.event_for(env, pending, "APPROVED")
        event["data"]["transaction"]["status"] = "DECLINED"

        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.INVALID_SIGNATURE
        assert env.transactions.get(pending.id).payment_status is PaymentStatus.PENDING

    def test_wrong_secret(self, env, pending):
        event = signed_event(
            pending.provider_reference, "APPROVED", pending.provider_transaction_id, "not-the-secret"
        )
        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.INVALID_SIGNATURE

    def test_other_event_types_ignored(self, env, pending):
        event = self.event_for(env, pending, "APPROVED", event="nequi_token.updated")
        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.IGNORED

    def test_unknown_reference_ignored(self, env, pending):
        event = signed_event("cart_unknown", "APPROVED", "123", env.events_secret)
        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.IGNORED

    def test_approved_fulfils_once(self, env, pending):
        event = self.event_for(env, pending, "APPROVED")

        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.FULFILLED
        assert env.transactions.get(pending.id).is_processed
        assert env.cart.list_items(OWNER) == []
        assert not env.locks.is_locked(OWNER)

        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.UNCHANGED
        assert len(env.transactions.ticket_purchases) == 2

    def test_declined_releases_lock(self, env, pending):
        event = self.event_for(env, pending, "DECLINED")

        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.UPDATED
        assert env.transactions.get(pending.id).payment_status is PaymentStatus.DECLINED
        assert not env.locks.is_locked(OWNER)

    def test_same_status_is_unchanged(self, env, pending):
        event = self.event_for(env, pending, "PENDING")
        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.UNCHANGED

    def test_late_decline_keeps_newer_lock(self, env, pending):
        env.locks.release(OWNER)
        env.locks.acquire(OWNER, "newer-checkout")

        event = self.event_for(env, pending, "DECLINED")
        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.UPDATED
        assert env.locks.get(OWNER).transaction_id == "newer-checkout"


class UnsignedEnv(CheckoutEnv):
    events_secret = ""


class TestMissingEventsSecret:
    """Without an events secret no gateway event is trusted."""

    @pytest.fixture
    def env(self) -> CheckoutEnv:
        return UnsignedEnv()

    def test_forged_approval_rejected(self, env, filled_cart):
        result = env.checkout.initiate(OWNER, card_request())
        pending = transaction_of(env, result)
        event = signed_event(pending.provider_reference, "APPROVED", "forged-id", "")

        assert env.checkout.handle_gateway_event(event) is WebhookOutcome.INVALID_SIGNATURE
        assert env.transactions.get(pending.id).payment_status is PaymentStatus.PENDING
        assert env.transactions.ticket_purchases == []
        assert env.locks.is_locked(OWNER)
