"""Checkout service - the payment round-trip and the transaction state machine.

    INITIATED -> (free) APPROVED -> FULFILLED
    INITIATED -> PENDING -> APPROVED -> FULFILLED
                         -> DECLINED | VOIDED | ERROR

The cart lock is held from initiation until the payment reaches a final
state (or the lock's TTL runs out).
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

import structlog

from checkout.clock import utcnow
from checkout.conf import CheckoutSettings
from checkout.domain import (
    CheckoutTransaction,
    ConflictError,
    CustomerInfo,
    ErrorCode,
    GatewayCommunicationError,
    ItemType,
    LockedError,
    NotFoundError,
    OwnerKey,
    OwnershipError,
    PaymentDeclinedError,
    PaymentMethod,
    PaymentStatus,
    PricingUnavailableError,
    SignatureMismatchError,
    TransactionId,
    ValidationError,
    validate_allocation,
)
from checkout.gateway import AcceptanceTokens, GatewayError, PaymentGateway, get_gateway
from checkout.gateway.signatures import integrity_signature, verify_event_checksum, verify_integrity_signature
from checkout.services.cart_service import CartService
from checkout.services.fulfillment_service import FulfillmentService
from checkout.stores.interfaces import CartLockStore, CartStore, TransactionStore

logger = structlog.get_logger(__name__)

REQUIRED_PAYMENT_DATA = {
    PaymentMethod.CARD: ("number", "cvc", "exp_month", "exp_year", "card_holder"),
    PaymentMethod.NEQUI: ("phone_number",),
    PaymentMethod.PSE: ("user_legal_id", "financial_institution_code"),
    PaymentMethod.BANCOLOMBIA_TRANSFER: (),
}


@dataclass(frozen=True)
class CheckoutRequest:
    """Buyer input for starting a checkout."""

    email: str
    payment_method: PaymentMethod | None = None
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    payment_data: dict[str, Any] = field(default_factory=dict)
    installments: int = 1
    redirect_url: str | None = None


@dataclass(frozen=True)
class CheckoutResult:
    transaction_id: TransactionId
    redirect_url: str | None
    total_paid: Decimal
    is_free_checkout: bool
    status: PaymentStatus


@dataclass(frozen=True)
class ConfirmResult:
    success: bool
    status: PaymentStatus
    message: str


class WebhookOutcome(Enum):
    INVALID_SIGNATURE = "invalid_signature"
    IGNORED = "ignored"
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    FULFILLED = "fulfilled"


def parse_status(raw: str) -> PaymentStatus:
    try:
        return PaymentStatus(raw)
    except ValueError:
        logger.warning("Unknown gateway status", status=raw)
        return PaymentStatus.ERROR


class CheckoutService:
    """Service for checkout initiation, confirmation and gateway events."""

    def __init__(
        self,
        cart: CartService,
        carts: CartStore,
        transactions: TransactionStore,
        locks: CartLockStore,
        fulfillment: FulfillmentService,
        conf: CheckoutSettings,
        gateway: Callable[[], PaymentGateway] = get_gateway,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._cart = cart
        self._carts = carts
        self._transactions = transactions
        self._locks = locks
        self._fulfillment = fulfillment
        self._conf = conf
        self._gateway = gateway
        self._clock = clock

    # -- initiate ---------------------------------------------------------

    def initiate(self, owner: OwnerKey, request: CheckoutRequest) -> CheckoutResult:
        """Price the cart, persist a transaction, lock the cart and start payment.

        Raises:
            ValidationError: Empty, stale or below-minimum cart, or missing payment data.
            LockedError: If another checkout already holds the cart.
            PricingUnavailableError: If a line can no longer be sold.
            FeeAllocationMismatchError: If the fee breakdown does not add up.
            PaymentDeclinedError: If the gateway rejects the payment on creation.
            GatewayCommunicationError: If the gateway cannot be reached.
        """
        items = self._carts.list_items(owner)
        if not items:
            raise ValidationError("Cart is empty", code=ErrorCode.EMPTY_CART)
        if self._locks.is_locked(owner):
            raise LockedError()

        now = self._clock()
        last_touched = max(item.updated_at for item in items)
        if now - last_touched > self._conf.cart_max_age:
            raise ValidationError("Cart has expired, please review it again", code=ErrorCode.CART_EXPIRED)

        priced = self._cart.price_cart(owner, now)
        if priced.unavailable:
            raise PricingUnavailableError(
                f'"{priced.unavailable[0].name}" has already started and is no longer available for purchase'
            )
        fees = priced.fees
        validate_allocation(fees, self._conf.fee_schedule)

        if not fees.is_free:
            if fees.total_paid < self._conf.minimum_total:
                raise ValidationError(
                    f"Minimum payable total is {self._conf.minimum_total}",
                    code=ErrorCode.BELOW_MINIMUM,
                )
            self._require_payment_data(request)

        ticket_dates = sorted({p.line.date for p in priced.lines if p.line.item_type is ItemType.TICKET})
        transaction = CheckoutTransaction(
            id=TransactionId(uuid4()),
            club_id=items[0].club_id,
            owner=owner,
            buyer_email=request.email,
            ticket_date=ticket_dates[0] if ticket_dates else None,
            is_event_checkout=priced.is_event_checkout,
            fees=fees,
            lines=tuple(replace(p, cart_item_id=None) for p in priced.lines),
            priced_at=now,
            customer=request.customer,
            payment_method=None if fees.is_free else request.payment_method,
            payment_provider="free" if fees.is_free else self._gateway().name,
            payment_status=PaymentStatus.PENDING,
            provider_reference=f"cart_{uuid4().hex}",
            created_at=now,
        )
        self._transactions.create(transaction)
        logger.info(
            "Checkout initiated",
            transaction_id=str(transaction.id),
            owner=owner.key,
            total_paid=str(fees.total_paid),
            is_free=fees.is_free,
        )

        if not self._locks.acquire(owner, str(transaction.id)):
            self._transactions.update_status(transaction.id, PaymentStatus.ERROR)
            raise LockedError()

        if fees.is_free:
            return self._complete_free(transaction)
        return self._start_payment(transaction, request)

    def _require_payment_data(self, request: CheckoutRequest) -> None:
        if request.payment_method is None:
            raise ValidationError("Payment method is required")
        missing = [
            key for key in REQUIRED_PAYMENT_DATA[request.payment_method] if not request.payment_data.get(key)
        ]
        if missing:
            raise ValidationError(f"Missing payment data: {', '.join(missing)}")

    def _complete_free(self, transaction: CheckoutTransaction) -> CheckoutResult:
        self._transactions.update_status(transaction.id, PaymentStatus.APPROVED)
        self._fulfill_and_release(transaction)
        return CheckoutResult(
            transaction_id=transaction.id,
            redirect_url=None,
            total_paid=transaction.fees.total_paid,
            is_free_checkout=True,
            status=PaymentStatus.APPROVED,
        )

    def _start_payment(self, transaction: CheckoutTransaction, request: CheckoutRequest) -> CheckoutResult:
        gateway = self._gateway()
        owner = transaction.owner
        try:
            acceptance = gateway.get_acceptance_tokens()
            payload = self._transaction_payload(gateway, transaction, request, acceptance)
            created = gateway.create_transaction(payload)
        except GatewayError as exc:
            self._locks.release(owner)
            logger.error(
                "Gateway failed during checkout initiation",
                transaction_id=str(transaction.id),
                error=str(exc),
            )
            raise GatewayCommunicationError() from exc
        except Exception:
            self._locks.release(owner)
            raise

        status = parse_status(created.status)
        self._transactions.update_status(transaction.id, status, provider_transaction_id=created.id)
        self._locks.update_transaction_id(owner, created.id)
        logger.info(
            "Gateway transaction created",
            transaction_id=str(transaction.id),
            gateway_transaction_id=created.id,
            status=status.value,
        )

        if status.is_failure:
            self._locks.release(owner)
            raise PaymentDeclinedError(f"Payment {status.value.lower()} by the gateway")
        if status is PaymentStatus.APPROVED:
            self._fulfill_and_release(transaction, created.id)

        redirect_url = None
        if request.payment_method.is_async:
            redirect_url = created.async_payment_url or self._poll_async_url(gateway, created.id)

        return CheckoutResult(
            transaction_id=transaction.id,
            redirect_url=redirect_url,
            total_paid=transaction.fees.total_paid,
            is_free_checkout=False,
            status=status,
        )

    def _transaction_payload(
        self,
        gateway: PaymentGateway,
        transaction: CheckoutTransaction,
        request: CheckoutRequest,
        acceptance: AcceptanceTokens,
    ) -> dict[str, Any]:
        secret = self._conf.wompi_integrity_secret
        amount_in_cents = transaction.fees.amount_in_cents
        payload: dict[str, Any] = {
            "amount_in_cents": amount_in_cents,
            "currency": self._conf.currency,
            "reference": transaction.provider_reference,
            "customer_email": transaction.buyer_email,
            "acceptance_token": acceptance.acceptance_token,
            "accept_personal_auth": acceptance.personal_data_token,
        }
        if request.redirect_url:
            payload["redirect_url"] = request.redirect_url

        data = request.payment_data
        description = data.get("payment_description") or f"Purchase {transaction.provider_reference}"
        match request.payment_method:
            case PaymentMethod.CARD:
                card = {key: data[key] for key in REQUIRED_PAYMENT_DATA[PaymentMethod.CARD]}
                card_token = gateway.tokenize_card(card)
                payload["payment_source_id"] = gateway.create_payment_source(
                    card_token, transaction.buyer_email, acceptance
                )
                payload["payment_method"] = {"type": "CARD", "installments": request.installments}
            case PaymentMethod.NEQUI:
                payload["payment_method"] = {"type": "NEQUI", "phone_number": data["phone_number"]}
            case PaymentMethod.PSE:
                payload["payment_method"] = {
                    "type": "PSE",
                    "user_type": data.get("user_type", 0),
                    "user_legal_id_type": data.get("user_legal_id_type", "CC"),
                    "user_legal_id": data["user_legal_id"],
                    "financial_institution_code": data["financial_institution_code"],
                    "payment_description": description,
                }
                payload["customer_data"] = {
                    "phone_number": transaction.customer.phone_number,
                    "full_name": transaction.customer.full_name,
                }
            case PaymentMethod.BANCOLOMBIA_TRANSFER:
                payload["payment_method"] = {
                    "type": "BANCOLOMBIA_TRANSFER",
                    "user_type": "PERSON",
                    "payment_description": description,
                    "ecommerce_url": data.get("ecommerce_url") or request.redirect_url,
                }

        signature = integrity_signature(payload["reference"], amount_in_cents, payload["currency"], secret)
        if not verify_integrity_signature(
            signature, payload["reference"], payload["amount_in_cents"], payload["currency"], secret
        ):
            raise SignatureMismatchError()
        payload["signature"] = signature
        return payload

    def _poll_async_url(self, gateway: PaymentGateway, gateway_transaction_id: str) -> str | None:
        try:
            return gateway.poll_transaction_for_async_url(
                gateway_transaction_id,
                timeout=self._conf.async_url_timeout_seconds,
                interval=self._conf.async_url_poll_interval_seconds,
            )
        except GatewayError as exc:
            logger.warning(
                "Could not obtain async payment URL",
                gateway_transaction_id=gateway_transaction_id,
                error=str(exc),
            )
            return None

    # -- confirm ----------------------------------------------------------

    def get_transaction(self, owner: OwnerKey, transaction_id: str) -> CheckoutTransaction:
        """Return one of the owner's transactions.

        Raises:
            ValidationError: If the ID is not a valid UUID.
            NotFoundError: If the transaction does not exist.
            OwnershipError: If it belongs to someone else.
        """
        try:
            parsed = TransactionId.from_string(transaction_id)
        except ValueError:
            raise ValidationError("Invalid transaction ID format") from None
        transaction = self._transactions.get(parsed)
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        if transaction.owner != owner:
            raise OwnershipError("Transaction does not belong to the current owner")
        return transaction

    def confirm(self, owner: OwnerKey, transaction_id: str) -> ConfirmResult:
        """Ask the gateway for the outcome and fulfil on approval.

        Raises:
            ConflictError: If the transaction already failed.
            GatewayCommunicationError: If the gateway cannot be reached (retryable).
        """
        transaction = self.get_transaction(owner, transaction_id)
        if transaction.is_processed:
            return ConfirmResult(True, transaction.payment_status, "Transaction already processed")
        if transaction.payment_status.is_failure:
            raise ConflictError(transaction.payment_status.value)
        if transaction.provider_transaction_id is None:
            raise ValidationError("Payment was never submitted to the gateway")

        try:
            remote = self._gateway().get_transaction_status(transaction.provider_transaction_id)
        except GatewayError as exc:
            self._release_if_held(transaction)
            logger.error(
                "Gateway failed during confirmation",
                transaction_id=str(transaction.id),
                error=str(exc),
            )
            raise GatewayCommunicationError() from exc

        status = parse_status(remote.status)
        match status:
            case PaymentStatus.APPROVED:
                self._transactions.update_status(transaction.id, status)
                self._fulfill_and_release(transaction)
                return ConfirmResult(True, status, "Payment approved")
            case PaymentStatus.PENDING:
                return ConfirmResult(False, status, "Payment is still pending")
            case _:
                self._transactions.update_status(transaction.id, status)
                self._release_if_held(transaction)
                logger.info("Payment not approved", transaction_id=str(transaction.id), status=status.value)
                return ConfirmResult(False, status, f"Payment {status.value.lower()}")

    def _fulfill_and_release(self, transaction: CheckoutTransaction, gateway_id: str | None = None) -> None:
        """Fulfil, then clear the cart; the lock is released whatever happens."""
        try:
            self._fulfillment.fulfill(transaction.id)
            try:
                self._carts.clear(transaction.owner)
            except Exception:
                logger.exception("Failed to clear cart after checkout", transaction_id=str(transaction.id))
        finally:
            self._release_if_held(transaction, gateway_id)

    def _release_if_held(self, transaction: CheckoutTransaction, gateway_id: str | None = None) -> None:
        """Release the owner's lock only while it still points at this transaction."""
        record = self._locks.get(transaction.owner)
        if record is None:
            return
        ours = {str(transaction.id), transaction.provider_transaction_id, gateway_id} - {None}
        if record.transaction_id not in ours:
            logger.info(
                "Cart lock belongs to another checkout, leaving it in place",
                transaction_id=str(transaction.id),
                lock_transaction_id=record.transaction_id,
            )
            return
        self._locks.release(transaction.owner)

    # -- webhook ----------------------------------------------------------

    def handle_gateway_event(self, event: dict[str, Any]) -> WebhookOutcome:
        """Apply a gateway event to the matching transaction, idempotently.

        Without a configured events secret no event can be authenticated,
        so every event is rejected.
        """
        secret = self._conf.wompi_events_secret
        if not secret:
            logger.error("Gateway event rejected: events secret is not configured", event_type=event.get("event"))
            return WebhookOutcome.INVALID_SIGNATURE
        if not verify_event_checksum(event, secret):
            logger.warning("Gateway event with invalid checksum", event_type=event.get("event"))
            return WebhookOutcome.INVALID_SIGNATURE
        if event.get("event") != "transaction.updated":
            return WebhookOutcome.IGNORED

        data = (event.get("data") or {}).get("transaction") or {}
        reference = data.get("reference")
        transaction = self._transactions.get_by_reference(reference) if reference else None
        if transaction is None:
            logger.warning("Gateway event for unknown reference", reference=reference)
            return WebhookOutcome.IGNORED

        status = parse_status(str(data.get("status")))
        gateway_id = str(data["id"]) if data.get("id") is not None else None
        if transaction.is_processed or (
            status is transaction.payment_status and gateway_id == transaction.provider_transaction_id
        ):
            return WebhookOutcome.UNCHANGED

        self._transactions.update_status(transaction.id, status, provider_transaction_id=gateway_id)
        logger.info(
            "Transaction updated from gateway event",
            transaction_id=str(transaction.id),
            status=status.value,
        )
        if status is PaymentStatus.APPROVED:
            self._fulfill_and_release(transaction, gateway_id)
            return WebhookOutcome.FULFILLED
        if status.is_failure:
            self._release_if_held(transaction)
        return WebhookOutcome.UPDATED
