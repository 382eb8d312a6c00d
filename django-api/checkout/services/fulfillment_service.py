"""Fulfillment - turns an approved transaction into purchase records.

Runs inside one database transaction with the transaction row locked;
processed_at is the fence that makes a second run a no-op. Purchases carry
the prices quoted when the checkout was initiated.
"""

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import structlog

from checkout.clock import utcnow
from checkout.domain import (
    CheckoutTransaction,
    ConflictError,
    FeeSchedule,
    ItemType,
    MenuPurchase,
    NotFoundError,
    PaymentStatus,
    PricedLine,
    TicketPurchase,
    TransactionId,
)
from checkout.notifications import (
    InvoiceEmail,
    InvoiceLine,
    MenuEmail,
    MenuEmailItem,
    Notifier,
    TicketEmail,
    get_notifier,
)
from checkout.services.line_pricer import LinePricer
from checkout.services.qr_codes import QrEncoder
from checkout.stores.interfaces import CatalogStore, TransactionStore

logger = structlog.get_logger(__name__)


class FulfillmentService:
    """Materializes purchases for approved transactions exactly once."""

    def __init__(
        self,
        catalog: CatalogStore,
        transactions: TransactionStore,
        pricer: LinePricer,
        qr: QrEncoder,
        fee_schedule: FeeSchedule | None = None,
        notifier: Callable[[], Notifier] = get_notifier,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._catalog = catalog
        self._transactions = transactions
        self._pricer = pricer
        self._qr = qr
        self._fee_schedule = fee_schedule or FeeSchedule()
        self._notifier = notifier
        self._clock = clock

    def fulfill(self, transaction_id: TransactionId) -> bool:
        """Create purchase rows for an approved transaction.

        Returns True when this call created the purchases and False when the
        transaction had already been processed.

        Raises:
            NotFoundError: If the transaction does not exist.
            ConflictError: If the transaction is not approved.
            IdempotencyViolation: If another writer processed it concurrently.
        """
        with self._transactions.atomic():
            transaction = self._transactions.get_for_update(transaction_id)
            if transaction is None:
                raise NotFoundError("Transaction", transaction_id)
            if transaction.is_processed:
                logger.info("Transaction already fulfilled", transaction_id=str(transaction_id))
                return False
            if transaction.payment_status is not PaymentStatus.APPROVED:
                raise ConflictError(transaction.payment_status.value)

            now = self._clock()
            priced = list(transaction.lines)
            tickets = self._ticket_purchases(transaction, priced, now)
            menus = self._menu_purchases(transaction, priced)
            menu_qr = (
                self._qr.menu(str(transaction.id), str(transaction.club_id), now) if menus else None
            )

            self._transactions.add_ticket_purchases(tickets)
            self._transactions.add_menu_purchases(menus)
            self._transactions.mark_processed(transaction.id, now, menu_qr)

        logger.info(
            "Transaction fulfilled",
            transaction_id=str(transaction_id),
            tickets=len(tickets),
            menu_lines=len(menus),
        )
        self._notify(transaction, priced, tickets, menu_qr)
        return True

    def _ticket_purchases(
        self,
        transaction: CheckoutTransaction,
        priced: list[PricedLine],
        now: datetime,
    ) -> list[TicketPurchase]:
        rate = self._fee_schedule.ticket_commission_rate(transaction.is_event_checkout)
        ticket_lines = [p for p in priced if p.line.item_type is ItemType.TICKET]
        total_units = sum(p.line.quantity for p in ticket_lines)
        purchases = []
        sequence = 0
        for p in ticket_lines:
            resolved = self._pricer.resolve_ticket(p.line.ref_id, include_inactive=True)
            for _ in range(p.line.quantity):
                sequence += 1
                purchase_id = uuid4()
                purchases.append(
                    TicketPurchase(
                        id=purchase_id,
                        transaction_id=transaction.id,
                        ticket_id=p.line.ref_id,
                        club_id=transaction.club_id,
                        event_id=resolved.ticket.event_id,
                        owner=transaction.owner,
                        buyer_email=transaction.buyer_email,
                        date=p.line.date,
                        original_base_price=p.base_price,
                        price_at_checkout=p.unit_price,
                        dynamic_pricing_was_applied=p.dynamic_pricing_applied,
                        pricing_reason=p.reason,
                        club_receives=p.unit_price,
                        platform_fee=p.unit_price * rate,
                        platform_fee_rate=rate,
                        qr_payload=self._qr.ticket(str(purchase_id), str(transaction.club_id), now),
                        sequence_index=sequence,
                        sequence_total=total_units,
                    )
                )
        return purchases

    def _menu_purchases(self, transaction: CheckoutTransaction, priced: list[PricedLine]) -> list[MenuPurchase]:
        rate = self._fee_schedule.menu_rate
        return [
            MenuPurchase(
                id=uuid4(),
                transaction_id=transaction.id,
                menu_item_id=p.line.ref_id,
                variant_id=p.line.variant_id,
                club_id=transaction.club_id,
                owner=transaction.owner,
                buyer_email=transaction.buyer_email,
                quantity=p.line.quantity,
                original_base_price=p.base_price,
                price_at_checkout=p.unit_price,
                dynamic_pricing_was_applied=p.dynamic_pricing_applied,
                pricing_reason=p.reason,
                club_receives=p.line_total,
                platform_fee=p.line_total * rate,
                platform_fee_rate=rate,
            )
            for p in priced
            if p.line.item_type is ItemType.MENU
        ]

    def _notify(
        self,
        transaction: CheckoutTransaction,
        priced: list[PricedLine],
        tickets: list[TicketPurchase],
        menu_qr: str | None,
    ) -> None:
        """Hand payloads to the notifier. Failures are logged, never raised."""
        try:
            notifier = self._notifier()
            club = self._catalog.get_club(transaction.club_id)
            club_name = club.name if club else ""
            names = {p.line.ref_id: p.name for p in priced}

            for purchase in tickets:
                notifier.send_ticket(
                    TicketEmail(
                        recipient=transaction.buyer_email,
                        ticket_name=names.get(purchase.ticket_id, ""),
                        date=purchase.date,
                        qr_payload=purchase.qr_payload,
                        club_name=club_name,
                        sequence_index=purchase.sequence_index,
                        sequence_total=purchase.sequence_total,
                    )
                )

            menu_lines = [p for p in priced if p.line.item_type is ItemType.MENU]
            if menu_qr is not None:
                notifier.send_menu(
                    MenuEmail(
                        recipient=transaction.buyer_email,
                        qr_payload=menu_qr,
                        club_name=club_name,
                        items=tuple(
                            MenuEmailItem(
                                name=p.name,
                                variant=p.variant_name,
                                quantity=p.line.quantity,
                                unit_price=p.unit_price,
                            )
                            for p in menu_lines
                        ),
                        total=sum((p.line_total for p in menu_lines), Decimal("0")),
                    )
                )

            if not transaction.is_free:
                fees = transaction.fees
                notifier.send_invoice(
                    InvoiceEmail(
                        recipient=transaction.buyer_email,
                        transaction_id=str(transaction.id),
                        club_name=club_name,
                        lines=tuple(
                            InvoiceLine(
                                description=f"{p.name} - {p.variant_name}" if p.variant_name else p.name,
                                quantity=p.line.quantity,
                                unit_price=p.unit_price,
                                subtotal=p.line_total,
                            )
                            for p in priced
                        ),
                        ticket_subtotal=fees.ticket_subtotal,
                        menu_subtotal=fees.menu_subtotal,
                        platform_receives=fees.platform_receives,
                        gateway_fee=fees.gateway_fee,
                        gateway_iva=fees.gateway_iva,
                        total_paid=fees.total_paid,
                        customer_full_name=transaction.customer.full_name,
                        customer_legal_id=transaction.customer.legal_id,
                        customer_legal_id_type=transaction.customer.legal_id_type,
                        payment_method=transaction.payment_method.value if transaction.payment_method else "",
                    )
                )
        except Exception:
            logger.exception("Failed to send purchase notifications", transaction_id=str(transaction.id))
