"""Notification port.

The engine only builds payloads; rendering (HTML, PDF, QR images) and
delivery belong to the email collaborator behind this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TicketEmail:
    recipient: str
    ticket_name: str
    date: date
    qr_payload: str
    club_name: str
    sequence_index: int
    sequence_total: int


@dataclass(frozen=True)
class MenuEmailItem:
    name: str
    variant: str | None
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class MenuEmail:
    recipient: str
    qr_payload: str
    club_name: str
    items: tuple[MenuEmailItem, ...]
    total: Decimal


@dataclass(frozen=True)
class InvoiceLine:
    description: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class InvoiceEmail:
    recipient: str
    transaction_id: str
    club_name: str
    lines: tuple[InvoiceLine, ...]
    ticket_subtotal: Decimal
    menu_subtotal: Decimal
    platform_receives: Decimal
    gateway_fee: Decimal
    gateway_iva: Decimal
    total_paid: Decimal
    customer_full_name: str = ""
    customer_legal_id: str = ""
    customer_legal_id_type: str = ""
    payment_method: str = ""


class Notifier(ABC):
    """Delivers purchase notifications."""

    @abstractmethod
    def send_ticket(self, email: TicketEmail) -> None:
        ...

    @abstractmethod
    def send_menu(self, email: MenuEmail) -> None:
        ...

    @abstractmethod
    def send_invoice(self, email: InvoiceEmail) -> None:
        ...


class LoggingNotifier(Notifier):
    """Logs payloads instead of sending them."""

    def send_ticket(self, email: TicketEmail) -> None:
        logger.info(
            "Ticket email queued",
            recipient=email.recipient,
            ticket=email.ticket_name,
            sequence=f"{email.sequence_index}/{email.sequence_total}",
        )

    def send_menu(self, email: MenuEmail) -> None:
        logger.info("Menu email queued", recipient=email.recipient, items=len(email.items))

    def send_invoice(self, email: InvoiceEmail) -> None:
        logger.info("Invoice email queued", recipient=email.recipient, transaction_id=email.transaction_id)


class RecordingNotifier(Notifier):
    """Keeps every payload in memory."""

    def __init__(self) -> None:
        self.sent: list[object] = []

    def send_ticket(self, email: TicketEmail) -> None:
        self.sent.append(email)

    def send_menu(self, email: MenuEmail) -> None:
        self.sent.append(email)

    def send_invoice(self, email: InvoiceEmail) -> None:
        self.sent.append(email)

    def of_type(self, kind: type) -> list:
        return [email for email in self.sent if isinstance(email, kind)]

