"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in checkout/models.py (persistence layer).
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Self
from uuid import UUID

from checkout.domain.fees import FeeAllocation
from checkout.domain.value_objects import (
    Capacity,
    CartItemId,
    Money,
    OpenHours,
    OwnerKey,
    TransactionId,
)


class TicketCategory(Enum):
    GENERAL = "general"
    EVENT = "event"
    FREE = "free"


class ItemType(Enum):
    TICKET = "ticket"
    MENU = "menu"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    VOIDED = "VOIDED"
    ERROR = "ERROR"

    @property
    def is_failure(self) -> bool:
        return self in (PaymentStatus.DECLINED, PaymentStatus.VOIDED, PaymentStatus.ERROR)


class PaymentMethod(Enum):
    CARD = "CARD"
    NEQUI = "NEQUI"
    PSE = "PSE"
    BANCOLOMBIA_TRANSFER = "BANCOLOMBIA_TRANSFER"

    @property
    def is_async(self) -> bool:
        """Methods whose approval happens on a bank page the buyer is redirected to."""
        return self in (PaymentMethod.PSE, PaymentMethod.BANCOLOMBIA_TRANSFER)


@dataclass(frozen=True)
class Club:
    """Domain representation of a venue and its weekly schedule."""

    id: UUID
    name: str
    open_days: tuple[str, ...] = ()
    open_hours: tuple[OpenHours, ...] = ()

    def hours_for(self, day_name: str) -> OpenHours | None:
        if day_name not in self.open_days:
            return None
        return next((h for h in self.open_hours if h.day == day_name), None)


@dataclass(frozen=True)
class Event:
    """Domain representation of a dated event at a club."""

    id: UUID
    club_id: UUID
    name: str
    date: date
    open_time: time | None = None
    close_time: time | None = None
    is_active: bool = True


@dataclass(frozen=True)
class Ticket:
    """Domain representation of a sellable ticket."""

    id: UUID
    club_id: UUID
    name: str
    category: TicketCategory
    price: Money
    max_per_person: int
    quantity: Capacity | None = None
    available_date: date | None = None
    event_id: UUID | None = None
    dynamic_pricing_enabled: bool = True
    is_active: bool = True


@dataclass(frozen=True)
class MenuItemVariant:
    """Domain representation of a priced variant of a menu item."""

    id: UUID
    menu_item_id: UUID
    name: str
    price: Money
    max_per_person: int | None = None
    dynamic_pricing_enabled: bool = True
    is_active: bool = True


@dataclass(frozen=True)
class MenuItem:
    """Domain representation of a menu item.

    Items with variants carry no price of their own.
    """

    id: UUID
    club_id: UUID
    name: str
    price: Money | None
    max_per_person: int | None = None
    has_variants: bool = False
    dynamic_pricing_enabled: bool = True
    is_active: bool = True
    variants: tuple[MenuItemVariant, ...] = ()

    def variant(self, variant_id: UUID) -> MenuItemVariant | None:
        return next((v for v in self.variants if v.id == variant_id and v.is_active), None)


@dataclass(frozen=True)
class CartLine:
    """One purchasable line: what, which variant, how many, for which date."""

    item_type: ItemType
    ref_id: UUID
    variant_id: UUID | None
    quantity: int
    date: date

    @property
    def merge_key(self) -> tuple:
        return (self.item_type, self.ref_id, self.variant_id, self.date)


@dataclass(frozen=True)
class CartItem:
    """Domain representation of a cart line owned by a user or a session."""

    id: CartItemId
    owner: OwnerKey
    item_type: ItemType
    ref_id: UUID
    variant_id: UUID | None
    quantity: int
    date: date
    club_id: UUID
    created_at: datetime
    updated_at: datetime

    @property
    def merge_key(self) -> tuple:
        return (self.item_type, self.ref_id, self.variant_id, self.date)

    def with_quantity(self, quantity: int, now: datetime) -> Self:
        return replace(self, quantity=quantity, updated_at=now)

    def as_line(self) -> CartLine:
        return CartLine(
            item_type=self.item_type,
            ref_id=self.ref_id,
            variant_id=self.variant_id,
            quantity=self.quantity,
            date=self.date,
        )


@dataclass(frozen=True)
class PricedLine:
    """A cart line projected through the pricing engine."""

    line: CartLine
    name: str
    base_price: Decimal
    unit_price: Decimal
    reason: str
    dynamic_pricing_applied: bool
    ticket_category: TicketCategory | None = None
    variant_name: str | None = None
    cart_item_id: CartItemId | None = None
    available: bool = True

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.line.quantity


@dataclass(frozen=True)
class CustomerInfo:
    """Buyer identity captured at checkout for invoicing and gateway payloads."""

    full_name: str = ""
    phone_number: str = ""
    legal_id: str = ""
    legal_id_type: str = ""


@dataclass(frozen=True)
class CheckoutTransaction:
    """Domain representation of one checkout attempt and its outcome."""

    id: TransactionId
    club_id: UUID
    owner: OwnerKey
    buyer_email: str
    ticket_date: date | None
    is_event_checkout: bool
    fees: FeeAllocation
    # Lines as quoted at initiation; purchases are built from these prices.
    lines: tuple[PricedLine, ...]
    priced_at: datetime
    customer: CustomerInfo
    payment_method: PaymentMethod | None
    payment_provider: str
    payment_status: PaymentStatus
    provider_reference: str
    created_at: datetime
    provider_transaction_id: str | None = None
    qr_payload: str | None = None
    processed_at: datetime | None = None

    @property
    def is_free(self) -> bool:
        return self.fees.is_free

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None


@dataclass(frozen=True)
class TicketPurchase:
    """One purchased ticket unit."""

    id: UUID
    transaction_id: TransactionId
    ticket_id: UUID
    club_id: UUID
    event_id: UUID | None
    owner: OwnerKey
    buyer_email: str
    date: date
    original_base_price: Decimal
    price_at_checkout: Decimal
    dynamic_pricing_was_applied: bool
    pricing_reason: str
    club_receives: Decimal
    platform_fee: Decimal
    platform_fee_rate: Decimal
    qr_payload: str
    sequence_index: int
    sequence_total: int


@dataclass(frozen=True)
class MenuPurchase:
    """One purchased menu line."""

    id: UUID
    transaction_id: TransactionId
    menu_item_id: UUID
    variant_id: UUID | None
    club_id: UUID
    owner: OwnerKey
    buyer_email: str
    quantity: int
    original_base_price: Decimal
    price_at_checkout: Decimal
    dynamic_pricing_was_applied: bool
    pricing_reason: str
    club_receives: Decimal
    platform_fee: Decimal
    platform_fee_rate: Decimal


@dataclass(frozen=True)
class CartLockRecord:
    """Mutual-exclusion marker held over a cart during checkout."""

    owner_key: str
    transaction_id: str
    acquired_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
