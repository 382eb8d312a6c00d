"""Django ORM implementations of the checkout stores.

Each method queries the ORM and converts rows to domain models.
"""

from contextlib import AbstractContextManager
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from django.db import transaction as db_transaction
from django.db.models import Max, Q

from checkout import models as orm
from checkout.domain import (
    Capacity,
    CartItem,
    CartItemId,
    CartLine,
    CheckoutTransaction,
    Club,
    CustomerInfo,
    Event,
    FeeAllocation,
    IdempotencyViolation,
    ItemType,
    MenuItem,
    MenuItemVariant,
    MenuPurchase,
    Money,
    OpenHours,
    OwnerKey,
    PaymentMethod,
    PaymentStatus,
    PricedLine,
    Ticket,
    TicketCategory,
    TicketPurchase,
    TransactionId,
)
from checkout.stores.interfaces import CartStore, CatalogStore, TransactionStore

FEE_FIELDS = (
    "ticket_subtotal",
    "menu_subtotal",
    "platform_fee_tickets",
    "platform_fee_menu",
    "platform_receives",
    "gateway_fee",
    "gateway_iva",
    "gateway_alloc_tickets",
    "gateway_alloc_menu",
    "total_paid",
    "club_receives",
)


def _club_to_domain(row: orm.Club) -> Club:
    return Club(
        id=row.id,
        name=row.name,
        open_days=tuple(row.open_days or ()),
        open_hours=tuple(
            OpenHours(
                day=h["day"],
                open=time.fromisoformat(h["open"]),
                close=time.fromisoformat(h["close"]),
            )
            for h in row.open_hours or ()
        ),
    )


def _event_to_domain(row: orm.Event) -> Event:
    return Event(
        id=row.id,
        club_id=row.club_id,
        name=row.name,
        date=row.date,
        open_time=row.open_time,
        close_time=row.close_time,
        is_active=row.is_active,
    )


def _ticket_to_domain(row: orm.Ticket) -> Ticket:
    return Ticket(
        id=row.id,
        club_id=row.club_id,
        name=row.name,
        category=TicketCategory(row.category),
        price=Money(row.price),
        max_per_person=row.max_per_person,
        quantity=Capacity(row.quantity) if row.quantity is not None else None,
        available_date=row.available_date,
        event_id=row.event_id,
        dynamic_pricing_enabled=row.dynamic_pricing_enabled,
        is_active=row.is_active,
    )


def _variant_to_domain(row: orm.MenuItemVariant) -> MenuItemVariant:
    return MenuItemVariant(
        id=row.id,
        menu_item_id=row.menu_item_id,
        name=row.name,
        price=Money(row.price),
        max_per_person=row.max_per_person,
        dynamic_pricing_enabled=row.dynamic_pricing_enabled,
        is_active=row.is_active,
    )


def _menu_item_to_domain(row: orm.MenuItem) -> MenuItem:
    return MenuItem(
        id=row.id,
        club_id=row.club_id,
        name=row.name,
        price=Money(row.price) if row.price is not None else None,
        max_per_person=row.max_per_person,
        has_variants=row.has_variants,
        dynamic_pricing_enabled=row.dynamic_pricing_enabled,
        is_active=row.is_active,
        variants=tuple(_variant_to_domain(v) for v in row.variants.all()),
    )


def _cart_item_to_domain(row: orm.CartItem) -> CartItem:
    return CartItem(
        id=CartItemId(row.id),
        owner=OwnerKey.from_key(row.owner_key),
        item_type=ItemType(row.item_type),
        ref_id=row.ref_id,
        variant_id=row.variant_id,
        quantity=row.quantity,
        date=row.date,
        club_id=row.club_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _line_to_json(priced: PricedLine) -> dict:
    line = priced.line
    return {
        "item_type": line.item_type.value,
        "ref_id": str(line.ref_id),
        "variant_id": str(line.variant_id) if line.variant_id else None,
        "quantity": line.quantity,
        "date": line.date.isoformat(),
        "name": priced.name,
        "variant_name": priced.variant_name,
        "ticket_category": priced.ticket_category.value if priced.ticket_category else None,
        "base_price": str(priced.base_price),
        "unit_price": str(priced.unit_price),
        "reason": priced.reason,
        "dynamic_pricing_applied": priced.dynamic_pricing_applied,
    }


def _line_from_json(data: dict) -> PricedLine:
    line = CartLine(
        item_type=ItemType(data["item_type"]),
        ref_id=UUID(data["ref_id"]),
        variant_id=UUID(data["variant_id"]) if data.get("variant_id") else None,
        quantity=int(data["quantity"]),
        date=date.fromisoformat(data["date"]),
    )
    return PricedLine(
        line=line,
        name=data["name"],
        base_price=Decimal(data["base_price"]),
        unit_price=Decimal(data["unit_price"]),
        reason=data["reason"],
        dynamic_pricing_applied=data["dynamic_pricing_applied"],
        ticket_category=TicketCategory(data["ticket_category"]) if data.get("ticket_category") else None,
        variant_name=data.get("variant_name"),
    )


def _transaction_to_domain(row: orm.CheckoutTransaction) -> CheckoutTransaction:
    return CheckoutTransaction(
        id=TransactionId(row.id),
        club_id=row.club_id,
        owner=OwnerKey.from_key(row.owner_key),
        buyer_email=row.buyer_email,
        ticket_date=row.ticket_date,
        is_event_checkout=row.is_event_checkout,
        fees=FeeAllocation(**{name: Decimal(getattr(row, name)) for name in FEE_FIELDS}),
        lines=tuple(_line_from_json(line) for line in row.lines),
        priced_at=row.priced_at,
        customer=CustomerInfo(
            full_name=row.customer_full_name,
            phone_number=row.customer_phone_number,
            legal_id=row.customer_legal_id,
            legal_id_type=row.customer_legal_id_type,
        ),
        payment_method=PaymentMethod(row.payment_method) if row.payment_method else None,
        payment_provider=row.payment_provider,
        payment_status=PaymentStatus(row.payment_status),
        provider_reference=row.provider_reference,
        created_at=row.created_at,
        provider_transaction_id=row.provider_transaction_id,
        qr_payload=row.qr_payload,
        processed_at=row.processed_at,
    )


def _ticket_purchase_to_domain(row: orm.TicketPurchase) -> TicketPurchase:
    return TicketPurchase(
        id=row.id,
        transaction_id=TransactionId(row.transaction_id),
        ticket_id=row.ticket_id,
        club_id=row.club_id,
        event_id=row.event_id,
        owner=OwnerKey.from_key(row.owner_key),
        buyer_email=row.buyer_email,
        date=row.date,
        original_base_price=row.original_base_price,
        price_at_checkout=row.price_at_checkout,
        dynamic_pricing_was_applied=row.dynamic_pricing_was_applied,
        pricing_reason=row.pricing_reason,
        club_receives=row.club_receives,
        platform_fee=row.platform_fee,
        platform_fee_rate=row.platform_fee_rate,
        qr_payload=row.qr_payload,
        sequence_index=row.sequence_index,
        sequence_total=row.sequence_total,
    )


def _menu_purchase_to_domain(row: orm.MenuPurchase) -> MenuPurchase:
    return MenuPurchase(
        id=row.id,
        transaction_id=TransactionId(row.transaction_id),
        menu_item_id=row.menu_item_id,
        variant_id=row.variant_id,
        club_id=row.club_id,
        owner=OwnerKey.from_key(row.owner_key),
        buyer_email=row.buyer_email,
        quantity=row.quantity,
        original_base_price=row.original_base_price,
        price_at_checkout=row.price_at_checkout,
        dynamic_pricing_was_applied=row.dynamic_pricing_was_applied,
        pricing_reason=row.pricing_reason,
        club_receives=row.club_receives,
        platform_fee=row.platform_fee,
        platform_fee_rate=row.platform_fee_rate,
    )


class DjangoCatalogStore(CatalogStore):
    """Catalog reads using Django ORM."""

    def get_club(self, club_id: UUID) -> Club | None:
        row = orm.Club.objects.filter(pk=club_id).first()
        return _club_to_domain(row) if row else None

    def get_event(self, event_id: UUID) -> Event | None:
        row = orm.Event.objects.filter(pk=event_id).first()
        return _event_to_domain(row) if row else None

    def get_event_on(self, club_id: UUID, day: date) -> Event | None:
        row = orm.Event.objects.filter(club_id=club_id, date=day, is_active=True).first()
        return _event_to_domain(row) if row else None

    def has_paid_event_on(self, club_id: UUID, day: date) -> bool:
        return orm.Ticket.objects.filter(
            Q(available_date=day) | Q(event__date=day),
            club_id=club_id,
            category=orm.Ticket.Category.EVENT,
            is_active=True,
        ).exists()

    def get_ticket(self, ticket_id: UUID) -> Ticket | None:
        row = orm.Ticket.objects.filter(pk=ticket_id).first()
        return _ticket_to_domain(row) if row else None

    def get_menu_item(self, menu_item_id: UUID) -> MenuItem | None:
        row = orm.MenuItem.objects.prefetch_related("variants").filter(pk=menu_item_id).first()
        return _menu_item_to_domain(row) if row else None

    def count_sold(self, ticket_id: UUID, day: date) -> int:
        return orm.TicketPurchase.objects.filter(ticket_id=ticket_id, date=day).count()


class DjangoCartStore(CartStore):
    """Cart lines persisted with Django ORM."""

    def list_items(self, owner: OwnerKey) -> list[CartItem]:
        rows = orm.CartItem.objects.filter(owner_key=owner.key).order_by("created_at")
        return [_cart_item_to_domain(row) for row in rows]

    def get_item(self, item_id: CartItemId) -> CartItem | None:
        row = orm.CartItem.objects.filter(pk=item_id.value).first()
        return _cart_item_to_domain(row) if row else None

    def save_item(self, item: CartItem) -> CartItem:
        orm.CartItem.objects.update_or_create(
            pk=item.id.value,
            defaults={
                "owner_key": item.owner.key,
                "item_type": item.item_type.value,
                "ref_id": item.ref_id,
                "variant_id": item.variant_id,
                "quantity": item.quantity,
                "date": item.date,
                "club_id": item.club_id,
                "created_at": item.created_at,
                "updated_at": item.updated_at,
            },
        )
        return item

    def delete_item(self, item_id: CartItemId) -> None:
        orm.CartItem.objects.filter(pk=item_id.value).delete()

    def clear(self, owner: OwnerKey) -> int:
        deleted, _ = orm.CartItem.objects.filter(owner_key=owner.key).delete()
        return deleted

    def stale_owners(self, cutoff: datetime) -> list[OwnerKey]:
        rows = (
            orm.CartItem.objects.values("owner_key")
            .annotate(last_update=Max("updated_at"))
            .filter(last_update__lt=cutoff)
        )
        return [OwnerKey.from_key(row["owner_key"]) for row in rows]


class DjangoTransactionStore(TransactionStore):
    """Checkout transactions and purchases persisted with Django ORM."""

    def atomic(self) -> AbstractContextManager:
        return db_transaction.atomic()

    def create(self, transaction: CheckoutTransaction) -> CheckoutTransaction:
        t = transaction
        orm.CheckoutTransaction.objects.create(
            id=t.id.value,
            club_id=t.club_id,
            owner_key=t.owner.key,
            buyer_email=t.buyer_email,
            ticket_date=t.ticket_date,
            is_event_checkout=t.is_event_checkout,
            lines=[_line_to_json(line) for line in t.lines],
            priced_at=t.priced_at,
            customer_full_name=t.customer.full_name,
            customer_phone_number=t.customer.phone_number,
            customer_legal_id=t.customer.legal_id,
            customer_legal_id_type=t.customer.legal_id_type,
            payment_method=t.payment_method.value if t.payment_method else "",
            payment_provider=t.payment_provider,
            payment_status=t.payment_status.value,
            provider_reference=t.provider_reference,
            provider_transaction_id=t.provider_transaction_id,
            qr_payload=t.qr_payload,
            processed_at=t.processed_at,
            created_at=t.created_at,
            **{name: getattr(t.fees, name) for name in FEE_FIELDS},
        )
        return transaction

    def get(self, transaction_id: TransactionId) -> CheckoutTransaction | None:
        row = orm.CheckoutTransaction.objects.filter(pk=transaction_id.value).first()
        return _transaction_to_domain(row) if row else None

    def get_for_update(self, transaction_id: TransactionId) -> CheckoutTransaction | None:
        row = orm.CheckoutTransaction.objects.select_for_update().filter(pk=transaction_id.value).first()
        return _transaction_to_domain(row) if row else None

    def get_by_reference(self, reference: str) -> CheckoutTransaction | None:
        row = orm.CheckoutTransaction.objects.filter(provider_reference=reference).first()
        return _transaction_to_domain(row) if row else None

    def update_status(
        self,
        transaction_id: TransactionId,
        status: PaymentStatus,
        provider_transaction_id: str | None = None,
    ) -> None:
        changes = {"payment_status": status.value}
        if provider_transaction_id is not None:
            changes["provider_transaction_id"] = provider_transaction_id
        orm.CheckoutTransaction.objects.filter(pk=transaction_id.value).update(**changes)

    def mark_processed(self, transaction_id: TransactionId, when: datetime, qr_payload: str | None) -> None:
        updated = orm.CheckoutTransaction.objects.filter(
            pk=transaction_id.value, processed_at__isnull=True
        ).update(processed_at=when, qr_payload=qr_payload, updated_at=when)
        if updated == 0:
            raise IdempotencyViolation(transaction_id)

    def add_ticket_purchases(self, purchases: list[TicketPurchase]) -> None:
        orm.TicketPurchase.objects.bulk_create(
            [
                orm.TicketPurchase(
                    id=p.id,
                    transaction_id=p.transaction_id.value,
                    ticket_id=p.ticket_id,
                    club_id=p.club_id,
                    event_id=p.event_id,
                    owner_key=p.owner.key,
                    buyer_email=p.buyer_email,
                    date=p.date,
                    original_base_price=p.original_base_price,
                    price_at_checkout=p.price_at_checkout,
                    dynamic_pricing_was_applied=p.dynamic_pricing_was_applied,
                    pricing_reason=p.pricing_reason,
                    club_receives=p.club_receives,
                    platform_fee=p.platform_fee,
                    platform_fee_rate=p.platform_fee_rate,
                    qr_payload=p.qr_payload,
                    sequence_index=p.sequence_index,
                    sequence_total=p.sequence_total,
                )
                for p in purchases
            ]
        )

    def add_menu_purchases(self, purchases: list[MenuPurchase]) -> None:
        orm.MenuPurchase.objects.bulk_create(
            [
                orm.MenuPurchase(
                    id=p.id,
                    transaction_id=p.transaction_id.value,
                    menu_item_id=p.menu_item_id,
                    variant_id=p.variant_id,
                    club_id=p.club_id,
                    owner_key=p.owner.key,
                    buyer_email=p.buyer_email,
                    quantity=p.quantity,
                    original_base_price=p.original_base_price,
                    price_at_checkout=p.price_at_checkout,
                    dynamic_pricing_was_applied=p.dynamic_pricing_was_applied,
                    pricing_reason=p.pricing_reason,
                    club_receives=p.club_receives,
                    platform_fee=p.platform_fee,
                    platform_fee_rate=p.platform_fee_rate,
                )
                for p in purchases
            ]
        )

    def list_ticket_purchases(self, transaction_id: TransactionId) -> list[TicketPurchase]:
        rows = orm.TicketPurchase.objects.filter(transaction_id=transaction_id.value).order_by("sequence_index")
        return [_ticket_purchase_to_domain(row) for row in rows]

    def list_menu_purchases(self, transaction_id: TransactionId) -> list[MenuPurchase]:
        rows = orm.MenuPurchase.objects.filter(transaction_id=transaction_id.value).order_by("created_at")
        return [_menu_purchase_to_domain(row) for row in rows]
