"""Cart service - cart mutations and the rules that keep a cart consistent.

Every mutation builds the cart as it would look afterwards and validates
that whole cart before anything is written.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import structlog

from checkout.clock import utcnow
from checkout.domain import (
    CartItem,
    CartItemId,
    ConsistencyError,
    FeeSchedule,
    InventoryExhaustedError,
    ItemType,
    LockedError,
    NotFoundError,
    OwnerKey,
    OwnershipError,
    PricedLine,
    PricingUnavailableError,
    TicketCategory,
    ValidationError,
)
from checkout.services.line_pricer import LinePricer, PricedCart, ResolvedMenuItem, ResolvedTicket
from checkout.stores.interfaces import CartLockStore, CartStore, CatalogStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartSummary:
    """What the buyer sees before paying."""

    lines: tuple[PricedLine, ...]
    ticket_subtotal: Decimal
    menu_subtotal: Decimal
    total: Decimal
    operational_costs: Decimal
    actual_total: Decimal
    is_event_checkout: bool


class CartService:
    """Service for unified cart operations."""

    def __init__(
        self,
        catalog: CatalogStore,
        carts: CartStore,
        locks: CartLockStore,
        pricer: LinePricer,
        fee_schedule: FeeSchedule | None = None,
        clock: Callable[[], datetime] = utcnow,
        general_ticket_horizon_days: int = 21,
    ) -> None:
        self._catalog = catalog
        self._carts = carts
        self._locks = locks
        self._pricer = pricer
        self._fee_schedule = fee_schedule or FeeSchedule()
        self._clock = clock
        self._horizon = timedelta(days=general_ticket_horizon_days)

    # -- reads ------------------------------------------------------------

    def list_items(self, owner: OwnerKey) -> list[CartItem]:
        return self._carts.list_items(owner)

    def price_cart(self, owner: OwnerKey, now: datetime | None = None) -> PricedCart:
        now = now or self._clock()
        items = self._carts.list_items(owner)
        return self._pricer.price_cart(
            [(item.as_line(), item.id) for item in items], now, self._fee_schedule
        )

    def summary(self, owner: OwnerKey) -> CartSummary:
        priced = self.price_cart(owner)
        fees = priced.fees
        return CartSummary(
            lines=priced.lines,
            ticket_subtotal=fees.ticket_subtotal,
            menu_subtotal=fees.menu_subtotal,
            total=fees.club_receives,
            operational_costs=fees.operational_costs,
            actual_total=fees.total_paid,
            is_event_checkout=priced.is_event_checkout,
        )

    # -- mutations --------------------------------------------------------

    def add_ticket(self, owner: OwnerKey, ticket_id: UUID, day: date, quantity: int) -> CartItem:
        """Add a ticket line, merging with an identical existing line.

        Raises:
            LockedError: If a checkout holds the cart.
            NotFoundError: If the ticket does not exist or is inactive.
            ValidationError: On quantity, date or per-person violations.
            InventoryExhaustedError: If not enough units are left.
            PricingUnavailableError: If the event is past its grace window.
            ConsistencyError: If the ticket cannot share the cart with its current lines.
        """
        self._ensure_unlocked(owner)
        self._require_positive(quantity)
        resolved = self._pricer.resolve_ticket(ticket_id)
        return self._upsert(owner, ItemType.TICKET, ticket_id, None, day, quantity, resolved.club.id)

    def add_menu_item(
        self,
        owner: OwnerKey,
        menu_item_id: UUID,
        variant_id: UUID | None,
        day: date,
        quantity: int,
    ) -> CartItem:
        """Add a menu line, merging with an identical existing line.

        Raises:
            LockedError: If a checkout holds the cart.
            NotFoundError: If the item or variant does not exist.
            ValidationError: On quantity, date, variant or per-person violations.
            ConsistencyError: If the item cannot share the cart with its current lines.
        """
        self._ensure_unlocked(owner)
        self._require_positive(quantity)
        item = self._catalog.get_menu_item(menu_item_id)
        if item is None or not item.is_active:
            raise NotFoundError("Menu item", menu_item_id)
        if item.has_variants and variant_id is None:
            raise ValidationError("Select a variant for this menu item")
        if not item.has_variants and variant_id is not None:
            raise ValidationError("This menu item has no variants")
        return self._upsert(owner, ItemType.MENU, menu_item_id, variant_id, day, quantity, item.club_id)

    def update_quantity(self, owner: OwnerKey, item_id: CartItemId, quantity: int) -> CartItem:
        """Set the quantity of one of the owner's lines.

        Raises:
            LockedError: If a checkout holds the cart.
            NotFoundError: If the line does not exist.
            OwnershipError: If the line belongs to someone else.
        """
        self._ensure_unlocked(owner)
        self._require_positive(quantity)
        current = self._owned_item(owner, item_id)
        now = self._clock()
        updated = current.with_quantity(quantity, now)
        others = [item for item in self._carts.list_items(owner) if item.id != current.id]
        self._validate(updated, others, now)
        self._carts.save_item(updated)
        logger.info("Cart line updated", owner=owner.key, cart_item_id=str(item_id), quantity=quantity)
        return updated

    def remove(self, owner: OwnerKey, item_id: CartItemId) -> None:
        self._ensure_unlocked(owner)
        self._owned_item(owner, item_id)
        self._carts.delete_item(item_id)
        logger.info("Cart line removed", owner=owner.key, cart_item_id=str(item_id))

    def clear(self, owner: OwnerKey) -> int:
        self._ensure_unlocked(owner)
        removed = self._carts.clear(owner)
        logger.info("Cart cleared", owner=owner.key, removed=removed)
        return removed

    def clear_stale(self, older_than: timedelta, dry_run: bool = False) -> list[OwnerKey]:
        """Clear carts untouched for longer than `older_than`, skipping carts under checkout."""
        cutoff = self._clock() - older_than
        cleared = []
        for owner in self._carts.stale_owners(cutoff):
            if self._locks.is_locked(owner):
                continue
            if not dry_run:
                self._carts.clear(owner)
            cleared.append(owner)
        logger.info("Stale carts cleared", count=len(cleared), dry_run=dry_run, cutoff=cutoff.isoformat())
        return cleared

    # -- internals --------------------------------------------------------

    def _ensure_unlocked(self, owner: OwnerKey) -> None:
        if not self._locks.is_locked(owner):
            return
        if not self._carts.list_items(owner):
            # Nothing left to protect.
            self._locks.release(owner)
            logger.info("Released lock over empty cart", owner=owner.key)
            return
        raise LockedError()

    @staticmethod
    def _require_positive(quantity: int) -> None:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError("Quantity must be a positive integer")

    def _owned_item(self, owner: OwnerKey, item_id: CartItemId) -> CartItem:
        item = self._carts.get_item(item_id)
        if item is None:
            raise NotFoundError("Cart item", item_id)
        if item.owner != owner:
            raise OwnershipError()
        return item

    def _upsert(
        self,
        owner: OwnerKey,
        item_type: ItemType,
        ref_id: UUID,
        variant_id: UUID | None,
        day: date,
        quantity: int,
        club_id: UUID,
    ) -> CartItem:
        now = self._clock()
        items = self._carts.list_items(owner)
        key = (item_type, ref_id, variant_id, day)
        existing = next((item for item in items if item.merge_key == key), None)
        if existing is not None:
            candidate = existing.with_quantity(existing.quantity + quantity, now)
            others = [item for item in items if item.id != existing.id]
        else:
            candidate = CartItem(
                id=CartItemId(uuid4()),
                owner=owner,
                item_type=item_type,
                ref_id=ref_id,
                variant_id=variant_id,
                quantity=quantity,
                date=day,
                club_id=club_id,
                created_at=now,
                updated_at=now,
            )
            others = items

        self._validate(candidate, others, now, added=quantity)
        self._carts.save_item(candidate)
        logger.info(
            "Cart line saved",
            owner=owner.key,
            item_type=item_type.value,
            ref_id=str(ref_id),
            quantity=candidate.quantity,
            merged=existing is not None,
        )
        return candidate

    def _validate(
        self,
        candidate: CartItem,
        others: list[CartItem],
        now: datetime,
        added: int | None = None,
    ) -> None:
        """Validate the cart made of `others` plus `candidate`.

        `added` is how many units this call adds on top of what the owner
        already holds; None means `candidate.quantity` replaces what was held.
        """
        today = self._pricer.engine.local_today(now)
        if candidate.date < today:
            raise ValidationError("Cannot select a past date")

        if candidate.item_type is ItemType.TICKET:
            resolved = self._pricer.resolve_ticket(candidate.ref_id)
            self._validate_ticket(resolved, candidate, others, today, now, added)
        else:
            resolved_menu = self._pricer.resolve_menu_item(candidate.ref_id, candidate.variant_id)
            self._validate_menu(resolved_menu, candidate)

        self._validate_consistency(candidate, others)

    def _validate_ticket(
        self,
        resolved: ResolvedTicket,
        candidate: CartItem,
        others: list[CartItem],
        today: date,
        now: datetime,
        added: int | None,
    ) -> None:
        ticket = resolved.ticket
        day = candidate.date

        match ticket.category:
            case TicketCategory.FREE:
                if ticket.available_date != day:
                    raise ValidationError("This free ticket is only valid on its available date")
            case TicketCategory.GENERAL if ticket.available_date is None:
                if self._catalog.has_paid_event_on(ticket.club_id, day):
                    raise ValidationError(
                        f"You cannot buy a general cover for {day.isoformat()} because a paid event already exists"
                    )
                if day > today + self._horizon:
                    raise ValidationError(
                        f"You can only select dates within {self._horizon.days} days"
                    )
                weekday = day.strftime("%A")
                if weekday not in resolved.club.open_days:
                    raise ValidationError(f"This club is not open on {weekday}")
            case _:
                bound_date = ticket.available_date or (resolved.event.date if resolved.event else None)
                if bound_date is not None and bound_date != day:
                    raise ValidationError("This ticket is not available on that date")

        if ticket.category is TicketCategory.EVENT and resolved.event is None:
            raise ValidationError("Event ticket is missing its event date")
        if resolved.event is not None and self._pricer.engine.is_expired(resolved.event, now):
            raise PricingUnavailableError(
                f'Event "{ticket.name}" has already started and is no longer available for purchase'
            )

        if candidate.quantity > ticket.max_per_person:
            raise ValidationError(f"Cannot exceed maximum of {ticket.max_per_person} tickets per person")

        if ticket.quantity is not None:
            same_ticket = sum(
                item.quantity
                for item in others
                if item.item_type is ItemType.TICKET and item.ref_id == ticket.id and item.date == day
            )
            if added is None:
                held, requested = same_ticket, candidate.quantity
            else:
                held, requested = same_ticket + candidate.quantity - added, added
            remaining = ticket.quantity.value - self._catalog.count_sold(ticket.id, day) - held
            if requested > remaining:
                raise InventoryExhaustedError(max(remaining, 0))

    def _validate_menu(self, resolved: ResolvedMenuItem, candidate: CartItem) -> None:
        item, variant = resolved.item, resolved.variant
        if item.has_variants and variant is None:
            raise ValidationError("Select a variant for this menu item")
        cap = variant.max_per_person if variant and variant.max_per_person else item.max_per_person
        if cap is not None and candidate.quantity > cap:
            raise ValidationError(f"Cannot exceed maximum of {cap} units per person")

    def _validate_consistency(self, candidate: CartItem, others: list[CartItem]) -> None:
        for item in others:
            if item.club_id != candidate.club_id:
                raise ConsistencyError("All items in cart must be from the same club")

        candidate_is_event = self._is_event_ticket(candidate)
        for item in others:
            if item.item_type is not ItemType.TICKET or candidate.item_type is not ItemType.TICKET:
                continue
            item_is_event = self._is_event_ticket(item)
            if candidate_is_event and not item_is_event:
                raise ConsistencyError(
                    "Cannot add event tickets when other ticket types are in cart. Please clear your cart first"
                )
            if item_is_event and not candidate_is_event:
                raise ConsistencyError(
                    "Cannot add non-event tickets when event tickets are in cart. Please clear your cart first"
                )

        for item in others:
            if item.date == candidate.date:
                continue
            if candidate_is_event and self._is_event_ticket(item):
                continue
            raise ConsistencyError("All items in cart must be for the same date")

    def _is_event_ticket(self, item: CartItem) -> bool:
        if item.item_type is not ItemType.TICKET:
            return False
        ticket = self._catalog.get_ticket(item.ref_id)
        return ticket is not None and ticket.category is TicketCategory.EVENT
