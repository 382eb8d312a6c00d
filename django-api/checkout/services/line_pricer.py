"""Resolves cart lines against the catalog and prices them.

Shared by cart display and checkout totals so both derive prices the same
way; checkout stores the priced lines for fulfillment.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from checkout.domain import (
    Available,
    CartLine,
    Club,
    DynamicPricingEngine,
    Event,
    Expired,
    FeeAllocation,
    FeeSchedule,
    ItemType,
    MenuItem,
    MenuItemVariant,
    NotFoundError,
    PricedLine,
    Surcharged,
    Ticket,
    TicketCategory,
    allocate,
)
from checkout.stores.interfaces import CatalogStore


@dataclass(frozen=True)
class ResolvedTicket:
    ticket: Ticket
    club: Club
    event: Event | None


@dataclass(frozen=True)
class ResolvedMenuItem:
    item: MenuItem
    variant: MenuItemVariant | None
    club: Club


@dataclass(frozen=True)
class PricedCart:
    """Priced lines plus the fee breakdown they add up to."""

    lines: tuple[PricedLine, ...]
    fees: FeeAllocation
    is_event_checkout: bool

    @property
    def unavailable(self) -> tuple[PricedLine, ...]:
        return tuple(line for line in self.lines if not line.available)


class LinePricer:
    """Looks up catalog rows for a cart line and quotes its unit price."""

    def __init__(self, catalog: CatalogStore, engine: DynamicPricingEngine) -> None:
        self._catalog = catalog
        self.engine = engine

    def _club(self, club_id) -> Club:
        club = self._catalog.get_club(club_id)
        if club is None:
            raise NotFoundError("Club", club_id)
        return club

    def event_for(self, ticket: Ticket) -> Event | None:
        """Return the event an event ticket belongs to.

        Tickets without a linked event fall back to their available date.
        """
        if ticket.event_id is not None:
            event = self._catalog.get_event(ticket.event_id)
            if event is not None:
                return event
        if ticket.available_date is not None:
            return Event(id=ticket.id, club_id=ticket.club_id, name=ticket.name, date=ticket.available_date)
        return None

    def resolve_ticket(self, ticket_id, include_inactive: bool = False) -> ResolvedTicket:
        ticket = self._catalog.get_ticket(ticket_id)
        if ticket is None or not (ticket.is_active or include_inactive):
            raise NotFoundError("Ticket", ticket_id)
        match ticket.category:
            case TicketCategory.EVENT:
                event = self.event_for(ticket)
            case TicketCategory.FREE if ticket.event_id is not None:
                event = self._catalog.get_event(ticket.event_id)
            case _:
                event = None
        return ResolvedTicket(ticket=ticket, club=self._club(ticket.club_id), event=event)

    def resolve_menu_item(self, menu_item_id, variant_id) -> ResolvedMenuItem:
        item = self._catalog.get_menu_item(menu_item_id)
        if item is None or not item.is_active:
            raise NotFoundError("Menu item", menu_item_id)
        variant = None
        if variant_id is not None:
            variant = item.variant(variant_id)
            if variant is None:
                raise NotFoundError("Menu item variant", variant_id)
        return ResolvedMenuItem(item=item, variant=variant, club=self._club(item.club_id))

    def price(
        self,
        line: CartLine,
        now: datetime,
        cart_item_id=None,
    ) -> PricedLine:
        """Quote one cart line at `now`."""
        if line.item_type is ItemType.TICKET:
            resolved = self.resolve_ticket(line.ref_id)
            ticket = resolved.ticket
            if ticket.category is TicketCategory.EVENT and resolved.event is None:
                raise NotFoundError("Event", ticket.event_id)
            quote = self.engine.quote_ticket(ticket, resolved.club, resolved.event, line.date, now)
            base = ticket.price.amount
            name, variant_name, category = ticket.name, None, ticket.category
        else:
            resolved = self.resolve_menu_item(line.ref_id, line.variant_id)
            event_on_date = self._catalog.get_event_on(resolved.club.id, line.date)
            quote = self.engine.quote_menu(
                resolved.item, resolved.variant, resolved.club, event_on_date, line.date, now
            )
            base = resolved.variant.price.amount if resolved.variant else resolved.item.price.amount
            name = resolved.item.name
            variant_name = resolved.variant.name if resolved.variant else None
            category = None

        match quote:
            case Available(price=price, reason=reason) | Surcharged(price=price, reason=reason):
                unit_price, available = price, True
            case Expired(reason=reason):
                unit_price, available = base, False

        return PricedLine(
            line=line,
            name=name,
            base_price=base,
            unit_price=unit_price,
            reason=reason,
            dynamic_pricing_applied=unit_price != base,
            ticket_category=category,
            variant_name=variant_name,
            cart_item_id=cart_item_id,
            available=available,
        )

    def price_cart(
        self,
        lines: list[tuple[CartLine, object]],
        now: datetime,
        schedule: FeeSchedule,
    ) -> PricedCart:
        """Price (line, cart_item_id) pairs and allocate fees over the available ones."""
        priced = tuple(self.price(line, now, cart_item_id=item_id) for line, item_id in lines)
        ticket_subtotal = sum(
            (p.line_total for p in priced if p.available and p.line.item_type is ItemType.TICKET),
            Decimal("0"),
        )
        menu_subtotal = sum(
            (p.line_total for p in priced if p.available and p.line.item_type is ItemType.MENU),
            Decimal("0"),
        )
        is_event = any(p.ticket_category is TicketCategory.EVENT for p in priced)
        return PricedCart(
            lines=priced,
            fees=allocate(ticket_subtotal, menu_subtotal, is_event, schedule),
            is_event_checkout=is_event,
        )
