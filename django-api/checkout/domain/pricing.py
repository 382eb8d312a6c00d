"""Dynamic pricing engine.

Prices depend on how far "now" is from the venue's opening window or an
event's start. Schedules are interpreted in the venue's fixed-offset civil
time; all arithmetic stays on aware datetimes.

The engine is pure: same (item, schedule, now) always yields the same quote.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal

from checkout.domain.models import Club, Event, MenuItem, MenuItemVariant, Ticket, TicketCategory
from checkout.domain.value_objects import quantize

VENUE_TZ = timezone(timedelta(hours=-5), "America/Bogota")


@dataclass(frozen=True)
class Available:
    """Item can be sold at `price` (base or discounted)."""

    price: Decimal
    reason: str


@dataclass(frozen=True)
class Surcharged:
    """Item can be sold at `price`, which is above base."""

    price: Decimal
    reason: str


@dataclass(frozen=True)
class Expired:
    """Item can no longer be sold."""

    reason: str


PriceQuote = Available | Surcharged | Expired


@dataclass(frozen=True)
class PricingRules:
    """Multipliers and time thresholds used by the engine."""

    covers_far_multiplier: Decimal = Decimal("0.7")
    covers_near_multiplier: Decimal = Decimal("0.9")
    covers_far_minutes: int = 180
    covers_near_minutes: int = 120

    menu_closed_multiplier: Decimal = Decimal("0.7")
    menu_far_multiplier: Decimal = Decimal("0.7")
    menu_near_multiplier: Decimal = Decimal("0.9")
    menu_far_minutes: int = 180

    event_early_hours: int = 48
    event_mid_hours: int = 24
    event_early_multiplier: Decimal = Decimal("0.7")
    event_mid_multiplier: Decimal = Decimal("1.0")
    event_late_multiplier: Decimal = Decimal("1.2")
    event_grace_multiplier: Decimal = Decimal("1.3")
    grace_period: timedelta = field(default=timedelta(hours=1))

    event_menu_early_multiplier: Decimal = Decimal("0.7")
    event_menu_mid_multiplier: Decimal = Decimal("0.9")


def _scaled(base: Decimal, multiplier: Decimal) -> Decimal:
    return quantize(base * multiplier)


class DynamicPricingEngine:
    """Computes time-dependent prices for tickets and menu items."""

    def __init__(self, rules: PricingRules | None = None, tz: tzinfo = VENUE_TZ) -> None:
        self.rules = rules or PricingRules()
        self.tz = tz

    # -- calendar helpers -------------------------------------------------

    def local_today(self, now: datetime) -> date:
        return now.astimezone(self.tz).date()

    def opening_window(self, club: Club, day: date) -> tuple[datetime, datetime] | None:
        """Return the (open, close) instants for `day`, or None when closed."""
        hours = club.hours_for(day.strftime("%A"))
        if hours is None:
            return None
        open_at = datetime.combine(day, hours.open, tzinfo=self.tz)
        close_at = datetime.combine(day, hours.close, tzinfo=self.tz)
        if hours.crosses_midnight:
            close_at += timedelta(days=1)
        return open_at, close_at

    def event_start(self, event: Event) -> datetime:
        return datetime.combine(event.date, event.open_time or time(0), tzinfo=self.tz)

    def event_end(self, event: Event) -> datetime | None:
        if event.close_time is None:
            return None
        start = self.event_start(event)
        end = datetime.combine(event.date, event.close_time, tzinfo=self.tz)
        if end <= start:
            end += timedelta(days=1)
        return end

    def is_expired(self, event: Event, now: datetime) -> bool:
        return now > self.event_start(event) + self.rules.grace_period

    # -- tickets ----------------------------------------------------------

    def quote_ticket(
        self,
        ticket: Ticket,
        club: Club,
        event: Event | None,
        day: date,
        now: datetime,
    ) -> PriceQuote:
        base = ticket.price.amount
        match ticket.category:
            case TicketCategory.FREE:
                if event is not None and self.is_expired(event, now):
                    return Expired("event_expired")
                return Available(base, "free_ticket_no_dp")
            case TicketCategory.EVENT:
                if event is None:
                    raise ValueError("Event ticket requires its event to be priced")
                return self.quote_event_ticket(base, event, now, ticket.dynamic_pricing_enabled)
            case TicketCategory.GENERAL:
                if not ticket.dynamic_pricing_enabled:
                    return Available(base, "ticket_dp_disabled_base")
                return self.quote_general(base, club, day, now)

    def quote_general(self, base: Decimal, club: Club, day: date, now: datetime) -> PriceQuote:
        """Covers: discounted the further we are from the selected date's opening."""
        rules = self.rules
        window = self.opening_window(club, day)
        if window is None:
            return Available(_scaled(base, rules.covers_far_multiplier), "covers_closed_next_open_30_off")

        open_at, close_at = window
        if open_at <= now < close_at:
            return Available(base, "covers_open_hours_base")

        minutes_until_open = (open_at - now).total_seconds() / 60
        if minutes_until_open > rules.covers_far_minutes:
            return Available(_scaled(base, rules.covers_far_multiplier), "covers_preopen_3h_plus_30_off")
        if minutes_until_open > rules.covers_near_minutes:
            return Available(_scaled(base, rules.covers_near_multiplier), "covers_preopen_2_3h_10_off")
        if minutes_until_open >= 0:
            return Available(base, "covers_preopen_lt2h_base")
        return Available(base, "covers_open_hours_base")

    def quote_event_ticket(
        self,
        base: Decimal,
        event: Event,
        now: datetime,
        dynamic_enabled: bool = True,
    ) -> PriceQuote:
        """Event tickets: early-bird discount, late surcharge, grace window, then expiry.

        Grace and expiry apply even when dynamic pricing is disabled.
        """
        rules = self.rules
        start = self.event_start(event)
        until_start = start - now

        if until_start < timedelta(0):
            if -until_start <= rules.grace_period:
                return Surcharged(_scaled(base, rules.event_grace_multiplier), "event_grace_period")
            return Expired("event_expired")

        if not dynamic_enabled:
            return Available(base, "ticket_dp_disabled_base")

        if until_start >= timedelta(hours=rules.event_early_hours):
            return Available(_scaled(base, rules.event_early_multiplier), "event_48_plus")
        if until_start >= timedelta(hours=rules.event_mid_hours):
            return Available(_scaled(base, rules.event_mid_multiplier), "event_24_48")
        return Surcharged(_scaled(base, rules.event_late_multiplier), "event_less_24")

    # -- menu -------------------------------------------------------------

    def quote_menu(
        self,
        item: MenuItem,
        variant: MenuItemVariant | None,
        club: Club,
        event: Event | None,
        day: date,
        now: datetime,
    ) -> PriceQuote:
        """Menu items: event-day tiers when the club has an event that day, else opening tiers.

        A parent item with variants is never discounted on its own, and
        neither is a variant with dynamic pricing turned off.
        """
        if variant is not None:
            base = variant.price.amount
            if not variant.dynamic_pricing_enabled:
                return Available(base, "menu_variant_dp_disabled")
        else:
            if item.price is None:
                raise ValueError("Menu item without variants must have a price")
            base = item.price.amount
            if item.has_variants:
                return Available(base, "menu_parent_has_variants_no_dp")
            if not item.dynamic_pricing_enabled:
                return Available(base, "menu_dp_disabled_base")

        if event is not None:
            return self.quote_event_menu(base, event, now)
        return self.quote_menu_normal(base, club, day, now)

    def quote_menu_normal(self, base: Decimal, club: Club, day: date, now: datetime) -> PriceQuote:
        rules = self.rules
        window = self.opening_window(club, day)
        if window is None:
            return Available(_scaled(base, rules.menu_closed_multiplier), "menu_closed_day_30_off")

        open_at, close_at = window
        if open_at <= now < close_at:
            return Available(base, "menu_open_hours_base")
        if now >= close_at:
            return Available(_scaled(base, rules.menu_closed_multiplier), "menu_closed_day_30_off")

        minutes_until_open = (open_at - now).total_seconds() / 60
        if minutes_until_open > rules.menu_far_minutes:
            return Available(_scaled(base, rules.menu_far_multiplier), "menu_preopen_3h_plus_30_off")
        return Available(_scaled(base, rules.menu_near_multiplier), "menu_preopen_lt3h_10_off")

    def quote_event_menu(self, base: Decimal, event: Event, now: datetime) -> PriceQuote:
        """Menu on an event day never goes above base."""
        rules = self.rules
        start = self.event_start(event)
        end = self.event_end(event)

        if now >= start:
            if end is None or now < end:
                return Available(base, "event_menu_open_hours_base")
            return Available(base, "event_menu_passed_base")

        until_start = start - now
        if until_start >= timedelta(hours=rules.event_early_hours):
            return Available(_scaled(base, rules.event_menu_early_multiplier), "event_menu_48_plus_30_off")
        if until_start >= timedelta(hours=rules.event_mid_hours):
            return Available(_scaled(base, rules.event_menu_mid_multiplier), "event_menu_24_48_10_off")
        return Available(base, "event_menu_lt24_base")
