"""Fee allocation: split a checkout total into club proceeds, platform
commission and payment gateway fees.

All arithmetic is exact Decimal. Amounts are major currency units (COP);
conversion to cents happens only at the gateway boundary.
"""

from dataclasses import dataclass, fields
from decimal import ROUND_HALF_UP, Decimal

from checkout.domain.errors import FeeAllocationMismatchError

ZERO = Decimal("0")


@dataclass(frozen=True)
class FeeSchedule:
    """Commission and gateway rates."""

    ticket_rate: Decimal = Decimal("0.05")
    event_ticket_rate: Decimal = Decimal("0.10")
    menu_rate: Decimal = Decimal("0.025")
    gateway_variable_rate: Decimal = Decimal("0.0265")
    gateway_fixed_fee: Decimal = Decimal("700")
    gateway_iva_rate: Decimal = Decimal("0.19")
    tolerance: Decimal = Decimal("0.01")

    def ticket_commission_rate(self, is_event_ticket: bool) -> Decimal:
        return self.event_ticket_rate if is_event_ticket else self.ticket_rate


@dataclass(frozen=True)
class FeeAllocation:
    """Full breakdown of one checkout's money."""

    ticket_subtotal: Decimal
    menu_subtotal: Decimal
    platform_fee_tickets: Decimal
    platform_fee_menu: Decimal
    platform_receives: Decimal
    gateway_fee: Decimal
    gateway_iva: Decimal
    gateway_alloc_tickets: Decimal
    gateway_alloc_menu: Decimal
    total_paid: Decimal
    club_receives: Decimal

    @property
    def is_free(self) -> bool:
        return self.total_paid == ZERO

    @property
    def operational_costs(self) -> Decimal:
        """Everything the buyer pays on top of the club's prices."""
        return self.platform_receives + self.gateway_fee + self.gateway_iva

    @property
    def amount_in_cents(self) -> int:
        return int((self.total_paid * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @classmethod
    def zero(cls) -> "FeeAllocation":
        return cls(**{f.name: ZERO for f in fields(cls)})


def allocate(
    ticket_subtotal: Decimal,
    menu_subtotal: Decimal,
    is_event_ticket: bool,
    schedule: FeeSchedule | None = None,
) -> FeeAllocation:
    """Compute the fee breakdown for a checkout.

    A zero subtotal (free checkout) allocates nothing, not even the
    gateway's fixed fee.
    """
    schedule = schedule or FeeSchedule()
    if ticket_subtotal < 0 or menu_subtotal < 0:
        raise ValueError("Subtotals cannot be negative")

    subtotal = ticket_subtotal + menu_subtotal
    if subtotal == ZERO:
        return FeeAllocation.zero()

    platform_fee_tickets = ticket_subtotal * schedule.ticket_commission_rate(is_event_ticket)
    platform_fee_menu = menu_subtotal * schedule.menu_rate
    platform_receives = platform_fee_tickets + platform_fee_menu

    gateway_fee = (subtotal + platform_receives) * schedule.gateway_variable_rate + schedule.gateway_fixed_fee
    gateway_iva = gateway_fee * schedule.gateway_iva_rate
    gateway_total = gateway_fee + gateway_iva

    ticket_weight = ticket_subtotal / subtotal
    gateway_alloc_tickets = gateway_total * ticket_weight
    gateway_alloc_menu = gateway_total - gateway_alloc_tickets

    return FeeAllocation(
        ticket_subtotal=ticket_subtotal,
        menu_subtotal=menu_subtotal,
        platform_fee_tickets=platform_fee_tickets,
        platform_fee_menu=platform_fee_menu,
        platform_receives=platform_receives,
        gateway_fee=gateway_fee,
        gateway_iva=gateway_iva,
        gateway_alloc_tickets=gateway_alloc_tickets,
        gateway_alloc_menu=gateway_alloc_menu,
        total_paid=subtotal + platform_receives + gateway_total,
        club_receives=subtotal,
    )


def validate_allocation(allocation: FeeAllocation, schedule: FeeSchedule | None = None) -> None:
    """Re-derive every summed field and fail hard on any drift.

    Raises:
        FeeAllocationMismatchError: If a field differs from its derivation by
            more than the schedule's tolerance.
    """
    schedule = schedule or FeeSchedule()
    a = allocation
    checks = {
        "platform_receives": a.platform_fee_tickets + a.platform_fee_menu,
        "club_receives": a.ticket_subtotal + a.menu_subtotal,
        "gateway_alloc_menu": a.gateway_fee + a.gateway_iva - a.gateway_alloc_tickets,
        "total_paid": a.ticket_subtotal + a.menu_subtotal + a.platform_receives + a.gateway_fee + a.gateway_iva,
    }
    for name, expected in checks.items():
        actual = getattr(a, name)
        if abs(actual - expected) > schedule.tolerance:
            raise FeeAllocationMismatchError(name, expected, actual)
    # Club proceeds are never rounded.
    if a.club_receives != a.ticket_subtotal + a.menu_subtotal:
        raise FeeAllocationMismatchError("club_receives", a.ticket_subtotal + a.menu_subtotal, a.club_receives)
