"""Checkout settings, read from the CHECKOUT dict in Django settings."""

from dataclasses import dataclass, field
from datetime import timedelta, timezone, tzinfo
from decimal import Decimal

from django.conf import settings

from checkout.domain import FeeSchedule, PricingRules


@dataclass(frozen=True)
class CheckoutSettings:
    venue_tz: tzinfo
    fee_schedule: FeeSchedule = field(default_factory=FeeSchedule)
    pricing_rules: PricingRules = field(default_factory=PricingRules)
    currency: str = "COP"
    minimum_total: Decimal = Decimal("1500")
    cart_max_age: timedelta = timedelta(minutes=30)
    general_ticket_horizon_days: int = 21
    lock_backend: str = "memory"
    lock_ttl: timedelta = timedelta(minutes=10)
    lock_sweep_interval: timedelta = timedelta(minutes=5)
    lock_sweeper_enabled: bool = False
    async_url_timeout_seconds: float = 15.0
    async_url_poll_interval_seconds: float = 1.5
    gateway: str = "fake"
    wompi_public_key: str = ""
    wompi_private_key: str = ""
    wompi_integrity_secret: str = ""
    wompi_events_secret: str = ""
    wompi_base_url: str = "https://sandbox.wompi.co/v1"
    wompi_timeout_seconds: float = 15.0
    webhook_strict: bool = True
    qr_key: str = ""


def get_checkout_settings() -> CheckoutSettings:
    """Build settings from Django settings on every call so overrides apply."""
    raw = getattr(settings, "CHECKOUT", {})
    fees = FeeSchedule(**{k: Decimal(str(v)) for k, v in raw.get("FEES", {}).items()})
    return CheckoutSettings(
        venue_tz=timezone(timedelta(hours=raw.get("VENUE_UTC_OFFSET_HOURS", -5))),
        fee_schedule=fees,
        pricing_rules=PricingRules(grace_period=timedelta(minutes=raw.get("EVENT_GRACE_MINUTES", 60))),
        currency=raw.get("CURRENCY", "COP"),
        minimum_total=Decimal(str(raw.get("MINIMUM_TOTAL", "1500"))),
        cart_max_age=timedelta(minutes=raw.get("CART_MAX_AGE_MINUTES", 30)),
        general_ticket_horizon_days=raw.get("GENERAL_TICKET_HORIZON_DAYS", 21),
        lock_backend=raw.get("LOCK_BACKEND", "memory"),
        lock_ttl=timedelta(seconds=raw.get("LOCK_TTL_SECONDS", 600)),
        lock_sweep_interval=timedelta(seconds=raw.get("LOCK_SWEEP_INTERVAL_SECONDS", 300)),
        lock_sweeper_enabled=raw.get("LOCK_SWEEPER_ENABLED", False),
        async_url_timeout_seconds=raw.get("ASYNC_URL_TIMEOUT_SECONDS", 15.0),
        async_url_poll_interval_seconds=raw.get("ASYNC_URL_POLL_INTERVAL_SECONDS", 1.5),
        gateway=raw.get("GATEWAY", "fake"),
        wompi_public_key=raw.get("WOMPI_PUBLIC_KEY", ""),
        wompi_private_key=raw.get("WOMPI_PRIVATE_KEY", ""),
        wompi_integrity_secret=raw.get("WOMPI_INTEGRITY_SECRET", ""),
        wompi_events_secret=raw.get("WOMPI_EVENTS_SECRET", ""),
        wompi_base_url=raw.get("WOMPI_BASE_URL", "https://sandbox.wompi.co/v1"),
        wompi_timeout_seconds=raw.get("WOMPI_TIMEOUT_SECONDS", 15.0),
        webhook_strict=raw.get("WEBHOOK_STRICT", True),
        qr_key=raw.get("QR_KEY", ""),
    )
