"""Wires services to the Django-backed stores selected by settings."""

from django.conf import settings

from checkout.conf import CheckoutSettings, get_checkout_settings
from checkout.domain import DynamicPricingEngine
from checkout.services import CartService, CheckoutService, FulfillmentService, LinePricer, QrEncoder
from checkout.stores import (
    CacheCartLockStore,
    CartLockStore,
    DjangoCartStore,
    DjangoCatalogStore,
    DjangoTransactionStore,
    InMemoryCartLockStore,
)

_lock_store: CartLockStore | None = None


def build_lock_store(conf: CheckoutSettings) -> CartLockStore:
    if conf.lock_backend == "cache":
        return CacheCartLockStore(ttl=conf.lock_ttl)
    return InMemoryCartLockStore(ttl=conf.lock_ttl)


def get_lock_store() -> CartLockStore:
    """Return the process-wide lock store."""
    global _lock_store
    if _lock_store is None:
        _lock_store = build_lock_store(get_checkout_settings())
    return _lock_store


def set_lock_store(store: CartLockStore) -> None:
    global _lock_store
    _lock_store = store


def reset_lock_store() -> None:
    global _lock_store
    _lock_store = None


def cart_service() -> CartService:
    conf = get_checkout_settings()
    catalog = DjangoCatalogStore()
    return CartService(
        catalog=catalog,
        carts=DjangoCartStore(),
        locks=get_lock_store(),
        pricer=LinePricer(catalog, DynamicPricingEngine(conf.pricing_rules, conf.venue_tz)),
        fee_schedule=conf.fee_schedule,
        general_ticket_horizon_days=conf.general_ticket_horizon_days,
    )


def checkout_service() -> CheckoutService:
    conf = get_checkout_settings()
    catalog = DjangoCatalogStore()
    carts = DjangoCartStore()
    transactions = DjangoTransactionStore()
    locks = get_lock_store()
    pricer = LinePricer(catalog, DynamicPricingEngine(conf.pricing_rules, conf.venue_tz))
    return CheckoutService(
        cart=CartService(
            catalog=catalog,
            carts=carts,
            locks=locks,
            pricer=pricer,
            fee_schedule=conf.fee_schedule,
            general_ticket_horizon_days=conf.general_ticket_horizon_days,
        ),
        carts=carts,
        transactions=transactions,
        locks=locks,
        fulfillment=FulfillmentService(
            catalog=catalog,
            transactions=transactions,
            pricer=pricer,
            qr=QrEncoder(conf.qr_key or settings.SECRET_KEY),
            fee_schedule=conf.fee_schedule,
        ),
        conf=conf,
    )
