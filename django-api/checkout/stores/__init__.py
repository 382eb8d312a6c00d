from checkout.stores.cart_lock import CacheCartLockStore, CartLockSweeper, InMemoryCartLockStore
from checkout.stores.django_store import DjangoCartStore, DjangoCatalogStore, DjangoTransactionStore
from checkout.stores.interfaces import CartLockStore, CartStore, CatalogStore, TransactionStore

__all__ = [
    "CacheCartLockStore",
    "CartLockStore",
    "CartLockSweeper",
    "CartStore",
    "CatalogStore",
    "DjangoCartStore",
    "DjangoCatalogStore",
    "DjangoTransactionStore",
    "InMemoryCartLockStore",
    "TransactionStore",
]
