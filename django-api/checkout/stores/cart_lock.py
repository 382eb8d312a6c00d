"""Cart lock backends.

InMemoryCartLockStore is process-local: fine for a single instance.
CacheCartLockStore stores locks in the Django cache and is shared by every
instance pointed at the same cache (e.g. Redis).
"""

import threading
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog
from django.core.cache import BaseCache, cache as default_cache

from checkout.clock import utcnow
from checkout.domain import CartLockRecord, OwnerKey
from checkout.stores.interfaces import CartLockStore

logger = structlog.get_logger(__name__)

DEFAULT_TTL = timedelta(minutes=10)


class InMemoryCartLockStore(CartLockStore):
    """Thread-safe dict of locks with lazy expiry."""

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Callable[[], datetime] = utcnow) -> None:
        self.ttl = ttl
        self._clock = clock
        self._locks: dict[str, CartLockRecord] = {}
        self._mutex = threading.Lock()

    def _live(self, key: str, now: datetime) -> CartLockRecord | None:
        record = self._locks.get(key)
        if record is not None and record.is_expired(now):
            del self._locks[key]
            logger.info("Cart lock expired", owner=key, transaction_id=record.transaction_id)
            return None
        return record

    def acquire(self, owner: OwnerKey, transaction_id: str) -> bool:
        now = self._clock()
        with self._mutex:
            if self._live(owner.key, now) is not None:
                return False
            self._locks[owner.key] = CartLockRecord(
                owner_key=owner.key,
                transaction_id=transaction_id,
                acquired_at=now,
                expires_at=now + self.ttl,
            )
        logger.info("Cart lock acquired", owner=owner.key, transaction_id=transaction_id)
        return True

    def release(self, owner: OwnerKey) -> bool:
        with self._mutex:
            record = self._locks.pop(owner.key, None)
        if record is not None:
            logger.info("Cart lock released", owner=owner.key, transaction_id=record.transaction_id)
        return record is not None

    def is_locked(self, owner: OwnerKey) -> bool:
        return self.get(owner) is not None

    def get(self, owner: OwnerKey) -> CartLockRecord | None:
        with self._mutex:
            return self._live(owner.key, self._clock())

    def update_transaction_id(self, owner: OwnerKey, transaction_id: str) -> bool:
        with self._mutex:
            record = self._live(owner.key, self._clock())
            if record is None:
                return False
            self._locks[owner.key] = CartLockRecord(
                owner_key=record.owner_key,
                transaction_id=transaction_id,
                acquired_at=record.acquired_at,
                expires_at=record.expires_at,
            )
        return True

    def sweep_expired(self) -> int:
        now = self._clock()
        with self._mutex:
            expired = [key for key, record in self._locks.items() if record.is_expired(now)]
            for key in expired:
                del self._locks[key]
        if expired:
            logger.info("Swept expired cart locks", count=len(expired))
        return len(expired)


class CacheCartLockStore(CartLockStore):
    """Locks kept in the Django cache; `cache.add` makes acquisition atomic."""

    key_prefix = "cart-lock:"

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        cache: BaseCache | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ttl = ttl
        self._cache = cache or default_cache
        self._clock = clock

    def _key(self, owner: OwnerKey) -> str:
        return f"{self.key_prefix}{owner.key}"

    def acquire(self, owner: OwnerKey, transaction_id: str) -> bool:
        now = self._clock()
        payload = {
            "transaction_id": transaction_id,
            "acquired_at": now.isoformat(),
            "expires_at": (now + self.ttl).isoformat(),
        }
        timeout = int(self.ttl.total_seconds())
        acquired = self._cache.add(self._key(owner), payload, timeout=timeout)
        if not acquired and self.get(owner) is None:
            # Entry outlived its recorded expiry.
            self._cache.delete(self._key(owner))
            acquired = self._cache.add(self._key(owner), payload, timeout=timeout)
        if acquired:
            logger.info("Cart lock acquired", owner=owner.key, transaction_id=transaction_id)
        return acquired

    def release(self, owner: OwnerKey) -> bool:
        released = bool(self._cache.delete(self._key(owner)))
        if released:
            logger.info("Cart lock released", owner=owner.key)
        return released

    def is_locked(self, owner: OwnerKey) -> bool:
        return self.get(owner) is not None

    def get(self, owner: OwnerKey) -> CartLockRecord | None:
        payload = self._cache.get(self._key(owner))
        if payload is None:
            return None
        record = CartLockRecord(
            owner_key=owner.key,
            transaction_id=payload["transaction_id"],
            acquired_at=datetime.fromisoformat(payload["acquired_at"]),
            expires_at=datetime.fromisoformat(payload["expires_at"]),
        )
        if record.is_expired(self._clock()):
            return None
        return record

    def update_transaction_id(self, owner: OwnerKey, transaction_id: str) -> bool:
        record = self.get(owner)
        if record is None:
            return False
        remaining = (record.expires_at - self._clock()).total_seconds()
        self._cache.set(
            self._key(owner),
            {
                "transaction_id": transaction_id,
                "acquired_at": record.acquired_at.isoformat(),
                "expires_at": record.expires_at.isoformat(),
            },
            timeout=max(int(remaining), 1),
        )
        return True

    def sweep_expired(self) -> int:
        # The cache evicts entries on its own timeout.
        return 0


class CartLockSweeper(threading.Thread):
    """Daemon thread that periodically removes expired locks."""

    def __init__(self, store: CartLockStore, interval: timedelta) -> None:
        super().__init__(name="cart-lock-sweeper", daemon=True)
        self.store = store
        self.interval = interval
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self.interval.total_seconds()):
            try:
                self.store.sweep_expired()
            except Exception:
                logger.exception("Cart lock sweep failed")

    def stop(self) -> None:
        self._stopped.set()
