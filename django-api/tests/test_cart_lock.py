"""Tests for cart lock backends and the sweeper.

Run with: pytest tests/test_cart_lock.py -v
"""

import time
from datetime import datetime, timedelta, timezone

import pytest
from django.core.cache import cache

from checkout.domain import OwnerKey
from checkout.stores import CacheCartLockStore, CartLockSweeper, InMemoryCartLockStore
from tests.fakes import FrozenClock

OWNER = OwnerKey.for_session("abc")
OTHER = OwnerKey.for_user("42")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 6, 15, 0, tzinfo=timezone.utc))


@pytest.fixture(params=["memory", "cache"])
def store(request, clock):
    if request.param == "memory":
        return InMemoryCartLockStore(ttl=timedelta(minutes=10), clock=clock)
    return CacheCartLockStore(ttl=timedelta(minutes=10), cache=cache, clock=clock)


class TestCartLockStore:
    """Behaviour shared by both backends."""

    def test_acquire_is_exclusive(self, store):
        """A second acquire for the same owner fails while the lock is live."""
        assert store.acquire(OWNER, "txn-1")
        assert not store.acquire(OWNER, "txn-2")
        assert store.get(OWNER).transaction_id == "txn-1"

    def test_owners_are_independent(self, store):
        assert store.acquire(OWNER, "txn-1")
        assert store.acquire(OTHER, "txn-2")

    def test_release_unlocks(self, store):
        store.acquire(OWNER, "txn-1")
        assert store.release(OWNER)
        assert not store.is_locked(OWNER)
        assert not store.release(OWNER)

    def test_expired_lock_reads_as_absent(self, store, clock):
        """After the TTL, the lock is gone and can be taken again."""
        store.acquire(OWNER, "txn-1")
        clock.advance(minutes=10)
        assert not store.is_locked(OWNER)
        assert store.acquire(OWNER, "txn-2")

    def test_update_transaction_id_keeps_expiry(self, store, clock):
        store.acquire(OWNER, "txn-1")
        before = store.get(OWNER)
        clock.advance(minutes=3)

        assert store.update_transaction_id(OWNER, "gateway-123")
        after = store.get(OWNER)
        assert after.transaction_id == "gateway-123"
        assert after.expires_at == before.expires_at

    def test_update_without_lock_is_noop(self, store):
        assert not store.update_transaction_id(OWNER, "gateway-123")


class TestInMemorySweep:
    def test_sweep_removes_only_expired(self, clock):
        store = InMemoryCartLockStore(ttl=timedelta(minutes=10), clock=clock)
        store.acquire(OWNER, "old")
        clock.advance(minutes=6)
        store.acquire(OTHER, "new")
        clock.advance(minutes=5)

        assert store.sweep_expired() == 1
        assert store.is_locked(OTHER)

    def test_sweeper_thread_sweeps_and_stops(self, clock):
        store = InMemoryCartLockStore(ttl=timedelta(minutes=10), clock=clock)
        store.acquire(OWNER, "old")
        clock.advance(minutes=11)

        sweeper = CartLockSweeper(store, interval=timedelta(milliseconds=10))
        sweeper.start()
        try:
            deadline = time.monotonic() + 2
            while store._locks and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            sweeper.stop()
            sweeper.join(timeout=1)

        assert not store._locks
        assert not sweeper.is_alive()
