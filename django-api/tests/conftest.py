"""Pytest configuration and shared fixtures."""

from datetime import time
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from checkout import container
from checkout.gateway import FakeGateway, reset_gateway, set_gateway
from checkout.notifications import RecordingNotifier, reset_notifier, set_notifier
from checkout.stores import InMemoryCartLockStore


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def session_client() -> APIClient:
    """Anonymous client identified by an X-Session-Id header."""
    client = APIClient()
    client.credentials(HTTP_X_SESSION_ID="session-abc")
    return client


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def isolated_singletons():
    """Fresh gateway, notifier and lock store for every test."""
    container.set_lock_store(InMemoryCartLockStore())
    yield
    reset_gateway()
    reset_notifier()
    container.reset_lock_store()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    gateway = FakeGateway()
    set_gateway(gateway)
    return gateway


@pytest.fixture
def notifier() -> RecordingNotifier:
    recording = RecordingNotifier()
    set_notifier(recording)
    return recording


# -- ORM catalog rows --------------------------------------------------------

ALL_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


@pytest.fixture
def club(db):
    from checkout.models import Club

    return Club.objects.create(
        name="La Terraza",
        open_days=ALL_DAYS,
        open_hours=[{"day": day, "open": "22:00", "close": "03:00"} for day in ALL_DAYS],
    )


@pytest.fixture
def general_ticket(club):
    from checkout.models import Ticket

    return Ticket.objects.create(
        club=club,
        name="General cover",
        category=Ticket.Category.GENERAL,
        price=Decimal("20000"),
        max_per_person=10,
        dynamic_pricing_enabled=False,
    )


@pytest.fixture
def menu_item(club):
    from checkout.models import MenuItem

    return MenuItem.objects.create(
        club=club,
        name="Gin tonic",
        price=Decimal("10000"),
        dynamic_pricing_enabled=False,
    )


@pytest.fixture
def event_factory(club):
    from checkout.models import Event, Ticket

    def create(day, price="50000", quantity=None):
        event = Event.objects.create(club=club, name="Techno Night", date=day, open_time=time(21, 0))
        ticket = Ticket.objects.create(
            club=club,
            event=event,
            name="Techno Night Pass",
            category=Ticket.Category.EVENT,
            price=Decimal(price),
            max_per_person=10,
            quantity=quantity,
            available_date=day,
            dynamic_pricing_enabled=False,
        )
        return event, ticket

    return create
