"""Shared fixtures: in-memory collaborators and a filled-in checkout form."""

import pytest

from orderdesk.core.config import Settings
from orderdesk.schemas import CheckoutForm
from orderdesk.services.cart import CartStore
from orderdesk.services.realtime.memory import MemoryChangeFeed
from orderdesk.services.storage.memory import MemoryKeyValueStorage
from orderdesk.services.store.memory import MemoryDataStore


@pytest.fixture
def settings():
    """Default settings, independent of any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def feed():
    return MemoryChangeFeed()


@pytest.fixture
def store(feed):
    return MemoryDataStore(change_feed=feed)


@pytest.fixture
def storage():
    return MemoryKeyValueStorage()


@pytest.fixture
def cart(storage):
    return CartStore(storage, key="test-cart")


@pytest.fixture
def contact_form():
    """Checkout form with every field filled in."""
    return CheckoutForm(
        name="Lena Müller",
        email="lena@example.com",
        phone="0151-1234567",
        street="Hauptstraße 5",
        city="Berlin",
        postal_code="10115",
    )
