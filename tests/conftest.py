import os
from decimal import Decimal
from pathlib import Path

import pytest
from faker import Faker

from catalogue.product.product import Product
from catalogue.store.store import Store
from notifications.channel import reset_dispatcher, set_dispatcher
from notifications.channel.fake_dispatcher import FakeDispatcher
from notifications.notification.dispatch import InlineRunner, Notifier
from ordering.order.events import EventPublisher
from ordering.order.lifecycle import OrderLifecycleManager
from ordering.order.status import OrderStatusMachine
from payments.gateway import reset_gateway, set_gateway
from payments.gateway.fake_adapter import FakeGateway
from pricing.config import PricingConfig
from shared.database import build_engine, build_session_factory, setup_db

fake = Faker()


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Initialize the ordering domain and push its context for the whole run.

    The activated domain can then be referred to elsewhere as `current_domain`.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from ordering.domain import ordering

    ordering.init()
    ordering.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Reset the domain's in-memory providers and event store after every test."""
    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
@pytest.fixture()
def engine(tmp_path):
    """A fresh SQLite file database per test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'pawpantry.db'}", echo=False)
    setup_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def make_store(session_factory):
    def _make_store(name=None, delivery_fee=None):
        with session_factory.begin() as session:
            store = Store(name=name or fake.company(), delivery_fee=delivery_fee)
            session.add(store)
        return store

    return _make_store


@pytest.fixture()
def make_product(session_factory):
    def _make_product(name=None, price="10.00", stock=10, is_active=True, store_id=None):
        with session_factory.begin() as session:
            product = Product(
                name=name or fake.catch_phrase(),
                price=Decimal(price),
                stock_quantity=stock,
                is_active=is_active,
                store_id=store_id,
            )
            session.add(product)
        return product

    return _make_product


@pytest.fixture()
def stock_of(session_factory):
    def _stock_of(product_id):
        with session_factory() as session:
            return session.get(Product, product_id).stock_quantity

    return _stock_of


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def gateway():
    gateway = FakeGateway()
    set_gateway(gateway)
    yield gateway
    reset_gateway()


@pytest.fixture()
def dispatcher():
    dispatcher = FakeDispatcher()
    set_dispatcher(dispatcher)
    yield dispatcher
    reset_dispatcher()


@pytest.fixture()
def notifier(dispatcher):
    return Notifier(dispatcher=dispatcher, runner=InlineRunner())


@pytest.fixture()
def publisher():
    return EventPublisher()


@pytest.fixture()
def pricing_config():
    """Flat pricing: $4.99 delivery, 8.5% tax, no discounts."""
    return PricingConfig(global_delivery_fee="4.99", global_tax_rate="8.5", discount_rules={})


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
@pytest.fixture()
def manager(session_factory, gateway, notifier, publisher, pricing_config):
    return OrderLifecycleManager(
        session_factory,
        pricing=pricing_config,
        gateway=gateway,
        notifier=notifier,
        publisher=publisher,
    )


@pytest.fixture()
def status_machine(session_factory, notifier, publisher):
    return OrderStatusMachine(session_factory, notifier=notifier, publisher=publisher)


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------
@pytest.fixture()
def services(session_factory, gateway, notifier, publisher):
    from shared.services import build_services, reset_services, set_services

    services = build_services(session_factory, gateway=gateway, notifier=notifier, publisher=publisher)
    set_services(services)
    yield services
    reset_services()


@pytest.fixture()
def client(services):
    from fastapi.testclient import TestClient

    from app import create_app

    with TestClient(create_app(services)) as client:
        yield client
