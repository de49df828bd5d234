"""Wiring of the fulfillment services around one session factory.

The API builds one ``Services`` at startup and stores it on
``app.state.services``; route handlers receive it through ``get_services``.
The same instance is installed with ``set_services`` for the ordering
command handlers, which protean instantiates without arguments.
"""

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker

from inventory.ledger import InventoryLedger
from notifications.notification.dispatch import Notifier
from ordering.order.events import EventPublisher
from ordering.order.lifecycle import OrderLifecycleManager
from ordering.order.repository import OrderRepository
from ordering.order.status import OrderStatusMachine
from payments.gateway import PaymentGateway
from pricing.config import ConfigStore, PricingConfig, SettingsStore
from pricing.engine import PricingEngine


@dataclass
class Services:
    session_factory: sessionmaker[Session]
    ledger: InventoryLedger
    orders: OrderLifecycleManager
    status_machine: OrderStatusMachine
    config_store: ConfigStore
    notifier: Notifier
    publisher: EventPublisher

    def pricing_engine(self) -> PricingEngine:
        """A pricing engine over a fresh configuration snapshot."""
        repository = OrderRepository(self.session_factory)

        def has_prior_orders(user_id: int) -> bool:
            with self.session_factory() as session:
                return repository.has_prior_orders(session, user_id)

        return PricingEngine(PricingConfig.load(self.config_store), has_prior_orders=has_prior_orders)

    def shutdown(self) -> None:
        self.notifier.shutdown(wait=True)


def build_services(
    session_factory: sessionmaker[Session],
    *,
    config_store: ConfigStore | None = None,
    gateway: PaymentGateway | None = None,
    notifier: Notifier | None = None,
    publisher: EventPublisher | None = None,
) -> Services:
    config_store = config_store or SettingsStore(session_factory)
    notifier = notifier or Notifier()
    publisher = publisher or EventPublisher()
    ledger = InventoryLedger(session_factory)
    return Services(
        session_factory=session_factory,
        ledger=ledger,
        orders=OrderLifecycleManager(
            session_factory,
            ledger=ledger,
            config_store=config_store,
            gateway=gateway,
            notifier=notifier,
            publisher=publisher,
        ),
        status_machine=OrderStatusMachine(session_factory, notifier=notifier, publisher=publisher),
        config_store=config_store,
        notifier=notifier,
        publisher=publisher,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the application's services."""
    return request.app.state.services


_installed: Services | None = None


def current_services() -> Services:
    """The services order command handlers work with."""
    if _installed is None:
        raise RuntimeError("No services installed; call set_services() first")
    return _installed


def set_services(services: Services) -> None:
    global _installed
    _installed = services


def reset_services() -> None:
    global _installed
    _installed = None
