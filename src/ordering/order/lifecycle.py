"""OrderLifecycleManager: creation, payment capture, cancellation and refunds.

The use cases live in their own modules (``creation``, ``payment``,
``cancellation``) and are combined here with the collaborators they share.
Forward fulfillment transitions belong to ``OrderStatusMachine``.
"""

from sqlalchemy.orm import Session, sessionmaker

from inventory.ledger import InventoryLedger
from notifications.notification.dispatch import Notifier
from ordering.order.cancellation import OrderCancellationMixin
from ordering.order.creation import OrderCreationMixin
from ordering.order.events import EventPublisher
from ordering.order.order import Order, OrderStatusHistory
from ordering.order.payment import PaymentCaptureMixin
from ordering.order.repository import OrderRepository
from payments.gateway import PaymentGateway, get_gateway
from pricing.config import ConfigStore, PricingConfig, SettingsStore
from shared.config import Settings, get_settings


class OrderLifecycleManager(OrderCreationMixin, PaymentCaptureMixin, OrderCancellationMixin):
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        ledger: InventoryLedger | None = None,
        config_store: ConfigStore | None = None,
        pricing: PricingConfig | None = None,
        gateway: PaymentGateway | None = None,
        notifier: Notifier | None = None,
        publisher: EventPublisher | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Args:
            session_factory: Sessions for the order database.
            ledger: Inventory ledger; one is built on ``session_factory`` if omitted.
            config_store: Source of pricing configuration, read on every order.
            pricing: Fixed pricing snapshot; takes precedence over ``config_store``.
            gateway: Payment gateway; the process-wide one is used if omitted.
            notifier: Notification dispatch; inline dispatch if omitted.
            publisher: Domain event publisher.
            settings: Runtime settings.
        """
        self.session_factory = session_factory
        self.repository = OrderRepository(session_factory)
        self.ledger = ledger or InventoryLedger(session_factory)
        self.config_store = config_store or SettingsStore(session_factory)
        self._pricing = pricing
        self._gateway = gateway
        self.notifier = notifier or Notifier()
        self.publisher = publisher or EventPublisher()
        self.settings = settings or get_settings()

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    def pricing_config(self) -> PricingConfig:
        """The pricing snapshot to use for the next order."""
        if self._pricing is not None:
            return self._pricing
        return PricingConfig.load(self.config_store)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_order(self, order_id: int) -> Order:
        return self.repository.get(order_id)

    def get_by_number(self, order_number: str) -> Order:
        return self.repository.get_by_number(order_number)

    def history(self, order_id: int) -> list[OrderStatusHistory]:
        return self.repository.history(order_id)
