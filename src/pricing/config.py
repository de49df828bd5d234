"""Pricing configuration: the settings store and the immutable snapshot.

The pricing engine never reads configuration storage itself. Callers load a
``PricingConfig`` snapshot once (``PricingConfig.load``) and inject it, which
keeps every pricing run deterministic for a given snapshot.

Loading is fail-soft: a store that raises, or a value of the wrong shape, is
logged and treated as "not configured" so the engine falls back to its
defaults instead of blocking checkout.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any

import structlog
from sqlalchemy import JSON, DateTime, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker

from shared.config import get_settings
from shared.database import Base, transaction, utcnow

logger = structlog.get_logger(__name__)

GLOBAL_DELIVERY_FEE = "global_delivery_fee"
GLOBAL_TAX_RATE = "global_tax_rate"
DISCOUNT_RULES = "discount_rules"
PAYMENT_METHODS = "payment_methods"


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
class SystemSetting(Base):
    """Key/value system setting administered outside the ordering core."""

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Store port and adapters
# ---------------------------------------------------------------------------
class ConfigStore(ABC):
    """Read-only key/value access to pricing configuration."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key`` or ``default``."""
        ...

    def store_delivery_fees(self) -> Mapping[int, Any]:
        """Return configured per-store delivery fees keyed by store id."""
        return {}


class StaticConfigStore(ConfigStore):
    """In-memory store, used for tests and local tooling."""

    def __init__(self, values: Mapping[str, Any] | None = None, store_fees: Mapping[int, Any] | None = None) -> None:
        self.values = dict(values or {})
        self.store_fees = dict(store_fees or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def store_delivery_fees(self) -> Mapping[int, Any]:
        return dict(self.store_fees)


class SettingsStore(ConfigStore):
    """Reads ``system_settings`` rows and store delivery fees from the database."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def get(self, key: str, default: Any = None) -> Any:
        with self.session_factory() as session:
            setting = session.get(SystemSetting, key)
            if setting is None or setting.value is None:
                return default
            return setting.value

    def set(self, key: str, value: Any, session: Session | None = None) -> None:
        with transaction(self.session_factory, session) as txn:
            setting = txn.get(SystemSetting, key)
            if setting is None:
                txn.add(SystemSetting(key=key, value=value))
            else:
                setting.value = value

    def store_delivery_fees(self) -> Mapping[int, Any]:
        from catalogue.store.store import Store

        with self.session_factory() as session:
            rows = session.execute(select(Store.id, Store.delivery_fee).where(Store.delivery_fee.is_not(None)))
            return {store_id: fee for store_id, fee in rows}


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PricingConfig:
    """Immutable pricing configuration snapshot.

    Values are kept as configured (possibly invalid); the engine validates
    them at use time so every bad value is logged where it is rejected.
    ``default_delivery_fee`` and ``default_tax_rate`` are the cached
    defaults that sit between the configured values and the hard constants.
    """

    global_delivery_fee: Any = None
    global_tax_rate: Any = None
    discount_rules: Mapping[str, Any] = field(default_factory=dict)
    store_delivery_fees: Mapping[int, Any] = field(default_factory=dict)
    payment_methods: Mapping[str, Any] = field(default_factory=dict)
    default_delivery_fee: Any = None
    default_tax_rate: Any = None
    currency: str = "USD"

    def __post_init__(self):
        object.__setattr__(self, "discount_rules", MappingProxyType(dict(self.discount_rules)))
        object.__setattr__(self, "store_delivery_fees", MappingProxyType(dict(self.store_delivery_fees)))
        object.__setattr__(self, "payment_methods", MappingProxyType(dict(self.payment_methods)))

    @classmethod
    def load(cls, store: ConfigStore) -> "PricingConfig":
        """Take a snapshot of ``store``, tolerating a misbehaving store."""
        settings = get_settings()

        rules = _safe_read(DISCOUNT_RULES, lambda: store.get(DISCOUNT_RULES, {}), {})
        if not isinstance(rules, Mapping):
            logger.warning("Ignoring malformed discount rules", value_type=type(rules).__name__)
            rules = {}

        store_fees = _safe_read("store_delivery_fees", store.store_delivery_fees, {})

        methods = _safe_read(PAYMENT_METHODS, lambda: store.get(PAYMENT_METHODS, {}), {})
        if not isinstance(methods, Mapping):
            logger.warning("Ignoring malformed payment methods", value_type=type(methods).__name__)
            methods = {}

        return cls(
            global_delivery_fee=_safe_read(GLOBAL_DELIVERY_FEE, lambda: store.get(GLOBAL_DELIVERY_FEE)),
            global_tax_rate=_safe_read(GLOBAL_TAX_RATE, lambda: store.get(GLOBAL_TAX_RATE)),
            discount_rules=rules,
            store_delivery_fees=store_fees or {},
            payment_methods=methods,
            default_delivery_fee=settings.default_delivery_fee,
            default_tax_rate=settings.default_tax_rate,
            currency=settings.currency,
        )

    def as_public_dict(self) -> dict:
        """Settings a checkout UI may display."""
        return {
            GLOBAL_DELIVERY_FEE: _plain(self.global_delivery_fee),
            GLOBAL_TAX_RATE: _plain(self.global_tax_rate),
            DISCOUNT_RULES: {name: dict(rule) for name, rule in self.discount_rules.items() if isinstance(rule, Mapping)},
            PAYMENT_METHODS: self.enabled_payment_methods(),
            "currency": self.currency,
        }

    def enabled_payment_methods(self) -> dict:
        return {
            name: dict(method)
            for name, method in self.payment_methods.items()
            if isinstance(method, Mapping) and method.get("enabled") is True
        }

    def accepts_payment_method(self, payment_method: str) -> bool:
        """Whether checkout may use ``payment_method``.

        With no methods configured every method is accepted; otherwise the
        method must be listed and enabled.
        """
        if not self.payment_methods:
            return True
        return payment_method in self.enabled_payment_methods()


def _safe_read(key, read, default=None):
    try:
        return read()
    except Exception as exc:  # noqa: BLE001
        logger.error("Pricing configuration read failed, using fallback", key=key, error=str(exc))
        return default


def _plain(value):
    return str(value) if isinstance(value, Decimal) else value
