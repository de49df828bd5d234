"""PawPantry database management CLI.

Usage:
    python src/manage.py setup-db        # Create all tables
    python src/manage.py drop-db         # Drop all tables
    python src/manage.py seed-settings   # Write default pricing settings
"""

import argparse
import sys

DEFAULT_SETTINGS = {
    "global_delivery_fee": 4.99,
    "global_tax_rate": 8.5,
    "discount_rules": {
        "first_time_customer": {
            "enabled": True,
            "percentage": 10,
            "description": "10% off for first-time customers",
        },
        "bulk_order": {
            "enabled": True,
            "threshold": 100,
            "percentage": 5,
            "description": "5% off for orders over $100",
        },
    },
    "payment_methods": {
        "paypal": {"enabled": True, "name": "PayPal", "description": "Pay with PayPal account"},
        "stripe": {"enabled": True, "name": "Stripe", "description": "Pay with credit/debit card"},
        "mastercard": {"enabled": True, "name": "Mastercard", "description": "Pay with Mastercard"},
        "bitcoin": {"enabled": False, "name": "Bitcoin", "description": "Pay with Bitcoin"},
    },
}


def setup_database(database_url=None):
    """Create all tables."""
    from shared.database import build_engine, setup_db

    print("Creating database schema...")
    setup_db(build_engine(database_url))
    print("Done.")


def drop_database(database_url=None):
    """Drop all tables."""
    from shared.database import build_engine, drop_db

    print("Dropping database schema...")
    engine = build_engine(database_url)
    # Register every model so drop_all sees all tables
    import catalogue.product.product  # noqa: F401
    import catalogue.store.store  # noqa: F401
    import inventory.movement  # noqa: F401
    import ordering.order.order  # noqa: F401
    import pricing.config  # noqa: F401

    drop_db(engine)
    print("Done.")


def seed_settings(database_url=None, overwrite=False):
    """Write the default pricing settings, keeping existing values unless ``overwrite``."""
    from pricing.config import SettingsStore
    from shared.database import build_engine, build_session_factory, setup_db

    engine = build_engine(database_url)
    setup_db(engine)
    store = SettingsStore(build_session_factory(engine))

    for key, value in DEFAULT_SETTINGS.items():
        if not overwrite and store.get(key) is not None:
            print(f"  {key}: kept existing value")
            continue
        store.set(key, value)
        print(f"  {key}: {value}")
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="PawPantry database management")
    parser.add_argument("--database-url", help="Override PAWPANTRY_DATABASE_URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    seed_parser = subparsers.add_parser("seed-settings", help="Write default pricing settings")
    seed_parser.add_argument("--overwrite", action="store_true", help="Replace existing values")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database(args.database_url)
    elif args.command == "drop-db":
        drop_database(args.database_url)
    elif args.command == "seed-settings":
        seed_settings(args.database_url, overwrite=args.overwrite)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
