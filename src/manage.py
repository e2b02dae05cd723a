"""Enrolment cart management CLI.

Creates and drops the database schema, and runs the expired-cart sweep
for schedulers that prefer a command over the maintenance endpoint.

Usage:
    python src/manage.py setup-db     # Create all tables
    python src/manage.py drop-db      # Drop all tables
    python src/manage.py reap-carts   # Delete expired carts now
"""

import argparse
import json
import sys


def _domain():
    from enrolcart.domain import enrolcart

    print("Initializing enrolcart domain...")
    enrolcart.init()
    return enrolcart


def setup_database():
    from enrolcart.utils.db import setup_db

    domain = _domain()
    print("Creating enrolcart database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from enrolcart.utils.db import drop_db

    domain = _domain()
    print("Dropping enrolcart database schema...")
    drop_db(domain)
    print("Done.")


def reap_carts():
    from enrolcart.api.dependencies import CartDependencies

    domain = _domain()
    with domain.domain_context():
        report = CartDependencies.from_settings().reaper().run()
    print(json.dumps(report.as_dict(), indent=2))
    return 1 if report.failed else 0


def main():
    parser = argparse.ArgumentParser(description="Enrolment cart management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("reap-carts", help="Delete expired canceled and pending-payment carts")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "reap-carts":
        sys.exit(reap_carts())
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
