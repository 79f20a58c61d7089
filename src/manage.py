"""Procurement database management CLI.

Provides commands to create and drop the database schema for the
procurement domain, reusing the setup_db/drop_db utilities.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def setup_database():
    """Create the procurement database schema."""
    from procurement.domain import procurement
    from procurement.utils.db import setup_db

    print("Initializing procurement domain...")
    procurement.init()
    print("Creating procurement database schema...")
    setup_db(procurement)
    print("Done.")


def drop_database():
    """Drop the procurement database schema."""
    from procurement.domain import procurement
    from procurement.utils.db import drop_db

    print("Initializing procurement domain...")
    procurement.init()
    print("Dropping procurement database schema...")
    drop_db(procurement)
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Procurement database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
