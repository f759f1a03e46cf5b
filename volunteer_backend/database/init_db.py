"""
Database setup helper.

Creates the users and events tables named by USERS_COLLECTION_NAME and
EVENTS_COLLECTION_NAME, and optionally promotes existing accounts to admin.

Usage:
    python -m volunteer_backend.database.init_db
    python -m volunteer_backend.database.init_db --promote admin@example.org
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from psycopg2 import sql

from volunteer_backend.auth_service.models import Role
from volunteer_backend.database.db_connection import close_pool, events_table, get_db, users_table
from volunteer_backend.database.users_repository import UserRepository

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

logger = logging.getLogger(__name__)


def apply_schema(db=get_db) -> None:
    """Run schema.sql with the configured table names."""
    schema = sql.SQL(SCHEMA_PATH.read_text()).format(users=users_table(), events=events_table())
    with db() as conn:
        with conn.cursor() as cur:
            cur.execute(schema)
    logger.info("Schema applied")


def promote(emails: List[str], users: UserRepository) -> int:
    """
    Give each email the admin role.

    Returns:
        int: Number of emails that did not match a user.
    """
    missing = 0
    for email in emails:
        if users.set_role(email, Role.ADMIN.value):
            logger.info(f"Promoted {email} to admin")
        else:
            logger.error(f"No user with email {email}")
            missing += 1
    return missing


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Create tables and manage admin accounts.")
    parser.add_argument("--skip-schema", action="store_true", help="do not run schema.sql")
    parser.add_argument("--promote", nargs="+", default=[], metavar="EMAIL", help="grant the admin role")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")

    try:
        if not args.skip_schema:
            apply_schema()
        missing = promote(args.promote, UserRepository())
    finally:
        close_pool()

    return 1 if missing else 0


if __name__ == "__main__":
    sys.exit(main())
