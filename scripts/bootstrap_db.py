"""
Scripts - Bootstrap Database.

============================================================
RESPONSIBILITY
============================================================
Initializes the analytics database for first-time setup.

- Verifies the connection
- Creates operational and scoring tables
- Reports missing tables

============================================================
USAGE
============================================================
python -m scripts.bootstrap_db

Options:
  --validate-only    Only report missing tables, create nothing
  --database-url     Override DATABASE_URL_SYNC / DATABASE_URL

============================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from database.engine import (
    DatabasePersistenceError,
    create_database_engine,
    initialize_database,
    verify_required_tables,
)


logger = logging.getLogger("scripts.bootstrap_db")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bootstrap-db",
        description="Create the FieldOps analytics tables",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only check that required tables exist",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        metavar="URL",
        help="Database URL",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    engine = create_database_engine(args.database_url)
    try:
        if args.validate_only:
            missing = verify_required_tables(engine)
            if missing:
                logger.error(f"Missing tables: {', '.join(missing)}")
                return 1
            logger.info("All required tables present")
            return 0

        initialize_database(engine)
        return 0
    except DatabasePersistenceError as e:
        logger.error(f"Bootstrap failed: {e}")
        return 1
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
