"""
Scripts - Risk Report.

============================================================
RESPONSIBILITY
============================================================
Scores one agent or company from the command line.

- Prints the {"score", "flaggedMetrics"} result as JSON
- Optionally persists the score (--persist)
- Optionally sends alerts for high-severity results (--alert)

============================================================
USAGE
============================================================
python -m scripts.run_risk_report --entity-type agent --entity-id A1
python -m scripts.run_risk_report -t company -i C1 \\
    --start 2024-01-01 --end 2024-01-31 --persist --alert

Exit codes: 0 ok, 2 invalid arguments, 1 storage/scoring failure.

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Callable, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import FieldOpsException, InvalidWindowError
from database.engine import create_database_engine
from performance_scoring import (
    PerformanceScoringEngine,
    create_alerting_service_from_settings,
    format_score_summary,
    get_default_config,
    get_strict_config,
    load_runtime_settings,
)
from performance_scoring.repository import RiskScoreRepository
from performance_scoring.types import MetricWindow
from storage.repositories.exceptions import RepositoryException


logger = logging.getLogger("scripts.run_risk_report")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


# ============================================================
# CLI ARGUMENT PARSING
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="run-risk-report",
        description="Compute the performance risk score for an agent or company",
    )

    parser.add_argument(
        "--entity-type", "-t",
        type=str,
        required=True,
        choices=["agent", "company"],
        help="Kind of entity to score",
    )
    parser.add_argument(
        "--entity-id", "-i",
        type=str,
        required=True,
        help="Agent or company id",
    )

    window_group = parser.add_argument_group("Window Options")
    window_group.add_argument(
        "--start",
        type=str,
        metavar="YYYY-MM-DD",
        help="First day of the window (inclusive)",
    )
    window_group.add_argument(
        "--end",
        type=str,
        metavar="YYYY-MM-DD",
        help="Last day of the window (inclusive)",
    )

    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--persist",
        action="store_true",
        help="Save the score to risk_scores",
    )
    output_group.add_argument(
        "--alert",
        action="store_true",
        help="Send alerts if the result warrants one",
    )
    output_group.add_argument(
        "--summary",
        action="store_true",
        help="Print a human-readable summary instead of JSON",
    )
    output_group.add_argument(
        "--strict",
        action="store_true",
        help="Use the strict threshold profile",
    )

    system_group = parser.add_argument_group("System Options")
    system_group.add_argument(
        "--database-url",
        type=str,
        metavar="URL",
        help="Database URL (default: DATABASE_URL_SYNC / DATABASE_URL)",
    )
    system_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    return parser


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ============================================================
# MAIN
# ============================================================

def main(
    argv: Optional[List[str]] = None,
    session_factory: Optional[Callable[[], Session]] = None,
) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = load_runtime_settings()
    setup_logging(args.log_level or settings.log_level)

    config = get_strict_config() if args.strict else get_default_config()

    try:
        window = MetricWindow.create(args.entity_type, args.entity_id, args.start, args.end)
    except InvalidWindowError as e:
        logger.error(e.to_log_format())
        return EXIT_USAGE

    engine = None
    if session_factory is None:
        engine = create_database_engine(args.database_url or settings.database_url)
        session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    session = session_factory()
    try:
        scoring = PerformanceScoringEngine(session, config=config)
        result = scoring.score_window(window)

        if args.persist:
            record = RiskScoreRepository(
                session, engine_version=config.engine_version
            ).save_risk_score(result)
            session.commit()
            logger.info(f"Persisted risk score {record.id}")

        if args.alert:
            service = create_alerting_service_from_settings(settings, config.alerting)
            alert = asyncio.run(service.process_result(result))
            if alert is not None:
                logger.info(f"Alert sent: {alert.title}")
    except (FieldOpsException, RepositoryException) as e:
        session.rollback()
        logger.error(f"Risk report failed: {e}")
        return EXIT_FAILURE
    finally:
        session.close()
        if engine is not None:
            engine.dispose()

    if args.summary:
        print(format_score_summary(result))
    else:
        print(json.dumps(result.to_dict(), indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
