"""
Entry point of the IDO cleanup daemon.

Settings come from the environment (see JanitorSettings and DatabaseSettings)
and can be overridden by command line flags:

  ido-cleanup --db mysql+pymysql://icinga:icinga@db/icinga2 --once --noop
  ido-cleanup --statehistory 90 --hostchecks 7
"""

import argparse
import logging
import sys
from functools import partial
from typing import List, Optional

from pydantic import ValidationError
from pydantic_settings import SettingsError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ido_core import build_engine, build_session_factory
from ido_core.config import DatabaseSettings

from . import __version__
from .config.janitor_settings import JanitorSettings
from .dto import CleanupConfig, ScheduleConfig
from .errors import StartupError
from .janitor.instance import resolve_instance_id
from .janitor.purger import TablePurger
from .janitor.retention import run_configured_round
from .janitor.scheduler import AdaptiveScheduler
from .janitor.tables import KNOWN_TABLES
from .logging_utils import configure_logging

logger = logging.getLogger("janitor.main")

SETTINGS_FLAGS = ("instance", "limit", "interval", "fast_interval", "once", "noop", "debug")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ido-cleanup",
        description="Icinga IDO Cleanup: purge old rows from the IDO history tables.",
    )
    parser.add_argument("--db", dest="db_dsn", help="Database URL (env: DB_DSN)")
    parser.add_argument("--instance", help="IDO instance name (default: default)")
    parser.add_argument("--limit", type=int, help="Limit deleting rows in one query (default: 10000)")
    parser.add_argument("--interval", type=float, help="Cleanup every X seconds (default: 60)")
    parser.add_argument(
        "--fast-interval",
        type=float,
        help="Cleanup every X seconds while a table has more rows than the limit (default: 10)",
    )
    parser.add_argument("--once", action="store_true", default=None, help="Just run once")
    parser.add_argument("--noop", action="store_true", default=None, help="Just check - don't purge")
    parser.add_argument("--debug", action="store_true", default=None, help="Enable debug logging")
    parser.add_argument("-V", "--version", action="store_true", help="Print version and exit")
    for table in KNOWN_TABLES:
        parser.add_argument(
            f"--{table.name}",
            type=int,
            metavar="DAYS",
            help=f"How long to keep entries of {table.name} in days",
        )
    return parser


def load_settings(args: argparse.Namespace) -> tuple[DatabaseSettings, JanitorSettings]:
    """Merge environment settings with the flags given on the command line."""
    db_overrides = {"db_dsn": args.db_dsn} if args.db_dsn else {}
    overrides = {name: getattr(args, name) for name in SETTINGS_FLAGS if getattr(args, name) is not None}
    ages = {table.name: getattr(args, table.name) for table in KNOWN_TABLES if getattr(args, table.name) is not None}
    settings = JanitorSettings(**overrides)
    if ages:
        settings = JanitorSettings(**overrides, retention_ages={**settings.retention_ages, **ages})
    return DatabaseSettings(**db_overrides), settings


def connect(db_settings: DatabaseSettings):
    engine = None
    try:
        engine = build_engine(db_settings)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        if engine is not None:
            engine.dispose()
        raise StartupError(f"could not connect to database: {exc}") from exc
    return engine


def run(db_settings: DatabaseSettings, settings: JanitorSettings) -> AdaptiveScheduler:
    engine = connect(db_settings)
    try:
        session_factory = build_session_factory(engine)
        instance_id = resolve_instance_id(session_factory, settings.instance)
        config = CleanupConfig(
            tables=KNOWN_TABLES,
            ages=settings.ages,
            instance_id=instance_id,
            limit=settings.limit,
            dry_run=settings.noop,
        )
        schedule = ScheduleConfig(settings.interval, settings.fast_interval, once=settings.once)
        logger.info(
            "Starting ido-cleanup",
            extra={
                "extra_payload": {
                    "instance": settings.instance,
                    "instance_id": instance_id,
                    "limit": settings.limit,
                    "dry_run": settings.noop,
                    "ages": {name: age for name, age in config.ages.items() if age},
                }
            },
        )
        scheduler = AdaptiveScheduler(partial(run_configured_round, TablePurger(session_factory), config), schedule)
        scheduler.install_signal_handlers()
        try:
            scheduler.run()
        finally:
            scheduler.restore_signal_handlers()
        return scheduler
    finally:
        engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.version:
        print(f"ido-cleanup version {__version__}")
        return 0

    try:
        db_settings, settings = load_settings(args)
    except (ValidationError, SettingsError) as exc:
        configure_logging()
        logger.error("Invalid configuration", extra={"extra_payload": {"error": str(exc)}})
        return 2

    configure_logging("DEBUG" if settings.debug else None)
    try:
        run(db_settings, settings)
    except StartupError as exc:
        logger.error("Startup failed", extra={"extra_payload": {"error": str(exc)}})
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
