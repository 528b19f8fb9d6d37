import logging
import time
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from ..dto import CleanupConfig, CleanupOutcome, RoundResult, TableDescriptor, utcnow
from ..errors import QueryError
from .purger import TablePurger

logger = logging.getLogger("janitor.retention")


def retention_cutoff(now: datetime, age_days: int) -> datetime:
    return now - timedelta(days=age_days)


def run_round(
    purger: TablePurger,
    tables: Iterable[TableDescriptor],
    ages: Mapping[str, int],
    instance_id: int,
    limit: int,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> RoundResult:
    """
    Walk the registry once and clean every table that has a retention age.

    The round is busy when a purge removed as many rows as the limit allows,
    meaning the table probably holds more eligible rows. Dry-run counts never
    make a round busy.
    """
    now = now or utcnow()
    busy = False
    outcomes = []

    for table in tables:
        age = ages.get(table.name, 0)
        if not age:
            continue

        start = time.monotonic()
        cutoff = retention_cutoff(now, age)
        payload = {"table": table.name, "cutoff": cutoff}

        oldest = None
        oldest_error = None
        try:
            oldest = purger.oldest_time(table, instance_id)
        except QueryError as exc:
            oldest_error = str(exc)
            logger.error("Could not get oldest entry", extra={"extra_payload": {**payload, "error": str(exc)}})
        payload["oldest"] = oldest

        if dry_run:
            try:
                rows = purger.count(table, instance_id, cutoff)
            except QueryError as exc:
                logger.error("Could not enumerate rows", extra={"extra_payload": {**payload, "error": str(exc)}})
                outcomes.append(CleanupOutcome(table.name, cutoff, True, oldest, error=str(exc), duration=time.monotonic() - start))
                continue
            took = time.monotonic() - start
            logger.info("Would delete rows", extra={"extra_payload": {**payload, "rows": rows, "took": took}})
            outcomes.append(CleanupOutcome(table.name, cutoff, True, oldest, rows, oldest_error, took))
            continue

        try:
            rows = purger.purge(table, instance_id, cutoff, limit)
        except QueryError as exc:
            logger.error("Could not run cleanup", extra={"extra_payload": {**payload, "error": str(exc)}})
            outcomes.append(CleanupOutcome(table.name, cutoff, False, oldest, error=str(exc), duration=time.monotonic() - start))
            continue

        if rows >= limit:
            busy = True

        took = time.monotonic() - start
        level = logging.INFO if rows > 0 else logging.DEBUG
        logger.log(level, "Deleted rows", extra={"extra_payload": {**payload, "rows": rows, "took": took}})
        outcomes.append(CleanupOutcome(table.name, cutoff, False, oldest, rows, oldest_error, took))

    logger.debug("Cleanup round finished", extra={"extra_payload": {"busy": busy, "tables": len(outcomes)}})
    return RoundResult(busy=busy, outcomes=outcomes)


def run_configured_round(purger: TablePurger, config: CleanupConfig, now: Optional[datetime] = None) -> RoundResult:
    return run_round(
        purger,
        config.tables,
        config.ages,
        config.instance_id,
        config.limit,
        dry_run=config.dry_run,
        now=now,
    )
