from datetime import timedelta

import pytest

from conftest import INSTANCE_ID, NOW, table_named
from ido_core import Base
from ido_janitor.dto import CleanupConfig
from ido_janitor.errors import QueryError
from ido_janitor.janitor.retention import run_configured_round, run_round
from ido_janitor.janitor.tables import KNOWN_TABLES


class RecordingPurger:
    """Stands in for TablePurger and remembers which tables were touched."""

    def __init__(self, purged=None, failing=()):
        self.calls = []
        self.purged = purged or {}
        self.failing = set(failing)

    def _call(self, op, table, *args):
        self.calls.append((op, table.name) + args)
        if (op, table.name) in self.failing:
            raise QueryError(table.name, f"{op} failed")

    def oldest_time(self, table, instance_id):
        self._call("oldest_time", table)
        return None

    def count(self, table, instance_id, cutoff):
        self._call("count", table, cutoff)
        return self.purged.get(table.name, 0)

    def purge(self, table, instance_id, cutoff, limit):
        self._call("purge", table, cutoff)
        return min(self.purged.get(table.name, 0), limit)


def test_zero_age_tables_are_never_queried():
    purger = RecordingPurger()
    ages = {"statehistory": 0, "logentries": 3}

    run_round(purger, KNOWN_TABLES, ages, INSTANCE_ID, 10, now=NOW)

    assert {call[1] for call in purger.calls} == {"logentries"}


def test_registry_order_and_single_cutoff_per_round():
    purger = RecordingPurger()
    ages = {"statehistory": 7, "acknowledgements": 7, "notifications": 30}

    result = run_round(purger, KNOWN_TABLES, ages, INSTANCE_ID, 10, now=NOW)

    purged = [call for call in purger.calls if call[0] == "purge"]
    assert [call[1] for call in purged] == ["acknowledgements", "notifications", "statehistory"]
    assert purged[0][2] == purged[2][2] == NOW - timedelta(days=7)
    assert purged[1][2] == NOW - timedelta(days=30)
    assert [outcome.table for outcome in result.outcomes] == ["acknowledgements", "notifications", "statehistory"]


def test_busy_only_when_purge_hits_limit():
    ages = {"statehistory": 1, "logentries": 1}

    below = run_round(RecordingPurger({"statehistory": 9}), KNOWN_TABLES, ages, INSTANCE_ID, 10, now=NOW)
    at_limit = run_round(RecordingPurger({"logentries": 25}), KNOWN_TABLES, ages, INSTANCE_ID, 10, now=NOW)

    assert below.busy is False
    assert at_limit.busy is True


def test_dry_run_counts_never_make_round_busy():
    purger = RecordingPurger({"statehistory": 50})

    result = run_round(purger, KNOWN_TABLES, {"statehistory": 1}, INSTANCE_ID, 10, dry_run=True, now=NOW)

    assert result.busy is False
    assert result.outcomes[0].rows_affected == 50
    assert not [call for call in purger.calls if call[0] == "purge"]


def test_failures_do_not_stop_later_tables():
    purger = RecordingPurger(
        {"notifications": 10},
        failing={("purge", "commenthistory"), ("oldest_time", "logentries")},
    )
    ages = {"commenthistory": 1, "logentries": 1, "notifications": 1}

    result = run_round(purger, KNOWN_TABLES, ages, INSTANCE_ID, 10, now=NOW)

    purged = [call[1] for call in purger.calls if call[0] == "purge"]
    assert purged == ["commenthistory", "logentries", "notifications"]
    assert result.busy is True
    outcomes = {outcome.table: outcome for outcome in result.outcomes}
    assert outcomes["commenthistory"].error == "purge failed for commenthistory"
    assert outcomes["logentries"].error == "oldest_time failed for logentries"
    assert outcomes["notifications"].error is None


def test_count_failure_skips_table_in_dry_run():
    purger = RecordingPurger(failing={("count", "commenthistory")})
    ages = {"commenthistory": 1, "logentries": 1}

    result = run_round(purger, KNOWN_TABLES, ages, INSTANCE_ID, 10, dry_run=True, now=NOW)

    assert [outcome.table for outcome in result.outcomes] == ["commenthistory", "logentries"]
    assert result.outcomes[0].error is not None
    assert result.outcomes[1].error is None


def test_backlog_scenario_two_rounds(purger, seed):
    seed("statehistory", 15, days_old=6)
    seed("statehistory", 3, days_old=1)
    config = CleanupConfig(tables=KNOWN_TABLES, ages={"statehistory": 5}, instance_id=INSTANCE_ID, limit=10)

    first = run_configured_round(purger, config, now=NOW)
    second = run_configured_round(purger, config, now=NOW)

    assert (first.busy, first.outcomes[0].rows_affected) == (True, 10)
    assert (second.busy, second.outcomes[0].rows_affected) == (False, 5)
    assert purger.count(table_named("statehistory"), INSTANCE_ID, NOW + timedelta(days=1)) == 3


def test_empty_table_round(purger):
    config = CleanupConfig(tables=KNOWN_TABLES, ages={"eventhandlers": 5}, instance_id=INSTANCE_ID, limit=10)

    result = run_configured_round(purger, config, now=NOW)

    outcome = result.outcomes[0]
    assert outcome.oldest_timestamp is None
    assert outcome.rows_affected == 0
    assert outcome.error is None
    assert result.busy is False


def test_dry_run_reports_full_count_and_deletes_nothing(purger, seed):
    seed("statehistory", 15, days_old=6)
    config = CleanupConfig(
        tables=KNOWN_TABLES, ages={"statehistory": 5}, instance_id=INSTANCE_ID, limit=10, dry_run=True
    )

    result = run_configured_round(purger, config, now=NOW)

    assert result.outcomes[0].rows_affected == 15
    assert result.busy is False
    assert purger.count(table_named("statehistory"), INSTANCE_ID, NOW) == 15


def test_broken_table_does_not_block_database_round(purger, seed, engine):
    seed("statehistory", 4, days_old=6)
    Base.metadata.tables["icinga_commenthistory"].drop(engine)
    config = CleanupConfig(
        tables=KNOWN_TABLES,
        ages={"commenthistory": 5, "statehistory": 5},
        instance_id=INSTANCE_ID,
        limit=10,
    )

    result = run_configured_round(purger, config, now=NOW)

    outcomes = {outcome.table: outcome for outcome in result.outcomes}
    assert outcomes["commenthistory"].error is not None
    assert outcomes["statehistory"].rows_affected == 4


def test_config_ages_are_read_only():
    config = CleanupConfig(tables=KNOWN_TABLES, ages={"statehistory": 5}, instance_id=INSTANCE_ID, limit=10)

    with pytest.raises(TypeError):
        config.ages["statehistory"] = 0
    assert config.ages["statehistory"] == 5
