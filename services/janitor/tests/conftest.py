from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.pool import StaticPool

from ido_core import Base, Instance, build_session_factory, get_session
from ido_janitor.janitor.purger import TablePurger
from ido_janitor.janitor.tables import KNOWN_TABLES, table_for

NOW = datetime(2024, 7, 2, 8, 0, 0)
INSTANCE_ID = 1
OTHER_INSTANCE_ID = 2


def table_named(name: str):
    return next(table for table in KNOWN_TABLES if table.name == name)


def create_schema(engine) -> None:
    """Create the IDO tables the janitor knows about on a throwaway database."""
    for descriptor in KNOWN_TABLES:
        table_for(descriptor)
    Base.metadata.create_all(bind=engine)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = build_session_factory(engine)
    with get_session(factory) as session:
        session.add_all(
            [
                Instance(instance_id=INSTANCE_ID, instance_name="default"),
                Instance(instance_id=OTHER_INSTANCE_ID, instance_name="satellite"),
            ]
        )
        session.commit()
    return factory


@pytest.fixture
def purger(session_factory):
    return TablePurger(session_factory)


@pytest.fixture
def seed(session_factory):
    """Insert ``count`` rows into a history table, ``days_old`` days before NOW."""

    def _seed(name: str, count: int, days_old: float, instance_id: int = INSTANCE_ID) -> None:
        descriptor = table_named(name)
        table = table_for(descriptor)
        rows = [
            {"instance_id": instance_id, descriptor.time_column: NOW - timedelta(days=days_old, minutes=i)}
            for i in range(count)
        ]
        with get_session(session_factory) as session:
            session.execute(insert(table), rows)
            session.commit()

    return _seed
