import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ido_core import get_session

from ..dto import TableDescriptor
from ..errors import QueryError
from .tables import table_for

logger = logging.getLogger("janitor.purger")

IDO_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_timestamp(table: str, value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value, IDO_TIME_FORMAT)
        except ValueError as exc:
            raise QueryError(table, f"could not parse date {value!r}") from exc
    raise QueryError(table, f"unexpected timestamp value {value!r}")


class TablePurger:
    """
    Reads and deletes rows of a single IDO history table.

    Every statement is scoped to one instance id. Values are always bound
    parameters; table and column names only ever come from the registry.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def oldest_time(self, descriptor: TableDescriptor, instance_id: int) -> Optional[datetime]:
        table = table_for(descriptor)
        time_col = table.c[descriptor.time_column]
        stmt = select(time_col).where(table.c.instance_id == instance_id).order_by(time_col.asc()).limit(1)
        try:
            with get_session(self.session_factory) as session:
                row = session.execute(stmt).first()
        except (SQLAlchemyError, ValueError, TypeError) as exc:
            raise QueryError(descriptor.name, f"could not get oldest time: {exc}") from exc
        if row is None:
            return None
        return parse_timestamp(descriptor.name, row[0])

    def count(self, descriptor: TableDescriptor, instance_id: int, cutoff: datetime) -> int:
        table = table_for(descriptor)
        stmt = (
            select(func.count())
            .select_from(table)
            .where(table.c.instance_id == instance_id)
            .where(table.c[descriptor.time_column] < cutoff)
        )
        try:
            with get_session(self.session_factory) as session:
                return int(session.execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            raise QueryError(descriptor.name, f"could not count rows: {exc}") from exc

    def purge(self, descriptor: TableDescriptor, instance_id: int, cutoff: datetime, limit: int) -> int:
        """
        Delete at most ``limit`` rows of ``instance_id`` older than ``cutoff``.
        Returns the number of rows actually deleted.
        """
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        table = table_for(descriptor)
        id_col = table.c[descriptor.id_column]
        time_col = table.c[descriptor.time_column]
        eligible = (table.c.instance_id == instance_id, time_col < cutoff)
        pick = select(id_col).where(*eligible).order_by(time_col.asc()).limit(limit)

        with get_session(self.session_factory) as session:
            try:
                ids = list(session.execute(pick).scalars())
                if not ids:
                    session.rollback()
                    return 0
                result = session.execute(delete(table).where(id_col.in_(ids), *eligible))
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise QueryError(descriptor.name, f"could not purge rows: {exc}") from exc
        deleted = result.rowcount if result.rowcount is not None and result.rowcount >= 0 else len(ids)
        logger.debug(
            "Purge batch executed",
            extra={"extra_payload": {"table": descriptor.name, "selected": len(ids), "deleted": deleted}},
        )
        return min(deleted, limit)
