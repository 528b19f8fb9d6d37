from sqlalchemy import Column, DateTime, Index, Integer, String, Table
from sqlalchemy.orm import declarative_base

Base = declarative_base()

IDO_PREFIX = "icinga_"


class Instance(Base):
    __tablename__ = "icinga_instances"

    instance_id = Column(Integer, primary_key=True, autoincrement=True)
    instance_name = Column(String(64), nullable=False, unique=True)
    instance_description = Column(String(128), nullable=False, default="")


def history_table(name: str, id_column: str, time_column: str) -> Table:
    """
    Return the SQLAlchemy table for an IDO history table, registering it on
    first use. Only the columns the janitor filters on are mapped.
    """
    full_name = f"{IDO_PREFIX}{name}"
    existing = Base.metadata.tables.get(full_name)
    if existing is not None:
        return existing
    return Table(
        full_name,
        Base.metadata,
        Column(id_column, Integer, primary_key=True, autoincrement=True),
        Column("instance_id", Integer, nullable=False, default=0),
        Column(time_column, DateTime, nullable=True),
        Index(f"{full_name}_i_id_time", "instance_id", time_column),
    )
