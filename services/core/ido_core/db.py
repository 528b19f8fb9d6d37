from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import DatabaseSettings, get_db_settings


def build_engine(settings: Optional[DatabaseSettings] = None) -> Engine:
    settings = settings or get_db_settings()
    return create_engine(
        settings.db_dsn,
        echo=settings.db_echo,
        pool_pre_ping=True,
        pool_recycle=settings.db_conn_max_lifetime,
        future=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def get_session(factory: sessionmaker) -> Generator[Session, None, None]:
    session = factory()
    try:
        yield session
    finally:
        session.close()
