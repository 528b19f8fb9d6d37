from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ido_core import Instance, get_session

from ..errors import StartupError


def resolve_instance_id(session_factory: sessionmaker, name: str) -> int:
    stmt = select(Instance.instance_id).where(Instance.instance_name == name)
    try:
        with get_session(session_factory) as session:
            instance_id = session.execute(stmt).scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise StartupError(f"could not find instance '{name}': {exc}") from exc
    if instance_id is None:
        raise StartupError(f"could not find instance '{name}'")
    return int(instance_id)
