from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from planner.core.config import get_settings


def build_engine(database_url: str, **kwargs) -> Engine:
    """Engine for ``database_url``; SQLite connections may be shared across threads."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args, **kwargs)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = build_engine(get_settings().database_url)
SessionLocal = make_session_factory(engine)
