from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from edurecords.config import settings

Base = declarative_base()


def build_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create the engine for the configured database.
    SQLite needs `check_same_thread` off because FastAPI runs sync handlers
    on a thread pool; in-memory SQLite additionally needs a single shared connection.
    """
    url = database_url or settings.database_url

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
