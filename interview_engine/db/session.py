from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from interview_engine.base.config import settings

# Base class for tables
Base = declarative_base()


def _begin_immediate_on_sqlite(engine: Engine) -> None:
    """
    pysqlite defers BEGIN until the first write, so reads made at the start of
    a transaction would run outside it. Take the write lock up front instead.
    """

    @event.listens_for(engine, "connect")
    def disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: Optional[str] = None, **kwargs) -> Engine:
    url = database_url or settings.DATABASE_URL
    is_sqlite = url.startswith("sqlite")
    # SQLite-specific connection arguments
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    engine = create_engine(url, connect_args=connect_args, future=True, **kwargs)
    if is_sqlite:
        _begin_immediate_on_sqlite(engine)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    """Ensure tables exist."""
    from interview_engine.db import tables  # noqa: F401 - registers the tables on Base

    Base.metadata.create_all(bind=engine)
