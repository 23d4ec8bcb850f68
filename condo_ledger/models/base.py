"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. The CLI opens one session
per command from SessionLocal; the caller commits.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from condo_ledger.config import get_settings

settings = get_settings()


def enable_sqlite_savepoints(target: Engine) -> Engine:
    """
    Make SAVEPOINT work on the pysqlite driver.

    pysqlite begins transactions on its own and breaks
    begin_nested(). We disable its handling and emit BEGIN
    ourselves, so postings can run inside a savepoint.
    """
    @event.listens_for(target, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return target


# --- Engine ---
# pool_pre_ping=True tests connections before using them,
# which handles cases where the database restarted or a
# connection went stale.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)
if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

# --- Session Factory ---
# autocommit=False means we explicitly control when changes
# are saved. Postings are all-or-nothing.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass
