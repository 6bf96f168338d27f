"""Database engine and session factory."""

import math
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from config import get_settings

settings = get_settings()

# Execution option carrying the seconds a transaction may wait for locks.
LOCK_TIMEOUT_OPTION = "lock_timeout"


def _lock_timeout(conn) -> Optional[float]:
    return conn.get_execution_options().get(LOCK_TIMEOUT_OPTION)


def _milliseconds(seconds: float) -> int:
    return max(1, math.ceil(seconds * 1000))


def configure_sqlite(engine: Engine, busy_timeout: float = 30.0) -> Engine:
    """Enforce foreign keys and take the write lock when a transaction starts.

    pysqlite defers BEGIN until the first DML statement, so two concurrent
    transfers could both read and then fail to upgrade their locks. Emitting
    BEGIN IMMEDIATE makes writers queue on the busy timeout instead. A
    transaction started with the ``lock_timeout`` execution option waits at
    most that long; every other one gets ``busy_timeout`` back.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        timeout = _lock_timeout(conn)
        if timeout is None:
            timeout = busy_timeout
        conn.exec_driver_sql(f"PRAGMA busy_timeout = {_milliseconds(timeout)}").close()
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def configure_postgres(engine: Engine) -> Engine:
    """Bound lock waits for transactions started with ``lock_timeout``."""

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        timeout = _lock_timeout(conn)
        if timeout is not None:
            conn.exec_driver_sql(f"SET LOCAL lock_timeout = '{_milliseconds(timeout)}ms'")

    return engine


def build_engine(url: str, echo: bool = False) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.database.busy_timeout,
            },
        )
        return configure_sqlite(engine, busy_timeout=settings.database.busy_timeout)
    engine = create_engine(url, echo=echo, pool_pre_ping=True)
    if url.startswith("postgresql"):
        configure_postgres(engine)
    return engine


engine = build_engine(settings.database_url, echo=settings.database.echo)
sessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)
