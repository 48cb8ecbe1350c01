from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .config import settings


def build_engine(database_url: str, *, lock_timeout_seconds: float = settings.lock_timeout_seconds) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": lock_timeout_seconds}}
        if ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)
        _serialize_sqlite_writers(engine)
        return engine

    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args["options"] = f"-c lock_timeout={int(lock_timeout_seconds * 1000)}"
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def _serialize_sqlite_writers(engine: Engine) -> None:
    """
    SQLite has no row locks, so FOR UPDATE is a no-op there. Open every transaction with
    BEGIN IMMEDIATE instead: the database write lock is taken up front and units of work
    run one after another.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
Base = declarative_base()
