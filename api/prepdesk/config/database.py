from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

from .settings import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)

Base = declarative_base()


def enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN on pysqlite so nested SAVEPOINTs behave."""

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        new_engine = create_engine(url, future=True, echo=SQL_ECHO, **kwargs)
        enable_sqlite_savepoints(new_engine)
        return new_engine
    return create_engine(url, future=True, echo=SQL_ECHO, pool_pre_ping=True, **kwargs)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None) -> None:
    # Register every model on Base.metadata before creating tables
    from .. import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ensured")
