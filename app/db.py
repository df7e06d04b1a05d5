from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import settings


class Base(DeclarativeBase):
    pass


def enable_sqlite_transactions(engine: Engine) -> Engine:
    """Let SQLAlchemy own BEGIN on pysqlite so savepoints and write locks work.

    Transactions start with BEGIN IMMEDIATE, which serialises writers instead
    of failing lock upgrades under concurrency.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


SUPPORTED_BACKENDS = ("postgresql", "sqlite")


def get_engine(database_url: str | None = None) -> Engine:
    url = make_url(database_url or settings.database_url)
    backend = url.get_backend_name()
    if backend not in SUPPORTED_BACKENDS:
        raise ValueError(f"Unsupported database backend: {backend}")
    if backend == "sqlite":
        return enable_sqlite_transactions(
            create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
