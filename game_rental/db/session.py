from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.base import Base


def _on_sqlite_connect(dbapi_conn, _conn_record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys = ON;")
    cur.close()


def _is_memory_sqlite(db_url: str) -> bool:
    return db_url.startswith("sqlite") and (":memory:" in db_url or db_url.rstrip("/").endswith("sqlite:"))


def build_engine(db_url: str) -> Engine:
    if not db_url.startswith("sqlite"):
        return create_engine(db_url, pool_pre_ping=True, future=True)

    options = {"connect_args": {"check_same_thread": False}, "future": True}
    if _is_memory_sqlite(db_url):
        # every session must see the same in-memory database
        options["poolclass"] = StaticPool
    engine = create_engine(db_url, **options)
    event.listen(engine, "connect", _on_sqlite_connect)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_db(engine: Engine) -> None:
    import models.rental_models  # noqa: F401  registers the tables

    Base.metadata.create_all(engine)
