from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Base class for all models
Base = declarative_base()

# Session factory, bound by init_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)

engine = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str):
    """Create an engine for the given URL.

    In-memory SQLite gets a StaticPool so every session sees the same
    database (the not-configured fallback and the test suite rely on it).
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        new_engine = create_engine(database_url, **kwargs)
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
        return new_engine
    return create_engine(database_url, pool_pre_ping=True)


def init_engine(database_url: str):
    """Bind the module-level SessionLocal to a fresh engine and create tables."""
    global engine
    engine = build_engine(database_url)
    SessionLocal.configure(bind=engine)

    # Import models so they register on Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


def make_session_factory(bind):
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


@contextmanager
def get_db_context(session_factory=None):
    """
    Context manager for database sessions.
    Automatically closes session when done.

    Usage:
        with get_db_context() as db:
            result = db.query(Model).all()
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()


def probe_engine(bind) -> bool:
    """Return True when the backend answers a trivial query."""
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
