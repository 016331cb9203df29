# core/setup_db.py

import logging
from dataclasses import dataclass
from typing import Any

from core.config import Settings, load_settings
from core.connectivity import ConnectivityMonitor
from core.database import Base, init_engine, make_session_factory, probe_engine
from core.local_store import LocalStore
from core.logging_config import configure_logging
from core.storage import build_bucket

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Process-wide objects shared by every session."""

    settings: Settings
    engine: Any
    session_factory: Any
    store: LocalStore
    monitor: ConnectivityMonitor
    bucket: Any


def bootstrap(settings: Settings = None) -> Runtime:
    """Create tables, seed the demo identity when unconfigured, wire shared services."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if not settings.is_configured:
        logger.warning("Backend not configured, running with in-memory demo data")

    engine = init_engine(settings.database_url)
    session_factory = make_session_factory(engine)

    if not settings.is_configured:
        from services.auth_service import ensure_mock_identity

        with session_factory() as db:
            ensure_mock_identity(db)

    return Runtime(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        store=LocalStore(settings.cache_path),
        monitor=ConnectivityMonitor(probe=lambda: probe_engine(engine)),
        bucket=build_bucket(settings),
    )


def main():
    print("Creating database tables...")

    runtime = bootstrap()
    Base.metadata.create_all(bind=runtime.engine)

    print("Database initialized successfully.")


if __name__ == "__main__":
    main()
