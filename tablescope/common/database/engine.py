"""
SQLAlchemy database engine management.

The dashboard only ever reads, so engines open their connections read-only
unless DATABASE_READ_ONLY is turned off.
"""
import logging
from typing import Any, Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url

from ..config import config

logger = logging.getLogger(__name__)

# Global instance
_engine = None

# Session settings that make a server connection refuse writes
READ_ONLY_CONNECT_ARGS = {
    'mysql': {'init_command': 'SET SESSION TRANSACTION READ ONLY'},
    'mariadb': {'init_command': 'SET SESSION TRANSACTION READ ONLY'},
    'postgresql': {'options': '-c default_transaction_read_only=on'},
}


def _enable_sqlite_query_only(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA query_only = ON")
    cursor.close()


def create_dashboard_engine(database_url: str, read_only: bool = True, echo: bool = False) -> Engine:
    """Create an engine with pool settings suited to the backend."""
    backend = make_url(database_url).get_backend_name()

    if backend == 'sqlite':
        engine = create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False}
        )
        if read_only:
            event.listen(engine, "connect", _enable_sqlite_query_only)
        return engine

    connect_args: Dict[str, Any] = {"connect_timeout": config.database.connection_timeout}
    if read_only:
        connect_args.update(READ_ONLY_CONNECT_ARGS.get(backend, {}))

    return create_engine(
        database_url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args=connect_args
    )


def get_engine(echo: bool = False) -> Engine:
    """Get or create the shared engine."""
    global _engine
    if _engine is None:
        settings = config.database
        _engine = create_dashboard_engine(settings.database_url, read_only=settings.read_only, echo=echo)
        mode = "read-only" if settings.read_only else "read-write"
        logger.debug(f"Created {mode} engine for {_engine.url.render_as_string(hide_password=True)}")

    return _engine


def cleanup_database_connections():
    """Dispose of the shared engine and close its pooled connections."""
    global _engine

    if _engine is not None:
        logger.info("Disposing database engine and closing all connections")
        _engine.dispose()
        _engine = None
