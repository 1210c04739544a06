"""Database engine utilities."""
from .engine import cleanup_database_connections, create_dashboard_engine, get_engine

__all__ = ['get_engine', 'create_dashboard_engine', 'cleanup_database_connections']
