"""
Configuration for the dashboard backend.
"""
import os
from pathlib import Path
from typing import List
from urllib.parse import quote_plus

from pydantic import BaseModel, Field

from . import constants


def _default_database_url() -> str:
    """Resolve the database URL from DATABASE_URL or the MYSQL_* variables."""
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    host = os.getenv("MYSQL_HOST")
    database = os.getenv("MYSQL_DATABASE")
    if host and database:
        user = quote_plus(os.getenv("MYSQL_USER", "root"))
        password = quote_plus(os.getenv("MYSQL_PASSWORD", ""))
        port = os.getenv("MYSQL_PORT", "3306")
        return f"mysql+pymysql://{user}:{password}@{host}:{port}/{database}"

    return "sqlite:///data/dashboard.db"


class DatabaseConfig(BaseModel):
    """Database configuration."""
    database_url: str = Field(
        default_factory=_default_database_url,
        description="Database connection URL (relative SQLite paths resolve against the project root)"
    )
    connection_timeout: int = Field(default=30, description="Connection timeout in seconds")
    read_only: bool = Field(
        default_factory=lambda: os.getenv("DATABASE_READ_ONLY", "true").lower() not in ("0", "false", "no"),
        description="Open connections in read-only mode"
    )

    def __init__(self, **data):
        super().__init__(**data)
        # Convert relative SQLite paths to absolute for reliability
        if self.database_url.startswith('sqlite:///') and not self.database_url.startswith('sqlite:////'):
            rel_path = self.database_url[10:]  # Remove 'sqlite:///'

            project_root = Path(__file__).parent.parent.parent
            abs_path = project_root / rel_path
            self.database_url = f"sqlite:///{abs_path.resolve()}"


class DashboardConfig(BaseModel):
    """Limits and thresholds for chart shaping and table views."""
    max_data_points: int = Field(default=constants.MAX_DATA_POINTS, description="Distinct x values returned without bucketing")
    month_bucket_threshold: int = Field(default=constants.MONTH_BUCKET_THRESHOLD, description="Distinct dates above which buckets are monthly")
    max_pie_slices: int = Field(default=constants.MAX_PIE_SLICES, description="Pie slices including the 'Other' slice")
    default_page_size: int = Field(default=constants.DEFAULT_PAGE_SIZE)
    max_page_size: int = Field(default=constants.MAX_PAGE_SIZE)
    distinct_values_limit: int = Field(default=constants.DISTINCT_VALUES_LIMIT)
    id_uniqueness_ratio: float = Field(
        default=constants.ID_COLUMN_UNIQUENESS_RATIO,
        description="Distinct/total ratio above which a column is treated as an identifier"
    )
    csv_chunk_size: int = Field(default=constants.CSV_CHUNK_SIZE, description="Rows per chunk for CSV streaming")


class ServerConfig(BaseModel):
    """HTTP server configuration."""
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]
    )


class TablescopeConfig(BaseModel):
    """Main configuration."""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


# Global configuration instance
config = TablescopeConfig()
