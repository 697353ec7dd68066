"""Configuration management for the table profiler."""

from enum import Enum
from typing import Optional

from pydantic_settings import BaseSettings


class FailurePolicy(str, Enum):
    """What a profiling run does when one column's statistics fail."""

    ABORT_RUN = "abort-run"
    MARK_AND_CONTINUE = "mark-and-continue"


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Database backend: "duckdb" or "jdbc"
    db_backend: str = "duckdb"
    duckdb_path: str = ":memory:"
    duckdb_read_only: bool = False

    # JDBC (JPype)
    jdbc_url: Optional[str] = None      # e.g., jdbc:sqlserver://host:1433;databaseName=dw
    jdbc_driver: Optional[str] = None   # e.g., com.microsoft.sqlserver.jdbc.SQLServerDriver
    jdbc_classpath: Optional[str] = None  # os.pathsep-separated driver JARs
    jdbc_pool_size: Optional[int] = None  # open connections kept; defaults to max_workers

    # Profiling
    max_workers: int = 4
    column_timeout_seconds: Optional[float] = 300.0  # 0 or unset disables the timeout
    max_value_length: int = 4000
    failure_policy: FailurePolicy = FailurePolicy.MARK_AND_CONTINUE
    poll_interval_seconds: float = 0.1

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
