"""
Database Configuration for schemaledger

Reads connection and migration settings from the environment (optionally
seeded from a .env file) and builds the SQLAlchemy engine handed to the
migration engine. Supports SQLite (development, tests) and PostgreSQL.
"""

import os
import logging
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event

from ..error_handling import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "migrations"


def enable_sqlite_transactional_ddl(engine):
    """
    Make pysqlite run DDL inside the SQLAlchemy transaction.

    The sqlite3 driver only opens a transaction before DML, so a CREATE TABLE
    issued first would autocommit and survive a rollback. Turning off the
    driver's own transaction handling and emitting BEGIN ourselves keeps the
    schema change and the ledger write in one transaction.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


class DatabaseConfig:
    """Database and migration settings manager"""

    def __init__(self, database_url: Optional[str] = None,
                 migration_paths: Optional[List[str]] = None,
                 table_name: Optional[str] = None,
                 load_env_file: bool = True):
        """
        Initialize configuration

        Explicit arguments win over environment variables.

        Args:
            database_url: SQLAlchemy database URL (falls back to DATABASE_URL)
            migration_paths: Roots to scan (falls back to MIGRATION_PATHS)
            table_name: Ledger table name (falls back to MIGRATIONS_TABLE)
            load_env_file: Load a .env file from the working directory first
        """
        if load_env_file:
            load_dotenv()

        self.database_url = database_url or os.getenv("DATABASE_URL", "")
        self.migration_paths = self._get_migration_paths(migration_paths)
        self.table_name = table_name or os.getenv("MIGRATIONS_TABLE", DEFAULT_TABLE_NAME)
        self.engine = None

    def _get_migration_paths(self, migration_paths: Optional[List[str]]) -> List[Path]:
        """Get migration roots, preserving the configured order"""
        if migration_paths:
            return [Path(p) for p in migration_paths]

        raw = os.getenv("MIGRATION_PATHS", "")
        return [Path(p) for p in raw.split(os.pathsep) if p.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def validate(self):
        """Raise ConfigurationError if a required setting is missing"""
        if not self.database_url:
            raise ConfigurationError("DATABASE_URL not set. aborting", setting="DATABASE_URL")
        if not self.migration_paths:
            raise ConfigurationError("MIGRATION_PATHS not set. aborting", setting="MIGRATION_PATHS")

    def create_engine(self, **kwargs):
        """Create SQLAlchemy engine with appropriate configuration"""
        if not self.database_url:
            raise ConfigurationError("DATABASE_URL not set. aborting", setting="DATABASE_URL")

        engine_config = {}

        # Add common configuration
        engine_config["echo"] = os.getenv("DB_ECHO", "false").lower() == "true"
        engine_config["pool_pre_ping"] = True

        if not self.is_sqlite:
            engine_config["pool_size"] = int(os.getenv("DB_POOL_SIZE", "5"))
            engine_config["max_overflow"] = int(os.getenv("DB_MAX_OVERFLOW", "10"))
            engine_config["pool_timeout"] = int(os.getenv("DB_POOL_TIMEOUT", "30"))
            engine_config["pool_recycle"] = int(os.getenv("DB_POOL_RECYCLE", "3600"))

        # Override with any provided kwargs
        engine_config.update(kwargs)

        self.engine = create_engine(self.database_url, **engine_config)
        if self.is_sqlite:
            enable_sqlite_transactional_ddl(self.engine)

        logger.debug(f"Engine created for {self._mask_database_url()}")
        return self.engine

    def dispose(self):
        """Release pooled connections held by the engine"""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    def _mask_database_url(self) -> str:
        """Mask credentials in the database URL for logging"""
        url = self.database_url
        if "@" in url:
            protocol_and_creds, host_and_path = url.rsplit("@", 1)
            protocol = protocol_and_creds.split("://")[0]
            return f"{protocol}://***:***@{host_and_path}"
        return url

    def get_connection_info(self) -> Dict:
        """Get connection information for debugging"""
        return {
            "database_url": self._mask_database_url(),
            "migration_paths": [str(p) for p in self.migration_paths],
            "table_name": self.table_name,
            "engine_created": self.engine is not None,
        }
