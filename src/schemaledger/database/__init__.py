"""
Database configuration and engine construction.
"""

from .config import DatabaseConfig, enable_sqlite_transactional_ddl

__all__ = ['DatabaseConfig', 'enable_sqlite_transactional_ddl']
