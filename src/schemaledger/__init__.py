"""
schemaledger - ordered, transactional database schema migrations.
"""

from .error_handling import (
    ConfigurationError,
    ConflictError,
    InvalidMigrationName,
    MigrationError,
    NotAppliedError,
    NotFoundError,
    TransactionError,
)
from .migrations import ApplyStatus, MigrationRunner, RevertStatus, create_migration

__version__ = "1.0.0"
__all__ = [
    'ApplyStatus',
    'ConfigurationError',
    'ConflictError',
    'InvalidMigrationName',
    'MigrationError',
    'MigrationRunner',
    'NotAppliedError',
    'NotFoundError',
    'RevertStatus',
    'TransactionError',
    'create_migration',
]
