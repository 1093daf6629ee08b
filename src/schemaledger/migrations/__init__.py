"""
Database Migration System

Discovers migration files across one or more directories, records applied
migrations in a ledger table and applies or reverts each one in a single
transaction together with its ledger write.

Key Features:
- Ordered, resumable batch application
- Python (.py) and SQL (.sql) migration files
- Ledger write and schema change commit or roll back together
"""

from .discovery import Discoverer, MigrationDescriptor, descriptor_for, sort_descriptors
from .executor import ApplyStatus, Executor, RevertStatus
from .ledger import Ledger, LedgerRecord
from .loaders import LoaderRegistry, MigrationUnit, PythonModuleLoader, SqlScriptLoader
from .migration_runner import MigrationRunner, MigrationState
from .scaffold import create_migration

__all__ = [
    'ApplyStatus',
    'Discoverer',
    'Executor',
    'Ledger',
    'LedgerRecord',
    'LoaderRegistry',
    'MigrationDescriptor',
    'MigrationRunner',
    'MigrationState',
    'MigrationUnit',
    'PythonModuleLoader',
    'RevertStatus',
    'SqlScriptLoader',
    'create_migration',
    'descriptor_for',
    'sort_descriptors',
]
