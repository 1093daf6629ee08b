"""
Migration Runner

Merges discovery across migration roots, orders the result, reconciles it
against the ledger and drives the executor for single-migration and batch
operations.

Batch runs are fail-fast and resumable: the first failing migration stops
the run, migrations committed before it stay applied, and running again
skips them and retries from the failure.
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional

from ..error_handling import InvalidMigrationName, NotFoundError
from .discovery import Discoverer, MigrationDescriptor, descriptor_for, sort_descriptors
from .executor import ApplyStatus, Executor, RevertStatus
from .ledger import Ledger, LedgerRecord
from .loaders import LoaderRegistry

logger = logging.getLogger(__name__)


class MigrationState(NamedTuple):
    """A discovered migration joined with its ledger status"""
    descriptor: MigrationDescriptor
    applied: bool


class MigrationRunner:
    """
    Orchestrates discovery, ledger reconciliation and execution

    The runner only reaches the database through the ledger and the
    executor.
    """

    def __init__(self, engine, ledger: Optional[Ledger] = None,
                 registry: Optional[LoaderRegistry] = None,
                 executor: Optional[Executor] = None):
        """
        Initialize migration runner

        Args:
            engine: SQLAlchemy engine owned by the caller
            ledger: Ledger tracking applied migrations
            registry: Loader registry shared by discovery and execution
            executor: Executor override, mainly for tests
        """
        self.engine = engine
        self.ledger = ledger or Ledger()
        self.registry = registry or LoaderRegistry()
        self.discoverer = Discoverer(self.registry)
        self.executor = executor or Executor(engine, self.ledger, self.registry)

    def ensure_schema(self):
        with self.engine.begin() as conn:
            self.ledger.ensure_schema(conn)

    def find_all_migrations(self, roots: Iterable) -> List[MigrationDescriptor]:
        """Discover migrations in every root, sorted oldest to newest"""
        migrations = sort_descriptors(self.discoverer.scan(roots))
        self._warn_on_duplicates(migrations)
        return migrations

    @staticmethod
    def _warn_on_duplicates(migrations: List[MigrationDescriptor]):
        names = Counter(m.name for m in migrations)
        for name, count in names.items():
            if count > 1:
                logger.warning(f"Migration name {name} found {count} times; it will only run once")

        orders = Counter(m.order for m in migrations)
        for order, count in orders.items():
            if count > 1:
                logger.warning(f"{count} migrations share order key {order}; ordering them by name")

    def apply_all(self, roots: Iterable) -> int:
        """
        Apply all pending migrations in ascending order

        Stops at the first error and re-raises it. Migrations committed
        before the failure remain applied.

        Returns:
            Number of migrations newly applied
        """
        self.ensure_schema()
        migrations = self.find_all_migrations(roots)
        logger.debug(f"Discovered {len(migrations)} migrations")

        num_run = 0
        for migration in migrations:
            if self.executor.apply_one(migration) is ApplyStatus.APPLIED:
                num_run += 1

        if num_run:
            logger.info(f"Applied {num_run} migrations")
        else:
            logger.info("No new migrations to apply")
        return num_run

    def _resolve(self, location, action: str) -> MigrationDescriptor:
        location = Path(location)
        if not location.is_file():
            raise NotFoundError(f"{action} aborted. {location} not found", location=location)
        if not self.registry.handles(location):
            raise InvalidMigrationName(
                f"{action} aborted. {location} is not a migration file; "
                f"expected one of {', '.join(self.registry.extensions)}",
                name=location.name,
            )
        return descriptor_for(location)

    def apply_one_at(self, location) -> ApplyStatus:
        """
        Apply the migration file at ``location``

        An already-applied migration is logged and reported, not raised.

        Raises:
            NotFoundError: the file does not exist; the database is not touched
        """
        migration = self._resolve(location, "Run")
        self.ensure_schema()

        status = self.executor.apply_one(migration)
        if status is ApplyStatus.ALREADY_APPLIED:
            logger.info(f"Run aborted. {location} has already been applied")
        return status

    def revert_one_at(self, location) -> RevertStatus:
        """
        Revert the migration file at ``location``

        Raises:
            NotFoundError: the file does not exist
            NotAppliedError: the migration was never applied
        """
        migration = self._resolve(location, "Revert")
        self.ensure_schema()
        return self.executor.revert_one(migration)

    def list_migrations(self, roots: Iterable) -> List[MigrationState]:
        """Report every discovered migration with its applied flag, oldest first"""
        self.ensure_schema()
        migrations = self.find_all_migrations(roots)

        with self.engine.connect() as conn:
            return [
                MigrationState(m, self.ledger.is_applied(conn, m.name))
                for m in migrations
            ]

    def get_applied_records(self) -> List[LedgerRecord]:
        """Get ledger records with their apply timestamps, oldest first"""
        self.ensure_schema()
        with self.engine.connect() as conn:
            return self.ledger.applied_records(conn)
