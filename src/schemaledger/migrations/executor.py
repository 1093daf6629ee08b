"""
Migration Executor

Applies or reverts one migration inside a single transaction that also
writes the ledger. The schema change and its ledger record commit together
or not at all.
"""

import enum
import logging
import time
from typing import Optional

from ..error_handling import ConflictError, NotAppliedError, TransactionError
from .discovery import MigrationDescriptor
from .ledger import Ledger
from .loaders import LoaderRegistry

logger = logging.getLogger(__name__)


class ApplyStatus(enum.Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"


class RevertStatus(enum.Enum):
    REVERTED = "reverted"


class Executor:
    """
    Runs migration units against a SQLAlchemy engine

    Each apply/revert opens its own transaction with ``engine.begin()``; the
    context manager commits on success and rolls back on every error path.
    """

    def __init__(self, engine, ledger: Optional[Ledger] = None,
                 registry: Optional[LoaderRegistry] = None):
        """
        Args:
            engine: SQLAlchemy engine; its lifecycle belongs to the caller
            ledger: Ledger to record applied migrations in
            registry: Loader registry used to load migration files
        """
        self.engine = engine
        self.ledger = ledger or Ledger()
        self.registry = registry or LoaderRegistry()

    def is_applied(self, descriptor: MigrationDescriptor) -> bool:
        with self.engine.connect() as conn:
            return self.ledger.is_applied(conn, descriptor.name)

    def _run_unit(self, conn, descriptor: MigrationDescriptor, operation: str):
        try:
            unit = self.registry.load(descriptor.location)
            getattr(unit, operation)(conn)
        except Exception as e:
            raise TransactionError(
                f"Migration {descriptor.name} failed during {operation}: {e}",
                name=descriptor.name,
                operation=operation,
            ) from e

    def apply_one(self, descriptor: MigrationDescriptor) -> ApplyStatus:
        """
        Apply a single migration

        Returns:
            ApplyStatus.ALREADY_APPLIED without opening a transaction when the
            ledger already has the name, otherwise ApplyStatus.APPLIED

        Raises:
            TransactionError: the migration's forward operation failed
            ConflictError: another run recorded the migration first
        """
        if self.is_applied(descriptor):
            logger.info(f"Skipping {descriptor.name}: already applied")
            return ApplyStatus.ALREADY_APPLIED

        start_time = time.time()
        logger.info(f"Running migration {descriptor.name}")

        try:
            with self.engine.begin() as conn:
                self._run_unit(conn, descriptor, "forward")
                self.ledger.record_applied(conn, descriptor.name)
        except (TransactionError, ConflictError) as e:
            logger.error(f"Migration {descriptor.name} rolled back: {e}")
            raise

        execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Applied migration {descriptor.name} in {execution_time_ms} ms")
        return ApplyStatus.APPLIED

    def revert_one(self, descriptor: MigrationDescriptor) -> RevertStatus:
        """
        Revert a single applied migration

        Raises:
            NotAppliedError: the ledger has no record for the migration; the
                backward operation is not run
            TransactionError: the migration's backward operation failed
        """
        if not self.is_applied(descriptor):
            raise NotAppliedError(
                f"Revert aborted because no migration with name={descriptor.name} "
                f"found in {self.ledger.table_name} table",
                name=descriptor.name,
            )

        logger.info(f"Reverting migration {descriptor.location}")

        try:
            with self.engine.begin() as conn:
                self._run_unit(conn, descriptor, "backward")
                self.ledger.record_reverted(conn, descriptor.name)
        except TransactionError as e:
            logger.error(f"Revert of {descriptor.name} rolled back: {e}")
            raise

        logger.info(f"Reverted migration {descriptor.name}")
        return RevertStatus.REVERTED
