"""
Ledger for Database Migrations

Tracks which migrations have been applied, and when, in a table that
external tooling can query directly:

    name        TEXT        NOT NULL UNIQUE
    applied_at  TIMESTAMPTZ NOT NULL DEFAULT now()

Every method takes the connection to run on; the ledger never opens or
commits a transaction of its own, so its writes share the fate of the
schema change they record.
"""

import logging
from datetime import datetime
from typing import List, NamedTuple, Optional

from sqlalchemy import Column, DateTime, MetaData, Table, Text, func, inspect, select
from sqlalchemy.exc import IntegrityError

from ..error_handling import ConflictError

logger = logging.getLogger(__name__)


class LedgerRecord(NamedTuple):
    """One applied migration"""
    name: str
    applied_at: datetime


class Ledger:
    """
    Persisted record of applied migration names

    The unique constraint on ``name`` is what stops two concurrent runs from
    both recording the same migration.
    """

    def __init__(self, table_name: str = "migrations", schema: Optional[str] = None):
        """
        Args:
            table_name: Name of the ledger table
            schema: Optional database schema holding the table
        """
        self.metadata = MetaData()
        self.table = Table(
            table_name,
            self.metadata,
            Column("name", Text, nullable=False, unique=True),
            Column("applied_at", DateTime(timezone=True), nullable=False,
                   server_default=func.now()),
            schema=schema,
        )

    @property
    def table_name(self) -> str:
        return self.table.name

    def ensure_schema(self, conn) -> bool:
        """
        Create the ledger table if it doesn't exist

        Never drops or alters an existing table.

        Returns:
            True if the table was created by this call
        """
        if inspect(conn).has_table(self.table.name, schema=self.table.schema):
            return False

        self.table.create(conn, checkfirst=True)
        logger.info(f"Created migration ledger table {self.table.name}")
        return True

    def is_applied(self, conn, name: str) -> bool:
        """Check whether a ledger record exists for ``name``"""
        query = (
            select(func.count())
            .select_from(self.table)
            .where(self.table.c.name == name)
        )
        return conn.execute(query).scalar() != 0

    def record_applied(self, conn, name: str):
        """
        Insert the ledger record for a freshly applied migration

        Raises:
            ConflictError: a record for ``name`` already exists
        """
        try:
            conn.execute(self.table.insert().values(name=name))
        except IntegrityError as e:
            raise ConflictError(
                f"Migration {name} is already recorded in {self.table.name}", name=name
            ) from e
        logger.debug(f"Recorded migration {name}")

    def record_reverted(self, conn, name: str):
        """Delete the ledger record for ``name``; a missing record is ignored"""
        result = conn.execute(self.table.delete().where(self.table.c.name == name))
        if result.rowcount == 0:
            logger.warning(f"Migration record not found: {name}")
        else:
            logger.debug(f"Removed migration record: {name}")

    def applied_records(self, conn) -> List[LedgerRecord]:
        """Get all ledger records, oldest first"""
        query = select(self.table.c.name, self.table.c.applied_at).order_by(
            self.table.c.applied_at.asc(), self.table.c.name.asc()
        )
        return [LedgerRecord(row.name, row.applied_at) for row in conn.execute(query)]
