#!/usr/bin/env python3
"""
Tests for the migration ledger table
"""

import unittest
from datetime import datetime

from sqlalchemy import inspect

from schemaledger.error_handling import ConflictError
from schemaledger.migrations.ledger import Ledger

from migration_test_base import MigrationTestBase


class TestLedgerSchema(MigrationTestBase):

    def test_ensure_schema_creates_table_once(self):
        with self.engine.begin() as conn:
            self.assertTrue(self.ledger.ensure_schema(conn))
        with self.engine.begin() as conn:
            self.assertFalse(self.ledger.ensure_schema(conn))

        columns = {c['name']: c for c in inspect(self.engine).get_columns("migrations")}
        self.assertEqual(set(columns), {"name", "applied_at"})
        self.assertFalse(columns["name"]["nullable"])
        self.assertFalse(columns["applied_at"]["nullable"])

    def test_existing_rows_survive_ensure_schema(self):
        with self.engine.begin() as conn:
            self.ledger.ensure_schema(conn)
            self.ledger.record_applied(conn, "10-create_users")
        with self.engine.begin() as conn:
            self.ledger.ensure_schema(conn)

        self.assertEqual(self.ledger_names(), ["10-create_users"])

    def test_custom_table_name(self):
        ledger = Ledger("schema_history")
        with self.engine.begin() as conn:
            ledger.ensure_schema(conn)

        self.assertTrue(self.table_exists("schema_history"))
        self.assertFalse(self.table_exists("migrations"))


class TestLedgerRecords(MigrationTestBase):

    def setUp(self):
        super().setUp()
        with self.engine.begin() as conn:
            self.ledger.ensure_schema(conn)

    def test_record_and_query(self):
        with self.engine.begin() as conn:
            self.assertFalse(self.ledger.is_applied(conn, "10-create_users"))
            self.ledger.record_applied(conn, "10-create_users")
            self.assertTrue(self.ledger.is_applied(conn, "10-create_users"))

        with self.engine.connect() as conn:
            records = self.ledger.applied_records(conn)

        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].name, "10-create_users")
        self.assertIsInstance(records[0].applied_at, datetime)

    def test_duplicate_record_raises_conflict(self):
        with self.engine.begin() as conn:
            self.ledger.record_applied(conn, "10-create_users")

        with self.assertRaises(ConflictError) as ctx:
            with self.engine.begin() as conn:
                self.ledger.record_applied(conn, "10-create_users")

        self.assertEqual(ctx.exception.name, "10-create_users")
        self.assertEqual(self.ledger_names(), ["10-create_users"])

    def test_record_reverted_removes_row(self):
        with self.engine.begin() as conn:
            self.ledger.record_applied(conn, "10-create_users")
            self.ledger.record_applied(conn, "20-add_email")
        with self.engine.begin() as conn:
            self.ledger.record_reverted(conn, "10-create_users")

        self.assertEqual(self.ledger_names(), ["20-add_email"])

    def test_record_reverted_of_missing_row_is_noop(self):
        with self.engine.begin() as conn:
            self.ledger.record_reverted(conn, "99-never")

        self.assertEqual(self.ledger_names(), [])

    def test_uncommitted_record_is_rolled_back(self):
        with self.assertRaises(RuntimeError):
            with self.engine.begin() as conn:
                self.ledger.record_applied(conn, "10-create_users")
                raise RuntimeError("abort")

        self.assertFalse(self.is_applied("10-create_users"))


if __name__ == "__main__":
    unittest.main()
