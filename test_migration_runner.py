#!/usr/bin/env python3
"""
Tests for batch and single-migration orchestration

Covers ordering across roots, idempotent and resumable batch runs, the
applied/pending report and single-file apply/revert commands.
"""

import unittest
from unittest.mock import patch

from schemaledger.error_handling import (
    InvalidMigrationName,
    NotAppliedError,
    NotFoundError,
    TransactionError,
)
from schemaledger.migrations.executor import ApplyStatus, RevertStatus

from migration_test_base import MigrationTestBase


class TestApplyAll(MigrationTestBase):
    """Batch application"""

    def setUp(self):
        super().setUp()
        self.p1 = self.make_root("p1")
        self.p2 = self.make_root("p2")
        self.write_migration(self.p1, "10-create_users",
                             up=["CREATE TABLE users (id INTEGER PRIMARY KEY)"],
                             down=["DROP TABLE users"])
        self.write_migration(self.p1, "30-add_index",
                             up=["CREATE INDEX users_email_idx ON users (email)"],
                             down=["DROP INDEX users_email_idx"])
        self.write_migration(self.p2, "20-add_email",
                             up=["ALTER TABLE users ADD COLUMN email TEXT"])

    def test_applies_across_roots_in_order_key_order(self):
        executor = self.runner.executor
        with patch.object(executor, "apply_one", wraps=executor.apply_one) as apply_one:
            count = self.runner.apply_all([self.p1, self.p2])

        called = [c.args[0].name for c in apply_one.call_args_list]
        self.assertEqual(called, ["10-create_users", "20-add_email", "30-add_index"])
        self.assertEqual(count, 3)
        self.assertEqual(self.count_rows("migrations"), 3)
        self.assertIn("email", self.column_names("users"))

    def test_root_order_does_not_affect_apply_order(self):
        executor = self.runner.executor
        with patch.object(executor, "apply_one", wraps=executor.apply_one) as apply_one:
            self.runner.apply_all([self.p2, self.p1])

        called = [c.args[0].order for c in apply_one.call_args_list]
        self.assertEqual(called, [10, 20, 30])

    def test_second_run_applies_nothing(self):
        self.assertEqual(self.runner.apply_all([self.p1, self.p2]), 3)
        self.assertEqual(self.runner.apply_all([self.p1, self.p2]), 0)
        self.assertEqual(self.count_rows("migrations"), 3)

    def test_new_migration_is_picked_up(self):
        self.runner.apply_all([self.p1, self.p2])
        self.write_migration(self.p2, "40-create_posts",
                             up=["CREATE TABLE posts (id INTEGER PRIMARY KEY)"])

        self.assertEqual(self.runner.apply_all([self.p1, self.p2]), 1)
        self.assertTrue(self.table_exists("posts"))

    def test_list_reports_applied_flags_in_order(self):
        self.runner.apply_all([self.p1, self.p2])

        states = self.runner.list_migrations([self.p1, self.p2])

        self.assertEqual(
            [(s.descriptor.name, s.applied) for s in states],
            [("10-create_users", True), ("20-add_email", True), ("30-add_index", True)],
        )

    def test_list_before_any_run_bootstraps_ledger_only(self):
        states = self.runner.list_migrations([self.p1, self.p2])

        self.assertEqual([s.applied for s in states], [False, False, False])
        self.assertTrue(self.table_exists("migrations"))
        self.assertFalse(self.table_exists("users"))

    def test_equal_order_keys_fall_back_to_name(self):
        self.write_migration(self.p2, "40-b_second", up=["CREATE TABLE b (id INTEGER)"])
        self.write_migration(self.p1, "40-a_first", up=["CREATE TABLE a (id INTEGER)"])

        with self.assertLogs("schemaledger.migrations.migration_runner", level="WARNING"):
            names = [m.name for m in self.runner.find_all_migrations([self.p1, self.p2])]

        self.assertEqual(names[-2:], ["40-a_first", "40-b_second"])


class TestResumableBatch(MigrationTestBase):
    """A failing migration stops the batch; rerunning resumes from it"""

    def setUp(self):
        super().setUp()
        self.root = self.make_root("migrations")
        self.write_migration(self.root, "10-create_users",
                             up=["CREATE TABLE users (id INTEGER PRIMARY KEY)"])
        self.write_migration(self.root, "20-add_email",
                             up=["ALTER TABLE users ADD COLUMN email TEXT"],
                             fail_up="not yet")
        self.write_migration(self.root, "30-create_posts",
                             up=["CREATE TABLE posts (id INTEGER PRIMARY KEY)"])

    def test_fail_fast_then_resume(self):
        executor = self.runner.executor
        with patch.object(executor, "apply_one", wraps=executor.apply_one) as apply_one:
            with self.assertRaises(TransactionError):
                self.runner.apply_all([self.root])

        self.assertEqual([c.args[0].name for c in apply_one.call_args_list],
                         ["10-create_users", "20-add_email"])
        self.assertEqual(self.ledger_names(), ["10-create_users"])
        self.assertNotIn("email", self.column_names("users"))
        self.assertFalse(self.table_exists("posts"))

        # Fix the failing migration and run again
        self.write_migration(self.root, "20-add_email",
                             up=["ALTER TABLE users ADD COLUMN email TEXT",
                                 "CREATE INDEX users_email_idx ON users (email)"])

        self.assertEqual(self.runner.apply_all([self.root]), 2)
        self.assertEqual(sorted(self.ledger_names()),
                         ["10-create_users", "20-add_email", "30-create_posts"])
        self.assertIn("email", self.column_names("users"))
        self.assertTrue(self.table_exists("posts"))


class TestSingleMigrationCommands(MigrationTestBase):
    """apply/revert of one migration file"""

    def setUp(self):
        super().setUp()
        self.root = self.make_root("migrations")
        self.path = self.write_migration(self.root, "10-create_users",
                                         up=["CREATE TABLE users (id INTEGER PRIMARY KEY)"],
                                         down=["DROP TABLE users"])

    def test_apply_then_revert(self):
        self.assertIs(self.runner.apply_one_at(self.path), ApplyStatus.APPLIED)
        self.assertTrue(self.table_exists("users"))

        self.assertIs(self.runner.revert_one_at(self.path), RevertStatus.REVERTED)
        self.assertFalse(self.table_exists("users"))
        self.assertFalse(self.is_applied("10-create_users"))

    def test_apply_twice_is_a_logged_noop(self):
        self.runner.apply_one_at(self.path)

        with self.assertLogs("schemaledger.migrations.migration_runner", level="INFO") as logs:
            status = self.runner.apply_one_at(self.path)

        self.assertIs(status, ApplyStatus.ALREADY_APPLIED)
        self.assertTrue(any("already been applied" in line for line in logs.output))

    def test_missing_file_touches_no_database(self):
        missing = self.root / "20-missing.py"

        with self.assertRaises(NotFoundError):
            self.runner.apply_one_at(missing)
        with self.assertRaises(NotFoundError):
            self.runner.revert_one_at(missing)

        self.assertFalse(self.table_exists("migrations"))

    def test_file_without_loader_is_rejected_before_database_access(self):
        notes = self.root / "10-notes.txt"
        notes.write_text("CREATE TABLE notes (body TEXT);")

        with self.assertRaises(InvalidMigrationName):
            self.runner.apply_one_at(notes)
        with self.assertRaises(InvalidMigrationName):
            self.runner.revert_one_at(notes)

        self.assertFalse(self.table_exists("migrations"))

    def test_revert_never_applied_raises(self):
        with self.assertRaises(NotAppliedError):
            self.runner.revert_one_at(self.path)

    def test_applied_records_report_timestamps(self):
        self.runner.apply_one_at(self.path)

        records = self.runner.get_applied_records()

        self.assertEqual([r.name for r in records], ["10-create_users"])
        self.assertIsNotNone(records[0].applied_at)


if __name__ == "__main__":
    unittest.main()
