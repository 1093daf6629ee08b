"""
Shared setup for schemaledger tests

Provides an isolated SQLite database file and temporary migration
directories per test.
"""

import shutil
import tempfile
import textwrap
import unittest
from pathlib import Path

from sqlalchemy import inspect, text

from schemaledger.database.config import DatabaseConfig
from schemaledger.migrations.ledger import Ledger
from schemaledger.migrations.migration_runner import MigrationRunner


PYTHON_UNIT = '''
from sqlalchemy import text


def up(conn):
{up}


def down(conn):
{down}
'''


def _body(statements, fail_message=None):
    lines = [f"    conn.execute(text({sql!r}))" for sql in statements]
    if fail_message:
        lines.append(f"    raise RuntimeError({fail_message!r})")
    return "\n".join(lines) or "    pass"


class MigrationTestBase(unittest.TestCase):
    """Base class for database tests with common setup"""

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())
        self.db_path = self.tmpdir / "test.db"
        self.config = DatabaseConfig(
            database_url=f"sqlite:///{self.db_path}",
            migration_paths=[],
            load_env_file=False,
        )
        self.engine = self.config.create_engine()
        self.ledger = Ledger()
        self.runner = MigrationRunner(self.engine, ledger=self.ledger)

    def tearDown(self):
        self.config.dispose()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def make_root(self, name: str) -> Path:
        root = self.tmpdir / name
        root.mkdir()
        return root

    def write_migration(self, root: Path, name: str, up=(), down=(),
                        fail_up=None, fail_down=None) -> Path:
        """Write a Python migration module running the given SQL statements"""
        path = root / f"{name}.py"
        path.write_text(PYTHON_UNIT.format(
            up=_body(up, fail_up),
            down=_body(down, fail_down),
        ))
        return path

    def write_sql_migration(self, root: Path, name: str, content: str) -> Path:
        path = root / f"{name}.sql"
        path.write_text(textwrap.dedent(content))
        return path

    def table_exists(self, table: str) -> bool:
        return inspect(self.engine).has_table(table)

    def column_names(self, table: str):
        return [c['name'] for c in inspect(self.engine).get_columns(table)]

    def ledger_names(self):
        with self.engine.connect() as conn:
            return [record.name for record in self.ledger.applied_records(conn)]

    def is_applied(self, name: str) -> bool:
        with self.engine.connect() as conn:
            return self.ledger.is_applied(conn, name)

    def count_rows(self, table: str) -> int:
        with self.engine.connect() as conn:
            return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
