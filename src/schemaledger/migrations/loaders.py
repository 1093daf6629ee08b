"""
Migration unit loaders

A loader turns a migration file into a ``MigrationUnit``: a pair of
callables ``forward(conn)`` / ``backward(conn)`` run inside the executor's
transaction. Loaders are looked up by file extension through a
``LoaderRegistry``; nothing is cached between loads.
"""

import logging
import re
import types
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional

import sqlparse

logger = logging.getLogger(__name__)


class MigrationUnit(NamedTuple):
    """The two operations a migration file provides"""
    forward: Callable
    backward: Callable


class PythonModuleLoader:
    """
    Loads ``.py`` migrations defining ``up(conn)`` and ``down(conn)``

    The source is compiled and executed fresh on every load. No bytecode is
    written next to the migration and the module is never registered in
    ``sys.modules``.
    """

    extension = ".py"

    def load(self, location: Path) -> MigrationUnit:
        location = Path(location)
        module_name = "schemaledger_unit_" + re.sub(r"\W", "_", location.stem)
        code = compile(location.read_bytes(), str(location), "exec")

        module = types.ModuleType(module_name)
        module.__file__ = str(location)
        exec(code, module.__dict__)

        up = getattr(module, "up", None)
        down = getattr(module, "down", None)
        if not callable(up) or not callable(down):
            raise TypeError(f"{location} must define up(conn) and down(conn)")

        return MigrationUnit(forward=up, backward=down)


class SqlScriptLoader:
    """
    Loads ``.sql`` migrations

    Expected format:
    -- Migration: 001_initial_schema
    -- Description: Create initial tables
    -- Rollback: DROP TABLE users;

    SQL content here...

    A ``-- migrate:down`` line may be used instead of the ``-- Rollback:``
    header when the rollback needs several lines; everything after it is the
    backward SQL.
    """

    extension = ".sql"
    DOWN_MARKER = "-- migrate:down"

    def parse(self, content: str) -> Dict:
        """Split a SQL migration file into metadata, forward and backward SQL"""
        metadata = {
            'name': '',
            'description': '',
            'sql': '',
            'rollback_sql': '',
        }

        up_lines = []
        down_lines = []
        in_down = False

        for line in content.split('\n'):
            stripped = line.strip()
            if stripped.lower().startswith(self.DOWN_MARKER):
                in_down = True
                continue
            if stripped.startswith('-- Migration:'):
                metadata['name'] = stripped.replace('-- Migration:', '').strip()
            elif stripped.startswith('-- Description:'):
                metadata['description'] = stripped.replace('-- Description:', '').strip()
            elif stripped.startswith('-- Rollback:'):
                metadata['rollback_sql'] = stripped.replace('-- Rollback:', '').strip()
            elif stripped.startswith('--'):
                continue
            elif in_down:
                down_lines.append(line)
            else:
                up_lines.append(line)

        metadata['sql'] = '\n'.join(up_lines).strip()
        if down_lines:
            metadata['rollback_sql'] = '\n'.join(down_lines).strip()
        return metadata

    @staticmethod
    def _split_statements(sql: str) -> List[str]:
        # sqlparse keeps quoted literals and $$ bodies intact
        return [stmt.strip() for stmt in sqlparse.split(sql) if stmt.strip().rstrip(';').strip()]

    def _runner(self, sql: str, label: str) -> Callable:
        statements = self._split_statements(sql)

        def run(conn):
            for i, statement in enumerate(statements):
                # Sent verbatim: ":word" inside a literal is not a bind parameter
                conn.exec_driver_sql(statement, execution_options={"no_parameters": True})
                logger.debug(f"Executed statement {i+1}/{len(statements)} for {label}")

        return run

    def load(self, location: Path) -> MigrationUnit:
        location = Path(location)
        metadata = self.parse(location.read_text(encoding='utf-8'))

        if metadata['rollback_sql']:
            backward = self._runner(metadata['rollback_sql'], f"rollback {location.stem}")
        else:
            def backward(conn):
                raise ValueError(f"No rollback SQL available in {location}")

        return MigrationUnit(
            forward=self._runner(metadata['sql'], location.stem),
            backward=backward,
        )


class LoaderRegistry:
    """Maps file extensions to migration loaders"""

    def __init__(self, loaders: Optional[List] = None):
        self._loaders = {}
        for loader in loaders if loaders is not None else [PythonModuleLoader(), SqlScriptLoader()]:
            self.register(loader)

    def register(self, loader, extension: Optional[str] = None):
        ext = (extension or loader.extension).lower()
        if not ext.startswith('.'):
            ext = '.' + ext
        self._loaders[ext] = loader

    @property
    def extensions(self) -> List[str]:
        return sorted(self._loaders)

    def handles(self, location: Path) -> bool:
        return Path(location).suffix.lower() in self._loaders

    def loader_for(self, location: Path):
        try:
            return self._loaders[Path(location).suffix.lower()]
        except KeyError:
            raise ValueError(f"No migration loader registered for {location}") from None

    def load(self, location: Path) -> MigrationUnit:
        return self.loader_for(location).load(location)
