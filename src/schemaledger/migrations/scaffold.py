"""
Scaffolding for new migration files
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from ..error_handling import InvalidMigrationName, NotFoundError
from .discovery import ORDER_KEY_PATTERN

logger = logging.getLogger(__name__)

PYTHON_TEMPLATE = '''"""
Migration: {name}
"""

from sqlalchemy import text  # noqa: F401


def up(conn):
    pass


def down(conn):
    pass
'''

SQL_TEMPLATE = '''-- Migration: {name}
-- Description:
-- Rollback:

'''

TEMPLATES = {
    'py': PYTHON_TEMPLATE,
    'sql': SQL_TEMPLATE,
}


def _current_time_ms() -> int:
    return int(time.time() * 1000)


def _largest_order_key(directory: Path) -> Optional[int]:
    keys = []
    for path in directory.iterdir():
        match = ORDER_KEY_PATTERN.match(path.name)
        if match and path.is_file():
            keys.append(int(match.group(1)))
    return max(keys) if keys else None


def create_migration(name: str, directory, kind: str = 'py',
                     clock: Optional[Callable[[], int]] = None) -> Path:
    """
    Write a new, empty migration file

    The order key is the current time in milliseconds. When the directory
    already holds a migration with an equal or later key, the new key is one
    past the largest existing key, so files created in sequence always sort
    in creation order.

    Args:
        name: Descriptive part of the file name, e.g. "add_email"
        directory: Existing directory to write into
        kind: 'py' for a Python module, 'sql' for a SQL script
        clock: Millisecond clock, defaults to wall-clock time

    Returns:
        Path of the written file
    """
    directory = Path(directory)
    if not name or '/' in name or '\\' in name:
        raise InvalidMigrationName(f"Invalid migration name {name!r}", name=name)
    if kind not in TEMPLATES:
        raise ValueError(f"Unknown migration kind {kind!r}; expected one of {sorted(TEMPLATES)}")
    if not directory.is_dir():
        raise NotFoundError(f"Directory {directory} not found", location=directory)

    order_key = (clock or _current_time_ms)()
    largest = _largest_order_key(directory)
    if largest is not None and largest >= order_key:
        order_key = largest + 1

    path = directory / f"{order_key}-{name}.{kind}"
    with open(path, 'x', encoding='utf-8') as f:
        f.write(TEMPLATES[kind].format(name=f"{order_key}-{name}"))

    logger.info(f"Migration written to {path}")
    return path
