"""
Migration discovery

Scans migration roots for unit files and turns each into a
``MigrationDescriptor``. Discovery is read-only and recomputed on every run.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from ..error_handling import InvalidMigrationName, NotFoundError
from .loaders import LoaderRegistry

logger = logging.getLogger(__name__)

ORDER_KEY_PATTERN = re.compile(r'^(\d+)')


@dataclass(frozen=True)
class MigrationDescriptor:
    """A discovered migration file"""

    order: int  # Leading integer of the name, used only for sorting
    name: str  # File name without extension; the ledger key
    location: Path

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.location})"


def parse_order_key(name: str) -> int:
    """
    Parse the leading integer of a migration name

    Raises:
        InvalidMigrationName: the name does not start with digits
    """
    match = ORDER_KEY_PATTERN.match(name)
    if not match:
        raise InvalidMigrationName(
            f"Migration name {name!r} does not start with a numeric order key", name=name
        )
    return int(match.group(1))


def descriptor_for(location) -> MigrationDescriptor:
    """Build the descriptor for a single migration file path"""
    location = Path(location)
    name = location.stem
    return MigrationDescriptor(order=parse_order_key(name), name=name, location=location)


def sort_descriptors(descriptors: Iterable[MigrationDescriptor]) -> List[MigrationDescriptor]:
    """Sort oldest to newest; equal order keys fall back to the name"""
    return sorted(descriptors, key=lambda d: (d.order, d.name))


class Discoverer:
    """Finds migration files in a list of root directories"""

    def __init__(self, registry: Optional[LoaderRegistry] = None):
        self.registry = registry or LoaderRegistry()

    def _is_unit_file(self, path: Path) -> bool:
        if not path.is_file() or path.name.startswith(('_', '.')):
            return False
        return self.registry.handles(path)

    def find_in(self, root) -> List[MigrationDescriptor]:
        """List the migration files directly inside ``root`` (non-recursive)"""
        root = Path(root)
        if not root.is_dir():
            raise NotFoundError(f"Migration path {root} not found", location=root)

        descriptors = [
            descriptor_for(path)
            for path in sorted(root.iterdir())
            if self._is_unit_file(path)
        ]
        logger.debug(f"Found {len(descriptors)} migrations in {root}")
        return descriptors

    def scan(self, roots: Iterable) -> List[MigrationDescriptor]:
        """
        Discover migrations across all roots

        The result is not sorted; callers order it with ``sort_descriptors``.
        Names are not deduplicated across roots.

        Raises:
            InvalidMigrationName: a file name has no leading order key
            NotFoundError: a root does not exist
        """
        descriptors = []
        for root in roots:
            descriptors.extend(self.find_in(root))
        return descriptors
