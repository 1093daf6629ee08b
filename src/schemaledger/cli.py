#!/usr/bin/env python3
"""
schemaledger command-line interface

Usage:
    schemaledger all                         # Apply all pending migrations
    schemaledger list                        # Show all migrations, oldest to newest
    schemaledger apply  ./path/to/migration  # Apply one migration
    schemaledger revert ./path/to/migration  # Revert one migration
    schemaledger create <NAME> <DIRECTORY>   # Create a migration in the given directory

Exit status: 0 on success, 1 when a migration, database or file operation fails,
2 on usage or configuration errors.
"""

import argparse
import logging
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .database.config import DatabaseConfig
from .error_handling import ConfigurationError, LoggingManager, MigrationError
from .migrations.ledger import Ledger
from .migrations.migration_runner import MigrationRunner
from .migrations.scaffold import create_migration

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='schemaledger',
        description='Apply, revert and inspect ordered database migrations'
    )
    parser.add_argument('--database-url', help='SQLAlchemy database URL (default: $DATABASE_URL)')
    parser.add_argument('--path', action='append', dest='paths', metavar='DIR',
                        help='Migration directory; repeat for several (default: $MIGRATION_PATHS)')
    parser.add_argument('--table', help='Ledger table name (default: $MIGRATIONS_TABLE or "migrations")')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    subparsers.add_parser('all', help='Apply all pending migrations')
    subparsers.add_parser('list', help='Show all migrations, oldest to newest')

    apply_parser = subparsers.add_parser('apply', help='Apply one migration')
    apply_parser.add_argument('location', help='Path to the migration file')

    revert_parser = subparsers.add_parser('revert', help='Revert one migration')
    revert_parser.add_argument('location', help='Path to the migration file')

    create_parser = subparsers.add_parser('create', help='Create a migration in the given directory')
    create_parser.add_argument('name', help='Descriptive name, e.g. add_email')
    create_parser.add_argument('directory', help='Directory to write the migration into')
    create_parser.add_argument('--sql', action='store_true', help='Write a .sql migration instead of .py')

    return parser


def print_migration_list(runner: MigrationRunner, paths):
    states = runner.list_migrations(paths)
    applied_at = {record.name: record.applied_at for record in runner.get_applied_records()}

    print("Applied Y/N     Applied at                   Path to migration")
    for state in states:
        flag = 'Y' if state.applied else 'N'
        timestamp = applied_at.get(state.descriptor.name)
        when = timestamp.isoformat(sep=' ', timespec='seconds') if timestamp else '-'
        print(f"{flag:<15} {when:<28} {state.descriptor.location}")

    pending = sum(1 for state in states if not state.applied)
    print(f"\n{len(states)} migrations, {pending} pending")


def run_command(args, config: DatabaseConfig) -> int:
    if args.command == 'create':
        create_migration(args.name, args.directory, kind='sql' if args.sql else 'py')
        return EXIT_OK

    if args.command in ('all', 'list'):
        config.validate()

    engine = config.create_engine()
    try:
        runner = MigrationRunner(engine, ledger=Ledger(config.table_name))

        if args.command == 'all':
            runner.apply_all(config.migration_paths)
        elif args.command == 'list':
            print_migration_list(runner, config.migration_paths)
        elif args.command == 'apply':
            runner.apply_one_at(args.location)
        elif args.command == 'revert':
            runner.revert_one_at(args.location)
    finally:
        config.dispose()

    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    LoggingManager.setup_logging('DEBUG' if args.verbose else 'INFO')

    config = DatabaseConfig(
        database_url=args.database_url,
        migration_paths=args.paths,
        table_name=args.table,
    )

    try:
        return run_command(args, config)
    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_USAGE
    except MigrationError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except SQLAlchemyError as e:
        logger.error(f"Database error: {e}")
        return EXIT_FAILURE
    except OSError as e:
        logger.error(f"File error: {e}")
        return EXIT_FAILURE


if __name__ == '__main__':
    sys.exit(main())
