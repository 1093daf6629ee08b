"""
Error Handling and Logging for schemaledger

Provides the exception hierarchy raised by the migration engine and the
logging configuration used by the command-line entry point.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union


# Custom exception classes for better error categorization
class MigrationError(Exception):
    """Base exception for migration engine errors"""
    pass


class InvalidMigrationName(MigrationError):
    """A migration file name does not start with an integer order key"""
    def __init__(self, message: str, name: str = "Unknown"):
        super().__init__(message)
        self.name = name


class NotFoundError(MigrationError):
    """A migration file, migration root or target directory does not exist"""
    def __init__(self, message: str, location: Union[str, Path, None] = None):
        super().__init__(message)
        self.location = location


class NotAppliedError(MigrationError):
    """Revert requested for a migration that has no ledger record"""
    def __init__(self, message: str, name: str = "Unknown"):
        super().__init__(message)
        self.name = name


class ConflictError(MigrationError):
    """
    The ledger already holds a record for this migration name.

    Raised when the unique constraint on the ledger rejects an insert, which
    happens when two runs race to apply the same migration.
    """
    def __init__(self, message: str, name: str = "Unknown"):
        super().__init__(message)
        self.name = name


class TransactionError(MigrationError):
    """A migration's own operation raised; its transaction was rolled back"""
    def __init__(self, message: str, name: str = "Unknown", operation: str = "Unknown"):
        super().__init__(message)
        self.name = name
        self.operation = operation


class ConfigurationError(MigrationError):
    """Required configuration is missing or malformed"""
    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(message)
        self.setting = setting


class LoggingManager:
    """
    Centralized logging configuration
    """

    @staticmethod
    def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
        """
        Setup logging configuration for command-line runs

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file path
        """
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level.upper()))

        # Console handler, once per process
        if not any(getattr(h, '_schemaledger_console', False) for h in root_logger.handlers):
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            console_handler._schemaledger_console = True
            root_logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        logging.getLogger('schemaledger').setLevel(getattr(logging, log_level.upper()))
