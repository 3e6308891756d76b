"""
CSV File Storage Implementation

The local transaction log: one header row, then one row per transaction
in the persisted column order. It is the file offered for download by
the dashboard and opens directly in any spreadsheet program.
"""

import csv
from pathlib import Path
from typing import TextIO, Union

import structlog

from household_ledger.models.registry import Registry
from household_ledger.models.transaction import PERSISTED_COLUMNS
from household_ledger.services.storage.interface import (
    StorageError,
    TransactionLogStorageInterface,
)


logger = structlog.get_logger(__name__)


def write_transaction_log(registry: Registry, f: TextIO) -> int:
    """Write the header and one row per transaction; returns the row count."""
    rows = registry.to_persisted_form()
    writer = csv.writer(f)
    writer.writerow(PERSISTED_COLUMNS)
    writer.writerows(rows)
    return len(rows)


class CsvTransactionLogStorage(TransactionLogStorageInterface):
    """
    Transaction log stored in a CSV file.

    File system errors (missing file, permissions) propagate as OSError;
    only undecodable content is reported as StorageError.
    """

    backend_name = "csv"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save_registry(self, registry: Registry) -> int:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", newline="", encoding="utf-8") as f:
            count = write_transaction_log(registry, f)

        logger.info("registry_saved", backend=self.backend_name, path=str(self.path),
                    transactions=count)
        return count

    def load_registry(self) -> Registry:
        with self.path.open("r", newline="", encoding="utf-8") as f:
            records = list(csv.reader(f))

        try:
            registry = Registry.from_persisted_form(records)
        except ValueError as e:
            raise StorageError(f"Invalid transaction log {self.path}: {e}") from e

        logger.info("registry_loaded", backend=self.backend_name, path=str(self.path),
                    transactions=len(registry.transactions))
        return registry
