"""
Storage Services Package

Provides abstract interfaces and concrete implementations for persisting
the transaction log and the audit trail: a local CSV file and Google Sheets.
"""

from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
    TransactionLogStorageInterface,
)
from household_ledger.services.storage.csv_file import (
    CsvTransactionLogStorage,
    write_transaction_log,
)
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionLogStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TransactionLogStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Implementations
    "CsvTransactionLogStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionLogStorage",
    "write_transaction_log",
]
