"""Services package."""

from household_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    CsvTransactionLogStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionLogStorage,
    StorageError,
    TransactionLogStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "CsvTransactionLogStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionLogStorage",
    "StorageError",
    "TransactionLogStorageInterface",
]
