"""
Abstract Storage Interface

DESIGN DECISION: Storage sits behind an abstract interface so that:
1. The transaction log can live in a local CSV file or in Google Sheets
2. Tests can use in-memory fakes
3. Business logic never depends on a storage backend

Only the transaction log is persisted. Accounts are rebuilt by replaying
it, see ``Registry.from_persisted_form``.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from household_ledger.models.audit import AuditEvent
from household_ledger.models.registry import Registry


class TransactionLogStorageInterface(ABC):
    """
    Abstract interface for transaction log storage.

    Any storage implementation (CSV file, Google Sheets, ...) must
    implement these methods.
    """

    #: Short backend name used in logs and audit events
    backend_name: str = "storage"

    @abstractmethod
    def save_registry(self, registry: Registry) -> int:
        """
        Replace the stored log with the transactions of a registry.

        Args:
            registry: The registry to persist

        Returns:
            Number of transactions written

        Raises:
            StorageError: If the backend rejects the write
        """
        pass

    @abstractmethod
    def load_registry(self) -> Registry:
        """
        Rebuild a registry from the stored log.

        Raises:
            StorageError: If the stored log cannot be read or decoded
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - events are never deleted or modified.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events of one ingestion or report run.

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
