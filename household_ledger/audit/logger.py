"""
Audit Logger

DESIGN DECISION: Every step that changes what the ledger knows is logged.
This provides:
1. Traceability from a chart back to the worksheets it came from
2. Debugging capability when a worksheet is rejected
3. A shared history for everyone using the same spreadsheet

The audit logger:
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditSeverity,
)
from household_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when configured (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_workbook_uploaded(
        self,
        filename: str,
        file_size: int,
        correlation_id: UUID,
    ) -> None:
        """Log workbook upload."""
        self.log(AuditEventBuilder.workbook_uploaded(
            filename=filename,
            file_size=file_size,
            correlation_id=correlation_id,
        ))

    def log_worksheet_extracted(
        self,
        worksheet: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.worksheet_extracted(
            worksheet=worksheet,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        ))

    def log_worksheet_failed(
        self,
        worksheet: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.worksheet_failed(
            worksheet=worksheet,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_registry_merged(
        self,
        worksheets: list[str],
        transaction_count: int,
        account_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.registry_merged(
            worksheets=worksheets,
            transaction_count=transaction_count,
            account_count=account_count,
            correlation_id=correlation_id,
        ))

    def log_registry_saved(
        self,
        backend: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.registry_saved(
            backend=backend,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        ))

    def log_registry_loaded(
        self,
        backend: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.registry_loaded(
            backend=backend,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        ))

    def log_save_failed(
        self,
        backend: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.save_failed(
            backend=backend,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_extraction_completed(
        self,
        view: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.extraction_completed(
            view=view,
            correlation_id=correlation_id,
        ))

    def log_extraction_failed(
        self,
        view: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.extraction_failed(
            view=view,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a workbook upload)
    and pass it through all subsequent operations.
    """
    return uuid4()
