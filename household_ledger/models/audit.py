"""
Audit Models for Household Ledger

Every step that changes what the ledger knows is recorded:
- which worksheets were ingested and which were rejected
- when registries were merged, saved and loaded
- which report views were built or failed

DESIGN DECISION: Audit logs are append-only. Events are never updated
or deleted once written.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each stage of the workbook-to-report pipeline has its own event type.
    """
    # Ingestion
    WORKBOOK_UPLOADED = "workbook_uploaded"
    WORKSHEET_EXTRACTED = "worksheet_extracted"
    WORKSHEET_FAILED = "worksheet_failed"
    REGISTRY_MERGED = "registry_merged"

    # Persistence
    REGISTRY_SAVED = "registry_saved"
    REGISTRY_LOADED = "registry_loaded"
    SAVE_FAILED = "save_failed"

    # Reports
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Column order of the audit worksheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_name",
    "correlation_id",
    "description",
    "details",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'workbook', 'worksheet', 'report')"
    )
    entity_name: Optional[str] = Field(
        default=None,
        description="Name of the entity (file name, worksheet name, view name)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one upload or one report"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_name": self.entity_name,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit worksheet.

        Columns follow AUDIT_COLUMNS.
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_name or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.worksheet_extracted("2023-01", 42, correlation_id)
        event = AuditEventBuilder.registry_saved("csv", 120, correlation_id)
    """

    @staticmethod
    def workbook_uploaded(
        filename: str,
        file_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WORKBOOK_UPLOADED,
            entity_type="workbook",
            entity_name=filename,
            correlation_id=correlation_id,
            description=f"Workbook uploaded: {filename}",
            details={
                "file_size_bytes": file_size,
            },
            is_user_action=True,
        )

    @staticmethod
    def worksheet_extracted(
        worksheet: str,
        transaction_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WORKSHEET_EXTRACTED,
            entity_type="worksheet",
            entity_name=worksheet,
            correlation_id=correlation_id,
            description=f"Worksheet {worksheet} extracted: {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
            },
        )

    @staticmethod
    def worksheet_failed(
        worksheet: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WORKSHEET_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="worksheet",
            entity_name=worksheet,
            correlation_id=correlation_id,
            description=f"Worksheet {worksheet} skipped",
            error_message=error_message,
        )

    @staticmethod
    def registry_merged(
        worksheets: list[str],
        transaction_count: int,
        account_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRY_MERGED,
            entity_type="registry",
            correlation_id=correlation_id,
            description=(
                f"Merged {len(worksheets)} worksheets into "
                f"{transaction_count} transactions on {account_count} accounts"
            ),
            details={
                "worksheets": worksheets,
                "transaction_count": transaction_count,
                "account_count": account_count,
            },
        )

    @staticmethod
    def registry_saved(
        backend: str,
        transaction_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRY_SAVED,
            entity_type="registry",
            entity_name=backend,
            correlation_id=correlation_id,
            description=f"Registry saved to {backend}: {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def registry_loaded(
        backend: str,
        transaction_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRY_LOADED,
            entity_type="registry",
            entity_name=backend,
            correlation_id=correlation_id,
            description=f"Registry loaded from {backend}: {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
            },
        )

    @staticmethod
    def save_failed(
        backend: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="registry",
            entity_name=backend,
            correlation_id=correlation_id,
            description=f"Saving the registry to {backend} failed",
            error_message=error_message,
        )

    @staticmethod
    def extraction_completed(
        view: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="report",
            entity_name=view,
            correlation_id=correlation_id,
            description=f"Report view built: {view}",
        )

    @staticmethod
    def extraction_failed(
        view: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="report",
            entity_name=view,
            correlation_id=correlation_id,
            description=f"Report view not built: {view}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
